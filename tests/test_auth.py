"""Tests for Kamling.core.auth."""
import os
import unittest
import urllib.parse

from Kamling.core import auth
from Kamling.core.auth import AuthState, parse_fragment
from Kamling.core.signals import signals
from Kamling.status import status
from tests.base import BaseTestCase, TEST_CLIENT_ID, TEST_REDIRECT_URI


class ParseFragmentTests(unittest.TestCase):
    def test_accepted_forms(self):
        expected = {'access_token': 'abc', 'state': 'xyz'}
        self.assertEqual(parse_fragment('access_token=abc&state=xyz'), expected)
        self.assertEqual(parse_fragment('#access_token=abc&state=xyz'), expected)
        self.assertEqual(parse_fragment('http://localhost:5173/#access_token=abc&state=xyz'), expected)

    def test_empty(self):
        self.assertEqual(parse_fragment(''), {})
        self.assertEqual(parse_fragment(None), {})


class AuthFlowTests(BaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.auth = self.make_auth()

    def _state(self, url: str) -> str:
        query = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)
        return query['state'][0]

    def test_unconfigured(self):
        self.assertFalse(self.auth.is_configured())
        self.assertEqual(self.auth.state(), AuthState.Unconfigured)
        with self.assertRaises(status.ConfigurationErrorException):
            self.auth.build_authorization_url()
        self.assertIsNone(self.auth.tokens.get_state())

    def test_client_id_from_environment(self):
        os.environ['KAMLING_CLIENT_ID'] = 'env-client-id'
        self.assertTrue(self.auth.is_configured())
        self.assertEqual(self.auth.client_id(), 'env-client-id')

    def test_authorization_url(self):
        self.configure()
        self.assertEqual(self.auth.state(), AuthState.Configured)

        url = self.auth.build_authorization_url()
        parsed = urllib.parse.urlparse(url)
        query = urllib.parse.parse_qs(parsed.query)

        self.assertEqual(f'{parsed.scheme}://{parsed.netloc}{parsed.path}', auth.AUTHORIZATION_URL)
        self.assertEqual(query['response_type'], ['token'])
        self.assertEqual(query['client_id'], [TEST_CLIENT_ID])
        self.assertEqual(query['redirect_uri'], [TEST_REDIRECT_URI])
        self.assertEqual(query['access_type'], ['offline'])
        self.assertEqual(query['prompt'], ['consent'])
        self.assertEqual(query['scope'][0].split(' '), auth.DEFAULT_SCOPES)
        self.assertNotIn('code_challenge', query)

        state = query['state'][0]
        self.assertEqual(len(state), 64)
        int(state, 16)
        self.assertEqual(self.auth.tokens.get_state(), state)
        self.assertEqual(self.auth.state(), AuthState.PendingCallback)

    def test_state_is_random(self):
        self.configure()
        first = self._state(self.auth.build_authorization_url())
        second = self._state(self.auth.build_authorization_url())
        self.assertNotEqual(first, second)

    def test_callback_success(self):
        self.configure()
        received = self.record_signal(signals.authenticationChanged)

        state = self._state(self.auth.build_authorization_url())
        ok = self.auth.process_callback(f'#access_token=tok&token_type=Bearer&expires_in=120&state={state}')

        self.assertTrue(ok)
        self.assertEqual(self.auth.tokens.get().value, 'tok')
        self.assertEqual(self.auth.tokens.get().expires_at, self.clock.now + 120)
        self.assertIsNone(self.auth.tokens.get_state())
        self.assertTrue(self.auth.is_authenticated())
        self.assertFalse(self.auth.is_token_expired())
        self.assertEqual(self.auth.state(), AuthState.Authenticated)
        self.assertEqual(received, [True])

    def test_callback_default_expiry(self):
        self.configure()
        state = self._state(self.auth.build_authorization_url())
        self.assertTrue(self.auth.process_callback(f'access_token=tok&state={state}'))
        self.assertEqual(self.auth.tokens.get().expires_at, self.clock.now + auth.DEFAULT_EXPIRES_IN)

    def test_callback_invalid_expiry_uses_default(self):
        self.configure()
        state = self._state(self.auth.build_authorization_url())
        self.assertTrue(self.auth.process_callback(f'access_token=tok&expires_in=soon&state={state}'))
        self.assertEqual(self.auth.tokens.get().expires_at, self.clock.now + auth.DEFAULT_EXPIRES_IN)

    def test_callback_state_mismatch(self):
        self.configure()
        self.auth.build_authorization_url()

        ok = self.auth.process_callback('#access_token=tok&expires_in=3600&state=forged')

        self.assertFalse(ok)
        self.assertIsNone(self.auth.tokens.get())
        self.assertIsNone(self.auth.tokens.get_state())
        self.assertFalse(self.auth.is_authenticated())
        self.assertEqual(self.auth.state(), AuthState.Configured)

    def test_callback_state_consumed_on_failure(self):
        self.configure()
        state = self._state(self.auth.build_authorization_url())

        self.assertFalse(self.auth.process_callback('#access_token=tok&state=wrong'))
        # The genuine state no longer works
        self.assertFalse(self.auth.process_callback(f'#access_token=tok&state={state}'))
        self.assertIsNone(self.auth.tokens.get())

    def test_callback_without_pending_state(self):
        self.configure()
        self.assertFalse(self.auth.process_callback('#access_token=tok&state=abc'))
        self.assertIsNone(self.auth.tokens.get())

    def test_callback_missing_state(self):
        self.configure()
        self.auth.build_authorization_url()
        self.assertFalse(self.auth.process_callback('#access_token=tok'))
        self.assertIsNone(self.auth.tokens.get())

    def test_callback_missing_token(self):
        self.configure()
        state = self._state(self.auth.build_authorization_url())
        self.assertFalse(self.auth.process_callback(f'#expires_in=3600&state={state}'))
        self.assertIsNone(self.auth.tokens.get())

    def test_callback_error(self):
        self.configure()
        state = self._state(self.auth.build_authorization_url())
        self.assertFalse(self.auth.process_callback(f'#error=access_denied&state={state}'))
        self.assertIsNone(self.auth.tokens.get())

    def test_expired_state(self):
        self.configure()
        self.authenticate(self.auth, expires_in=60)
        self.clock.advance(61)

        self.assertTrue(self.auth.is_authenticated())
        self.assertTrue(self.auth.is_token_expired())
        self.assertEqual(self.auth.state(), AuthState.Expired)
        self.assertIsNone(self.auth.credentials())

    def test_credentials(self):
        self.configure()
        self.assertIsNone(self.auth.credentials())

        self.authenticate(self.auth)
        creds = self.auth.credentials()
        self.assertEqual(creds.token, 'test-token')
        self.assertIsNone(creds.refresh_token)
        self.assertIsNone(creds.expiry)

    def test_logout(self):
        self.configure()
        self.authenticate(self.auth)
        self.auth.tokens.set_state('leftover')

        received = self.record_signal(signals.authenticationChanged)

        self.auth.logout()

        self.assertFalse(self.auth.is_authenticated())
        self.assertTrue(self.auth.is_token_expired())
        self.assertIsNone(self.auth.tokens.get_state())
        self.assertEqual(self.auth.state(), AuthState.Configured)
        self.assertEqual(received, [False])


if __name__ == '__main__':
    unittest.main()
