"""
Google OAuth2 implicit-grant authorization.

Builds the consent URL, validates the redirect fragment against the pending
CSRF state, and stores the resulting access token in a :class:`TokenStore`.
The token itself is never refreshed; once it expires the user has to
authorize again.
"""

import enum
import logging
import secrets
import urllib.parse
from typing import Dict, List, Optional

import google.oauth2.credentials
import google_auth_oauthlib.flow
import oauthlib.oauth2
import requests_oauthlib

from .signals import signals
from .tokens import TokenStore
from ..settings.lib import SettingsAPI
from ..status import status

DEFAULT_SCOPES: List[str] = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive.file',
]

AUTHORIZATION_URL: str = 'https://accounts.google.com/o/oauth2/v2/auth'
TOKEN_URL: str = 'https://oauth2.googleapis.com/token'

DEFAULT_EXPIRES_IN: int = 3600


class AuthState(enum.StrEnum):
    """Authorization lifecycle used by every write path."""
    Unconfigured = 'unconfigured'
    Configured = 'configured'
    PendingCallback = 'pending callback'
    Authenticated = 'authenticated'
    Expired = 'expired'


def parse_fragment(fragment: str) -> Dict[str, str]:
    """Parse a redirect fragment into a parameter dictionary.

    Accepts a bare fragment (``access_token=...``), a fragment with its leading
    ``#``, or a complete redirect URL.

    Args:
        fragment: The fragment or URL to parse.

    Returns:
        dict: The decoded parameters. Repeated keys keep their last value.
    """
    fragment = (fragment or '').strip()
    if '#' in fragment:
        fragment = fragment.split('#', 1)[1]
    return dict(urllib.parse.parse_qsl(fragment))


class AuthFlow:
    """Client side of the OAuth implicit grant.

    Args:
        settings: Source of the ``oauth`` configuration section.
        tokens: Durable token and state storage.
        scopes: Scopes requested on the consent screen.
    """

    def __init__(self, settings: SettingsAPI, tokens: TokenStore, scopes: Optional[List[str]] = None) -> None:
        self.settings = settings
        self.tokens = tokens
        self.scopes = list(scopes or DEFAULT_SCOPES)

    def _config(self) -> Dict[str, str]:
        return self.settings.get_section('oauth')

    def client_id(self) -> str:
        return (self._config().get('client_id') or '').strip()

    def redirect_uri(self) -> str:
        return (self._config().get('redirect_uri') or '').strip()

    def is_configured(self) -> bool:
        return bool(self.client_id())

    def _flow(self) -> google_auth_oauthlib.flow.Flow:
        """Return a flow whose session asks for a token response instead of a code."""
        client_id = self.client_id()
        client_config = {
            'web': {
                'client_id': client_id,
                'auth_uri': AUTHORIZATION_URL,
                'token_uri': TOKEN_URL,
                'redirect_uris': [self.redirect_uri()],
            }
        }
        session = requests_oauthlib.OAuth2Session(
            client_id,
            client=oauthlib.oauth2.MobileApplicationClient(client_id),
            scope=self.scopes,
            redirect_uri=self.redirect_uri(),
        )
        return google_auth_oauthlib.flow.Flow(
            session,
            'web',
            client_config,
            redirect_uri=self.redirect_uri(),
            autogenerate_code_verifier=False,
        )

    def build_authorization_url(self) -> str:
        """Create a new pending state and return the consent screen URL.

        Returns:
            str: The authorization URL the user has to open.

        Raises:
            status.ClientIdNotConfiguredException: If no client id is configured.
        """
        if not self.is_configured():
            raise status.ClientIdNotConfiguredException

        state = secrets.token_hex(32)
        self.tokens.set_state(state)

        # Flow adds access_type=offline by default
        url, _ = self._flow().authorization_url(state=state, prompt='consent')
        logging.debug('Authorization URL created, waiting for callback.')
        signals.authenticationRequested.emit()
        return url

    def process_callback(self, fragment: str) -> bool:
        """Validate the redirect fragment and store the access token it carries.

        The pending state is consumed whatever the outcome.

        Args:
            fragment: The redirect URL fragment, with or without ``#``, or the full URL.

        Returns:
            bool: True if a token was stored.
        """
        params = parse_fragment(fragment)
        expected = self.tokens.get_state()
        self.tokens.clear_state()

        received = params.get('state')
        if not expected or not received or not secrets.compare_digest(received, expected):
            logging.error('Authorization callback rejected: state is missing or does not match.')
            return False

        if 'error' in params:
            logging.error(f'Authorization was denied: {params["error"]}')
            return False

        access_token = params.get('access_token')
        if not access_token:
            logging.error('Authorization callback rejected: no access token in the response.')
            return False

        try:
            expires_in = int(params.get('expires_in', DEFAULT_EXPIRES_IN))
        except ValueError:
            logging.warning(f'Invalid expires_in "{params.get("expires_in")}", using {DEFAULT_EXPIRES_IN}s.')
            expires_in = DEFAULT_EXPIRES_IN

        self.tokens.set(access_token, expires_in)
        logging.info('Google account authorized.')
        signals.authenticationChanged.emit(True)
        return True

    def is_authenticated(self) -> bool:
        """Return True if a token is stored, expired or not."""
        return self.tokens.get() is not None

    def is_token_expired(self) -> bool:
        return self.tokens.is_expired()

    def logout(self) -> None:
        self.tokens.clear()
        self.tokens.clear_state()
        logging.info('Signed out of Google account.')
        signals.authenticationChanged.emit(False)

    def state(self) -> AuthState:
        if not self.is_configured():
            return AuthState.Unconfigured
        if self.tokens.get() is not None:
            return AuthState.Expired if self.tokens.is_expired() else AuthState.Authenticated
        if self.tokens.get_state():
            return AuthState.PendingCallback
        return AuthState.Configured

    def credentials(self) -> Optional[google.oauth2.credentials.Credentials]:
        """Return bearer credentials, or None unless the state is authenticated.

        The credentials carry no refresh token and no expiry so that the
        transport never attempts a refresh on its own.
        """
        if self.state() is not AuthState.Authenticated:
            return None
        token = self.tokens.get()
        return google.oauth2.credentials.Credentials(token=token.value, scopes=self.scopes)
