"""Durable storage of the OAuth access token and the pending authorization state.

Values are kept in a QSettings INI file under the user settings path so that
an authorization survives application restarts.
"""
import dataclasses
import logging
import pathlib
import time
from typing import Callable, Optional, Union

from PySide6 import QtCore

ACCESS_TOKEN_KEY: str = 'oauth/access_token'
EXPIRES_AT_KEY: str = 'oauth/expires_at'
STATE_KEY: str = 'oauth/state'


@dataclasses.dataclass(frozen=True)
class AccessToken:
    """An OAuth bearer token and its absolute expiry in epoch seconds."""
    value: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class TokenStore:
    """Read and write the access token, its expiry and the CSRF state.

    Args:
        path: Path of the INI file backing the store.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(self, path: Union[str, pathlib.Path], clock: Callable[[], float] = time.time) -> None:
        self._settings = QtCore.QSettings(str(path), QtCore.QSettings.IniFormat)
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def get(self) -> Optional[AccessToken]:
        """Return the stored token, or None when no complete token is stored."""
        value = self._settings.value(ACCESS_TOKEN_KEY, None)
        expires_at = self._settings.value(EXPIRES_AT_KEY, None)
        if not value or expires_at in (None, ''):
            return None
        try:
            return AccessToken(value=str(value), expires_at=float(expires_at))
        except (TypeError, ValueError):
            logging.warning(f'Stored token expiry "{expires_at}" is invalid. Ignoring stored token.')
            return None

    def set(self, value: str, expires_in: int) -> AccessToken:
        """Store ``value`` as the access token, valid for ``expires_in`` seconds from now."""
        token = AccessToken(value=value, expires_at=self.now() + int(expires_in))
        self._settings.setValue(ACCESS_TOKEN_KEY, token.value)
        self._settings.setValue(EXPIRES_AT_KEY, token.expires_at)
        self._settings.sync()
        logging.debug(f'Access token stored, expires in {int(expires_in)}s.')
        return token

    def clear(self) -> None:
        self._settings.remove(ACCESS_TOKEN_KEY)
        self._settings.remove(EXPIRES_AT_KEY)
        self._settings.sync()
        logging.debug('Access token cleared.')

    def is_expired(self) -> bool:
        """Return True if the token has expired. A missing token counts as expired."""
        token = self.get()
        if token is None:
            return True
        return token.is_expired(self.now())

    def get_state(self) -> Optional[str]:
        state = self._settings.value(STATE_KEY, None)
        return str(state) if state else None

    def set_state(self, state: str) -> None:
        self._settings.setValue(STATE_KEY, state)
        self._settings.sync()

    def clear_state(self) -> None:
        self._settings.remove(STATE_KEY)
        self._settings.sync()
