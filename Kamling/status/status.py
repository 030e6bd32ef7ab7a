"""Status definitions and exceptions for Kamling.

This module provides:
    - Status: enumeration of outcomes and failure kinds
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - BaseStatusException: base exception carrying a Status
    - Specific exceptions (e.g., SheetNotFoundException) for error handling in services

Remote failures are normally carried as :class:`Kamling.core.result.Result` values
tagged with one of the remote statuses below; the exceptions are raised when a
caller unwraps a failed result or when a configuration problem makes an
operation impossible.
"""
import enum
import logging
from typing import Dict, Type


class Status(enum.StrEnum):
    """Enumeration of application status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Configuration status
    ConfigurationError = enum.auto()
    ClientIdNotConfigured = enum.auto()
    SpreadsheetIdNotConfigured = enum.auto()
    ConfigInvalid = enum.auto()

    # Remote status
    AuthRequired = enum.auto()
    SheetNotFound = enum.auto()
    MalformedRequest = enum.auto()
    RemoteUnavailable = enum.auto()

    # Local status
    CacheInvalid = enum.auto()


REMOTE_STATUSES = (
    Status.AuthRequired,
    Status.SheetNotFound,
    Status.MalformedRequest,
    Status.RemoteUnavailable,
)

STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status.',
    Status.Okay: 'Everything is okay.',

    Status.ConfigurationError: 'The application is not configured correctly.',
    Status.ClientIdNotConfigured: 'Google Client ID is not configured. Set "oauth.client_id" or KAMLING_CLIENT_ID.',
    Status.SpreadsheetIdNotConfigured: 'Spreadsheet ID is not configured. Set "spreadsheet.id" or KAMLING_SPREADSHEET_ID.',
    Status.ConfigInvalid: 'The configuration file is incomplete, or contains invalid values.',

    Status.AuthRequired: 'Google rejected the request. Sign in to your Google account to enable syncing.',
    Status.SheetNotFound: 'The requested sheet does not exist in the spreadsheet.',
    Status.MalformedRequest: 'Google Sheets rejected the request as malformed.',
    Status.RemoteUnavailable: 'Google Sheets service is unavailable. Please check your connection.',

    Status.CacheInvalid: 'The local cache is invalid. Try resetting the cache.',
}


def get_message(status: Status) -> str:
    """
    Get the message for a given status.

    Args:
        status (Status): The status enum.

    Returns:
        str: The message associated with the status.
    """
    return STATUS_MESSAGE.get(status, 'Unknown status')


class BaseStatusException(Exception):
    """Base exception for status-based errors in Kamling.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus

    def __init__(self, message: str = None):
        self.status_message = get_message(self.status)
        self.detail = message or ''
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        logging.error(exception_message)

        from ..core.signals import signals
        signals.error.emit(message or self.status_message)


class UnknownException(BaseStatusException):
    """Exception for an unknown error during status processing."""
    pass


class ConfigurationErrorException(BaseStatusException):
    """Raised when a required configuration value is missing; fatal to the operation."""
    status = Status.ConfigurationError


class ClientIdNotConfiguredException(ConfigurationErrorException):
    """Raised when the OAuth client id is missing."""
    status = Status.ClientIdNotConfigured


class SpreadsheetIdNotConfiguredException(ConfigurationErrorException):
    """Raised when the spreadsheet id is missing."""
    status = Status.SpreadsheetIdNotConfigured


class ConfigInvalidException(BaseStatusException):
    """Exception raised when the configuration file is invalid or malformed."""
    status = Status.ConfigInvalid


class AuthRequiredException(BaseStatusException):
    """Google answered 401/403, or a write was attempted without a bearer token."""
    status = Status.AuthRequired


class SheetNotFoundException(BaseStatusException):
    """The named sheet is not part of the spreadsheet."""
    status = Status.SheetNotFound


class MalformedRequestException(BaseStatusException):
    """Google answered 400; the server message is kept in the exception text."""
    status = Status.MalformedRequest


class RemoteUnavailableException(BaseStatusException):
    """Network failure, timeout or any unexpected HTTP status."""
    status = Status.RemoteUnavailable


class CacheInvalidException(BaseStatusException):
    """Exception raised when the local cache is invalid or corrupted."""
    status = Status.CacheInvalid


STATUS_EXCEPTION: Dict[Status, Type[BaseStatusException]] = {
    Status.ConfigurationError: ConfigurationErrorException,
    Status.ClientIdNotConfigured: ClientIdNotConfiguredException,
    Status.SpreadsheetIdNotConfigured: SpreadsheetIdNotConfiguredException,
    Status.ConfigInvalid: ConfigInvalidException,
    Status.AuthRequired: AuthRequiredException,
    Status.SheetNotFound: SheetNotFoundException,
    Status.MalformedRequest: MalformedRequestException,
    Status.RemoteUnavailable: RemoteUnavailableException,
    Status.CacheInvalid: CacheInvalidException,
}


def exception_for(status: Status) -> Type[BaseStatusException]:
    """Return the exception class raised for ``status``."""
    return STATUS_EXCEPTION.get(status, UnknownException)
