"""Google Sheets API integration.

Provides :class:`SheetGateway`, the single point of contact with the Sheets v4
API for reads, appends, updates, clears, metadata and spreadsheet creation,
and :func:`start_asynchronous` to run blocking store operations off the GUI
thread.

Gateway calls never raise for remote failures. Every call is a single attempt
that returns a :class:`~Kamling.core.result.Result`; HTTP and transport errors
are mapped onto the remote status kinds.
"""

import logging
import re
import socket
import ssl
from typing import Any, Callable, List, Optional, Sequence, Set

import google.auth.exceptions
import google.oauth2.credentials
import google_auth_httplib2
import httplib2
from PySide6 import QtCore
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .result import Result
from ..settings.lib import SettingsAPI
from ..status import status

# Transport timeout of a single remote call, in seconds
TIMEOUT: int = 10

# Budget of a whole store operation run through start_asynchronous, in seconds
TOTAL_TIMEOUT: int = 30

VALUE_INPUT_OPTION: str = 'USER_ENTERED'
METADATA_FIELDS: str = 'properties.title,sheets.properties(title,sheetId)'

_plain_sheet_name = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

# Workers that outlived their timeout, referenced until they finish
_abandoned: Set[QtCore.QThread] = set()


def idx_to_col(idx: int) -> str:
    """Convert zero-based column index to spreadsheet letter(s).

    Args:
        idx: The zero-based column index.

    Returns:
        The spreadsheet column letter(s) (e.g., A, B, AA).
    """
    letters = ''
    while idx >= 0:
        letters = chr((idx % 26) + ord('A')) + letters
        idx = idx // 26 - 1
    return letters


def a1_range(sheet_name: str, cells: str = '') -> str:
    """Build an A1 range expression, quoting the sheet name when needed.

    Args:
        sheet_name: The sheet title, e.g. ``Transactions`` or ``My Sheet``.
        cells: Optional cell range, e.g. ``A:G``.

    Returns:
        The range, e.g. ``Transactions!A:G`` or ``'My Sheet'!A1``.
    """
    if not _plain_sheet_name.match(sheet_name):
        sheet_name = "'" + sheet_name.replace("'", "''") + "'"
    return f'{sheet_name}!{cells}' if cells else sheet_name


def _to_rows(values: Sequence[Sequence[Any]]) -> List[List[str]]:
    return [['' if cell is None else str(cell) for cell in row] for row in values]


class SheetGateway:
    """Stateless operations against the configured spreadsheet.

    Reads and metadata use the configured API key unless bearer credentials
    are given. Writes always require bearer credentials and are never attempted
    with the API key.

    Args:
        settings: Source of the ``spreadsheet`` and ``records`` sections.
        http_factory: Returns a fresh ``httplib2.Http`` for a given timeout.
            Tests substitute a recording fake transport here.
    """

    def __init__(self, settings: SettingsAPI,
                 http_factory: Optional[Callable[[int], httplib2.Http]] = None) -> None:
        self.settings = settings
        self.http_factory = http_factory or (lambda timeout: httplib2.Http(timeout=timeout))

    def spreadsheet_id(self) -> str:
        return (self.settings.get_section('spreadsheet').get('id') or '').strip()

    def api_key(self) -> str:
        return (self.settings.get_section('spreadsheet').get('api_key') or '').strip()

    def is_configured(self) -> bool:
        return bool(self.spreadsheet_id())

    def timeout(self) -> int:
        return self.settings.get_section('records').get('timeout') or TIMEOUT

    def _require_spreadsheet_id(self) -> str:
        spreadsheet_id = self.spreadsheet_id()
        if not spreadsheet_id:
            raise status.SpreadsheetIdNotConfiguredException
        return spreadsheet_id

    def _service(self, credentials: Optional[google.oauth2.credentials.Credentials]) -> Any:
        """Build a Sheets API resource for a single call.

        httplib2 is not thread-safe so a new transport is created for every call.
        """
        http = self.http_factory(self.timeout())
        if credentials is not None:
            return build(
                'sheets', 'v4',
                http=google_auth_httplib2.AuthorizedHttp(credentials, http=http),
                cache_discovery=False,
            )
        return build(
            'sheets', 'v4',
            http=http,
            developerKey=self.api_key() or None,
            cache_discovery=False,
        )

    def _execute(self, description: str, credentials: Optional[google.oauth2.credentials.Credentials],
                 request: Callable[[Any], Any]) -> Result:
        """Run ``request(service)`` once and map any failure onto a remote status."""
        logging.debug(f'{description}...')
        try:
            service = self._service(credentials)
            response = request(service).execute()
        except HttpError as ex:
            stat: Optional[int] = ex.resp.status if ex.resp else None
            if stat in (401, 403):
                logging.warning(f'{description} was rejected (HTTP {stat}).')
                return Result.failure(status.Status.AuthRequired, f'HTTP {stat}')
            if stat == 400:
                detail = getattr(ex, 'reason', '') or str(ex)
                logging.error(f'{description} was malformed (HTTP 400): {detail}')
                return Result.failure(status.Status.MalformedRequest, detail)
            logging.error(f'{description} failed (HTTP {stat}): {ex}')
            return Result.failure(status.Status.RemoteUnavailable, f'HTTP {stat}')
        except google.auth.exceptions.RefreshError as ex:
            logging.warning(f'{description} needs a new authorization: {ex}')
            return Result.failure(status.Status.AuthRequired, str(ex))
        except google.auth.exceptions.TransportError as ex:
            logging.error(f'{description} failed, transport error: {ex}')
            return Result.failure(status.Status.RemoteUnavailable, str(ex))
        except socket.timeout as ex:
            logging.error(f'{description} timed out: {ex}')
            return Result.failure(status.Status.RemoteUnavailable, f'Timeout: {ex}')
        except ssl.SSLError as ex:
            logging.error(f'{description} failed, SSL error: {ex}')
            return Result.failure(status.Status.RemoteUnavailable, f'SSL error: {ex}')
        except (httplib2.HttpLib2Error, OSError) as ex:
            logging.error(f'{description} failed, network error: {ex}')
            return Result.failure(status.Status.RemoteUnavailable, str(ex))

        logging.debug(f'{description} succeeded.')
        return Result.success(response if response is not None else {})

    def _write_allowed(self, description: str,
                       credentials: Optional[google.oauth2.credentials.Credentials]) -> bool:
        if credentials is None:
            logging.debug(f'{description} skipped: no bearer token.')
            return False
        return True

    def read(self, range_: str,
             credentials: Optional[google.oauth2.credentials.Credentials] = None) -> Result:
        """Read the cell values of ``range_``.

        Returns:
            Result: A list of rows, each a list of strings. Empty when the range has no values.

        Raises:
            status.SpreadsheetIdNotConfiguredException: If no spreadsheet id is configured.
        """
        spreadsheet_id = self._require_spreadsheet_id()
        result = self._execute(
            f'Reading "{range_}"', credentials,
            lambda service: service.spreadsheets().values().get(
                spreadsheetId=spreadsheet_id,
                range=range_,
            )
        )
        if not result.ok:
            return result
        return Result.success(_to_rows(result.value.get('values', [])))

    def append(self, range_: str, rows: Sequence[Sequence[Any]],
               credentials: Optional[google.oauth2.credentials.Credentials]) -> Result:
        """Append ``rows`` after the last row of the table found in ``range_``.

        Raises:
            status.SpreadsheetIdNotConfiguredException: If no spreadsheet id is configured.
        """
        spreadsheet_id = self._require_spreadsheet_id()
        description = f'Appending {len(rows)} row(s) to "{range_}"'
        if not self._write_allowed(description, credentials):
            return Result.failure(status.Status.AuthRequired, 'Writing requires a bearer token.')
        return self._execute(
            description, credentials,
            lambda service: service.spreadsheets().values().append(
                spreadsheetId=spreadsheet_id,
                range=range_,
                valueInputOption=VALUE_INPUT_OPTION,
                body={'values': [list(row) for row in rows]},
            )
        )

    def update(self, range_: str, rows: Sequence[Sequence[Any]],
               credentials: Optional[google.oauth2.credentials.Credentials]) -> Result:
        """Overwrite the cells of ``range_`` with ``rows``.

        Raises:
            status.SpreadsheetIdNotConfiguredException: If no spreadsheet id is configured.
        """
        spreadsheet_id = self._require_spreadsheet_id()
        description = f'Updating "{range_}"'
        if not self._write_allowed(description, credentials):
            return Result.failure(status.Status.AuthRequired, 'Writing requires a bearer token.')
        return self._execute(
            description, credentials,
            lambda service: service.spreadsheets().values().update(
                spreadsheetId=spreadsheet_id,
                range=range_,
                valueInputOption=VALUE_INPUT_OPTION,
                body={'values': [list(row) for row in rows]},
            )
        )

    def clear(self, range_: str,
              credentials: Optional[google.oauth2.credentials.Credentials]) -> Result:
        """Clear the values of ``range_``, keeping formatting.

        Raises:
            status.SpreadsheetIdNotConfiguredException: If no spreadsheet id is configured.
        """
        spreadsheet_id = self._require_spreadsheet_id()
        description = f'Clearing "{range_}"'
        if not self._write_allowed(description, credentials):
            return Result.failure(status.Status.AuthRequired, 'Writing requires a bearer token.')
        return self._execute(
            description, credentials,
            lambda service: service.spreadsheets().values().clear(
                spreadsheetId=spreadsheet_id,
                range=range_,
                body={},
            )
        )

    def metadata(self, credentials: Optional[google.oauth2.credentials.Credentials] = None) -> Result:
        """Fetch the spreadsheet title and the title and id of each sheet.

        Raises:
            status.SpreadsheetIdNotConfiguredException: If no spreadsheet id is configured.
        """
        spreadsheet_id = self._require_spreadsheet_id()
        return self._execute(
            f'Fetching metadata of spreadsheet "{spreadsheet_id}"', credentials,
            lambda service: service.spreadsheets().get(
                spreadsheetId=spreadsheet_id,
                fields=METADATA_FIELDS,
            )
        )

    def create(self, title: str,
               credentials: Optional[google.oauth2.credentials.Credentials]) -> Result:
        """Create a new spreadsheet owned by the authorized user.

        Returns:
            Result: ``{'spreadsheetId': ..., 'properties': {'title': ...}}`` on success.
        """
        description = f'Creating spreadsheet "{title}"'
        if not self._write_allowed(description, credentials):
            return Result.failure(status.Status.AuthRequired, 'Creating a spreadsheet requires a bearer token.')
        return self._execute(
            description, credentials,
            lambda service: service.spreadsheets().create(
                body={'properties': {'title': title}},
                fields='spreadsheetId,properties.title',
            )
        )


class AsyncWorker(QtCore.QThread):
    """
    Worker thread running a blocking function exactly once.

    The outcome is stored on the worker: ``result`` on success, ``error`` when
    the function raised.
    """

    def __init__(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        super().__init__()
        self.func = func
        self.args = args
        self.kwargs = kwargs

        self.result: Any = None
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            self.result = self.func(*self.args, **self.kwargs)
        except Exception as ex:
            self.error = ex


def _reap_abandoned() -> None:
    """Release abandoned workers that have finished."""
    for worker in list(_abandoned):
        if worker.isFinished():
            _abandoned.discard(worker)


def start_asynchronous(func: Callable[..., Any], *args: Any, total_timeout: int = TOTAL_TIMEOUT,
                       **kwargs: Any) -> Any:
    """
    Run a blocking function on a worker thread while spinning a local event loop.

    Args:
        func: The blocking function to run.
        *args, **kwargs: Arguments passed to func.
        total_timeout (int): Seconds to wait before giving up.

    Returns:
        The result of the function on success.

    Raises:
        RuntimeError: If there is no Qt application instance.
        status.RemoteUnavailableException: If the operation timed out.
        status.BaseStatusException: Re-raised from the worker.
        status.UnknownException: If the worker raised any other exception.
    """
    if QtCore.QCoreApplication.instance() is None:
        raise RuntimeError('start_asynchronous requires a QCoreApplication instance.')

    _reap_abandoned()

    worker: AsyncWorker = AsyncWorker(func, *args, **kwargs)
    loop: QtCore.QEventLoop = QtCore.QEventLoop()

    # Queued across threads, so a worker finishing before exec() still quits the loop
    worker.finished.connect(loop.quit)

    timer: QtCore.QTimer = QtCore.QTimer()
    timer.setSingleShot(True)
    timer.setInterval(total_timeout * 1000)
    timer.timeout.connect(loop.quit)

    worker.start()
    timer.start()
    loop.exec()
    timer.stop()

    if worker.isRunning():
        # The worker ends on its own once the transport timeout expires
        worker.requestInterruption()
        _abandoned.add(worker)
        worker.finished.connect(_reap_abandoned, QtCore.Qt.ConnectionType.QueuedConnection)
        # Finished between the running check and the connection
        if worker.isFinished():
            _abandoned.discard(worker)
        raise status.RemoteUnavailableException(f'Operation timed out after {total_timeout} seconds.')
    worker.wait()

    err = worker.error
    if err is not None:
        if isinstance(err, status.BaseStatusException):
            raise err
        raise status.UnknownException(str(err)) from err
    return worker.result
