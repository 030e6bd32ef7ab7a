"""Sheet layout and the sheet-existence guard.

The Users and Transactions sheets have fixed column layouts. Remote rows are
read through :class:`SheetRow`, which addresses cells by column name, cuts rows
to the expected width and fills missing cells with defaults.

:class:`SheetSchemaGuard` checks that a sheet exists before it is read or
appended to. The Sheets API answers a missing sheet with the same 400 as a
malformed range, so existence is verified from the spreadsheet metadata.
"""
import enum
import logging
from typing import Any, Dict, List, Optional, Sequence, Type

import google.oauth2.credentials

from .models import Transaction, User, normalize_type, now_ms, parse_int
from .result import Result
from .service import SheetGateway, a1_range, idx_to_col
from ..status import status

USERS_SHEET: str = 'Users'
TRANSACTIONS_SHEET: str = 'Transactions'


class UserColumn(enum.IntEnum):
    """Zero-based column offsets of the Users sheet."""
    Name = 0
    Phone = 1
    CreatedAt = 2


class TransactionColumn(enum.IntEnum):
    """Zero-based column offsets of the Transactions sheet."""
    Id = 0
    Date = 1
    Day = 2
    Name = 3
    Amount = 4
    Type = 5
    Phone = 6


def column_range(sheet_name: str, columns: Type[enum.IntEnum]) -> str:
    """Return the full-column range covering ``columns``, e.g. ``Users!A:C``."""
    return a1_range(sheet_name, f'A:{idx_to_col(len(columns) - 1)}')


USERS_RANGE: str = column_range(USERS_SHEET, UserColumn)
TRANSACTIONS_RANGE: str = column_range(TRANSACTIONS_SHEET, TransactionColumn)


class SheetRow:
    """Named access to the cells of a remote row.

    Cells past the layout width are dropped. Missing or blank cells read as
    the default passed to :meth:`get`.
    """

    def __init__(self, cells: Sequence[Any], columns: Type[enum.IntEnum]) -> None:
        self.columns = columns
        self.cells: List[str] = ['' if c is None else str(c) for c in list(cells)[:len(columns)]]

    def get(self, column: enum.IntEnum, default: str = '') -> str:
        if int(column) >= len(self.cells):
            return default
        value = self.cells[int(column)].strip()
        return value if value else default

    def __len__(self) -> int:
        return len(self.cells)


def records(rows: Sequence[Sequence[Any]]) -> Sequence[Sequence[Any]]:
    """Return the data rows of a sheet read, skipping the header row."""
    return rows[1:]


def user_from_row(cells: Sequence[Any]) -> Optional[User]:
    """Decode a Users row. Rows without a phone number are skipped."""
    row = SheetRow(cells, UserColumn)
    phone = row.get(UserColumn.Phone)
    if not phone:
        return None
    return User(name=row.get(UserColumn.Name), phone=phone)


def user_to_row(user: User, created_at: str) -> List[Any]:
    row: List[Any] = [''] * len(UserColumn)
    row[UserColumn.Name] = user.name
    row[UserColumn.Phone] = user.phone
    row[UserColumn.CreatedAt] = created_at
    return row


def transaction_from_row(cells: Sequence[Any]) -> Transaction:
    """Decode a Transactions row.

    The id defaults to the current millisecond timestamp and the amount to 0
    when the cell is missing or not a number. Negative amounts are read as their
    magnitude, the direction is carried by the type column.
    """
    row = SheetRow(cells, TransactionColumn)
    amount = parse_int(row.get(TransactionColumn.Amount), 0)
    if amount < 0:
        logging.debug(f'Negative amount "{amount}" read as {abs(amount)}.')
    return Transaction(
        id=parse_int(row.get(TransactionColumn.Id), now_ms()),
        date=row.get(TransactionColumn.Date),
        day=row.get(TransactionColumn.Day),
        name=row.get(TransactionColumn.Name),
        amount=abs(amount),
        type=normalize_type(row.get(TransactionColumn.Type)),
        phone=row.get(TransactionColumn.Phone),
    )


def transaction_to_row(tx: Transaction, phone: str) -> List[Any]:
    row: List[Any] = [''] * len(TransactionColumn)
    row[TransactionColumn.Id] = tx.id
    row[TransactionColumn.Date] = tx.date
    row[TransactionColumn.Day] = tx.day
    row[TransactionColumn.Name] = tx.name
    row[TransactionColumn.Amount] = tx.amount
    row[TransactionColumn.Type] = tx.type.label
    row[TransactionColumn.Phone] = phone
    return row


def sheet_titles(metadata: Dict[str, Any]) -> List[str]:
    """Return the sheet titles listed in a spreadsheet metadata response."""
    return [
        s.get('properties', {}).get('title', '')
        for s in (metadata or {}).get('sheets', [])
    ]


class SheetSchemaGuard:
    """Verify that a named sheet exists before it is used."""

    def __init__(self, gateway: SheetGateway) -> None:
        self.gateway = gateway

    def check(self, sheet_name: str,
              credentials: Optional[google.oauth2.credentials.Credentials] = None) -> Result:
        """Fetch the spreadsheet metadata once and look for ``sheet_name``.

        An unconfigured spreadsheet has no sheets, so it is reported as
        :attr:`~Kamling.status.status.Status.SheetNotFound`.

        Returns:
            Result: Success, a ``SheetNotFound`` failure, or the metadata failure.
        """
        if not self.gateway.is_configured():
            logging.debug(f'Spreadsheet id is not configured, "{sheet_name}" is unavailable.')
            return Result.failure(status.Status.SheetNotFound, 'Spreadsheet id is not configured.')

        result = self.gateway.metadata(credentials)
        if not result.ok:
            return result

        titles = sheet_titles(result.value)
        if sheet_name not in titles:
            logging.warning(f'Sheet "{sheet_name}" not found. Available sheets: [{",".join(titles)}].')
            return Result.failure(status.Status.SheetNotFound, f'Sheet "{sheet_name}" not found.')

        logging.debug(f'Sheet "{sheet_name}" found.')
        return Result.success()

    def exists(self, sheet_name: str,
               credentials: Optional[google.oauth2.credentials.Credentials] = None) -> bool:
        """Return True if ``sheet_name`` exists. Any failure counts as absent."""
        return self.check(sheet_name, credentials).ok
