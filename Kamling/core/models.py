"""Ledger record types.

Users are keyed by phone number and transactions by a millisecond timestamp id.
Both are immutable once created.
"""
import dataclasses
import enum
import logging
import re
import time
from typing import Any

GROUPED_NUMBER = re.compile(r'^-?\d{1,3}([.,\s]\d{3})+$')


def now_ms() -> int:
    """Return the current time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


class TransactionType(enum.StrEnum):
    """Direction of a transaction."""
    In = 'in'
    Out = 'out'

    @property
    def label(self) -> str:
        """The label written to the spreadsheet type column."""
        return 'masuk' if self is TransactionType.In else 'keluar'


TYPE_ALIASES = {
    'masuk': TransactionType.In,
    'income': TransactionType.In,
    'in': TransactionType.In,
    'keluar': TransactionType.Out,
    'expense': TransactionType.Out,
    'out': TransactionType.Out,
}


def normalize_type(value: Any) -> TransactionType:
    """Map a raw type cell to a :class:`TransactionType`.

    Matching is case-insensitive. Unknown or empty values count as income.
    """
    key = str(value or '').strip().lower()
    if key not in TYPE_ALIASES:
        if key:
            logging.debug(f'Unknown transaction type "{value}", defaulting to "{TransactionType.In}".')
        return TransactionType.In
    return TYPE_ALIASES[key]


def parse_int(value: Any, default: int) -> int:
    """Parse a cell as an integer, returning ``default`` when it is empty or not numeric.

    Args:
        value: The raw cell value.
        default: Value used when parsing fails.

    Returns:
        int: The parsed integer.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)

    text = str(value or '').strip()
    if not text:
        return default
    try:
        return int(text)
    except ValueError:
        pass
    # Formatted reads return grouped numbers, e.g. "23.000" or "23,000"
    if GROUPED_NUMBER.match(text):
        return int(re.sub(r'[^\d-]', '', text))
    try:
        return int(float(text))
    except ValueError:
        logging.debug(f'Failed to parse "{text}" as integer. Using {default}.')
        return default


@dataclasses.dataclass(frozen=True)
class User:
    name: str
    phone: str


@dataclasses.dataclass(frozen=True)
class Transaction:
    """A single ledger entry.

    Attributes:
        id: Millisecond timestamp assigned by the writer.
        date: Display date, e.g. '1 Jan 2026'.
        day: Display day label, e.g. 'Malam Jumat'.
        name: Contributor name.
        amount: Non-negative amount in whole currency units.
        type: Direction of the transaction.
        phone: Owner phone; empty when the remote row has none.
    """
    id: int
    date: str
    day: str
    name: str
    amount: int
    type: TransactionType = TransactionType.In
    phone: str = ''

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f'Transaction amount must not be negative, got {self.amount}.')
        if not isinstance(self.type, TransactionType):
            object.__setattr__(self, 'type', normalize_type(self.type))

    def with_phone(self, phone: str) -> 'Transaction':
        """Return a copy owned by ``phone``."""
        return dataclasses.replace(self, phone=phone)
