"""
Local SQLite mirror of users and transactions.

Every save goes through the cache, whether or not the spreadsheet accepted the
row, and reads fall back to it when the spreadsheet is unreachable. Records are
never updated in place: the first write of a phone number or transaction id
wins.
"""

import enum
import logging
import pathlib
import sqlite3
import threading
import time
from typing import Dict, List, Optional, Union

from .models import Transaction, TransactionType, User, normalize_type
from ..settings import locale
from ..status import status


class Table(enum.StrEnum):
    """Enum for database tables."""
    Users = 'users'
    Transactions = 'transactions'


SCHEMA: Dict[Table, Dict[str, str]] = {
    Table.Users: {
        'phone': 'TEXT PRIMARY KEY',
        'name': 'TEXT NOT NULL',
        'created_at': 'TEXT',
    },
    Table.Transactions: {
        'id': 'INTEGER PRIMARY KEY',
        'date': 'TEXT',
        'day': 'TEXT',
        'name': 'TEXT',
        'amount': 'INTEGER NOT NULL DEFAULT 0',
        'type': 'TEXT NOT NULL',
        'phone': "TEXT NOT NULL DEFAULT ''",
    },
}

TRANSACTION_COLUMNS: str = 'id, date, day, name, amount, type, phone'


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row['id'],
        date=row['date'] or '',
        day=row['day'] or '',
        name=row['name'] or '',
        amount=row['amount'] or 0,
        type=normalize_type(row['type']),
        phone=row['phone'] or '',
    )


class LocalCache:
    """Thread-safe access to the cache database.

    A new connection is opened for every operation and a lock serializes
    access from the GUI thread and worker threads.

    Args:
        db_path: Path of the SQLite database file.
    """

    def __init__(self, db_path: Union[str, pathlib.Path]) -> None:
        self.db_path = pathlib.Path(db_path)
        self._lock = threading.Lock()
        with self._lock:
            self._initialize_schema_if_needed()

    def connection(self) -> sqlite3.Connection:
        """Return a new connection to the cache database."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), timeout=2.0)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _table_exists_in_conn(conn: sqlite3.Connection, table_name: str) -> bool:
        cursor = conn.execute(
            """SELECT name FROM sqlite_master WHERE type='table' AND name=?""",
            (table_name,)
        )
        return cursor.fetchone() is not None

    def _initialize_schema_if_needed(self) -> None:
        """Create missing tables, recreating any table whose columns do not match the schema.

        Raises:
            status.CacheInvalidException: If the database cannot be created.
        """
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            for table, columns in SCHEMA.items():
                if self._table_exists_in_conn(conn, table.value):
                    current = {row['name'] for row in conn.execute(f'PRAGMA table_info({table.value})')}
                    if set(columns) == current:
                        continue
                    logging.warning(
                        f'Table "{table.value}" has columns {sorted(current)}, expected {sorted(columns)}. '
                        'Recreating.'
                    )
                    conn.execute(f'DROP TABLE {table.value}')

                cols_sql = ', '.join(f'"{name}" {typedef}' for name, typedef in columns.items())
                conn.execute(f'CREATE TABLE {table.value} ({cols_sql})')
                logging.info(f'Table "{table.value}" created in {self.db_path}.')
            conn.commit()
        except sqlite3.Error as ex:
            raise status.CacheInvalidException(f'Could not initialize cache schema: {ex}') from ex
        finally:
            if conn:
                conn.close()

    def _write(self, sql: str, params: tuple) -> bool:
        """Execute an insert and return True if a new row was written."""
        with self._lock:
            conn = self.connection()
            try:
                cursor = conn.execute(sql, params)
                conn.commit()
                return cursor.rowcount > 0
            finally:
                conn.close()

    def _read(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            conn = self.connection()
            try:
                return conn.execute(sql, params).fetchall()
            finally:
                conn.close()

    def upsert_user(self, user: User, created_at: Optional[str] = None) -> bool:
        """Insert ``user`` unless its phone number is already cached.

        Returns:
            bool: True if the user was inserted, False if it already existed.

        Raises:
            sqlite3.Error: If the database cannot be written.
        """
        created_at = created_at or locale.format_created_at()
        inserted = self._write(
            f'INSERT OR IGNORE INTO {Table.Users.value} (phone, name, created_at) VALUES (?, ?, ?)',
            (user.phone, user.name, created_at)
        )
        logging.debug(f'User "{user.phone}" {"cached" if inserted else "already cached"}.')
        return inserted

    def upsert_transaction(self, tx: Transaction) -> bool:
        """Insert ``tx`` unless its id is already cached.

        Returns:
            bool: True if the transaction was inserted, False if it already existed.

        Raises:
            sqlite3.Error: If the database cannot be written.
        """
        inserted = self._write(
            f'INSERT OR IGNORE INTO {Table.Transactions.value} ({TRANSACTION_COLUMNS}) '
            'VALUES (?, ?, ?, ?, ?, ?, ?)',
            (tx.id, tx.date, tx.day, tx.name, tx.amount, TransactionType(tx.type).value, tx.phone)
        )
        logging.debug(f'Transaction {tx.id} {"cached" if inserted else "already cached"}.')
        return inserted

    def list_users(self) -> List[User]:
        rows = self._read(f'SELECT name, phone FROM {Table.Users.value} ORDER BY rowid')
        return [User(name=row['name'], phone=row['phone']) for row in rows]

    def list_transactions_for_owner(self, phone: str) -> List[Transaction]:
        """Return the cached transactions of ``phone``, newest first."""
        rows = self._read(
            f'SELECT {TRANSACTION_COLUMNS} FROM {Table.Transactions.value} WHERE phone=? ORDER BY id DESC',
            (phone,)
        )
        return [_row_to_transaction(row) for row in rows]

    def list_all_transactions(self) -> List[Transaction]:
        """Return every cached transaction, newest first."""
        rows = self._read(f'SELECT {TRANSACTION_COLUMNS} FROM {Table.Transactions.value} ORDER BY id DESC')
        return [_row_to_transaction(row) for row in rows]

    def delete(self) -> None:
        """Delete the cache database file, retrying on failure.

        Raises:
            status.CacheInvalidException: If unable to remove the database file after retries.
        """
        if not self.db_path.exists():
            logging.debug('No cache database found to delete.')
            return

        max_attempts = 5
        wait_seconds = 0.5

        with self._lock:
            for attempt in range(1, max_attempts + 1):
                try:
                    self.db_path.unlink()
                    logging.info(f'Cache database removed: {self.db_path}')
                    return
                except OSError as ex:
                    logging.error(f'Error removing cache DB (attempt {attempt}/{max_attempts}): {ex}')
                    if attempt == max_attempts:
                        raise status.CacheInvalidException(
                            f'Failed to remove cache DB {self.db_path} after {max_attempts} attempts: {ex}'
                        ) from ex
                    time.sleep(wait_seconds)
                    wait_seconds *= 1.5

    def reset_cache(self) -> None:
        """Delete the cache database and recreate an empty schema."""
        logging.debug('Resetting local cache database.')
        self.delete()
        with self._lock:
            self._initialize_schema_if_needed()
