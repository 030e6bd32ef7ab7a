"""The record store: domain operations on users and transactions.

The spreadsheet is a sync target and the local cache is the system of record
from the caller's point of view. Every save is written to the cache whatever
happened remotely, and the boolean returned to the caller reflects only the
cache outcome. Remote failure details go to the log and to
``signals.remoteSyncFailed``.

Appends are attempted only when :class:`~Kamling.core.auth.AuthFlow` is in the
authenticated state. Reads use bearer credentials when available, otherwise the
configured API key.
"""
import enum
import logging
import sqlite3
import threading
from typing import List, Optional

import google.oauth2.credentials
from PySide6 import QtCore

from . import schema
from .auth import AuthFlow, AuthState
from .database import LocalCache
from .models import Transaction, TransactionType, User, now_ms
from .result import Result
from .service import SheetGateway
from .signals import signals
from ..settings import locale
from ..settings.lib import SettingsAPI
from ..status import status


class OwnerFilter(enum.StrEnum):
    """Which rows :meth:`RecordStore.get_transactions_for_owner` returns."""
    All = 'all'
    Owner = 'owner'


# Shown while the Transactions sheet is missing or the spreadsheet refuses access
PLACEHOLDER_TRANSACTIONS: List[Transaction] = [
    Transaction(id=1, date='1 Jan 2026', day='Malam Jumat', name='Ronald', amount=23000, type=TransactionType.In),
    Transaction(id=2, date='31 Des 2025', day='Malam Kamis', name='Alex', amount=19000, type=TransactionType.In),
    Transaction(id=3, date='31 Des 2025', day='Malam Kamis', name='Sarah', amount=15000, type=TransactionType.Out),
    Transaction(id=4, date='30 Des 2025', day='Malam Rabu', name='Budi', amount=30000, type=TransactionType.In),
]


class RecordStore(QtCore.QObject):
    """Save and list users and transactions with the spreadsheet as remote mirror.

    Args:
        settings: Source of the ``records`` section.
        auth: Authorization state and bearer credentials.
        gateway: Sheets API access.
        guard: Sheet existence checks.
        cache: Local mirror.
    """

    def __init__(self, settings: SettingsAPI, auth: AuthFlow, gateway: SheetGateway,
                 guard: schema.SheetSchemaGuard, cache: LocalCache,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent=parent)
        self.settings = settings
        self.auth = auth
        self.gateway = gateway
        self.guard = guard
        self.cache = cache

        self._id_lock = threading.Lock()
        self._last_id = 0

    def _config(self) -> dict:
        return self.settings.get_section('records')

    def owner_filter(self) -> OwnerFilter:
        value = self._config().get('owner_filter', OwnerFilter.All.value)
        try:
            return OwnerFilter(value)
        except ValueError:
            logging.warning(f'Unknown owner filter "{value}", using "{OwnerFilter.All}".')
            return OwnerFilter.All

    def _write_credentials(self) -> Optional[google.oauth2.credentials.Credentials]:
        """Return bearer credentials when appends may be attempted, otherwise None."""
        state = self.auth.state()
        if state is not AuthState.Authenticated:
            logging.debug(f'Authorization is "{state}", remote append skipped.')
            return None
        return self.auth.credentials()

    def _remote_failed(self, sheet_name: str, result: Result) -> None:
        logging.warning(f'Remote sync with "{sheet_name}" failed: {result}')
        signals.remoteSyncFailed.emit(sheet_name, result.detail or str(result.error))

    def next_transaction_id(self) -> int:
        """Return a millisecond timestamp id, strictly greater than any id returned before."""
        with self._id_lock:
            self._last_id = max(now_ms(), self._last_id + 1)
            return self._last_id

    def _read_remote(self, sheet_name: str, range_: str) -> Result:
        """Check ``sheet_name`` exists and read ``range_``. The header row is skipped on success."""
        credentials = self.auth.credentials()
        guard = self.guard.check(sheet_name, credentials)
        if not guard.ok:
            return guard
        result = self.gateway.read(range_, credentials)
        if not result.ok:
            return result
        rows = [row for row in schema.records(result.value) if any(str(cell).strip() for cell in row)]
        return Result.success(rows)

    def _sync_user(self, user: User, created_at: str) -> None:
        result = self._read_remote(schema.USERS_SHEET, schema.USERS_RANGE)
        if result.error is status.Status.SheetNotFound:
            logging.debug(f'No "{schema.USERS_SHEET}" sheet, user "{user.phone}" is only cached.')
            return
        if not result.ok:
            self._remote_failed(schema.USERS_SHEET, result)
            return

        phones = {u.phone for u in (schema.user_from_row(row) for row in result.value) if u}
        if user.phone in phones:
            logging.debug(f'User "{user.phone}" already exists in "{schema.USERS_SHEET}".')
            return

        credentials = self._write_credentials()
        if credentials is None:
            return

        result = self.gateway.append(schema.USERS_RANGE, [schema.user_to_row(user, created_at)], credentials)
        if not result.ok:
            self._remote_failed(schema.USERS_SHEET, result)
            return
        logging.info(f'User "{user.phone}" added to "{schema.USERS_SHEET}".')

    def initialize_user(self, user: User) -> bool:
        """Register ``user`` in the Users sheet if missing, and in the local cache.

        Returns:
            bool: False only if the local cache could not be written.
        """
        created_at: Optional[str] = None
        try:
            created_at = locale.format_created_at(locale=self._config().get('locale'))
            self._sync_user(user, created_at)
        except Exception as ex:
            logging.exception(f'Unexpected error syncing user "{user.phone}": {ex}')

        try:
            self.cache.upsert_user(user, created_at=created_at)
        except (sqlite3.Error, OSError) as ex:
            logging.error(f'Failed to cache user "{user.phone}": {ex}')
            return False
        except Exception as ex:
            logging.exception(f'Unexpected error caching user "{user.phone}": {ex}')
            return False

        signals.userInitialized.emit(user)
        return True

    def _sync_transaction(self, tx: Transaction) -> None:
        credentials = self._write_credentials()
        if credentials is None:
            return

        guard = self.guard.check(schema.TRANSACTIONS_SHEET, credentials)
        if guard.error is status.Status.SheetNotFound:
            logging.debug(f'No "{schema.TRANSACTIONS_SHEET}" sheet, transaction {tx.id} is only cached.')
            return
        if not guard.ok:
            self._remote_failed(schema.TRANSACTIONS_SHEET, guard)
            return

        result = self.gateway.append(
            schema.TRANSACTIONS_RANGE, [schema.transaction_to_row(tx, tx.phone)], credentials
        )
        if not result.ok:
            self._remote_failed(schema.TRANSACTIONS_SHEET, result)
            return
        logging.info(f'Transaction {tx.id} added to "{schema.TRANSACTIONS_SHEET}".')

    def save_transaction(self, tx: Transaction, owner: User) -> bool:
        """Append ``tx`` to the Transactions sheet on behalf of ``owner`` and cache it.

        Returns:
            bool: True once the local cache accepted the transaction.
        """
        tx = tx.with_phone(owner.phone)

        try:
            self._sync_transaction(tx)
        except Exception as ex:
            logging.exception(f'Unexpected error syncing transaction {tx.id}: {ex}')

        try:
            self.cache.upsert_transaction(tx)
        except (sqlite3.Error, OSError) as ex:
            logging.error(f'Failed to cache transaction {tx.id}: {ex}')
            return False
        except Exception as ex:
            logging.exception(f'Unexpected error caching transaction {tx.id}: {ex}')
            return False

        signals.transactionSaved.emit(tx)
        return True

    def _cached_transactions(self, owner: User) -> List[Transaction]:
        if self.owner_filter() is OwnerFilter.Owner:
            return self.cache.list_transactions_for_owner(owner.phone)
        return self.cache.list_all_transactions()

    def get_transactions_for_owner(self, owner: User) -> List[Transaction]:
        """List transactions, newest first.

        Returns the placeholder set when the Transactions sheet is missing or
        access is refused, and the cached transactions on any other failure.
        An empty cache also yields the placeholder set.
        With the ``owner`` filter only rows carrying the owner's phone are kept.
        """
        result = self._read_remote(schema.TRANSACTIONS_SHEET, schema.TRANSACTIONS_RANGE)
        if result.error in (status.Status.SheetNotFound, status.Status.AuthRequired):
            logging.info(f'Transactions unavailable ({result.error}), showing placeholders.')
            return list(PLACEHOLDER_TRANSACTIONS)
        if not result.ok:
            self._remote_failed(schema.TRANSACTIONS_SHEET, result)
            cached = self._cached_transactions(owner)
            if not cached:
                logging.info('No cached transactions, showing placeholders.')
                return list(PLACEHOLDER_TRANSACTIONS)
            return cached

        transactions = [schema.transaction_from_row(row) for row in result.value]
        if self.owner_filter() is OwnerFilter.Owner:
            transactions = [tx for tx in transactions if tx.phone == owner.phone]
        transactions.sort(key=lambda tx: tx.id, reverse=True)

        logging.debug(f'Fetched {len(transactions)} transaction(s).')
        signals.transactionsFetched.emit(transactions)
        return transactions

    def get_all_users(self) -> List[User]:
        """List every user in the Users sheet. Empty on any failure."""
        result = self._read_remote(schema.USERS_SHEET, schema.USERS_RANGE)
        if not result.ok:
            logging.warning(f'Could not list users: {result}')
            return []
        return [u for u in (schema.user_from_row(row) for row in result.value) if u]

    def get_all_transactions(self) -> List[Transaction]:
        """List every transaction in the Transactions sheet, newest first. Empty on any failure."""
        result = self._read_remote(schema.TRANSACTIONS_SHEET, schema.TRANSACTIONS_RANGE)
        if not result.ok:
            logging.warning(f'Could not list transactions: {result}')
            return []
        transactions = [schema.transaction_from_row(row) for row in result.value]
        transactions.sort(key=lambda tx: tx.id, reverse=True)
        return transactions

    def is_authenticated(self) -> bool:
        return self.auth.is_authenticated()

    def is_configured(self) -> bool:
        return self.auth.is_configured()

    def is_token_expired(self) -> bool:
        return self.auth.is_token_expired()

    def build_authorization_url(self) -> str:
        return self.auth.build_authorization_url()

    def process_callback(self, fragment: str) -> bool:
        return self.auth.process_callback(fragment)

    def logout(self) -> None:
        self.auth.logout()
