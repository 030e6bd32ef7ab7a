"""
Tests for Kamling.core.database.
"""
import sqlite3
import threading

from Kamling.core.database import LocalCache, SCHEMA, Table
from Kamling.core.models import Transaction, TransactionType, User
from tests.base import BaseTestCase


def tx(id_: int, phone: str = '+62', amount: int = 1000, type_=TransactionType.In, name: str = 'Ronald') -> Transaction:
    return Transaction(id=id_, date='1 Jan 2026', day='Malam Jumat', name=name, amount=amount, type=type_,
                       phone=phone)


class LocalCacheTests(BaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.cache = LocalCache(self.settings.db_path)

    def test_schema_created(self):
        self.assertTrue(self.settings.db_path.exists())
        conn = self.cache.connection()
        try:
            for table in Table:
                columns = {row['name'] for row in conn.execute(f'PRAGMA table_info({table.value})')}
                self.assertEqual(columns, set(SCHEMA[table]))
        finally:
            conn.close()

    def test_upsert_user_first_write_wins(self):
        self.assertTrue(self.cache.upsert_user(User(name='Ronald', phone='+62'), created_at='1 Jan 2026'))
        self.assertFalse(self.cache.upsert_user(User(name='Renamed', phone='+62'), created_at='2 Jan 2026'))

        self.assertEqual(self.cache.list_users(), [User(name='Ronald', phone='+62')])

    def test_upsert_user_default_created_at(self):
        self.cache.upsert_user(User(name='Ronald', phone='+62'))
        conn = self.cache.connection()
        try:
            created_at = conn.execute('SELECT created_at FROM users').fetchone()[0]
        finally:
            conn.close()
        self.assertTrue(created_at)

    def test_upsert_transaction_first_write_wins(self):
        self.assertTrue(self.cache.upsert_transaction(tx(1, amount=100)))
        self.assertFalse(self.cache.upsert_transaction(tx(1, amount=999)))

        transactions = self.cache.list_all_transactions()
        self.assertEqual(len(transactions), 1)
        self.assertEqual(transactions[0].amount, 100)

    def test_lists_newest_first(self):
        for id_ in (2, 10, 5):
            self.cache.upsert_transaction(tx(id_))
        self.assertEqual([t.id for t in self.cache.list_all_transactions()], [10, 5, 2])

    def test_list_for_owner(self):
        self.cache.upsert_transaction(tx(1, phone='+62'))
        self.cache.upsert_transaction(tx(2, phone='+61'))
        self.cache.upsert_transaction(tx(3, phone='+62', type_=TransactionType.Out))

        owned = self.cache.list_transactions_for_owner('+62')
        self.assertEqual([t.id for t in owned], [3, 1])
        self.assertEqual(owned[0].type, TransactionType.Out)
        self.assertEqual(self.cache.list_transactions_for_owner('+00'), [])

    def test_roundtrip_fields(self):
        original = tx(1767225600000, amount=23000, type_=TransactionType.Out)
        self.cache.upsert_transaction(original)
        self.assertEqual(self.cache.list_all_transactions(), [original])

    def test_persists_across_instances(self):
        self.cache.upsert_user(User(name='Ronald', phone='+62'))
        reopened = LocalCache(self.settings.db_path)
        self.assertEqual(reopened.list_users(), [User(name='Ronald', phone='+62')])

    def test_mismatched_table_recreated(self):
        conn = sqlite3.connect(str(self.settings.db_path))
        conn.execute('DROP TABLE transactions')
        conn.execute('CREATE TABLE transactions (id INTEGER PRIMARY KEY, legacy TEXT)')
        conn.commit()
        conn.close()

        cache = LocalCache(self.settings.db_path)
        self.assertTrue(cache.upsert_transaction(tx(1)))

    def test_reset_cache(self):
        self.cache.upsert_user(User(name='Ronald', phone='+62'))
        self.cache.upsert_transaction(tx(1))

        self.cache.reset_cache()

        self.assertTrue(self.settings.db_path.exists())
        self.assertEqual(self.cache.list_users(), [])
        self.assertEqual(self.cache.list_all_transactions(), [])

    def test_delete(self):
        self.cache.delete()
        self.assertFalse(self.settings.db_path.exists())
        self.cache.delete()

    def test_concurrent_upserts(self):
        def worker(offset: int) -> None:
            for i in range(25):
                self.cache.upsert_transaction(tx(offset + i))
                self.cache.upsert_user(User(name='Ronald', phone='+62'))

        threads = [threading.Thread(target=worker, args=(n * 100,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(self.cache.list_all_transactions()), 100)
        self.assertEqual(len(self.cache.list_users()), 1)
