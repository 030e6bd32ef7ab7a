"""Tests for Kamling.core.schema and Kamling.core.models."""
import unittest
from unittest.mock import patch

from Kamling.core import schema
from Kamling.core.models import Transaction, TransactionType, User, normalize_type, parse_int
from Kamling.core.schema import SheetRow, SheetSchemaGuard, TransactionColumn
from Kamling.core.service import SheetGateway
from Kamling.status import status
from tests.base import BaseTestCase, metadata_payload


class ModelTests(unittest.TestCase):
    def test_normalize_type(self):
        self.assertEqual(
            [normalize_type(v) for v in ('Income', 'IN', 'keluar')],
            [TransactionType.In, TransactionType.In, TransactionType.Out],
        )
        self.assertEqual(normalize_type('Masuk'), TransactionType.In)
        self.assertEqual(normalize_type('EXPENSE'), TransactionType.Out)
        self.assertEqual(normalize_type(' out '), TransactionType.Out)
        self.assertEqual(normalize_type('transfer'), TransactionType.In)
        self.assertEqual(normalize_type(''), TransactionType.In)
        self.assertEqual(normalize_type(None), TransactionType.In)

    def test_type_labels(self):
        self.assertEqual(TransactionType.In.label, 'masuk')
        self.assertEqual(TransactionType.Out.label, 'keluar')

    def test_parse_int(self):
        self.assertEqual(parse_int('23000', 0), 23000)
        self.assertEqual(parse_int(23000, 0), 23000)
        self.assertEqual(parse_int('23.000', 0), 23000)
        self.assertEqual(parse_int('23,000', 0), 23000)
        self.assertEqual(parse_int('1767225600000', 0), 1767225600000)
        self.assertEqual(parse_int('12.5', 0), 12)
        self.assertEqual(parse_int('', 7), 7)
        self.assertEqual(parse_int('abc', 7), 7)
        self.assertEqual(parse_int(None, 7), 7)

    def test_negative_amount_rejected(self):
        with self.assertRaises(ValueError):
            Transaction(id=1, date='', day='', name='', amount=-1)

    def test_type_coerced(self):
        tx = Transaction(id=1, date='', day='', name='', amount=1, type='keluar')
        self.assertIs(tx.type, TransactionType.Out)


class RowCodecTests(unittest.TestCase):
    def test_ranges(self):
        self.assertEqual(schema.USERS_RANGE, 'Users!A:C')
        self.assertEqual(schema.TRANSACTIONS_RANGE, 'Transactions!A:G')

    def test_sheet_row_defaults(self):
        row = SheetRow(['1', ' Ronald '], TransactionColumn)
        self.assertEqual(row.get(TransactionColumn.Id), '1')
        self.assertEqual(row.get(TransactionColumn.Date), 'Ronald')
        self.assertEqual(row.get(TransactionColumn.Phone), '')
        self.assertEqual(row.get(TransactionColumn.Amount, '0'), '0')

    def test_sheet_row_truncates(self):
        row = SheetRow(list('ABCDEFGHIJ'), TransactionColumn)
        self.assertEqual(len(row), len(TransactionColumn))

    def test_transaction_from_row(self):
        tx = schema.transaction_from_row(
            ['1767225600000', '1 Jan 2026', 'Malam Jumat', 'Ronald', '23000', 'Masuk', '+6281234567890']
        )
        self.assertEqual(tx, Transaction(
            id=1767225600000, date='1 Jan 2026', day='Malam Jumat', name='Ronald',
            amount=23000, type=TransactionType.In, phone='+6281234567890',
        ))

    def test_transaction_from_short_row(self):
        with patch('Kamling.core.schema.now_ms', return_value=42):
            tx = schema.transaction_from_row(['', '1 Jan 2026', 'Malam Jumat', 'Ronald'])
        self.assertEqual(tx.id, 42)
        self.assertEqual(tx.amount, 0)
        self.assertEqual(tx.type, TransactionType.In)
        self.assertEqual(tx.phone, '')

    def test_transaction_negative_amount(self):
        tx = schema.transaction_from_row(['1', '', '', '', '-500', 'keluar'])
        self.assertEqual(tx.amount, 500)
        self.assertEqual(tx.type, TransactionType.Out)

    def test_transaction_to_row(self):
        tx = Transaction(id=5, date='1 Jan 2026', day='Malam Jumat', name='Ronald', amount=100,
                         type=TransactionType.Out)
        self.assertEqual(
            schema.transaction_to_row(tx, '+62'),
            [5, '1 Jan 2026', 'Malam Jumat', 'Ronald', 100, 'keluar', '+62'],
        )

    def test_user_codecs(self):
        user = User(name='Ronald', phone='+62')
        self.assertEqual(schema.user_to_row(user, '1 Jan 2026'), ['Ronald', '+62', '1 Jan 2026'])
        self.assertEqual(schema.user_from_row(['Ronald', '+62', '1 Jan 2026']), user)
        self.assertIsNone(schema.user_from_row(['Ronald']))

    def test_records_skips_header(self):
        self.assertEqual(schema.records([['name', 'phone'], ['a', 'b']]), [['a', 'b']])
        self.assertEqual(schema.records([]), [])

    def test_sheet_titles(self):
        self.assertEqual(schema.sheet_titles(metadata_payload('Users', 'Transactions')), ['Users', 'Transactions'])
        self.assertEqual(schema.sheet_titles({}), [])


class SheetSchemaGuardTests(BaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.configure()
        self.guard = SheetSchemaGuard(SheetGateway(self.settings, http_factory=self.http.factory))

    def test_exists(self):
        self.http.queue(200, metadata_payload('Users', 'Transactions'))
        self.assertTrue(self.guard.exists('Transactions'))
        self.assertEqual(len(self.http.requests), 1)

    def test_missing_sheet(self):
        self.http.queue(200, metadata_payload('Users'))
        result = self.guard.check('Transactions')
        self.assertEqual(result.error, status.Status.SheetNotFound)

    def test_failure_is_absent(self):
        self.http.queue(503, {'error': {'code': 503, 'message': 'unavailable'}})
        self.assertFalse(self.guard.exists('Transactions'))

        self.http.queue(403, {'error': {'code': 403, 'message': 'denied'}})
        result = self.guard.check('Transactions')
        self.assertEqual(result.error, status.Status.AuthRequired)

    def test_unconfigured_is_absent(self):
        self.configure(spreadsheet_id='')
        result = self.guard.check('Users')
        self.assertEqual(result.error, status.Status.SheetNotFound)
        self.assertEqual(self.http.requests, [])


if __name__ == '__main__':
    unittest.main()
