from __future__ import annotations

import unittest
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError, OperationalError

from fabric_ledger.errors import NotFound, StoreError
from fabric_ledger.models import EntryStatus, FabricRoll
from fabric_ledger.services.record_store import (
    RecordKind,
    compare_and_set_entry_status,
    get_record,
    list_records,
    store_errors,
    update_record,
)

from support import make_entry, make_sessionmaker, reload_entry


class RecordStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_sessionmaker()()
        self.entry, self.roll_ids = make_entry(self.db, roll_values=('5', '7', '8'))

    def tearDown(self) -> None:
        self.db.close()

    def test_generic_accessors_are_keyed_by_kind(self) -> None:
        rolls = list_records(self.db, 'roll', fabric_entry_id=self.entry.id)
        self.assertEqual([roll.id for roll in rolls], self.roll_ids)
        self.assertIsInstance(get_record(self.db, RecordKind.ROLL, self.roll_ids[0]), FabricRoll)
        self.assertIsNone(get_record(self.db, RecordKind.ENTRY, 12345))

    def test_update_missing_record_is_not_found(self) -> None:
        with self.assertRaises(NotFound):
            update_record(self.db, RecordKind.ENTRY, 12345, {'color': 'Red'})

    def test_compare_and_set_only_moves_from_expected_status(self) -> None:
        moved = compare_and_set_entry_status(
            self.db, self.entry.id, expected=EntryStatus.PENDING_QUALITY, new=EntryStatus.APPROVED
        )
        self.assertFalse(moved)
        self.assertEqual(reload_entry(self.db, self.entry.id).status, EntryStatus.QUALITY_CHECKED)

        moved = compare_and_set_entry_status(
            self.db, self.entry.id, expected=EntryStatus.QUALITY_CHECKED, new=EntryStatus.ON_HOLD
        )
        self.assertTrue(moved)
        self.assertEqual(self.entry.status, EntryStatus.ON_HOLD)

    def test_driver_failures_surface_as_store_error(self) -> None:
        failure = OperationalError('SELECT 1', {}, Exception('connection reset'))
        with patch.object(self.db, 'execute', side_effect=failure):
            with self.assertRaises(StoreError) as ctx:
                list_records(self.db, RecordKind.ROLL)
        self.assertIs(ctx.exception.__cause__, failure)

    def test_uniqueness_violations_pass_through(self) -> None:
        violation = IntegrityError('INSERT', {}, Exception('duplicate key'))
        with self.assertRaises(IntegrityError):
            with store_errors('create roll-approval'):
                raise violation


if __name__ == '__main__':
    unittest.main()
