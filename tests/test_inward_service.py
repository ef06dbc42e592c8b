from __future__ import annotations

import unittest
from dataclasses import replace
from decimal import Decimal

from fabric_ledger.errors import Forbidden, InvalidState, NotFound, ValidationError
from fabric_ledger.models import EntryStatus, FabricType, QuantityUnit
from fabric_ledger.services.inward_service import (
    NewFabricEntry,
    NewFabricRoll,
    attach_entry_document,
    create_fabric_entry,
)
from fabric_ledger.services.record_store import list_rolls_for_entry

from support import ADMIN, APPROVER, CLERK, make_entry, make_sessionmaker

BASE_ENTRY = NewFabricEntry(
    seller_name='Acme Mills',
    quantity_value=Decimal('100'),
    quantity_unit=QuantityUnit.KG,
    color='Navy',
    fabric_type=FabricType.KNITTED,
    po_number='PO-42',
    fabric_composition='95% Cotton 5% Elastane',
    inwarded_by='clerk@example.com',
)


def _kg_rolls(*values: str) -> list[NewFabricRoll]:
    return [NewFabricRoll(roll_value=Decimal(value), roll_unit=QuantityUnit.KG) for value in values]


class InwardServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_sessionmaker()()

    def tearDown(self) -> None:
        self.db.close()

    def test_creates_entry_with_dense_batch_numbers(self) -> None:
        entry = create_fabric_entry(self.db, principal=CLERK, entry=BASE_ENTRY, rolls=_kg_rolls('30', '30', '40'))

        self.assertEqual(entry.status, EntryStatus.PENDING_QUALITY)
        rolls = list_rolls_for_entry(self.db, entry.id)
        self.assertEqual([roll.batch_number for roll in rolls], [1, 2, 3])
        self.assertEqual([roll.roll_value for roll in rolls], [Decimal('30'), Decimal('30'), Decimal('40')])

    def test_kg_roll_total_must_match_ordered_quantity(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            create_fabric_entry(self.db, principal=CLERK, entry=BASE_ENTRY, rolls=_kg_rolls('30', '30'))
        self.assertEqual(ctx.exception.field, 'rolls')

    def test_meter_entries_skip_the_weight_total_check(self) -> None:
        entry = replace(BASE_ENTRY, quantity_unit=QuantityUnit.METER)
        rolls = [NewFabricRoll(roll_value=Decimal('12.5'), roll_unit=QuantityUnit.METER)]
        created = create_fabric_entry(self.db, principal=ADMIN, entry=entry, rolls=rolls)
        self.assertEqual(created.quantity_unit, QuantityUnit.METER)

    def test_requires_at_least_one_positive_roll(self) -> None:
        with self.assertRaises(ValidationError):
            create_fabric_entry(self.db, principal=CLERK, entry=BASE_ENTRY, rolls=[])
        with self.assertRaises(ValidationError):
            create_fabric_entry(self.db, principal=CLERK, entry=BASE_ENTRY, rolls=_kg_rolls('100', '0'))

    def test_blank_required_field_is_rejected_by_name(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            create_fabric_entry(
                self.db,
                principal=CLERK,
                entry=replace(BASE_ENTRY, seller_name='  '),
                rolls=_kg_rolls('100'),
            )
        self.assertEqual(ctx.exception.field, 'seller_name')

    def test_uat_value_needs_a_unit(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            create_fabric_entry(
                self.db,
                principal=CLERK,
                entry=replace(BASE_ENTRY, uat_value=Decimal('98')),
                rolls=_kg_rolls('100'),
            )
        self.assertEqual(ctx.exception.field, 'uat_unit')

    def test_approver_cannot_create_entries(self) -> None:
        with self.assertRaises(Forbidden):
            create_fabric_entry(self.db, principal=APPROVER, entry=BASE_ENTRY, rolls=_kg_rolls('100'))

    def test_attach_document_only_before_quality(self) -> None:
        pending, _ = make_entry(self.db, status=EntryStatus.PENDING_QUALITY)
        checked, _ = make_entry(self.db, status=EntryStatus.QUALITY_CHECKED, po_number='PO-2')

        updated = attach_entry_document(
            self.db, principal=CLERK, entry_id=pending.id, document_reference='inward/PO-1.pdf'
        )
        self.assertEqual(updated.document_reference, 'inward/PO-1.pdf')

        with self.assertRaises(InvalidState):
            attach_entry_document(self.db, principal=CLERK, entry_id=checked.id, document_reference='late.pdf')
        with self.assertRaises(NotFound):
            attach_entry_document(self.db, principal=CLERK, entry_id=999, document_reference='x.pdf')

    def test_clerks_attach_documents_only_to_their_own_entries(self) -> None:
        theirs, _ = make_entry(self.db, status=EntryStatus.PENDING_QUALITY, created_by='other.clerk@example.com')

        with self.assertRaises(Forbidden) as ctx:
            attach_entry_document(self.db, principal=CLERK, entry_id=theirs.id, document_reference='x.pdf')
        self.assertEqual(ctx.exception.field, 'entry_id')
        self.assertIsNone(theirs.document_reference)

        updated = attach_entry_document(self.db, principal=ADMIN, entry_id=theirs.id, document_reference='admin.pdf')
        self.assertEqual(updated.document_reference, 'admin.pdf')

    def test_created_entry_records_its_creator(self) -> None:
        entry = create_fabric_entry(self.db, principal=CLERK, entry=BASE_ENTRY, rolls=_kg_rolls('60', '40'))
        self.assertEqual(entry.created_by, CLERK.identity)


if __name__ == '__main__':
    unittest.main()
