from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from fabric_ledger.auth import Principal
from fabric_ledger.errors import Forbidden, InvalidState, NotFound, ValidationError
from fabric_ledger.logging_config import get_logger
from fabric_ledger.models import EntryStatus, FabricEntry, FabricType, QuantityUnit
from fabric_ledger.permissions import Capability, assert_capability, can_modify_entry
from fabric_ledger.services.record_store import (
    RecordKind,
    create_record,
    get_entry,
    lock_entry,
    update_record,
)

logger = get_logger('services.inward')


@dataclass(frozen=True)
class NewFabricRoll:
    roll_value: Decimal
    roll_unit: QuantityUnit


@dataclass(frozen=True)
class NewFabricEntry:
    seller_name: str
    quantity_value: Decimal
    quantity_unit: QuantityUnit
    color: str
    fabric_type: FabricType
    po_number: str
    fabric_composition: str
    inwarded_by: str
    uat_value: Decimal | None = None
    uat_unit: QuantityUnit | None = None
    document_reference: str | None = None
    rib_total_weight: Decimal | None = None
    rib_total_rolls: int | None = None


def _require_text(value: str, field: str, label: str) -> str:
    cleaned = (value or '').strip()
    if not cleaned:
        raise ValidationError(f'{label} is required', field=field)
    return cleaned


def _validate_entry(entry: NewFabricEntry) -> None:
    if entry.quantity_value <= 0:
        raise ValidationError('Quantity must be greater than zero', field='quantity_value')
    if entry.uat_value is not None:
        if entry.uat_value <= 0:
            raise ValidationError('UAT value must be greater than zero', field='uat_value')
        if entry.uat_unit is None:
            raise ValidationError('UAT unit is required with a UAT value', field='uat_unit')
    if entry.rib_total_weight is not None and entry.rib_total_weight <= 0:
        raise ValidationError('Rib total weight must be greater than zero', field='rib_total_weight')
    if entry.rib_total_rolls is not None and entry.rib_total_rolls <= 0:
        raise ValidationError('Rib total rolls must be greater than zero', field='rib_total_rolls')


def _validate_rolls(entry: NewFabricEntry, rolls: list[NewFabricRoll]) -> None:
    if not rolls:
        raise ValidationError('At least one roll is required', field='rolls')
    for index, roll in enumerate(rolls, start=1):
        if roll.roll_value <= 0:
            raise ValidationError(f'Roll {index} must have a positive value', field='rolls')

    if entry.quantity_unit == QuantityUnit.KG:
        kg_total = sum((roll.roll_value for roll in rolls if roll.roll_unit == QuantityUnit.KG), Decimal('0'))
        if kg_total != entry.quantity_value:
            raise ValidationError(
                f'Roll weights total {kg_total} KG but the entry quantity is {entry.quantity_value} KG',
                field='rolls',
            )


def create_fabric_entry(
    db: Session,
    *,
    principal: Principal,
    entry: NewFabricEntry,
    rolls: list[NewFabricRoll],
) -> FabricEntry:
    assert_capability(principal.role, Capability.CREATE_ENTRY)

    fields = {
        'seller_name': _require_text(entry.seller_name, 'seller_name', 'Seller name'),
        'color': _require_text(entry.color, 'color', 'Color'),
        'po_number': _require_text(entry.po_number, 'po_number', 'PO number'),
        'fabric_composition': _require_text(entry.fabric_composition, 'fabric_composition', 'Fabric composition'),
        'inwarded_by': _require_text(entry.inwarded_by, 'inwarded_by', 'Inwarded by'),
    }
    _validate_entry(entry)
    _validate_rolls(entry, rolls)

    entry_id = create_record(
        db,
        RecordKind.ENTRY,
        {
            **fields,
            'created_by': principal.identity,
            'quantity_value': entry.quantity_value,
            'quantity_unit': entry.quantity_unit,
            'fabric_type': entry.fabric_type,
            'uat_value': entry.uat_value,
            'uat_unit': entry.uat_unit,
            'document_reference': (entry.document_reference or '').strip() or None,
            'rib_total_weight': entry.rib_total_weight,
            'rib_total_rolls': entry.rib_total_rolls,
            'status': EntryStatus.PENDING_QUALITY,
        },
    )
    for batch_number, roll in enumerate(rolls, start=1):
        create_record(
            db,
            RecordKind.ROLL,
            {
                'fabric_entry_id': entry_id,
                'batch_number': batch_number,
                'roll_value': roll.roll_value,
                'roll_unit': roll.roll_unit,
            },
        )

    logger.info(
        'fabric entry created',
        extra={'entry_id': entry_id, 'roll_count': len(rolls), 'actor': principal.identity},
    )
    return get_entry(db, entry_id)


def attach_entry_document(
    db: Session,
    *,
    principal: Principal,
    entry_id: int,
    document_reference: str,
) -> FabricEntry:
    assert_capability(principal.role, Capability.UPDATE_ENTRY)
    reference = _require_text(document_reference, 'document_reference', 'Document reference')

    entry = lock_entry(db, entry_id)
    if entry is None:
        raise NotFound('Fabric entry not found', field='entry_id')
    if entry.status != EntryStatus.PENDING_QUALITY:
        raise InvalidState('Documents can only be attached before the quality check', field='status')
    if not can_modify_entry(principal.role, principal.identity, status=entry.status, owner=entry.created_by):
        raise Forbidden('Only the clerk who created this entry may change it', field='entry_id')

    update_record(db, RecordKind.ENTRY, entry_id, {'document_reference': reference})
    return entry
