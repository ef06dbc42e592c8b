from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from fabric_ledger.auth import Principal, get_current_principal
from fabric_ledger.db import get_db
from fabric_ledger.models import FabricEntry, QualityRecord
from fabric_ledger.schemas import DocumentIn, FabricEntryIn, QualityIn
from fabric_ledger.services.approval_service import get_roll_approvals
from fabric_ledger.services.audit_service import log_audit
from fabric_ledger.services.inward_service import (
    NewFabricEntry,
    NewFabricRoll,
    attach_entry_document,
    create_fabric_entry,
)
from fabric_ledger.services.quality_service import QualityInput, record_quality
from fabric_ledger.services.record_store import list_rolls_for_entry
from fabric_ledger.services.report_service import list_pending_quality, list_ready_for_approval

router = APIRouter(prefix='/entries', tags=['entries'])


def _entry_payload(entry: FabricEntry) -> dict:
    return {
        'id': entry.id,
        'seller_name': entry.seller_name,
        'quantity_value': entry.quantity_value,
        'quantity_unit': entry.quantity_unit.value,
        'color': entry.color,
        'fabric_type': entry.fabric_type.value,
        'po_number': entry.po_number,
        'fabric_composition': entry.fabric_composition,
        'inwarded_by': entry.inwarded_by,
        'created_by': entry.created_by,
        'document_reference': entry.document_reference,
        'status': entry.status.value,
    }


def _quality_payload(record: QualityRecord) -> dict:
    return {
        'id': record.id,
        'fabric_entry_id': record.fabric_entry_id,
        'gsm_value': record.gsm_value,
        'width_dia_inches': record.width_dia_inches,
        'shrinkage_percent': record.shrinkage_percent,
        'color_fastness': record.color_fastness.value,
        'checked_by': record.checked_by,
        'remarks': record.remarks,
    }


@router.post('', status_code=status.HTTP_201_CREATED)
def create_entry(
    payload: FabricEntryIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    entry = create_fabric_entry(
        db,
        principal=principal,
        entry=NewFabricEntry(**payload.model_dump(exclude={'rolls'})),
        rolls=[NewFabricRoll(roll_value=roll.roll_value, roll_unit=roll.roll_unit) for roll in payload.rolls],
    )
    rolls = list_rolls_for_entry(db, entry.id)

    log_audit(
        db,
        actor_identity=principal.identity,
        action='FABRIC_ENTRY_CREATED',
        fabric_entry_id=entry.id,
        metadata={'po_number': entry.po_number, 'roll_count': len(rolls)},
    )
    db.commit()
    return {
        **_entry_payload(entry),
        'rolls': [{'id': roll.id, 'batch_number': roll.batch_number} for roll in rolls],
    }


@router.get('/pending-quality')
def pending_quality(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return list_pending_quality(db, principal=principal)


@router.get('/ready-for-approval')
def ready_for_approval(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return list_ready_for_approval(db, principal=principal)


@router.post('/{entry_id}/document')
def attach_document(
    entry_id: int,
    payload: DocumentIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    entry = attach_entry_document(
        db,
        principal=principal,
        entry_id=entry_id,
        document_reference=payload.document_reference,
    )
    log_audit(
        db,
        actor_identity=principal.identity,
        action='ENTRY_DOCUMENT_ATTACHED',
        fabric_entry_id=entry_id,
        metadata={'document_reference': entry.document_reference},
    )
    db.commit()
    return _entry_payload(entry)


@router.post('/{entry_id}/quality', status_code=status.HTTP_201_CREATED)
def submit_quality(
    entry_id: int,
    payload: QualityIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    record = record_quality(
        db,
        entry_id=entry_id,
        quality=QualityInput(**payload.model_dump()),
        principal=principal,
    )
    log_audit(
        db,
        actor_identity=principal.identity,
        action='QUALITY_RECORDED',
        fabric_entry_id=entry_id,
        metadata={'quality_record_id': record.id, 'color_fastness': record.color_fastness.value},
    )
    db.commit()
    return _quality_payload(record)


@router.get('/{entry_id}/rolls')
def entry_rolls(
    entry_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return get_roll_approvals(db, entry_id=entry_id, principal=principal)
