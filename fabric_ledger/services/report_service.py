from __future__ import annotations

from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from fabric_ledger.auth import Principal
from fabric_ledger.models import (
    CANONICAL_STATUSES,
    EntryStatus,
    FabricEntry,
    FabricRoll,
    QualityRecord,
    RollApproval,
    canonical_status,
)
from fabric_ledger.permissions import Capability, assert_capability
from fabric_ledger.services.record_store import store_errors

RECENT_ENTRY_LIMIT = 5


def _entry_row(entry: FabricEntry) -> dict:
    return {
        'id': entry.id,
        'seller_name': entry.seller_name,
        'po_number': entry.po_number,
        'color': entry.color,
        'fabric_type': entry.fabric_type.value,
        'quantity_value': entry.quantity_value,
        'quantity_unit': entry.quantity_unit.value,
        'inwarded_by': entry.inwarded_by,
        'date_inwarded': entry.date_inwarded,
        'status': canonical_status(entry.status).value,
    }


def list_pending_quality(db: Session, *, principal: Principal) -> list[dict]:
    assert_capability(principal.role, Capability.READ_ENTRY)
    with store_errors('list pending quality'):
        entries = db.execute(
            select(FabricEntry)
            .where(FabricEntry.status == EntryStatus.PENDING_QUALITY)
            .order_by(FabricEntry.date_inwarded.asc(), FabricEntry.id.asc())
        ).scalars().all()
    return [_entry_row(entry) for entry in entries]


def list_ready_for_approval(db: Session, *, principal: Principal) -> list[dict]:
    assert_capability(principal.role, Capability.READ_ENTRY)
    roll_counts = (
        select(FabricRoll.fabric_entry_id.label('entry_id'), func.count(FabricRoll.id).label('total'))
        .group_by(FabricRoll.fabric_entry_id)
        .subquery()
    )
    decided_counts = (
        select(RollApproval.fabric_entry_id.label('entry_id'), func.count(RollApproval.id).label('processed'))
        .group_by(RollApproval.fabric_entry_id)
        .subquery()
    )
    with store_errors('list ready for approval'):
        rows = db.execute(
            select(
                FabricEntry,
                func.coalesce(roll_counts.c.total, 0),
                func.coalesce(decided_counts.c.processed, 0),
            )
            .outerjoin(roll_counts, roll_counts.c.entry_id == FabricEntry.id)
            .outerjoin(decided_counts, decided_counts.c.entry_id == FabricEntry.id)
            .where(FabricEntry.status == EntryStatus.QUALITY_CHECKED)
            .order_by(FabricEntry.date_inwarded.asc(), FabricEntry.id.asc())
        ).all()
    return [
        {**_entry_row(entry), 'total_rolls': int(total), 'processed_rolls': int(processed)}
        for entry, total, processed in rows
    ]


def get_dashboard_summary(db: Session, *, principal: Principal) -> dict:
    assert_capability(principal.role, Capability.VIEW_ALL_REPORTS)
    with store_errors('dashboard summary'):
        entries = db.execute(select(FabricEntry).order_by(FabricEntry.date_inwarded.desc(), FabricEntry.id.desc())).scalars().all()
        average_gsm = db.execute(select(func.avg(QualityRecord.gsm_value))).scalar_one_or_none()

    status_counts = Counter(canonical_status(entry.status) for entry in entries)
    quantity_by_unit: dict[str, Decimal] = {}
    for entry in entries:
        unit = entry.quantity_unit.value
        quantity_by_unit[unit] = quantity_by_unit.get(unit, Decimal('0')) + entry.quantity_value

    return {
        'total_entries': len(entries),
        'status_counts': {status.value: status_counts.get(status, 0) for status in CANONICAL_STATUSES},
        'total_quantity_by_unit': quantity_by_unit,
        'average_gsm': Decimal(str(average_gsm)).quantize(Decimal('0.01')) if average_gsm is not None else None,
        'recent_entries': [_entry_row(entry) for entry in entries[:RECENT_ENTRY_LIMIT]],
    }


def list_entries_report(
    db: Session,
    *,
    principal: Principal,
    status: EntryStatus | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[dict]:
    assert_capability(principal.role, Capability.VIEW_ALL_REPORTS)

    conditions = []
    if status is not None:
        wanted = canonical_status(status)
        if wanted == EntryStatus.APPROVED:
            conditions.append(FabricEntry.status.in_([EntryStatus.APPROVED, EntryStatus.READY_TO_ISSUE]))
        else:
            conditions.append(FabricEntry.status == wanted)
    if from_date:
        conditions.append(FabricEntry.date_inwarded >= datetime.combine(from_date, time.min, tzinfo=timezone.utc))
    if to_date:
        conditions.append(
            FabricEntry.date_inwarded < datetime.combine(to_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        )

    query = (
        select(FabricEntry, QualityRecord)
        .outerjoin(QualityRecord, QualityRecord.fabric_entry_id == FabricEntry.id)
        .order_by(FabricEntry.date_inwarded.desc(), FabricEntry.id.desc())
    )
    if conditions:
        query = query.where(and_(*conditions))

    with store_errors('entries report'):
        rows = db.execute(query).all()
        entry_ids = [entry.id for entry, _ in rows]
        decisions = (
            db.execute(select(RollApproval).where(RollApproval.fabric_entry_id.in_(entry_ids))).scalars().all()
            if entry_ids
            else []
        )

    decisions_by_entry: dict[int, Counter] = {}
    for approval in decisions:
        decisions_by_entry.setdefault(approval.fabric_entry_id, Counter())[approval.decision.value] += 1

    report = []
    for entry, quality in rows:
        row = _entry_row(entry)
        row['quality'] = (
            {
                'gsm_value': quality.gsm_value,
                'width_dia_inches': quality.width_dia_inches,
                'shrinkage_percent': quality.shrinkage_percent,
                'color_fastness': quality.color_fastness.value,
                'checked_by': quality.checked_by,
            }
            if quality
            else None
        )
        row['roll_decisions'] = dict(decisions_by_entry.get(entry.id, Counter()))
        report.append(row)
    return report
