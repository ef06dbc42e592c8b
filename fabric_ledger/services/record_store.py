"""Record-store accessors the workflow services read from and write to.

Two layers live here: a generic kind-keyed CRUD contract (``get_record``,
``list_records``, ``create_record``, ``update_record``) and the typed helpers
the workflow actually calls. Transport or consistency failures surface as
``StoreError``; uniqueness violations are re-raised untouched so the calling
service can translate them into its own write-once error.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fabric_ledger.errors import NotFound, StoreError
from fabric_ledger.logging_config import get_logger
from fabric_ledger.models import (
    Base,
    EntryStatus,
    FabricEntry,
    FabricRoll,
    QualityRecord,
    RollApproval,
    RollDecision,
)

logger = get_logger('services.record_store')


class RecordKind(str, Enum):
    ENTRY = 'entry'
    ROLL = 'roll'
    QUALITY_RECORD = 'quality-record'
    ROLL_APPROVAL = 'roll-approval'


MODELS_BY_KIND: dict[RecordKind, type[Base]] = {
    RecordKind.ENTRY: FabricEntry,
    RecordKind.ROLL: FabricRoll,
    RecordKind.QUALITY_RECORD: QualityRecord,
    RecordKind.ROLL_APPROVAL: RollApproval,
}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.warning('record store failure', extra={'operation': operation, 'error': str(exc)})
        raise StoreError(f'Record store failed during {operation}') from exc


def _model_for(kind: RecordKind | str) -> type[Base]:
    return MODELS_BY_KIND[RecordKind(kind)]


def _label(kind: RecordKind | str) -> str:
    return RecordKind(kind).value


def get_record(db: Session, kind: RecordKind | str, record_id: int) -> Any | None:
    model = _model_for(kind)
    with store_errors(f'get {_label(kind)}'):
        return db.get(model, record_id)


def list_records(db: Session, kind: RecordKind | str, **filters: Any) -> list[Any]:
    model = _model_for(kind)
    query = select(model)
    for column_name, value in filters.items():
        query = query.where(getattr(model, column_name) == value)
    with store_errors(f'list {_label(kind)}'):
        return list(db.execute(query.order_by(model.id.asc())).scalars().all())


def create_record(db: Session, kind: RecordKind | str, fields: dict[str, Any]) -> int:
    model = _model_for(kind)
    record = model(**fields)
    with store_errors(f'create {_label(kind)}'):
        db.add(record)
        db.flush()
    return record.id


def update_record(db: Session, kind: RecordKind | str, record_id: int, fields: dict[str, Any]) -> None:
    record = get_record(db, kind, record_id)
    if record is None:
        raise NotFound(f'{_label(kind)} {record_id} not found', field='id')
    with store_errors(f'update {_label(kind)}'):
        for column_name, value in fields.items():
            setattr(record, column_name, value)
        if isinstance(record, FabricEntry):
            record.updated_at = _now()
        db.flush()


def get_entry(db: Session, entry_id: int) -> FabricEntry | None:
    return get_record(db, RecordKind.ENTRY, entry_id)


def lock_entry(db: Session, entry_id: int) -> FabricEntry | None:
    """Load an entry holding its row lock until the surrounding transaction ends.

    Every writer that can move an entry's status goes through here first, which
    serialises decisions and aggregation per entry on PostgreSQL.
    """
    with store_errors('lock entry'):
        return db.execute(
            select(FabricEntry).where(FabricEntry.id == entry_id).with_for_update()
        ).scalar_one_or_none()


def get_roll(db: Session, roll_id: int) -> FabricRoll | None:
    return get_record(db, RecordKind.ROLL, roll_id)


def list_rolls_for_entry(db: Session, entry_id: int) -> list[FabricRoll]:
    with store_errors('list rolls'):
        return list(
            db.execute(
                select(FabricRoll)
                .where(FabricRoll.fabric_entry_id == entry_id)
                .order_by(FabricRoll.batch_number.asc())
            ).scalars().all()
        )


def get_quality_record_for_entry(db: Session, entry_id: int) -> QualityRecord | None:
    with store_errors('get quality record'):
        return db.execute(
            select(QualityRecord).where(QualityRecord.fabric_entry_id == entry_id)
        ).scalar_one_or_none()


def get_approval(db: Session, approval_id: int) -> RollApproval | None:
    return get_record(db, RecordKind.ROLL_APPROVAL, approval_id)


def get_approval_for_roll(db: Session, roll_id: int) -> RollApproval | None:
    with store_errors('get roll approval'):
        return db.execute(
            select(RollApproval).where(RollApproval.fabric_roll_id == roll_id)
        ).scalar_one_or_none()


def list_approvals_for_entry(db: Session, entry_id: int) -> list[RollApproval]:
    with store_errors('list roll approvals'):
        return list(
            db.execute(
                select(RollApproval)
                .where(RollApproval.fabric_entry_id == entry_id)
                .order_by(RollApproval.id.asc())
            ).scalars().all()
        )


def set_entry_status(db: Session, entry: FabricEntry, status: EntryStatus) -> None:
    with store_errors('set entry status'):
        entry.status = status
        entry.updated_at = _now()
        db.flush()


def compare_and_set_entry_status(
    db: Session,
    entry_id: int,
    *,
    expected: EntryStatus,
    new: EntryStatus,
) -> bool:
    """Move the entry to ``new`` only while it is still in ``expected``.

    Returns True when this call performed the transition.
    """
    with store_errors('compare-and-set entry status'):
        result = db.execute(
            update(FabricEntry)
            .where(FabricEntry.id == entry_id, FabricEntry.status == expected)
            .values(status=new, updated_at=_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        # Refresh any copy already in the identity map so callers see the new status.
        db.get(FabricEntry, entry_id, populate_existing=True)
    return True


def set_evidence_if_absent(db: Session, approval_id: int, evidence_reference: str) -> bool:
    """Store evidence on a hold only while it has none; True when this call wrote it."""
    with store_errors('set roll-approval evidence'):
        result = db.execute(
            update(RollApproval)
            .where(
                RollApproval.id == approval_id,
                RollApproval.decision == RollDecision.ON_HOLD,
                RollApproval.evidence_reference.is_(None),
            )
            .values(evidence_reference=evidence_reference)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        db.get(RollApproval, approval_id, populate_existing=True)
    return True
