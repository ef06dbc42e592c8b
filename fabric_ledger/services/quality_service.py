from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fabric_ledger.auth import Principal
from fabric_ledger.errors import AlreadyChecked, InvalidState, NotFound, ValidationError
from fabric_ledger.logging_config import get_logger
from fabric_ledger.models import ColorFastness, EntryStatus, QualityRecord
from fabric_ledger.permissions import Capability, assert_capability, assert_transition_allowed
from fabric_ledger.services.record_store import (
    RecordKind,
    create_record,
    get_quality_record_for_entry,
    get_record,
    lock_entry,
    set_entry_status,
)

logger = get_logger('services.quality')


@dataclass(frozen=True)
class QualityInput:
    gsm_value: Decimal
    width_dia_inches: Decimal
    shrinkage_percent: Decimal
    color_fastness: ColorFastness
    remarks: str | None = None


def _validate(quality: QualityInput) -> None:
    if quality.gsm_value <= 0:
        raise ValidationError('GSM must be greater than zero', field='gsm_value')
    if quality.width_dia_inches <= 0:
        raise ValidationError('Width/DIA must be greater than zero', field='width_dia_inches')
    if quality.shrinkage_percent < 0 or quality.shrinkage_percent > 100:
        raise ValidationError('Shrinkage must be between 0 and 100 percent', field='shrinkage_percent')


def record_quality(
    db: Session,
    *,
    entry_id: int,
    quality: QualityInput,
    principal: Principal,
) -> QualityRecord:
    """Store the quality check for an entry and move it to QUALITY_CHECKED.

    The entry row stays locked until the caller commits. At most one quality
    record exists per entry: the lookup below catches the common case and the
    unique constraint settles a concurrent race.
    """
    assert_capability(principal.role, Capability.CREATE_QUALITY)
    assert_transition_allowed(principal.role, EntryStatus.PENDING_QUALITY, EntryStatus.QUALITY_CHECKED)
    _validate(quality)

    entry = lock_entry(db, entry_id)
    if entry is None:
        raise NotFound('Fabric entry not found', field='entry_id')
    if get_quality_record_for_entry(db, entry_id) is not None:
        raise AlreadyChecked('Quality parameters were already recorded for this entry', field='entry_id')
    if entry.status != EntryStatus.PENDING_QUALITY:
        raise InvalidState(
            f'Quality can only be recorded while pending quality (current: {entry.status.value})',
            field='status',
        )

    try:
        record_id = create_record(
            db,
            RecordKind.QUALITY_RECORD,
            {
                'fabric_entry_id': entry_id,
                'gsm_value': quality.gsm_value,
                'width_dia_inches': quality.width_dia_inches,
                'shrinkage_percent': quality.shrinkage_percent,
                'color_fastness': quality.color_fastness,
                'checked_by': principal.identity,
                'remarks': (quality.remarks or '').strip() or None,
            },
        )
    except IntegrityError as exc:
        db.rollback()
        logger.warning('duplicate quality record rejected', extra={'entry_id': entry_id})
        raise AlreadyChecked('Quality parameters were already recorded for this entry', field='entry_id') from exc

    set_entry_status(db, entry, EntryStatus.QUALITY_CHECKED)
    logger.info('quality recorded', extra={'entry_id': entry_id, 'actor': principal.identity})
    return get_record(db, RecordKind.QUALITY_RECORD, record_id)
