from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from fabric_ledger.logging_config import get_logger
from fabric_ledger.models import CANONICAL_SUCCESS_STATUS, EntryStatus, RollDecision
from fabric_ledger.services.record_store import (
    compare_and_set_entry_status,
    list_approvals_for_entry,
    list_rolls_for_entry,
)

logger = get_logger('services.aggregation')

INCOMPLETE_MESSAGE = 'Not all rolls processed'


@dataclass(frozen=True)
class AggregationResult:
    entry_id: int
    complete: bool
    processed: int
    total: int
    final_status: EntryStatus | None = None
    # True only for the pass that actually moved the entry out of QUALITY_CHECKED.
    transitioned: bool = False
    message: str = ''

    def outcome(self) -> dict | None:
        if not self.complete:
            return None
        return {'entry_id': self.entry_id, 'final_status': self.final_status}

    def to_dict(self) -> dict:
        return {
            'entry_id': self.entry_id,
            'complete': self.complete,
            'processed': self.processed,
            'total': self.total,
            'final_status': self.final_status.value if self.final_status else None,
            'transitioned': self.transitioned,
            'message': self.message,
        }


def derive_final_status(decisions: Iterable[RollDecision], roll_count: int) -> EntryStatus | None:
    """Entry verdict for a set of roll decisions, or None while any roll is undecided.

    A single held roll puts the whole entry on hold.
    """
    decisions = list(decisions)
    if roll_count == 0 or len(decisions) < roll_count:
        return None
    if any(decision == RollDecision.ON_HOLD for decision in decisions):
        return EntryStatus.ON_HOLD
    return CANONICAL_SUCCESS_STATUS


def aggregate_entry_status(db: Session, entry_id: int) -> AggregationResult:
    rolls = list_rolls_for_entry(db, entry_id)
    approvals = list_approvals_for_entry(db, entry_id)
    final_status = derive_final_status((approval.decision for approval in approvals), len(rolls))

    if final_status is None:
        return AggregationResult(
            entry_id=entry_id,
            complete=False,
            processed=len(approvals),
            total=len(rolls),
            message=INCOMPLETE_MESSAGE,
        )

    transitioned = compare_and_set_entry_status(
        db,
        entry_id,
        expected=EntryStatus.QUALITY_CHECKED,
        new=final_status,
    )
    if transitioned:
        logger.info('entry status finalised', extra={'entry_id': entry_id, 'final_status': final_status.value})
    else:
        logger.info('entry already finalised', extra={'entry_id': entry_id, 'final_status': final_status.value})

    return AggregationResult(
        entry_id=entry_id,
        complete=True,
        processed=len(approvals),
        total=len(rolls),
        final_status=final_status,
        transitioned=transitioned,
        message=f'All rolls processed; entry is {final_status.value}',
    )
