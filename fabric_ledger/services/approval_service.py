from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fabric_ledger.auth import Principal
from fabric_ledger.errors import AlreadyDecided, InvalidState, NotFound, ValidationError
from fabric_ledger.logging_config import get_logger
from fabric_ledger.models import EntryStatus, FabricRoll, HoldReason, RollApproval, RollDecision
from fabric_ledger.permissions import Capability, assert_capability
from fabric_ledger.services.aggregation_service import AggregationResult, aggregate_entry_status
from fabric_ledger.services.record_store import (
    RecordKind,
    create_record,
    get_approval,
    get_approval_for_roll,
    get_roll,
    list_approvals_for_entry,
    list_rolls_for_entry,
    lock_entry,
    set_evidence_if_absent,
)

logger = get_logger('services.approval')


@dataclass(frozen=True)
class Approve:
    not_approved_quantity: Decimal | None = None
    remarks: str | None = None

    kind = RollDecision.APPROVED
    capability = Capability.APPROVE_QUANTITY


@dataclass(frozen=True)
class Hold:
    reason: HoldReason | None
    evidence_reference: str | None
    not_approved_quantity: Decimal | None = None
    remarks: str | None = None

    kind = RollDecision.ON_HOLD
    capability = Capability.REJECT_QUANTITY


Decision = Union[Approve, Hold]


@dataclass(frozen=True)
class RollDecisionResult:
    approval: RollApproval
    aggregation: AggregationResult


def decision_from_payload(
    decision: RollDecision | str,
    *,
    hold_reason: HoldReason | str | None = None,
    evidence_reference: str | None = None,
    not_approved_quantity: Decimal | None = None,
    remarks: str | None = None,
) -> Decision:
    """Build a typed decision from loosely typed form/JSON input."""
    try:
        decision = RollDecision(decision)
    except ValueError as exc:
        raise ValidationError(f'Unknown decision {decision!r}', field='decision') from exc

    if decision == RollDecision.APPROVED:
        if hold_reason is not None:
            raise ValidationError('Hold reason is only allowed when putting a roll on hold', field='hold_reason')
        if evidence_reference is not None:
            raise ValidationError('Evidence is only allowed when putting a roll on hold', field='evidence_reference')
        return Approve(not_approved_quantity=not_approved_quantity, remarks=remarks)

    reason = None
    if hold_reason is not None:
        try:
            reason = HoldReason(hold_reason)
        except ValueError as exc:
            raise ValidationError(f'Unknown hold reason {hold_reason!r}', field='hold_reason') from exc
    return Hold(
        reason=reason,
        evidence_reference=evidence_reference,
        not_approved_quantity=not_approved_quantity,
        remarks=remarks,
    )


def _validate_decision(decision: Decision, roll: FabricRoll) -> None:
    if isinstance(decision, Hold):
        if decision.reason is None:
            raise ValidationError('Hold reason is required when putting a roll on hold', field='hold_reason')
        if not (decision.evidence_reference or '').strip():
            raise ValidationError('Evidence (debit note) is required when putting a roll on hold', field='evidence_reference')

    quantity = decision.not_approved_quantity
    if quantity is not None and (quantity < 0 or quantity > roll.roll_value):
        raise ValidationError(
            f'Not approved quantity must be between 0 and {roll.roll_value}',
            field='not_approved_quantity',
        )


def decide_roll(
    db: Session,
    *,
    roll_id: int,
    decision: Decision,
    principal: Principal,
) -> RollDecisionResult:
    """Record the one and only decision for a roll, then re-aggregate its entry.

    The parent entry row is locked before anything is written so decisions on
    sibling rolls and their aggregation passes run one at a time. Nothing is
    committed here; the caller commits decision and aggregate together.
    """
    assert_capability(principal.role, decision.capability)

    roll = get_roll(db, roll_id)
    if roll is None:
        raise NotFound('Fabric roll not found', field='roll_id')

    entry = lock_entry(db, roll.fabric_entry_id)
    if entry is None:
        raise NotFound('Fabric entry not found', field='entry_id')
    if get_approval_for_roll(db, roll_id) is not None:
        raise AlreadyDecided(f'Roll {roll.batch_number} already has a decision', field='roll_id')
    if entry.status != EntryStatus.QUALITY_CHECKED:
        raise InvalidState(
            f'Rolls can only be decided after the quality check (current: {entry.status.value})',
            field='status',
        )
    _validate_decision(decision, roll)

    fields = {
        'fabric_roll_id': roll.id,
        'fabric_entry_id': roll.fabric_entry_id,
        'decision': decision.kind,
        'hold_reason': None,
        'evidence_reference': None,
        'not_approved_quantity': decision.not_approved_quantity,
        'decided_by': principal.identity,
        'remarks': (decision.remarks or '').strip() or None,
    }
    if isinstance(decision, Hold):
        fields['hold_reason'] = decision.reason
        fields['evidence_reference'] = decision.evidence_reference.strip()

    try:
        approval_id = create_record(db, RecordKind.ROLL_APPROVAL, fields)
    except IntegrityError as exc:
        db.rollback()
        logger.warning('concurrent roll decision rejected', extra={'roll_id': roll_id})
        raise AlreadyDecided(f'Roll {roll.batch_number} already has a decision', field='roll_id') from exc

    logger.info(
        'roll decided',
        extra={
            'roll_id': roll_id,
            'entry_id': roll.fabric_entry_id,
            'decision': decision.kind.value,
            'actor': principal.identity,
        },
    )
    aggregation = aggregate_entry_status(db, roll.fabric_entry_id)
    return RollDecisionResult(approval=get_approval(db, approval_id), aggregation=aggregation)


def attach_evidence(
    db: Session,
    *,
    approval_id: int,
    evidence_reference: str,
    principal: Principal,
) -> RollApproval:
    """Attach a debit note to a hold that was recorded without one."""
    assert_capability(principal.role, Capability.REJECT_QUANTITY)
    reference = (evidence_reference or '').strip()
    if not reference:
        raise ValidationError('Evidence reference is required', field='evidence_reference')

    approval = get_approval(db, approval_id)
    if approval is None:
        raise NotFound('Roll approval not found', field='approval_id')
    if approval.decision != RollDecision.ON_HOLD:
        raise InvalidState('Evidence can only be attached to a hold', field='decision')
    if approval.evidence_reference:
        raise AlreadyDecided('Evidence is already attached to this hold', field='evidence_reference')

    # A concurrent attach may have landed since the read above.
    if not set_evidence_if_absent(db, approval_id, reference):
        raise AlreadyDecided('Evidence is already attached to this hold', field='evidence_reference')
    logger.info('evidence attached', extra={'approval_id': approval_id, 'actor': principal.identity})
    return approval


def get_roll_approvals(db: Session, *, entry_id: int, principal: Principal) -> list[dict]:
    assert_capability(principal.role, Capability.READ_ENTRY)
    rolls = list_rolls_for_entry(db, entry_id)
    if not rolls:
        raise NotFound('Fabric entry has no rolls', field='entry_id')

    approvals_by_roll = {approval.fabric_roll_id: approval for approval in list_approvals_for_entry(db, entry_id)}
    rows = []
    for roll in rolls:
        approval = approvals_by_roll.get(roll.id)
        rows.append(
            {
                'roll_id': roll.id,
                'batch_number': roll.batch_number,
                'roll_value': roll.roll_value,
                'roll_unit': roll.roll_unit.value,
                'approval_id': approval.id if approval else None,
                'decision': approval.decision.value if approval else None,
                'hold_reason': approval.hold_reason.value if approval and approval.hold_reason else None,
                'not_approved_quantity': approval.not_approved_quantity if approval else None,
                'evidence_reference': approval.evidence_reference if approval else None,
                'decided_by': approval.decided_by if approval else None,
            }
        )
    return rows
