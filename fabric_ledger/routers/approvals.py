from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from fabric_ledger.auth import Principal, get_current_principal
from fabric_ledger.db import get_db
from fabric_ledger.models import RollApproval
from fabric_ledger.schemas import EvidenceIn, RollDecisionIn
from fabric_ledger.services.approval_service import attach_evidence, decide_roll, decision_from_payload
from fabric_ledger.services.audit_service import log_audit

router = APIRouter(tags=['approvals'])


def _approval_payload(approval: RollApproval) -> dict:
    return {
        'id': approval.id,
        'fabric_roll_id': approval.fabric_roll_id,
        'fabric_entry_id': approval.fabric_entry_id,
        'decision': approval.decision.value,
        'hold_reason': approval.hold_reason.value if approval.hold_reason else None,
        'not_approved_quantity': approval.not_approved_quantity,
        'evidence_reference': approval.evidence_reference,
        'decided_by': approval.decided_by,
        'remarks': approval.remarks,
    }


@router.post('/rolls/{roll_id}/decision', status_code=status.HTTP_201_CREATED)
def submit_roll_decision(
    roll_id: int,
    payload: RollDecisionIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    decision = decision_from_payload(
        payload.decision,
        hold_reason=payload.hold_reason,
        evidence_reference=payload.evidence_reference,
        not_approved_quantity=payload.not_approved_quantity,
        remarks=payload.remarks,
    )
    result = decide_roll(db, roll_id=roll_id, decision=decision, principal=principal)
    approval = result.approval
    aggregation = result.aggregation

    log_audit(
        db,
        actor_identity=principal.identity,
        action='ROLL_DECIDED',
        fabric_entry_id=approval.fabric_entry_id,
        metadata={
            'roll_id': roll_id,
            'decision': approval.decision.value,
            'hold_reason': approval.hold_reason.value if approval.hold_reason else None,
        },
    )
    if aggregation.transitioned:
        log_audit(
            db,
            actor_identity=principal.identity,
            action='ENTRY_STATUS_FINALISED',
            fabric_entry_id=aggregation.entry_id,
            metadata={'final_status': aggregation.final_status.value},
        )
    db.commit()
    return {
        'approval': _approval_payload(approval),
        'aggregation': aggregation.to_dict(),
    }


@router.post('/approvals/{approval_id}/evidence')
def submit_evidence(
    approval_id: int,
    payload: EvidenceIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    approval = attach_evidence(
        db,
        approval_id=approval_id,
        evidence_reference=payload.evidence_reference,
        principal=principal,
    )
    log_audit(
        db,
        actor_identity=principal.identity,
        action='EVIDENCE_ATTACHED',
        fabric_entry_id=approval.fabric_entry_id,
        metadata={'approval_id': approval_id},
    )
    db.commit()
    return _approval_payload(approval)
