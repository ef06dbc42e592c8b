from __future__ import annotations

from sqlalchemy.orm import Session

from fabric_ledger.models import AuditLog


def log_audit(
    db: Session,
    *,
    actor_identity: str,
    action: str,
    fabric_entry_id: int | None,
    metadata: dict | None = None,
) -> None:
    db.add(
        AuditLog(
            actor_identity=actor_identity,
            action=action,
            fabric_entry_id=fabric_entry_id,
            meta=metadata or {},
        )
    )
