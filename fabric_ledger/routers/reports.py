from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fabric_ledger.auth import Principal, get_current_principal, require_capability
from fabric_ledger.db import get_db
from fabric_ledger.errors import ValidationError
from fabric_ledger.models import EntryStatus
from fabric_ledger.permissions import Capability, capabilities_of
from fabric_ledger.services.report_service import get_dashboard_summary, list_entries_report

router = APIRouter(tags=['reports'])


def _parse_date(raw: str | None, field: str) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f'Invalid date {raw!r}, expected YYYY-MM-DD', field=field) from exc


@router.get('/me/capabilities')
def my_capabilities(principal: Principal = Depends(get_current_principal)):
    return {
        'identity': principal.identity,
        'role': getattr(principal.role, 'value', principal.role),
        'capabilities': sorted(capability.value for capability in capabilities_of(principal.role)),
    }


@router.get('/reports/summary')
def reports_summary(
    principal: Principal = Depends(require_capability(Capability.VIEW_ALL_REPORTS)),
    db: Session = Depends(get_db),
):
    return get_dashboard_summary(db, principal=principal)


@router.get('/reports/entries')
def reports_entries(
    status: EntryStatus | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    principal: Principal = Depends(require_capability(Capability.VIEW_ALL_REPORTS)),
    db: Session = Depends(get_db),
):
    start = _parse_date(from_date, 'from_date')
    end = _parse_date(to_date, 'to_date')
    return list_entries_report(db, principal=principal, status=status, from_date=start, to_date=end)
