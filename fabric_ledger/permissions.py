from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from fabric_ledger.errors import Forbidden
from fabric_ledger.models import CANONICAL_STATUSES, EntryStatus


class Role(str, Enum):
    INWARD_CLERK = 'INWARD_CLERK'
    QUALITY_CHECKER = 'QUALITY_CHECKER'
    APPROVER = 'APPROVER'
    ADMIN = 'ADMIN'


class Capability(str, Enum):
    CREATE_ENTRY = 'create-entry'
    READ_ENTRY = 'read-entry'
    UPDATE_ENTRY = 'update-entry'
    DELETE_ENTRY = 'delete-entry'
    CREATE_QUALITY = 'create-quality'
    APPROVE_QUANTITY = 'approve-quantity'
    REJECT_QUANTITY = 'reject-quantity'
    VIEW_ALL_REPORTS = 'view-all-reports'
    EXPORT_REPORTS = 'export-reports'
    MANAGE_USERS = 'manage-users'
    MANAGE_SETTINGS = 'manage-settings'


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.INWARD_CLERK: frozenset(
        {
            Capability.CREATE_ENTRY,
            Capability.READ_ENTRY,
            Capability.UPDATE_ENTRY,
        }
    ),
    Role.QUALITY_CHECKER: frozenset(
        {
            Capability.READ_ENTRY,
            Capability.CREATE_QUALITY,
        }
    ),
    Role.APPROVER: frozenset(
        {
            Capability.READ_ENTRY,
            Capability.APPROVE_QUANTITY,
            Capability.REJECT_QUANTITY,
        }
    ),
    Role.ADMIN: frozenset(Capability),
}

ROLE_TRANSITIONS: dict[tuple[Role, EntryStatus], frozenset[EntryStatus]] = {
    (Role.QUALITY_CHECKER, EntryStatus.PENDING_QUALITY): frozenset(
        {EntryStatus.QUALITY_CHECKED, EntryStatus.ON_HOLD}
    ),
    (Role.APPROVER, EntryStatus.QUALITY_CHECKED): frozenset({EntryStatus.APPROVED, EntryStatus.ON_HOLD}),
}
ROLE_TRANSITIONS.update(
    {
        (Role.ADMIN, current): frozenset(status for status in CANONICAL_STATUSES if status != current)
        for current in EntryStatus
    }
)


def _coerce_role(role: Role | str | None) -> Role | None:
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def _role_label(role: Role | str | None) -> str:
    return str(getattr(role, 'value', role))


def capabilities_of(role: Role | str | None) -> frozenset[Capability]:
    """Capabilities granted to ``role``; unknown roles get nothing."""
    resolved = _coerce_role(role)
    if resolved is None:
        return frozenset()
    return ROLE_CAPABILITIES.get(resolved, frozenset())


def has_capability(role: Role | str | None, capability: Capability) -> bool:
    return capability in capabilities_of(role)


def has_any_capability(role: Role | str | None, capabilities: Iterable[Capability]) -> bool:
    granted = capabilities_of(role)
    return any(capability in granted for capability in capabilities)


def has_all_capabilities(role: Role | str | None, capabilities: Iterable[Capability]) -> bool:
    granted = capabilities_of(role)
    return all(capability in granted for capability in capabilities)


def allowed_transitions(role: Role | str | None, current_status: EntryStatus) -> frozenset[EntryStatus]:
    resolved = _coerce_role(role)
    if resolved is None:
        return frozenset()
    return ROLE_TRANSITIONS.get((resolved, current_status), frozenset())


def assert_capability(role: Role | str | None, capability: Capability) -> None:
    if not has_capability(role, capability):
        raise Forbidden(f'Role {_role_label(role)} lacks capability {capability.value}', field='role')


def assert_transition_allowed(role: Role | str | None, current_status: EntryStatus, target: EntryStatus) -> None:
    if target not in allowed_transitions(role, current_status):
        raise Forbidden(
            f'Role {_role_label(role)} may not move an entry from {current_status.value} to {target.value}',
            field='status',
        )


def can_modify_entry(
    role: Role | str | None,
    identity: str,
    *,
    status: EntryStatus,
    owner: str | None,
) -> bool:
    """Whether ``identity`` acting as ``role`` may edit an entry's inward details.

    Clerks are limited to their own entries while quality is still pending.
    """
    resolved = _coerce_role(role)
    if resolved is None:
        return False
    if resolved == Role.ADMIN:
        return True
    if resolved == Role.INWARD_CLERK:
        return owner == identity and status == EntryStatus.PENDING_QUALITY
    if resolved == Role.QUALITY_CHECKER:
        return status == EntryStatus.PENDING_QUALITY
    if resolved == Role.APPROVER:
        return status == EntryStatus.QUALITY_CHECKED
    return False
