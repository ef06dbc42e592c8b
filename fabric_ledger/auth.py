from dataclasses import dataclass

from fastapi import Depends, Request

from fabric_ledger.errors import Unauthenticated
from fabric_ledger.permissions import Capability, Role, assert_capability


@dataclass(frozen=True)
class Principal:
    identity: str
    # Unrecognised role strings are kept as-is so every capability check fails closed.
    role: Role | str


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, 'principal', None)
    if not principal:
        raise Unauthenticated('An identity header is required', field='identity')
    return principal


def require_capability(*required: Capability):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        for capability in required:
            assert_capability(principal.role, capability)
        return principal

    return _dep
