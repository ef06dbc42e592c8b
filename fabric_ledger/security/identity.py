from __future__ import annotations

from fastapi import FastAPI, Request

from fabric_ledger.auth import Principal
from fabric_ledger.config import settings
from fabric_ledger.permissions import Role


def principal_from_headers(identity: str | None, role: str | None) -> Principal | None:
    identity = (identity or '').strip()
    if not identity:
        return None
    raw_role = (role or '').strip().upper()
    try:
        resolved: Role | str = Role(raw_role)
    except ValueError:
        resolved = raw_role
    return Principal(identity=identity, role=resolved)


def install_identity_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def identity_middleware(request: Request, call_next):
        request.state.principal = principal_from_headers(
            request.headers.get(settings.identity_header),
            request.headers.get(settings.role_header),
        )
        return await call_next(request)
