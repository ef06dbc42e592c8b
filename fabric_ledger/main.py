from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fabric_ledger.config import settings
from fabric_ledger.errors import (
    AlreadyChecked,
    AlreadyDecided,
    Forbidden,
    InvalidState,
    NotFound,
    StoreError,
    Unauthenticated,
    ValidationError,
    WorkflowError,
)
from fabric_ledger.logging_config import configure_logging
from fabric_ledger.routers import approvals, entries, reports
from fabric_ledger.security.identity import install_identity_middleware

STATUS_BY_ERROR: dict[type[WorkflowError], int] = {
    Unauthenticated: 401,
    Forbidden: 403,
    NotFound: 404,
    InvalidState: 409,
    AlreadyDecided: 409,
    AlreadyChecked: 409,
    ValidationError: 422,
    StoreError: 503,
}

configure_logging(settings.log_level, json_output=settings.log_json)

app = FastAPI(title='Fabric Ledger')

install_identity_middleware(app)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    return JSONResponse(status_code=STATUS_BY_ERROR.get(type(exc), 400), content=exc.to_dict())


app.include_router(entries.router)
app.include_router(approvals.router)
app.include_router(reports.router)
