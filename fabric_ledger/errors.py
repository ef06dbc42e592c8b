from __future__ import annotations


class WorkflowError(Exception):
    """Base for every rejection raised by the workflow services.

    ``kind`` is a stable machine-readable tag and ``field`` names the offending
    input (if any) so a client can highlight it.
    """

    kind = 'WORKFLOW_ERROR'

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {'kind': self.kind, 'field': self.field, 'detail': self.message}


class Unauthenticated(WorkflowError):
    kind = 'UNAUTHENTICATED'


class Forbidden(WorkflowError, PermissionError):
    kind = 'FORBIDDEN'


class NotFound(WorkflowError, LookupError):
    kind = 'NOT_FOUND'


class InvalidState(WorkflowError):
    kind = 'INVALID_STATE'


class AlreadyDecided(WorkflowError):
    kind = 'ALREADY_DECIDED'


class AlreadyChecked(WorkflowError):
    kind = 'ALREADY_CHECKED'


class ValidationError(WorkflowError, ValueError):
    kind = 'VALIDATION_ERROR'


class StoreError(WorkflowError):
    kind = 'STORE_ERROR'
