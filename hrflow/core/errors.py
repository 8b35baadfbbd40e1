"""
Typed errors for the HR request workflow.

Every error carries a machine-readable ``code`` plus the structured data the
HTTP layer needs to explain the rejection (offending field, current status,
missing capability ...). Callers catch by type, never by message.

    WorkflowError
    +-- ValidationError      malformed or missing field, nothing persisted
    +-- NotFoundError        unknown request id
    +-- AuthorizationError   actor lacks the capability (or policy forbids them)
    +-- StateError           operation incompatible with the current status
    +-- ConflictError        lost a concurrent transition race (retryable)
    +-- ImmutabilityError    attempted mutation of a write-once column/row
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class WorkflowError(Exception):
    code: str = "workflow_error"
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.message, "retryable": self.retryable}


class ValidationError(WorkflowError):
    code = "validation"

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["field"] = self.field
        return out


class NotFoundError(WorkflowError):
    code = "not_found"

    def __init__(self, request_id: int) -> None:
        super().__init__(f"HR request {request_id} not found")
        self.request_id = request_id


class AuthorizationError(WorkflowError):
    code = "forbidden"

    def __init__(self, actor_id: str, reason: str, capability: Optional[str] = None) -> None:
        super().__init__(reason)
        self.actor_id = actor_id
        self.capability = capability

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        if self.capability:
            out["capability"] = self.capability
        return out


class StateError(WorkflowError):
    code = "state"

    def __init__(self, request_id: int, status: str, reason: str, stage: Optional[str] = None) -> None:
        super().__init__(reason)
        self.request_id = request_id
        self.status = status
        self.stage = stage

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["status"] = self.status
        if self.stage:
            out["stage"] = self.stage
        return out


class ConflictError(WorkflowError):
    code = "conflict"
    retryable = True

    def __init__(self, request_id: int, expected_status: str, reason: str) -> None:
        super().__init__(reason)
        self.request_id = request_id
        self.expected_status = expected_status


class ImmutabilityError(WorkflowError):
    code = "immutable"

    def __init__(self, entity: str, reason: str) -> None:
        super().__init__(f"{entity}: {reason}")
        self.entity = entity
