"""
ORM-level immutability guards.

An HRRequest is write-once except for ``status`` (which only the workflow
engine's compare-and-swap touches). Approval rows are append-only: no update,
no delete. Neither entity may be deleted.

The listeners fire on ORM flushes only. Core-level statements bypass them;
the engine's status CAS is the only core UPDATE against these tables.
"""
from __future__ import annotations

import logging

from sqlalchemy import event, inspect

from hrflow.core.errors import ImmutabilityError
from hrflow.models.approval import Approval
from hrflow.models.request import HRRequest

logger = logging.getLogger("hrflow.immutability")

HR_REQUEST_MUTABLE_COLUMNS = frozenset({"status"})


def _changed_columns(target) -> list[str]:
    state = inspect(target)
    changed = []
    for attr in state.mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            changed.append(attr.key)
    return changed


def _check_request_update(mapper, connection, target):
    frozen = [c for c in _changed_columns(target) if c not in HR_REQUEST_MUTABLE_COLUMNS]
    if frozen:
        logger.error("blocked update of hr_request %s columns=%s", target.id, frozen)
        raise ImmutabilityError("HRRequest", f"columns {sorted(frozen)} are immutable after creation")


def _check_request_delete(mapper, connection, target):
    raise ImmutabilityError("HRRequest", "requests are never deleted")


def _check_approval_update(mapper, connection, target):
    changed = _changed_columns(target)
    if changed:
        logger.error("blocked update of approval %s columns=%s", target.id, changed)
        raise ImmutabilityError("Approval", "approval rows are append-only")


def _check_approval_delete(mapper, connection, target):
    raise ImmutabilityError("Approval", "approval rows are append-only")


_LISTENERS = (
    (HRRequest, "before_update", _check_request_update),
    (HRRequest, "before_delete", _check_request_delete),
    (Approval, "before_update", _check_approval_update),
    (Approval, "before_delete", _check_approval_delete),
)


def register_immutability_listeners() -> None:
    """Idempotent: safe to call from every app start and test fixture."""
    for cls, name, fn in _LISTENERS:
        if not event.contains(cls, name, fn):
            event.listen(cls, name, fn)
