from __future__ import annotations
import logging
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from hrflow.models.audit import AuditLog
from hrflow.models.request import utcnow
from hrflow.utils.audit_sink import write_event

logger = logging.getLogger("hrflow.audit")

def record_audit(
    db: Session,
    action: str,
    request_id: Optional[int],
    actor: Optional[str],
    details: Dict[str, Any],
    commit: bool = True,
) -> AuditLog:
    """
    Persist an audit row. With ``commit=False`` the row joins the caller's
    transaction (flushed, not committed) and the caller mirrors it with
    ``publish_audit`` once its own commit succeeds.
    """
    row = AuditLog(action=action, request_id=request_id, actor=actor, details=details)
    db.add(row)
    if not commit:
        db.flush()
        return row
    db.commit()
    db.refresh(row)
    publish_audit(row)
    return row

def publish_audit(row: AuditLog) -> None:
    """Mirror a committed audit row to the filesystem as JSONL."""
    try:
        write_event({
            "id": row.id,
            "action": row.action,
            "request_id": row.request_id,
            "actor": row.actor,
            "details": row.details or {},
            "created_at": (row.created_at or utcnow()).isoformat(),
        })
    except OSError as e:
        # the DB row is the record of truth; the JSONL file is a convenience copy
        logger.warning("audit mirror write failed for %s: %s", row.action, e)
