from __future__ import annotations
import json
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional, Protocol, Sequence, runtime_checkable

from sqlalchemy.orm import Session

from hrflow.core.errors import AuthorizationError, NotFoundError, StateError
from hrflow.crud import request as request_crud
from hrflow.metrics import exports_total
from hrflow.models.approval import Approval, ApprovalStage
from hrflow.models.request import HRRequest, utcnow
from hrflow.services.audit import record_audit
from hrflow.services.authorization import MANAGE_HR, AuthorizationOracle
from hrflow.services.timeline import TimelineEvent, build_timeline
from hrflow.services.workflow import is_terminal

logger = logging.getLogger("hrflow.export")


@runtime_checkable
class DocumentExporter(Protocol):
    media_type: str
    suffix: str

    def export(self, request: HRRequest, timeline: Sequence[TimelineEvent]) -> bytes:
        ...


def _iso(dt: datetime | date | None) -> str | None:
    return dt.isoformat() if dt else None


def _serialize_request(r: HRRequest) -> Dict[str, Any]:
    return {
        "id": r.id,
        "owner_staff_id": r.owner_staff_id,
        "kind": r.kind,
        "title": r.title,
        "description": r.description,
        "amount": str(r.amount) if r.amount is not None else None,
        "period": {"start": _iso(r.start_date), "end": _iso(r.end_date)} if r.start_date else None,
        "status": r.status,
        "created_at": _iso(r.created_at),
    }


def _signature_box(title: str, actor: Optional[str], at: Optional[datetime], signature: Optional[str]) -> Dict[str, Any]:
    return {"title": title, "actor_id": actor, "signed_at": _iso(at), "signature": signature}


def _stage_box(title: str, approval: Optional[Approval]) -> Dict[str, Any]:
    if approval is None:
        return _signature_box(title, None, None, None)
    box = _signature_box(title, approval.approver_id, approval.created_at, approval.signature)
    box["decision"] = approval.decision
    return box


class JsonDocumentExporter:
    """Renders a resolved request as a self-contained JSON document."""

    media_type = "application/json"
    suffix = "json"

    def export(self, request: HRRequest, timeline: Sequence[TimelineEvent]) -> bytes:
        by_stage = {a.stage: a for a in request.approvals}
        doc: Dict[str, Any] = {
            "generated_at": _iso(utcnow()),
            "request": _serialize_request(request),
            "timeline": [e.to_dict() for e in timeline],
            "signatures": [
                _signature_box("requester", request.owner_staff_id, request.created_at, request.owner_signature),
                _stage_box("sales_manager", by_stage.get(ApprovalStage.SALES_MANAGER.value)),
                _stage_box("hr_manager", by_stage.get(ApprovalStage.HR_MANAGER.value)),
            ],
        }
        return json.dumps(doc, ensure_ascii=False, indent=2).encode("utf-8")


def export_request(
    db: Session,
    request_id: int,
    actor_id: str,
    oracle: AuthorizationOracle,
    exporter: DocumentExporter,
) -> bytes:
    """Export a finished request. Only for terminal requests and holders of manage-hr."""
    req = request_crud.get_request(db, request_id, with_approvals=True)
    if req is None:
        raise NotFoundError(request_id)
    if not is_terminal(req.status):
        raise StateError(request_id, req.status, "only final requests can be exported")
    if not oracle.has_capability(actor_id, MANAGE_HR):
        raise AuthorizationError(actor_id, f"'{MANAGE_HR}' is required to export HR requests", MANAGE_HR)

    document = exporter.export(req, build_timeline(req))
    record_audit(db, "HR_REQUEST_EXPORTED", request_id, actor_id, {"bytes": len(document), "media_type": exporter.media_type})
    exports_total.inc()
    logger.info("hr_request exported id=%s by=%s bytes=%s", request_id, actor_id, len(document))
    return document
