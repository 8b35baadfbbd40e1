from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from hrflow.core.database import get_db
from hrflow.core.errors import AuthorizationError
from hrflow.deps.auth import CurrentActor, get_current_actor, get_engine, get_exporter
from hrflow.models.audit import AuditLog
from hrflow.services.export import DocumentExporter, export_request
from hrflow.services.timeline import build_timeline
from hrflow.services.workflow import WorkflowEngine, is_terminal
from hrflow.utils.pack_sink import write_pack

router = APIRouter(prefix="/api/hr-requests", tags=["hr-requests"])


# ---- schemas ----

class PeriodIn(BaseModel):
    # raw ISO strings; the engine parses them and reports the offending field
    start: Optional[str] = None
    end: Optional[str] = None

class HRRequestCreate(BaseModel):
    kind: str                       # "leave" | "advance" | "other"
    title: str
    description: Optional[str] = None
    amount: Optional[Union[str, int, float]] = None
    period: Optional[PeriodIn] = None
    signature: str

class DecisionIn(BaseModel):
    stage: str                      # "sales_manager" | "hr_manager"
    decision: str                   # "approved" | "rejected"
    notes: Optional[str] = None
    signature: str

class ApprovalOut(BaseModel):
    id: int
    request_id: int
    approver_id: str
    stage: str
    decision: str
    notes: Optional[str] = None
    signature: str
    created_at: datetime
    class Config:
        from_attributes = True

class HRRequestOut(BaseModel):
    id: int
    owner_staff_id: str
    kind: str
    title: str
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str
    created_at: datetime
    class Config:
        from_attributes = True

class HRRequestDetail(HRRequestOut):
    owner_signature: str
    terminal: bool = False
    approvals: List[ApprovalOut] = []

class AuditEntry(BaseModel):
    id: int
    action: str
    request_id: Optional[int]
    actor: Optional[str]
    details: dict
    created_at: datetime
    class Config:
        from_attributes = True


def _detail(req) -> HRRequestDetail:
    out = HRRequestDetail.model_validate(req)
    out.terminal = is_terminal(req.status)
    return out


# ---- endpoints ----

@router.post("", response_model=HRRequestDetail, status_code=201)
def create_hr_request(payload: HRRequestCreate,
                      db: Session = Depends(get_db),
                      actor: CurrentActor = Depends(get_current_actor),
                      engine: WorkflowEngine = Depends(get_engine)):
    period = None
    if payload.period is not None:
        period = {"start": payload.period.start, "end": payload.period.end}
    req = engine.create_request(
        db, actor.actor_id, payload.kind, payload.title,
        description=payload.description, amount=payload.amount, period=period,
        signature=payload.signature,
    )
    return _detail(engine.get_request(db, req.id))

@router.get("", response_model=List[HRRequestOut])
def list_hr_requests(owner: str = Query("me", description="'me', 'all' or a staff id"),
                     status: Optional[str] = None,
                     skip: int = Query(0, ge=0),
                     limit: int = Query(100, ge=1, le=500),
                     db: Session = Depends(get_db),
                     actor: CurrentActor = Depends(get_current_actor),
                     engine: WorkflowEngine = Depends(get_engine)):
    owner_id = {"me": actor.actor_id, "all": None}.get(owner, owner)
    rows = engine.list_requests(db, actor.actor_id, owner_id, status, skip=skip, limit=limit)
    return [HRRequestOut.model_validate(r) for r in rows]

@router.get("/{request_id}", response_model=HRRequestDetail)
def get_hr_request(request_id: int,
                   db: Session = Depends(get_db),
                   actor: CurrentActor = Depends(get_current_actor),
                   engine: WorkflowEngine = Depends(get_engine)):
    req = engine.get_request(db, request_id)
    engine.ensure_can_view(req, actor.actor_id)
    return _detail(req)

@router.post("/{request_id}/decisions", response_model=HRRequestDetail)
def decide_hr_request(request_id: int, payload: DecisionIn,
                      db: Session = Depends(get_db),
                      actor: CurrentActor = Depends(get_current_actor),
                      engine: WorkflowEngine = Depends(get_engine)):
    engine.decide(
        db, request_id, actor.actor_id, payload.stage, payload.decision, payload.notes,
        signature=payload.signature,
    )
    return _detail(engine.get_request(db, request_id))

@router.get("/{request_id}/timeline", response_model=List[dict])
def get_hr_request_timeline(request_id: int,
                            db: Session = Depends(get_db),
                            actor: CurrentActor = Depends(get_current_actor),
                            engine: WorkflowEngine = Depends(get_engine)):
    req = engine.get_request(db, request_id)
    engine.ensure_can_view(req, actor.actor_id)
    return [e.to_dict() for e in build_timeline(req)]

@router.get("/{request_id}/export")
def export_hr_request(request_id: int,
                      save: bool = False,
                      db: Session = Depends(get_db),
                      actor: CurrentActor = Depends(get_current_actor),
                      engine: WorkflowEngine = Depends(get_engine),
                      exporter: DocumentExporter = Depends(get_exporter)):
    document = export_request(db, request_id, actor.actor_id, engine.oracle, exporter)
    headers = {"Content-Disposition": f'attachment; filename="hr-request-{request_id}.{exporter.suffix}"'}
    if save:
        fp = write_pack(request_id, document, suffix=exporter.suffix)
        headers["X-Export-File"] = fp.name
    return Response(content=document, media_type=exporter.media_type, headers=headers)

@router.get("/{request_id}/audit", response_model=List[AuditEntry])
def get_hr_request_audit(request_id: int, limit: int = Query(50, ge=1, le=500),
                         db: Session = Depends(get_db),
                         actor: CurrentActor = Depends(get_current_actor),
                         engine: WorkflowEngine = Depends(get_engine)):
    engine.get_request(db, request_id)
    if not engine.can_view_all(actor.actor_id):
        raise AuthorizationError(actor.actor_id, "reviewer capability required to read the audit log")
    rows = (
        db.query(AuditLog)
        .filter(AuditLog.request_id == request_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
    return [AuditEntry.model_validate(r) for r in rows]
