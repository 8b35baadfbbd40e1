"""
HR request workflow engine.

A request is created ``pending`` by its owner and then passes two sign-off
stages, each gated by a capability:

    stage            needs status      capability      approved / rejected
    sales_manager    pending           approve-sales   sales_approved / sales_rejected
    hr_manager       sales_approved    manage-hr       hr_approved / hr_rejected

``sales_rejected``, ``hr_approved`` and ``hr_rejected`` are terminal.

A decision is committed as one unit: the Approval row is inserted and the
request status is moved with a compare-and-swap on the status read during
the precondition checks. Losing either race (unique ``(request_id, stage)``
or the CAS) rolls everything back and raises ``ConflictError``. The next
status is derived from the full approval set, never taken from the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrflow.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
    WorkflowError,
)
from hrflow.crud import request as request_crud
from hrflow.metrics import (
    decision_conflicts_total,
    decisions_rejected_total,
    decisions_total,
    requests_created_total,
)
from hrflow.models.approval import Approval, ApprovalDecision, ApprovalStage
from hrflow.models.request import (
    TERMINAL_STATUSES,
    HRRequest,
    RequestKind,
    RequestStatus,
    utcnow,
)
from hrflow.services.audit import publish_audit, record_audit
from hrflow.services.authorization import (
    APPROVE_SALES,
    MANAGE_HR,
    AuthorizationOracle,
    has_any,
)
from hrflow.services.notifications import notify_status
from hrflow.utils.policy import get_policy, workflow_settings

logger = logging.getLogger("hrflow.workflow")

TITLE_MAX_LEN = 255

STAGE_CAPABILITY = {
    ApprovalStage.SALES_MANAGER.value: APPROVE_SALES,
    ApprovalStage.HR_MANAGER.value: MANAGE_HR,
}

STAGE_REQUIRES_STATUS = {
    ApprovalStage.SALES_MANAGER.value: RequestStatus.PENDING.value,
    ApprovalStage.HR_MANAGER.value: RequestStatus.SALES_APPROVED.value,
}

TRANSITIONS = {
    (ApprovalStage.SALES_MANAGER.value, ApprovalDecision.APPROVED.value): RequestStatus.SALES_APPROVED.value,
    (ApprovalStage.SALES_MANAGER.value, ApprovalDecision.REJECTED.value): RequestStatus.SALES_REJECTED.value,
    (ApprovalStage.HR_MANAGER.value, ApprovalDecision.APPROVED.value): RequestStatus.HR_APPROVED.value,
    (ApprovalStage.HR_MANAGER.value, ApprovalDecision.REJECTED.value): RequestStatus.HR_REJECTED.value,
}

_STAGE_ORDER = {ApprovalStage.SALES_MANAGER.value: 0, ApprovalStage.HR_MANAGER.value: 1}


# -------------------------- pure helpers --------------------------

def _value(v: Any) -> Any:
    return v.value if isinstance(v, (RequestStatus, RequestKind, ApprovalStage, ApprovalDecision)) else v

def is_terminal(status: Union[str, RequestStatus]) -> bool:
    return _value(status) in {s.value for s in TERMINAL_STATUSES}

def next_status(stage: str, decision: str) -> str:
    return TRANSITIONS[(_value(stage), _value(decision))]

def derive_status(approvals: Iterable[Any]) -> str:
    """
    Status implied by a set of approval rows (anything with ``stage`` and
    ``decision``). Raises ValueError if the set could not have been produced
    by legal transitions.
    """
    status = RequestStatus.PENDING.value
    for a in sorted(approvals, key=lambda a: _STAGE_ORDER[_value(a.stage)]):
        stage = _value(a.stage)
        if STAGE_REQUIRES_STATUS[stage] != status:
            raise ValueError(f"approval for stage '{stage}' cannot follow status '{status}'")
        status = next_status(stage, a.decision)
    return status


@dataclass(frozen=True)
class Period:
    start: date
    end: date


@dataclass(frozen=True)
class WorkflowSettings:
    require_distinct_approvers: bool = False
    allow_owner_approval: bool = True
    list_all_capabilities: Tuple[str, ...] = (APPROVE_SALES, MANAGE_HR)

    @classmethod
    def from_policy(cls, pol: dict) -> "WorkflowSettings":
        wf = workflow_settings(pol)
        caps = wf.get("list_all_capabilities")
        return cls(
            require_distinct_approvers=bool(wf.get("require_distinct_approvers", False)),
            allow_owner_approval=bool(wf.get("allow_owner_approval", True)),
            list_all_capabilities=tuple(str(c) for c in caps) if isinstance(caps, list) else (APPROVE_SALES, MANAGE_HR),
        )


def _policy_settings() -> WorkflowSettings:
    return WorkflowSettings.from_policy(get_policy())


# -------------------------- input coercion --------------------------

def _require_text(field: str, value: Optional[str]) -> str:
    if value is not None and not isinstance(value, str):
        raise ValidationError(field, "must be a string")
    text = (value or "").strip()
    if not text:
        raise ValidationError(field, "must not be empty")
    return text

def _coerce_enum(field: str, enum_cls, value: Any) -> str:
    raw = _value(value)
    if isinstance(raw, str):
        raw = raw.strip().lower()
    try:
        return enum_cls(raw).value
    except ValueError:
        allowed = sorted(e.value for e in enum_cls)
        raise ValidationError(field, f"'{value}' is not one of {allowed}") from None

def _coerce_amount(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError("amount", "must be a decimal number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("amount", f"'{value}' is not a decimal number") from None
    if not amount.is_finite():
        raise ValidationError("amount", "must be a finite number")
    if amount <= 0:
        raise ValidationError("amount", "must be greater than 0")
    if amount.as_tuple().exponent < -2:
        raise ValidationError("amount", "at most 2 decimal places")
    return amount

def _coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError("period", f"'{value}' is not an ISO date")

def _coerce_period(value: Any) -> Period:
    if isinstance(value, Period):
        start, end = value.start, value.end
    elif isinstance(value, dict):
        start, end = value.get("start"), value.get("end")
    elif isinstance(value, (tuple, list)) and len(value) == 2:
        start, end = value
    else:
        raise ValidationError("period", "expected {start, end}")
    if start is None or end is None:
        raise ValidationError("period", "start and end are both required")
    start, end = _coerce_date(start), _coerce_date(end)
    if start > end:
        raise ValidationError("period", f"start {start.isoformat()} is after end {end.isoformat()}")
    return Period(start, end)


# -------------------------- engine --------------------------

class WorkflowEngine:
    """Creates HR requests and records stage decisions against a SQLAlchemy session."""

    def __init__(
        self,
        oracle: AuthorizationOracle,
        settings: Optional[WorkflowSettings] = None,
        clock: Callable[[], datetime] = utcnow,
        notify: bool = True,
    ) -> None:
        self._oracle = oracle
        self._settings = (lambda: settings) if settings is not None else _policy_settings
        self._clock = clock
        self._notify = notify

    @property
    def oracle(self) -> AuthorizationOracle:
        return self._oracle

    def settings(self) -> WorkflowSettings:
        return self._settings()

    # ---- CreateRequest ----

    def create_request(
        self,
        db: Session,
        owner_staff_id: str,
        kind: Union[str, RequestKind],
        title: str,
        description: Optional[str] = None,
        amount: Any = None,
        period: Any = None,
        *,
        signature: str,
    ) -> HRRequest:
        owner = _require_text("owner_staff_id", owner_staff_id)
        kind_v = _coerce_enum("kind", RequestKind, kind)
        title_v = _require_text("title", title)
        if len(title_v) > TITLE_MAX_LEN:
            raise ValidationError("title", f"longer than {TITLE_MAX_LEN} characters")
        description_v = (description or "").strip() or None
        signature_v = _require_text("signature", signature)

        amount_v: Optional[Decimal] = None
        if kind_v == RequestKind.ADVANCE.value:
            if amount is None:
                raise ValidationError("amount", "required for an advance request")
            amount_v = _coerce_amount(amount)
        elif amount is not None:
            raise ValidationError("amount", f"not allowed for a {kind_v} request")

        period_v: Optional[Period] = None
        if kind_v == RequestKind.LEAVE.value:
            if period is None:
                raise ValidationError("period", "required for a leave request")
            period_v = _coerce_period(period)
        elif period is not None:
            raise ValidationError("period", f"not allowed for a {kind_v} request")

        req = HRRequest(
            owner_staff_id=owner,
            kind=kind_v,
            title=title_v,
            description=description_v,
            amount=amount_v,
            start_date=period_v.start if period_v else None,
            end_date=period_v.end if period_v else None,
            status=RequestStatus.PENDING.value,
            owner_signature=signature_v,
            created_at=self._clock(),
        )
        try:
            db.add(req)
            db.flush()
            audit = record_audit(
                db,
                "HR_REQUEST_CREATED",
                req.id,
                owner,
                {
                    "kind": kind_v,
                    "title": title_v,
                    "amount": str(amount_v) if amount_v is not None else None,
                    "start_date": period_v.start.isoformat() if period_v else None,
                    "end_date": period_v.end.isoformat() if period_v else None,
                },
                commit=False,
            )
            db.commit()
        except BaseException:
            db.rollback()
            raise
        db.refresh(req)
        publish_audit(audit)

        requests_created_total.labels(kind=kind_v).inc()
        logger.info("hr_request created id=%s owner=%s kind=%s", req.id, owner, kind_v)
        if self._notify:
            notify_status(req, owner)
        return req

    # ---- Decide ----

    def decide(
        self,
        db: Session,
        request_id: int,
        actor_id: str,
        stage: Union[str, ApprovalStage],
        decision: Union[str, ApprovalDecision],
        notes: Optional[str] = None,
        *,
        signature: str,
    ) -> HRRequest:
        try:
            actor = _require_text("actor_id", actor_id)
            stage_v = _coerce_enum("stage", ApprovalStage, stage)
            decision_v = _coerce_enum("decision", ApprovalDecision, decision)
            signature_v = _require_text("signature", signature)
            notes_v = (notes or "").strip() or None

            req = request_crud.get_request(db, request_id)
            if req is None:
                raise NotFoundError(request_id)
            expected = req.status

            if is_terminal(expected):
                raise StateError(request_id, expected, f"request is final ({expected}); no further decisions", stage_v)
            required = STAGE_REQUIRES_STATUS[stage_v]
            if expected != required:
                raise StateError(
                    request_id, expected,
                    f"stage '{stage_v}' requires status '{required}', request is '{expected}'",
                    stage_v,
                )
            existing = request_crud.approvals_for(db, request_id)
            if any(a.stage == stage_v for a in existing):
                raise StateError(request_id, expected, f"stage '{stage_v}' already decided", stage_v)

            self._check_policy(req, stage_v, actor, existing)

            approval = Approval(
                request_id=request_id,
                approver_id=actor,
                stage=stage_v,
                decision=decision_v,
                notes=notes_v,
                signature=signature_v,
                created_at=self._clock(),
            )
            try:
                if derive_status(existing) != expected:
                    raise ValueError(f"stored status '{expected}' does not match its approvals")
                new_status = derive_status([*existing, approval])
            except ValueError as e:
                logger.error("inconsistent approval ledger request=%s: %s", request_id, e)
                raise StateError(request_id, expected, f"approval ledger is inconsistent: {e}", stage_v) from e

            # asked here, right before the write, never reused from an earlier call
            capability = STAGE_CAPABILITY[stage_v]
            if not self._oracle.has_capability(actor, capability):
                logger.warning("decide denied request=%s actor=%s missing=%s", request_id, actor, capability)
                raise AuthorizationError(actor, f"'{capability}' is required to decide stage '{stage_v}'", capability)
        except WorkflowError as e:
            decisions_rejected_total.labels(error=e.code).inc()
            db.rollback()
            raise

        return self._commit_decision(db, req, approval, expected, new_status)

    def _check_policy(self, req: HRRequest, stage: str, actor_id: str, existing: List[Approval]) -> None:
        settings = self.settings()
        if not settings.allow_owner_approval and actor_id == req.owner_staff_id:
            raise AuthorizationError(actor_id, "request owners may not sign off their own request")
        if settings.require_distinct_approvers and stage == ApprovalStage.HR_MANAGER.value:
            if any(a.approver_id == actor_id for a in existing):
                raise AuthorizationError(actor_id, "HR sign-off must come from a different person than the sales sign-off")

    def _conflict(self, request_id: int, expected: str, reason: str) -> ConflictError:
        decision_conflicts_total.inc()
        decisions_rejected_total.labels(error=ConflictError.code).inc()
        logger.warning("decide conflict request=%s expected=%s: %s", request_id, expected, reason)
        return ConflictError(request_id, expected, reason)

    def _commit_decision(
        self,
        db: Session,
        req: HRRequest,
        approval: Approval,
        expected: str,
        new_status: str,
    ) -> HRRequest:
        request_id = approval.request_id
        actor = approval.approver_id
        stage_v, decision_v = approval.stage, approval.decision
        try:
            db.add(approval)
            db.flush()
            if not request_crud.swap_status(db, request_id, expected, new_status):
                raise self._conflict(request_id, expected, "request status changed while deciding")
            audit = record_audit(
                db,
                "HR_REQUEST_DECIDED",
                request_id,
                actor,
                {
                    "stage": stage_v,
                    "decision": decision_v,
                    "from_status": expected,
                    "to_status": new_status,
                    "approval_id": approval.id,
                    "notes": approval.notes or "",
                },
                commit=False,
            )
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise self._conflict(request_id, expected, f"stage '{stage_v}' was decided concurrently") from e
        except BaseException:
            db.rollback()
            raise

        db.refresh(req)
        publish_audit(audit)
        decisions_total.labels(stage=stage_v, decision=decision_v).inc()
        logger.info(
            "hr_request decided id=%s stage=%s decision=%s by=%s %s->%s",
            request_id, stage_v, decision_v, actor, expected, new_status,
        )
        if self._notify:
            notify_status(req, actor)
        return req

    # ---- GetRequest / ListRequests ----

    def get_request(self, db: Session, request_id: int) -> HRRequest:
        req = request_crud.get_request(db, request_id, with_approvals=True)
        if req is None:
            raise NotFoundError(request_id)
        return req

    def can_view_all(self, actor_id: str) -> bool:
        return has_any(self._oracle, actor_id, self.settings().list_all_capabilities)

    def ensure_can_view(self, req: HRRequest, actor_id: str) -> None:
        if req.owner_staff_id == actor_id or self.can_view_all(actor_id):
            return
        raise AuthorizationError(actor_id, f"not allowed to view HR request {req.id}")

    def list_requests(
        self,
        db: Session,
        actor_id: str,
        owner_staff_id: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[HRRequest]:
        """
        ``owner_staff_id=None`` lists everyone's requests and, like listing
        another person's requests, needs one of the list-all capabilities.
        """
        if owner_staff_id != actor_id and not self.can_view_all(actor_id):
            scope = "all requests" if owner_staff_id is None else f"requests of {owner_staff_id}"
            raise AuthorizationError(actor_id, f"not allowed to list {scope}")
        status_v = _coerce_enum("status", RequestStatus, status) if status else None
        return request_crud.list_requests(db, owner_staff_id, status_v, skip=skip, limit=limit)
