from __future__ import annotations
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from hrflow.models.approval import Approval
from hrflow.models.request import HRRequest


def get_request(db: Session, request_id: int, with_approvals: bool = False) -> Optional[HRRequest]:
    """Read the stored row, overwriting whatever this session already holds for it."""
    if not with_approvals:
        return db.get(HRRequest, request_id, populate_existing=True)
    stmt = (
        select(HRRequest)
        .options(selectinload(HRRequest.approvals))
        .where(HRRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalar_one_or_none()

def list_requests(
    db: Session,
    owner_staff_id: Optional[str] = None,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[HRRequest]:
    q = db.query(HRRequest)
    if owner_staff_id is not None:
        q = q.filter(HRRequest.owner_staff_id == owner_staff_id)
    if status:
        q = q.filter(HRRequest.status == status)
    return q.order_by(HRRequest.created_at.desc(), HRRequest.id.desc()).offset(skip).limit(limit).all()

def approvals_for(db: Session, request_id: int) -> List[Approval]:
    return (
        db.query(Approval)
        .filter(Approval.request_id == request_id)
        .order_by(Approval.created_at.asc(), Approval.id.asc())
        .all()
    )

def swap_status(db: Session, request_id: int, expected: str, new: str) -> bool:
    """Compare-and-swap on status. True only if the row still held ``expected``."""
    res = db.execute(
        update(HRRequest)
        .where(HRRequest.id == request_id, HRRequest.status == expected)
        .values(status=new)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1
