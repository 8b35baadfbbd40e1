from sqlalchemy import Column, Integer, String, DateTime, Date, Text, Numeric
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from hrflow.core.database import Base


def utcnow() -> datetime:
    # stored naive, always UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RequestKind(str, enum.Enum):
    LEAVE = "leave"
    ADVANCE = "advance"
    OTHER = "other"

class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    SALES_APPROVED = "sales_approved"
    SALES_REJECTED = "sales_rejected"
    HR_APPROVED = "hr_approved"
    HR_REJECTED = "hr_rejected"

TERMINAL_STATUSES = frozenset({
    RequestStatus.SALES_REJECTED,
    RequestStatus.HR_APPROVED,
    RequestStatus.HR_REJECTED,
})

class HRRequest(Base):
    __tablename__ = "hr_requests"

    id = Column(Integer, primary_key=True, index=True)
    owner_staff_id = Column(String(255), index=True, nullable=False)
    kind = Column(String(16), nullable=False)                 # leave | advance | other
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Numeric(12, 2), nullable=True)            # advance only
    start_date = Column(Date, nullable=True)                  # leave only
    end_date = Column(Date, nullable=True)
    status = Column(String(32), default=RequestStatus.PENDING.value, nullable=False, index=True)
    owner_signature = Column(Text, nullable=False)            # opaque blob reference
    created_at = Column(DateTime, default=utcnow, nullable=False)

    approvals = relationship(
        "Approval",
        back_populates="request",
        order_by="[Approval.created_at, Approval.id]",
    )

    def __repr__(self) -> str:
        return f"<HRRequest id={self.id} kind={self.kind} status={self.status}>"
