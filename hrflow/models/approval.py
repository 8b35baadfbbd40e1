from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from hrflow.core.database import Base
from hrflow.models.request import utcnow


class ApprovalStage(str, enum.Enum):
    SALES_MANAGER = "sales_manager"
    HR_MANAGER = "hr_manager"

class ApprovalDecision(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"

class Approval(Base):
    """One sign-off row of the approval ledger. Written once, never updated."""
    __tablename__ = "hr_request_approvals"
    __table_args__ = (
        UniqueConstraint("request_id", "stage", name="uq_hr_request_approvals_request_stage"),
    )

    id = Column(Integer, primary_key=True)
    request_id = Column(Integer, ForeignKey("hr_requests.id"), nullable=False, index=True)
    approver_id = Column(String(255), nullable=False)
    stage = Column(String(32), nullable=False)                # sales_manager | hr_manager
    decision = Column(String(16), nullable=False)             # approved | rejected
    notes = Column(Text, nullable=True)
    signature = Column(Text, nullable=False)                  # opaque blob reference
    created_at = Column(DateTime, default=utcnow, nullable=False)

    request = relationship("HRRequest", back_populates="approvals")

    def __repr__(self) -> str:
        return f"<Approval id={self.id} request={self.request_id} {self.stage}={self.decision}>"
