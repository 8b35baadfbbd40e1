from sqlalchemy import Column, Integer, String, DateTime, JSON
from hrflow.core.database import Base
from hrflow.models.request import utcnow

class AuditLog(Base):
    __tablename__ = "audit_log"
    id = Column(Integer, primary_key=True)
    action = Column(String(128), index=True)             # e.g., HR_REQUEST_CREATED, HR_REQUEST_DECIDED, HR_REQUEST_EXPORTED
    request_id = Column(Integer, index=True, nullable=True)
    actor = Column(String(255), nullable=True)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)
