from .request import HRRequest, RequestKind, RequestStatus, TERMINAL_STATUSES
from .approval import Approval, ApprovalStage, ApprovalDecision
from .audit import AuditLog
