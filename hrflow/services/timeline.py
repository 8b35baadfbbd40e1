from __future__ import annotations
import enum
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from hrflow.models.approval import Approval
from hrflow.models.request import HRRequest


class EventKind(str, enum.Enum):
    CREATED = "created"
    STAGE_DECISION = "stage_decision"


@dataclass(frozen=True)
class TimelineEvent:
    kind: str
    actor_id: str
    timestamp: datetime
    decision: Optional[str] = None
    stage: Optional[str] = None
    notes: Optional[str] = None
    approval_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["timestamp"] = self.timestamp.isoformat() if self.timestamp else None
        return out


def build_timeline(request: HRRequest, approvals: Optional[Iterable[Approval]] = None) -> Tuple[TimelineEvent, ...]:
    """
    Ordered lifecycle of a request: its creation, then every stage decision
    by ascending ``created_at`` with the row id breaking ties.

    Reads only what is stored; calling it twice on unchanged data yields equal
    tuples. ``approvals`` defaults to the request's loaded ledger rows.
    """
    rows = list(request.approvals if approvals is None else approvals)
    rows.sort(key=lambda a: (a.created_at, a.id))

    created = TimelineEvent(
        kind=EventKind.CREATED.value,
        actor_id=request.owner_staff_id,
        timestamp=request.created_at,
    )
    decisions = tuple(
        TimelineEvent(
            kind=EventKind.STAGE_DECISION.value,
            actor_id=a.approver_id,
            timestamp=a.created_at,
            decision=a.decision,
            stage=a.stage,
            notes=a.notes,
            approval_id=a.id,
        )
        for a in rows
    )
    return (created,) + decisions
