from dataclasses import FrozenInstanceError
from datetime import date, datetime

import pytest

from hrflow.models import Approval, HRRequest
from hrflow.services.timeline import TimelineEvent, build_timeline
from hrflow.services.workflow import WorkflowEngine, WorkflowSettings

from conftest import ADMIN, HR, OWNER, SALES, SIG

T0 = datetime(2024, 5, 1, 8, 0, 0)


def _request():
    return HRRequest(
        id=7, owner_staff_id=OWNER, kind="leave", title="Leave",
        start_date=date(2024, 5, 6), end_date=date(2024, 5, 7),
        status="hr_approved", owner_signature=SIG, created_at=T0,
    )


def _approval(id, stage, at, approver=SALES, decision="approved"):
    return Approval(id=id, request_id=7, approver_id=approver, stage=stage,
                    decision=decision, signature="s", created_at=at)


def test_created_event_comes_first():
    events = build_timeline(_request(), [])
    assert events == (TimelineEvent(kind="created", actor_id=OWNER, timestamp=T0),)


def test_decisions_sorted_by_time_then_id():
    late = _approval(3, "hr_manager", datetime(2024, 5, 2), approver=HR)
    early = _approval(9, "sales_manager", datetime(2024, 5, 1, 9))
    events = build_timeline(_request(), [late, early])
    assert [e.approval_id for e in events[1:]] == [9, 3]

    same_time = datetime(2024, 5, 1, 9)
    a = _approval(5, "hr_manager", same_time, approver=HR)
    b = _approval(4, "sales_manager", same_time)
    events = build_timeline(_request(), [a, b])
    assert [e.approval_id for e in events[1:]] == [4, 5]


def test_timeline_is_repeatable_and_frozen():
    req = _request()
    rows = [_approval(1, "sales_manager", datetime(2024, 5, 1, 9)),
            _approval(2, "hr_manager", datetime(2024, 5, 1, 10), approver=HR)]
    first = build_timeline(req, rows)
    assert first == build_timeline(req, rows)
    with pytest.raises(FrozenInstanceError):
        first[0].actor_id = "someone"


def test_to_dict_is_json_ready():
    ev = build_timeline(_request(), [_approval(1, "sales_manager", datetime(2024, 5, 1, 9))])[1]
    assert ev.to_dict() == {
        "kind": "stage_decision",
        "actor_id": SALES,
        "timestamp": "2024-05-01T09:00:00",
        "decision": "approved",
        "stage": "sales_manager",
        "notes": None,
        "approval_id": 1,
    }


def test_stored_timeline_with_identical_timestamps(db, oracle):
    frozen = WorkflowEngine(oracle, settings=WorkflowSettings(), clock=lambda: T0, notify=False)
    req = frozen.create_request(db, OWNER, "other", "Badge", signature=SIG)
    frozen.decide(db, req.id, ADMIN, "sales_manager", "approved", signature="a")
    frozen.decide(db, req.id, HR, "hr_manager", "rejected", "missing form", signature="h")

    req = frozen.get_request(db, req.id)
    events = build_timeline(req)
    assert [e.kind for e in events] == ["created", "stage_decision", "stage_decision"]
    assert [e.stage for e in events[1:]] == ["sales_manager", "hr_manager"]
    assert {e.timestamp for e in events} == {T0}
    assert events == build_timeline(frozen.get_request(db, req.id))
