import json

import pytest

from hrflow.core.errors import AuthorizationError, NotFoundError, StateError
from hrflow.models import AuditLog
from hrflow.services.export import DocumentExporter, JsonDocumentExporter, export_request
from hrflow.utils.pack_sink import write_pack

from conftest import HR, SALES


@pytest.fixture
def exporter():
    return JsonDocumentExporter()


def _approve_all(engine, db, req_id):
    engine.decide(db, req_id, SALES, "sales_manager", "approved", "fine", signature="sig://m")
    engine.decide(db, req_id, HR, "hr_manager", "approved", signature="sig://h")


def test_json_exporter_satisfies_protocol(exporter):
    assert isinstance(exporter, DocumentExporter)


def test_export_finished_request(engine, db, oracle, exporter, leave_request):
    _approve_all(engine, db, leave_request.id)
    doc = json.loads(export_request(db, leave_request.id, HR, oracle, exporter))

    assert doc["request"]["status"] == "hr_approved"
    assert doc["request"]["period"] == {"start": "2024-01-10", "end": "2024-01-15"}
    assert [e["kind"] for e in doc["timeline"]] == ["created", "stage_decision", "stage_decision"]
    boxes = {b["title"]: b for b in doc["signatures"]}
    assert set(boxes) == {"requester", "sales_manager", "hr_manager"}
    assert boxes["requester"]["signature"] == leave_request.owner_signature
    assert boxes["sales_manager"]["actor_id"] == SALES
    assert boxes["hr_manager"]["decision"] == "approved"

    row = db.query(AuditLog).filter(AuditLog.action == "HR_REQUEST_EXPORTED").one()
    assert row.actor == HR


def test_export_after_sales_rejection_leaves_hr_box_blank(engine, db, oracle, exporter, leave_request):
    engine.decide(db, leave_request.id, SALES, "sales_manager", "rejected", signature="sig://m")
    doc = json.loads(export_request(db, leave_request.id, HR, oracle, exporter))
    hr_box = next(b for b in doc["signatures"] if b["title"] == "hr_manager")
    assert hr_box["actor_id"] is None and hr_box["signature"] is None


def test_export_refuses_open_request(db, oracle, exporter, leave_request):
    with pytest.raises(StateError):
        export_request(db, leave_request.id, HR, oracle, exporter)


def test_export_needs_manage_hr(engine, db, oracle, exporter, leave_request):
    _approve_all(engine, db, leave_request.id)
    with pytest.raises(AuthorizationError) as ei:
        export_request(db, leave_request.id, SALES, oracle, exporter)
    assert ei.value.capability == "manage-hr"


def test_export_unknown_request(db, oracle, exporter):
    with pytest.raises(NotFoundError):
        export_request(db, 12345, HR, oracle, exporter)


def test_write_pack_lands_in_export_dir(export_dir):
    fp = write_pack(3, b'{"ok": true}')
    assert fp.parent == export_dir
    assert fp.name.startswith("hr-request-3-") and fp.suffix == ".json"
    assert fp.read_bytes() == b'{"ok": true}'
