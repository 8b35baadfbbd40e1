import pytest

from hrflow.core.errors import ImmutabilityError
from hrflow.models import Approval, HRRequest

from conftest import SALES


def test_request_fields_are_write_once(db, leave_request):
    req = db.get(HRRequest, leave_request.id)
    req.title = "Edited"
    with pytest.raises(ImmutabilityError):
        db.commit()
    db.rollback()
    assert db.get(HRRequest, leave_request.id).title == "Annual leave"


def test_request_cannot_be_deleted(db, leave_request):
    db.delete(db.get(HRRequest, leave_request.id))
    with pytest.raises(ImmutabilityError):
        db.commit()
    db.rollback()
    assert db.get(HRRequest, leave_request.id) is not None


def test_approval_rows_are_append_only(engine, db, leave_request):
    engine.decide(db, leave_request.id, SALES, "sales_manager", "approved", signature="sig://m")
    row = db.query(Approval).filter(Approval.request_id == leave_request.id).one()

    row.decision = "rejected"
    with pytest.raises(ImmutabilityError):
        db.commit()
    db.rollback()

    row = db.query(Approval).filter(Approval.request_id == leave_request.id).one()
    db.delete(row)
    with pytest.raises(ImmutabilityError):
        db.commit()
    db.rollback()
    assert db.query(Approval).one().decision == "approved"
