"""
Shared fixtures. Environment is pointed at a scratch directory before the
package is imported, so the module-level engine, audit sink and export sink
all land there.
"""
import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import yaml

_TMP = Path(tempfile.mkdtemp(prefix="hrflow-tests-"))

TEST_POLICY = {
    "roles": {
        "staff": [],
        "sales_manager": ["approve-sales"],
        "hr_manager": ["manage-hr"],
        "admin": ["approve-sales", "manage-hr"],
    },
    "actors": {
        "m.sales": ["sales_manager"],
        "h.hr": ["hr_manager"],
        "a.admin": ["admin"],
        "e.staff": ["staff"],
    },
    "workflow": {
        "require_distinct_approvers": False,
        "allow_owner_approval": True,
        "list_all_capabilities": ["approve-sales", "manage-hr"],
    },
}

_POLICY_FILE = _TMP / "policy.yaml"
_POLICY_FILE.write_text(yaml.safe_dump(TEST_POLICY), encoding="utf-8")

os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'hrflow-test.db'}"
os.environ["AUDIT_DIR"] = str(_TMP / "audit")
os.environ["EXPORT_DIR"] = str(_TMP / "exports")
os.environ["POLICY_PATH"] = str(_POLICY_FILE)
os.environ["SLACK_WEBHOOK_URL"] = ""
os.environ["LOG_LEVEL"] = "DEBUG"

from hrflow.core.database import Base, SessionLocal, engine as db_engine, init_db  # noqa: E402
from hrflow.services.authorization import StaticAuthorizationOracle  # noqa: E402
from hrflow.services.workflow import WorkflowEngine, WorkflowSettings  # noqa: E402
from hrflow.utils.policy import set_policy  # noqa: E402

SALES = "m.sales"
HR = "h.hr"
ADMIN = "a.admin"
OWNER = "e.staff"
NOBODY = "x.nobody"

SIG = "sig://blob/7f3a"


class TickingClock:
    """Every call is one step later than the previous one."""

    def __init__(self, start=datetime(2024, 1, 8, 9, 0, 0), step=timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self):
        now = self.current
        self.current = self.current + self.step
        return now


@pytest.fixture(autouse=True)
def _schema():
    init_db()
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)
    set_policy(TEST_POLICY)
    yield
    set_policy(TEST_POLICY)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def other_db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def oracle():
    return StaticAuthorizationOracle({
        SALES: {"approve-sales"},
        HR: {"manage-hr"},
        ADMIN: {"approve-sales", "manage-hr"},
    })


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def engine(oracle, clock):
    return WorkflowEngine(oracle, settings=WorkflowSettings(), clock=clock, notify=False)


@pytest.fixture
def leave_request(engine, db):
    return engine.create_request(
        db, OWNER, "leave", "Annual leave",
        period={"start": "2024-01-10", "end": "2024-01-15"},
        signature=SIG,
    )


@pytest.fixture
def audit_dir():
    return Path(os.environ["AUDIT_DIR"])


@pytest.fixture
def export_dir():
    return Path(os.environ["EXPORT_DIR"])
