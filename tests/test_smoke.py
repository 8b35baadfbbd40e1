from fastapi.testclient import TestClient
from sqlalchemy import inspect

from hrflow.core.database import Base, engine
from hrflow.main import app

client = TestClient(app)

def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert "hr_requests" in r.json()["tables"]

def test_version():
    r = client.get("/public/version")
    assert r.json()["name"] == "hr-request-workflow"

def test_list_requests_needs_auth():
    r = client.get("/api/hr-requests")
    assert r.status_code in (401, 403)  # depends on your auth settings

def test_startup_creates_tables():
    Base.metadata.drop_all(bind=engine)
    assert "hr_requests" not in inspect(engine).get_table_names()
    with TestClient(app) as c:
        assert c.get("/public/healthz").json() == {"status": "ok"}
    assert "hr_requests" in inspect(engine).get_table_names()
