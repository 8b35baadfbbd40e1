from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.orm import Session
from sqlalchemy import text, inspect
from pydantic import BaseModel
from typing import Optional
from datetime import datetime, timezone
from contextlib import asynccontextmanager
import logging, os, jwt, uvicorn

# Import our modules
from hrflow.core.database import get_db, engine, init_db
from hrflow.core.errors import (
    WorkflowError, ValidationError, NotFoundError, AuthorizationError,
    StateError, ConflictError, ImmutabilityError,
)
from hrflow.core.security import create_access_token, create_refresh_token, decode_token, ACCESS_TTL_MIN
from hrflow.deps.auth import CurrentActor, require_capability
from hrflow.api.requests import router as hr_requests_router
from hrflow.metrics import init_metrics_zero
from hrflow.models.request import HRRequest
from hrflow.services.authorization import MANAGE_HR
from hrflow.utils.audit_sink import AUDIT_DIR
from hrflow.utils.pack_sink import EXPORT_DIR
from hrflow.utils.policy import get_policy, reload_policy, POLICY_PATH
from hrflow.utils.runtime_config import set_slack_webhook, snapshot as runtime_snapshot

APP_NAME = "hr-request-workflow"
APP_VERSION = "0.3.0"

logger = logging.getLogger("hrflow.api")

def configure_logging() -> None:
    root = logging.getLogger("hrflow")
    if root.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root.addHandler(handler)
    root.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

configure_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("database: %s (%s)", engine.url.render_as_string(hide_password=True), engine.name)
    init_db()
    init_metrics_zero()
    logger.info("tables: %s", inspect(engine).get_table_names())
    logger.info("audit dir: %s, export dir: %s, policy: %s", AUDIT_DIR, EXPORT_DIR, POLICY_PATH)
    yield

# FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="HR Request Workflow API",
    description="Leave / advance / other HR requests with sales and HR sign-off",
    version=APP_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], allow_credentials=True,
    allow_methods=["*"], allow_headers=["*"],
)

app.include_router(hr_requests_router)

# ---- error mapping ----

_STATUS_FOR = {
    ValidationError: 400,
    AuthorizationError: 403,
    NotFoundError: 404,
    StateError: 409,
    ConflictError: 409,
    ImmutabilityError: 500,
}

@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    status = next((code for cls, code in _STATUS_FOR.items() if isinstance(exc, cls)), 400)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content=exc.to_dict())


# ---- ops ----

@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    try:
        requests_count = db.query(HRRequest).count()
        tables = inspect(engine).get_table_names()
        return {
            "status": "healthy",
            "database": "connected",
            "requests_count": requests_count,
            "tables": tables,
            "timestamp": datetime.now(timezone.utc),
        }
    except Exception as e:
        logger.warning("health check failed: %s", e)
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": str(e),
            "timestamp": datetime.now(timezone.utc),
        }

@app.get("/public/healthz", include_in_schema=False)
def public_healthz(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as e:
        logger.warning("healthz failed: %s", e)
        return Response(content='{"status":"error"}', media_type="application/json", status_code=503)

@app.get("/public/version", include_in_schema=False)
def public_version():
    return {"name": APP_NAME, "version": APP_VERSION}

@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---- auth ----

class LoginIn(BaseModel):
    actor_id: str
    name: Optional[str] = None

@app.post("/auth/login")
def auth_login(body: LoginIn):
    actor_id = body.actor_id.strip()
    if not actor_id:
        raise HTTPException(400, "actor_id must not be empty")
    access = create_access_token(actor_id, body.name)
    refresh = create_refresh_token(actor_id, body.name)
    return {"access_token": access, "refresh_token": refresh, "token_type": "bearer",
            "expires_in": ACCESS_TTL_MIN * 60, "actor_id": actor_id}

class RefreshIn(BaseModel):
    refresh_token: str

@app.post("/auth/refresh")
def auth_refresh(body: RefreshIn):
    try:
        data = decode_token(body.refresh_token, expected_type="refresh")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid/expired refresh token")
    new_access = create_access_token(data["sub"], data.get("name"))
    return {"access_token": new_access, "token_type": "bearer", "expires_in": ACCESS_TTL_MIN * 60}


# ---- policy / runtime config ----

@app.get("/api/policy", response_model=dict)
def api_policy(actor: CurrentActor = Depends(require_capability(MANAGE_HR))):
    return {"path": str(POLICY_PATH), "policy": get_policy()}

@app.post("/api/policy/reload", response_model=dict)
def api_policy_reload(actor: CurrentActor = Depends(require_capability(MANAGE_HR))):
    pol = reload_policy()
    logger.info("policy reloaded by %s from %s", actor.actor_id, POLICY_PATH)
    return {"reloaded": True, "roles": sorted((pol.get("roles") or {}).keys())}

class SlackWebhookIn(BaseModel):
    url: str

@app.post("/config/slack-webhook", response_model=dict)
def api_set_slack_webhook(body: SlackWebhookIn, actor: CurrentActor = Depends(require_capability(MANAGE_HR))):
    url = body.url.strip()
    if url and not url.startswith("https://hooks.slack.com/"):
        raise HTTPException(status_code=400, detail="Invalid Slack webhook URL")
    set_slack_webhook(url)
    return runtime_snapshot()

@app.get("/config/runtime", response_model=dict)
def api_runtime_config(actor: CurrentActor = Depends(require_capability(MANAGE_HR))):
    return runtime_snapshot()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
