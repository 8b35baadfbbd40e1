import jwt
from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel
from typing import Optional

from hrflow.core.security import decode_token
from hrflow.services.authorization import AuthorizationOracle, PolicyAuthorizationOracle
from hrflow.services.export import DocumentExporter, JsonDocumentExporter
from hrflow.services.workflow import WorkflowEngine

class CurrentActor(BaseModel):
    actor_id: str
    name: Optional[str] = None

def get_current_actor(authorization: str | None = Header(default=None)) -> CurrentActor:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    try:
        data = decode_token(token, expected_type="access")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid/expired token")
    sub = data.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return CurrentActor(actor_id=sub, name=data.get("name"))

_oracle = PolicyAuthorizationOracle()
_exporter = JsonDocumentExporter()

def get_oracle() -> AuthorizationOracle:
    return _oracle

def get_engine(oracle: AuthorizationOracle = Depends(get_oracle)) -> WorkflowEngine:
    # cheap to build; settings are read from the policy on each call
    return WorkflowEngine(oracle)

def get_exporter() -> DocumentExporter:
    return _exporter

def require_capability(code: str):
    def checker(actor: CurrentActor = Depends(get_current_actor),
                oracle: AuthorizationOracle = Depends(get_oracle)) -> CurrentActor:
        if not oracle.has_capability(actor.actor_id, code):
            raise HTTPException(status_code=403, detail=f"'{code}' required")
        return actor
    return checker
