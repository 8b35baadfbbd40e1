import os, jwt
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-prod")
JWT_ALGO = os.getenv("JWT_ALGO", "HS256")

# Access/refresh lifetimes (minutes)
ACCESS_TTL_MIN = int(os.getenv("JWT_ACCESS_TTL_MIN", "30"))
REFRESH_TTL_MIN = int(os.getenv("JWT_REFRESH_TTL_MIN", "10080"))

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _encode(payload: Dict[str, Any]) -> str:
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)

def _decode(token: str) -> Dict[str, Any]:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])

def _token(actor_id: str, token_type: str, ttl_min: int, name: Optional[str]) -> str:
    # identity only: capabilities are resolved per call, never baked into the token
    now = _now()
    payload = {
        "sub": actor_id,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl_min)).timestamp()),
    }
    if name:
        payload["name"] = name
    return _encode(payload)

def create_access_token(actor_id: str, name: Optional[str] = None) -> str:
    return _token(actor_id, "access", ACCESS_TTL_MIN, name)

def create_refresh_token(actor_id: str, name: Optional[str] = None) -> str:
    return _token(actor_id, "refresh", REFRESH_TTL_MIN, name)

def decode_token(token: str, expected_type: str | None = None) -> Dict[str, Any]:
    data = _decode(token)
    if expected_type and data.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"unexpected token type: {data.get('type')}")
    return data
