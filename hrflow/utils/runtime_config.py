import os
from threading import RLock
from typing import Dict

_lock = RLock()
_state: Dict[str, str] = {
    # seeded from environment on boot; admins can override while running
    "SLACK_WEBHOOK_URL": os.getenv("SLACK_WEBHOOK_URL", "").strip(),
    "APP_BASE_URL": os.getenv("APP_BASE_URL", "http://localhost:8000").strip().rstrip("/"),
    "NOTIFY_ENABLED": os.getenv("NOTIFY_ENABLED", "1").strip(),
}

def set_slack_webhook(url: str | None) -> None:
    with _lock:
        _state["SLACK_WEBHOOK_URL"] = (url or "").strip()

def get_slack_webhook() -> str:
    with _lock:
        return _state.get("SLACK_WEBHOOK_URL", "")

def get_base_url() -> str:
    with _lock:
        return _state.get("APP_BASE_URL", "")

def notifications_enabled() -> bool:
    with _lock:
        return _state.get("NOTIFY_ENABLED", "1") == "1"

def snapshot() -> Dict[str, object]:
    with _lock:
        return {
            "slack_webhook_set": bool(_state.get("SLACK_WEBHOOK_URL")),
            "app_base_url": _state.get("APP_BASE_URL", ""),
            "notify_enabled": _state.get("NOTIFY_ENABLED", "1") == "1",
        }
