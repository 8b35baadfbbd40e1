from __future__ import annotations
import logging
from typing import Optional

import requests

from hrflow.models.request import HRRequest, RequestStatus
from hrflow.utils.runtime_config import get_slack_webhook, get_base_url, notifications_enabled

logger = logging.getLogger("hrflow.notifications")

_STATUS_TEXT = {
    RequestStatus.PENDING.value: "awaiting sales manager review",
    RequestStatus.SALES_APPROVED.value: "approved by sales, awaiting HR review",
    RequestStatus.SALES_REJECTED.value: "rejected by sales manager",
    RequestStatus.HR_APPROVED.value: "approved",
    RequestStatus.HR_REJECTED.value: "rejected by HR",
}

def _slack_send(payload: dict) -> bool:
    """Slack POST; never crash the API. Resolves webhook dynamically each call."""
    url = get_slack_webhook()
    if not url or not notifications_enabled():
        logger.debug("slack webhook not set or notifications disabled; skipping send")
        return False
    if "text" not in payload:
        payload = {**payload, "text": payload.get("fallback", "HR request notification")}
    try:
        r = requests.post(url, json=payload, timeout=10)
    except requests.RequestException as e:
        logger.warning("slack send error: %s", e)
        return False
    if r.status_code >= 300:
        logger.warning("slack error status=%s body=%s", r.status_code, r.text[:300])
        return False
    return True

def notify_status(req: HRRequest, actor_id: Optional[str] = None) -> bool:
    """Tell reviewers (or the owner) where a request now stands."""
    what = _STATUS_TEXT.get(req.status, req.status)
    link = f"{get_base_url()}/api/hr-requests/{req.id}"
    text = f"HR request #{req.id} ({req.kind}) '{req.title}' is {what}"
    if actor_id:
        text += f" [by {actor_id}]"
    return _slack_send({"text": f"{text} <{link}|open>", "fallback": text})
