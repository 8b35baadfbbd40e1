import requests

from hrflow.models import HRRequest
from hrflow.services import notifications
from hrflow.utils.runtime_config import set_slack_webhook

HOOK = "https://hooks.slack.com/services/T000/B000/XXXX"


class _Resp:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


def _req():
    return HRRequest(id=12, owner_staff_id="e.staff", kind="advance", title="Advance", status="sales_approved")


def test_skipped_without_webhook(monkeypatch):
    calls = []
    set_slack_webhook("")
    monkeypatch.setattr(notifications.requests, "post", lambda *a, **k: calls.append(a))
    assert notifications.notify_status(_req()) is False
    assert calls == []


def test_posts_status_text(monkeypatch):
    sent = {}

    def fake_post(url, json, timeout):
        sent.update(url=url, json=json)
        return _Resp(200)

    set_slack_webhook(HOOK)
    try:
        monkeypatch.setattr(notifications.requests, "post", fake_post)
        assert notifications.notify_status(_req(), "m.sales") is True
    finally:
        set_slack_webhook("")
    assert sent["url"] == HOOK
    assert "HR request #12 (advance)" in sent["json"]["text"]
    assert "awaiting HR review" in sent["json"]["text"]
    assert "[by m.sales]" in sent["json"]["text"]


def test_slack_failures_do_not_raise(monkeypatch):
    def boom(*a, **k):
        raise requests.ConnectionError("down")

    set_slack_webhook(HOOK)
    try:
        monkeypatch.setattr(notifications.requests, "post", boom)
        assert notifications.notify_status(_req()) is False
        monkeypatch.setattr(notifications.requests, "post", lambda *a, **k: _Resp(500, "oops"))
        assert notifications.notify_status(_req()) is False
    finally:
        set_slack_webhook("")
