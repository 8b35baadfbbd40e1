from __future__ import annotations
import os, json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

# JSONL mirror of the audit_log table; ./var/audit unless AUDIT_DIR is set
AUDIT_DIR = Path(os.getenv("AUDIT_DIR", str(Path.cwd() / "var" / "audit")))

def audit_file(day: date) -> Path:
    return AUDIT_DIR / f"hr-audit-{day.isoformat()}.jsonl"

def _day_of(event: Dict[str, Any]) -> date:
    # partition by when the row was recorded, not when the mirror ran
    stamp = event.get("created_at")
    if isinstance(stamp, datetime):
        return stamp.date()
    if isinstance(stamp, str):
        try:
            return datetime.fromisoformat(stamp).date()
        except ValueError:
            pass
    return datetime.now(timezone.utc).date()

def write_event(event: Dict[str, Any]) -> Path:
    """Append one audit event as a JSON line; returns the file written."""
    AUDIT_DIR.mkdir(parents=True, exist_ok=True)
    fp = audit_file(_day_of(event))
    line = json.dumps(event, ensure_ascii=False, default=str)
    with fp.open("a", encoding="utf-8") as fh:
        fh.write(line + "\n")
    return fp

def read_events(day: date, request_id: Optional[int] = None) -> Iterator[Dict[str, Any]]:
    fp = audit_file(day)
    if not fp.exists():
        return
    with fp.open("r", encoding="utf-8") as fh:
        for line in fh:
            if not line.strip():
                continue
            event = json.loads(line)
            if request_id is None or event.get("request_id") == request_id:
                yield event
