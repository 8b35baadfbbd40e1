from __future__ import annotations
import os
from pathlib import Path
from datetime import datetime, timezone

# Default folder: ./var/exports (override with EXPORT_DIR)
_DEFAULT_DIR = Path.cwd() / "var" / "exports"
EXPORT_DIR = Path(os.getenv("EXPORT_DIR", str(_DEFAULT_DIR)))

def _ensure_dir() -> None:
    EXPORT_DIR.mkdir(parents=True, exist_ok=True)

def write_pack(request_id: int, document: bytes, prefix: str = "hr-request", suffix: str = "json") -> Path:
    """
    Save one exported request document.
    File name: <prefix>-<id>-<UTC timestamp>.<suffix>
    """
    _ensure_dir()
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    fp = EXPORT_DIR / f"{prefix}-{request_id}-{ts}.{suffix}"
    fp.write_bytes(document)
    return fp
