# hrflow/utils/policy.py
from __future__ import annotations
import os
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional, Set

import yaml

# Where to read the policy file (deployments set POLICY_PATH; the packaged file is the fallback)
_DEFAULT_PATH = Path(__file__).resolve().parents[1] / "policies" / "policy.yaml"
POLICY_PATH = Path(os.getenv("POLICY_PATH", str(_DEFAULT_PATH)))

# cache in memory
_POLICY: Optional[dict] = None
_lock = RLock()


# -------------------------- loading --------------------------

def _load_policy_from_file(path: Path | None = None) -> dict:
    fp = path or POLICY_PATH
    if fp.exists():
        with open(fp, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                return {}
            return data
    return {}

def get_policy() -> dict:
    global _POLICY
    with _lock:
        if _POLICY is None:
            _POLICY = _load_policy_from_file()
        return _POLICY

def reload_policy() -> dict:
    global _POLICY
    with _lock:
        _POLICY = _load_policy_from_file()
        return _POLICY

def set_policy(data: dict) -> dict:
    """Replace the cached policy in-process (admin tooling and tests)."""
    global _POLICY
    with _lock:
        _POLICY = dict(data or {})
        return _POLICY


# -------------------------- helpers --------------------------

def role_capabilities(pol: dict) -> Dict[str, Set[str]]:
    roles = (pol or {}).get("roles") or {}
    out: Dict[str, Set[str]] = {}
    for role, caps in roles.items():
        if isinstance(caps, list):
            out[str(role)] = {str(c) for c in caps}
    return out

def actor_roles(pol: dict, actor_id: str) -> List[str]:
    actors = (pol or {}).get("actors") or {}
    roles = actors.get(actor_id)
    if isinstance(roles, str):
        return [roles]
    if isinstance(roles, list):
        return [str(r) for r in roles]
    return []

def capabilities_for(pol: dict, actor_id: str) -> Set[str]:
    by_role = role_capabilities(pol)
    caps: Set[str] = set()
    for role in actor_roles(pol, actor_id):
        caps |= by_role.get(role, set())
    return caps

def workflow_settings(pol: dict) -> dict:
    wf = (pol or {}).get("workflow") or {}
    return wf if isinstance(wf, dict) else {}
