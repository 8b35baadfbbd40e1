"""
Capability lookups for the workflow.

The engine never looks at roles or tokens. It asks an ``AuthorizationOracle``
one question, ``has_capability(actor_id, code)``, at the moment it needs the
answer. Implementations here:

* ``StaticAuthorizationOracle``: an in-memory grant table (tests, scripts).
* ``PolicyAuthorizationOracle``: grants read from the YAML policy file
  (``roles`` + ``actors``); reloading the policy takes effect on the next call.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional, Protocol, Set, runtime_checkable

from hrflow.utils.policy import get_policy, capabilities_for

logger = logging.getLogger("hrflow.authorization")

# capability codes used by the workflow; the full catalog lives in the policy file
APPROVE_SALES = "approve-sales"
MANAGE_HR = "manage-hr"


@runtime_checkable
class AuthorizationOracle(Protocol):
    def has_capability(self, actor_id: str, capability_code: str) -> bool:
        ...


class StaticAuthorizationOracle:
    """Grant table held in memory: ``{actor_id: {capability, ...}}``."""

    def __init__(self, grants: Optional[Mapping[str, Iterable[str]]] = None) -> None:
        self._grants: Dict[str, Set[str]] = {a: set(c) for a, c in (grants or {}).items()}

    def grant(self, actor_id: str, *codes: str) -> None:
        self._grants.setdefault(actor_id, set()).update(codes)

    def revoke(self, actor_id: str, *codes: str) -> None:
        self._grants.get(actor_id, set()).difference_update(codes)

    def has_capability(self, actor_id: str, capability_code: str) -> bool:
        return capability_code in self._grants.get(actor_id, set())


class PolicyAuthorizationOracle:
    """Resolves capabilities from the policy file on every query."""

    def __init__(self, loader=get_policy) -> None:
        self._loader = loader

    def has_capability(self, actor_id: str, capability_code: str) -> bool:
        caps = capabilities_for(self._loader(), actor_id)
        allowed = capability_code in caps
        logger.debug("capability check actor=%s code=%s -> %s", actor_id, capability_code, allowed)
        return allowed


def has_any(oracle: AuthorizationOracle, actor_id: str, codes: Iterable[str]) -> bool:
    return any(oracle.has_capability(actor_id, c) for c in codes)
