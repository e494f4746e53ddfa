"""
Actor & store access helpers.

WHY: Authentication lives in the surrounding portal. Its gateway forwards
the resolved actor on every request; the engine only needs who is acting,
in which role, and which stores they may touch.

ROLES:
- employee: field staff, bound to their own store(s); may submit shift
  snapshots, activate/return packs and attach pickup receipts
- manager: multi-store operations staff; all scratcher operations
- owner: store owner; all scratcher operations for owned stores

USAGE:
    from scratchers.services.access_service import require_store_access

    require_store_access(g.actor, store_id)
"""
from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import PermissionDeniedError, ValidationError


ROLE_EMPLOYEE = "employee"
ROLE_MANAGER = "manager"
ROLE_OWNER = "owner"
VALID_ROLES = {ROLE_EMPLOYEE, ROLE_MANAGER, ROLE_OWNER}
PRIVILEGED_ROLES = {ROLE_MANAGER, ROLE_OWNER}

ALL_STORES = "*"


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: str
    store_ids: frozenset[int] = field(default_factory=frozenset)
    all_stores: bool = False
    name: str | None = None

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    @property
    def display_name(self) -> str:
        return self.name or ("Employee" if self.role == ROLE_EMPLOYEE else "Manager")


def parse_actor(user_id: str | None, role: str | None, store_ids: str | None, name: str | None = None) -> Actor:
    """
    Build an Actor from the gateway headers.

    Raises ValidationError on malformed values; callers map that to 401.
    """
    if not user_id or not user_id.strip().isdigit():
        raise ValidationError("Actor user id is missing or invalid")

    normalized_role = (role or "").strip().lower()
    if normalized_role not in VALID_ROLES:
        raise ValidationError(f"Unknown actor role: {role!r}")

    raw_stores = (store_ids or "").strip()
    all_stores = raw_stores == ALL_STORES
    parsed: set[int] = set()
    if raw_stores and not all_stores:
        for part in raw_stores.split(","):
            part = part.strip()
            if not part:
                continue
            if not part.isdigit():
                raise ValidationError(f"Invalid store id in actor scope: {part!r}")
            parsed.add(int(part))

    # Field staff never get cross-store scope
    if all_stores and normalized_role == ROLE_EMPLOYEE:
        raise ValidationError("Employees cannot be scoped to all stores")

    return Actor(
        user_id=int(user_id.strip()),
        role=normalized_role,
        store_ids=frozenset(parsed),
        all_stores=all_stores,
        name=(name or "").strip() or None,
    )


def has_store_access(actor: Actor | None, store_id: int | None) -> bool:
    if actor is None or store_id is None:
        return False
    if actor.all_stores:
        return True
    return store_id in actor.store_ids


def require_store_access(actor: Actor, store_id: int) -> None:
    """Raise PermissionDeniedError when the actor may not touch store_id."""
    if not has_store_access(actor, store_id):
        raise PermissionDeniedError(
            "Forbidden",
            details={"store_id": store_id},
        )


def default_store_id(actor: Actor) -> int | None:
    """The store an actor implicitly works in (single-store scope only)."""
    if actor.all_stores or len(actor.store_ids) != 1:
        return None
    return next(iter(actor.store_ids))
