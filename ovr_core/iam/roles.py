# ovr_core/iam/roles.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Set

# Group/role names (Django auth Group names recommended)
ROLE_EMPLOYEE = "EMPLOYEE"
ROLE_SUPERVISOR = "SUPERVISOR"
ROLE_HOD = "HOD"
ROLE_QI = "QI"
ROLE_ADMIN = "ADMIN"
ROLE_INVESTIGATOR = "INVESTIGATOR"
ROLE_ACTION_HANDLER = "ACTION_HANDLER"

ALL_ROLES: FrozenSet[str] = frozenset(
    {
        ROLE_EMPLOYEE,
        ROLE_SUPERVISOR,
        ROLE_HOD,
        ROLE_QI,
        ROLE_ADMIN,
        ROLE_INVESTIGATOR,
        ROLE_ACTION_HANDLER,
    }
)

# Legacy spellings seen on user.role / group names
ROLE_ALIASES = {
    "REPORTER": ROLE_EMPLOYEE,
    "STAFF": ROLE_EMPLOYEE,
    "DEPARTMENT_HEAD": ROLE_HOD,
    "QUALITY_MANAGER": ROLE_QI,
    "QUALITY": ROLE_QI,
    "ACTION-HANDLER": ROLE_ACTION_HANDLER,
}


def normalize_role(value) -> Optional[str]:
    """
    Map a raw role/group name onto the canonical role set.
    Unknown names return None and are ignored.
    """
    if value is None:
        return None
    key = str(value).strip().upper().replace(" ", "_")
    if not key:
        return None
    key = ROLE_ALIASES.get(key, key)
    return key if key in ALL_ROLES else None


def _raw_roles(user) -> Iterable:
    # Django Groups
    if hasattr(user, "groups"):
        yield from user.groups.values_list("name", flat=True)

    # Optional user.role or user.roles
    if getattr(user, "role", None):
        yield user.role

    roles = getattr(user, "roles", None)
    if roles:
        if isinstance(roles, str):
            yield roles
        else:
            try:
                yield from roles
            except TypeError:
                yield str(roles)


def resolve_roles(user) -> FrozenSet[str]:
    """
    Single canonical role set for a user, merging:
    1) Django groups: user.groups
    2) legacy singular user.role
    3) plural user.roles

    Superuser is treated as ADMIN. Authenticated users without any known role
    are plain reporters (EMPLOYEE): every staff member may file an incident.
    """
    roles: Set[str] = set()

    if not user or not getattr(user, "is_authenticated", False):
        return frozenset()

    if getattr(user, "is_superuser", False):
        roles.add(ROLE_ADMIN)

    for raw in _raw_roles(user):
        role = normalize_role(raw)
        if role:
            roles.add(role)

    if not roles:
        roles.add(ROLE_EMPLOYEE)

    return frozenset(roles)


@dataclass(frozen=True)
class Actor:
    """
    Explicit identity passed into every workflow call.
    """
    user_id: int
    roles: FrozenSet[str] = field(default_factory=frozenset)
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.roles

    def has_role(self, *roles: str) -> bool:
        """ADMIN satisfies every role requirement."""
        return self.is_admin or bool(self.roles.intersection(roles))


def actor_from_user(user) -> Optional[Actor]:
    if not user or not getattr(user, "is_authenticated", False):
        return None
    return Actor(
        user_id=user.id,
        roles=resolve_roles(user),
        email=(getattr(user, "email", "") or "").lower(),
    )
