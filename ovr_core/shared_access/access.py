# ovr_core/shared_access/access.py
"""
Single capability resolver for investigations and corrective actions.

A caller reaches a resource through any of:
- role: QI/ADMIN get full access;
- assignment: listed investigators / assignees;
- linked grant: a usable grant whose `user` is the caller;
- token: a usable grant presented as a bare token, scoped to exactly this resource.

The paths are unioned; views never branch on how the caller authenticated.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Collection, FrozenSet, Optional, Tuple
from uuid import UUID

from django.utils import timezone

from ovr_core.common.errors import NotFoundError
from ovr_core.iam import policy
from ovr_core.iam.roles import Actor
from ovr_core.shared_access.models import GrantRole, GrantStatus, ResourceType, SharedAccessGrant
from ovr_core.shared_access.tokens import redact, tokens_match

logger = logging.getLogger(__name__)

RESOURCE_LABELS = {
    ResourceType.INVESTIGATION: "Investigation",
    ResourceType.CORRECTIVE_ACTION: "Corrective action",
}

# role -> (can_update, can_submit)
GRANT_CAPABILITIES = {
    GrantRole.VIEWER: (False, False),
    GrantRole.INVESTIGATOR: (True, True),
    GrantRole.ACTION_HANDLER: (True, False),
}


@dataclass(frozen=True)
class EffectiveAccess:
    via: Tuple[str, ...]
    roles: FrozenSet[str]
    can_view: bool
    can_update: bool
    can_submit: bool
    grant_id: Optional[UUID] = None

    @property
    def is_full(self) -> bool:
        return "role" in self.via


def _not_found(resource_type: str) -> NotFoundError:
    return NotFoundError(f"{RESOURCE_LABELS.get(resource_type, 'Resource')} not found.")


def validate_token(*, token: str, resource_type: str, resource_id: UUID) -> SharedAccessGrant:
    """
    Resolve a bare token for one resource. Unknown tokens, tokens scoped to another
    resource, and revoked or expired grants are all reported as not found.
    Stamps last_accessed_at on success.
    """
    grant = SharedAccessGrant.objects.filter(token=token).first() if token else None
    if grant is None or not tokens_match(token, grant.token):
        logger.warning("share token %s: unknown", redact(token))
        raise _not_found(resource_type)

    if grant.resource_type != resource_type or grant.resource_id != resource_id:
        logger.warning("share token %s: scoped to another resource", redact(token))
        raise _not_found(resource_type)

    now = timezone.now()
    if grant.status == GrantStatus.REVOKED:
        logger.warning("share token %s: revoked at %s", redact(token), grant.revoked_at)
        raise _not_found(resource_type)
    if now >= grant.token_expires_at:
        logger.warning("share token %s: expired at %s", redact(token), grant.token_expires_at)
        raise _not_found(resource_type)

    SharedAccessGrant.objects.filter(pk=grant.pk).update(last_accessed_at=now)
    grant.last_accessed_at = now
    return grant


def resolve_access(
    *,
    actor: Optional[Actor],
    resource_type: str,
    resource_id: UUID,
    member_ids: Collection[int] = (),
    token: Optional[str] = None,
) -> EffectiveAccess:
    via = []
    roles = set()
    can_update = False
    can_submit = False
    grant_id = None

    # (a) role
    if policy.has_full_resource_access(actor):
        via.append("role")
        roles.add("qi")
        can_update = True
        can_submit = True

    # (b) assignment
    if actor is not None and actor.user_id in member_ids:
        via.append("assignment")
        roles.add("member")
        can_update = True
        can_submit = can_submit or resource_type == ResourceType.INVESTIGATION

    # (c) grants linked to the caller's account
    if actor is not None:
        now = timezone.now()
        linked = SharedAccessGrant.objects.filter(
            user_id=actor.user_id,
            resource_type=resource_type,
            resource_id=resource_id,
        ).exclude(status=GrantStatus.REVOKED)
        for grant in linked:
            if not grant.is_usable(at=now):
                continue
            via.append("grant")
            roles.add(grant.role)
            upd, sub = GRANT_CAPABILITIES.get(grant.role, (False, False))
            can_update = can_update or upd
            can_submit = can_submit or sub
            grant_id = grant_id or grant.id

    # (d) bare token
    if token:
        try:
            grant = validate_token(token=token, resource_type=resource_type, resource_id=resource_id)
        except NotFoundError:
            if not via:
                raise
        else:
            via.append("token")
            roles.add(grant.role)
            upd, sub = GRANT_CAPABILITIES.get(grant.role, (False, False))
            can_update = can_update or upd
            can_submit = can_submit or sub
            grant_id = grant.id

    if not via:
        logger.warning(
            "no access path to %s:%s for actor=%s",
            resource_type,
            resource_id,
            getattr(actor, "user_id", None),
        )
        raise _not_found(resource_type)

    return EffectiveAccess(
        via=tuple(dict.fromkeys(via)),
        roles=frozenset(roles),
        can_view=True,
        can_update=can_update,
        can_submit=can_submit,
        grant_id=grant_id,
    )


def grant_roles(access: EffectiveAccess) -> FrozenSet[str]:
    """Grant roles only (for policy functions that take grant_roles=)."""
    return frozenset(r for r in access.roles if r in GrantRole.values)
