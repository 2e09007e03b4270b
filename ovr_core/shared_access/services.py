# ovr_core/shared_access/services.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.utils import timezone

from ovr_core.audit.services import AuditService
from ovr_core.common.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ovr_core.common.events import publish_on_commit
from ovr_core.corrective_actions.models import ActionStatus, CorrectiveAction
from ovr_core.iam import policy
from ovr_core.iam.roles import Actor
from ovr_core.investigations.models import Investigation
from ovr_core.shared_access.models import COMPATIBLE_ROLES, GrantStatus, ResourceType, SharedAccessGrant
from ovr_core.shared_access.tokens import default_expiry, generate_token, redact

logger = logging.getLogger(__name__)

ENTITY = "SharedAccessGrant"


def _require_manager(actor: Optional[Actor]) -> None:
    if not policy.can_manage_shared_access(actor):
        logger.warning("denied actor=%s: shared access management", getattr(actor, "user_id", None))
        raise AuthorizationError("Only QI staff can manage shared access.")


def _clean_email(email: str) -> str:
    value = (email or "").strip().lower()
    try:
        validate_email(value)
    except DjangoValidationError:
        raise ValidationError("A valid email is required.", details={"email": email})
    return value


def _check_role(resource_type: str, role: str) -> None:
    if resource_type not in ResourceType.values:
        raise ValidationError("Invalid resource_type.", details={"allowed": list(ResourceType.values)})
    if role not in COMPATIBLE_ROLES[resource_type]:
        raise ValidationError(
            f"Role '{role}' cannot be granted on a {resource_type}.",
            details={"allowed": sorted(COMPATIBLE_ROLES[resource_type])},
        )


def lock_shareable_resource(*, resource_type: str, resource_id: UUID):
    """
    Lock the target resource and check it still accepts new grants:
    an investigation must be unsubmitted, a corrective action must be open.
    """
    if resource_type == ResourceType.INVESTIGATION:
        obj = Investigation.objects.select_for_update().filter(id=resource_id).first()
        if obj is None:
            raise NotFoundError("Investigation not found.")
        if obj.is_submitted:
            raise ConflictError("Cannot share a submitted investigation.", details={"submitted_at": obj.submitted_at})
        return obj

    if resource_type == ResourceType.CORRECTIVE_ACTION:
        obj = CorrectiveAction.objects.select_for_update().filter(id=resource_id).first()
        if obj is None:
            raise NotFoundError("Corrective action not found.")
        if obj.status != ActionStatus.OPEN:
            raise ConflictError("Cannot share a closed corrective action.", details={"status": obj.status})
        return obj

    raise ValidationError("Invalid resource_type.", details={"allowed": list(ResourceType.values)})


class SharedAccessService:
    @staticmethod
    def _issue(
        *,
        actor: Actor,
        resource,
        resource_type: str,
        email: str,
        role: str,
        token_expires_at: Optional[datetime],
    ) -> SharedAccessGrant:
        _check_role(resource_type, role)
        email = _clean_email(email)

        now = timezone.now()
        expires = token_expires_at or default_expiry(at=now)
        if expires <= now:
            raise ValidationError("token_expires_at must be in the future.")

        User = get_user_model()
        user = User.objects.filter(email__iexact=email, is_active=True).order_by("id").first()

        grant = SharedAccessGrant.objects.create(
            resource_type=resource_type,
            resource_id=resource.id,
            incident_id=resource.incident_id,
            email=email,
            user=user,
            role=role,
            token=generate_token(),
            token_expires_at=expires,
            status=GrantStatus.PENDING,
            invited_by_id=actor.user_id,
            invited_at=now,
        )

        AuditService.log(
            event_code="shared_access.granted",
            entity_type=ENTITY,
            entity_id=grant.id,
            actor_user_id=actor.user_id,
            metadata={
                "resource_type": resource_type,
                "resource_id": str(resource.id),
                "email": email,
                "role": role,
                "expires_at": expires.isoformat(),
            },
        )
        publish_on_commit(
            "shared_access.granted",
            {
                "grant_id": str(grant.id),
                "incident_id": str(resource.incident_id),
                "resource_type": resource_type,
                "resource_id": str(resource.id),
                "email": email,
                "role": role,
                "actor_user_id": actor.user_id,
            },
        )
        logger.info(
            "granted %s on %s:%s to %s (token %s)",
            role,
            resource_type,
            resource.id,
            email,
            redact(grant.token),
        )
        return grant

    @staticmethod
    @transaction.atomic
    def grant(
        *,
        actor: Actor,
        resource_type: str,
        resource_id: UUID,
        email: str,
        role: str,
        token_expires_at: Optional[datetime] = None,
    ) -> SharedAccessGrant:
        _require_manager(actor)

        resource = lock_shareable_resource(resource_type=resource_type, resource_id=resource_id)
        return SharedAccessService._issue(
            actor=actor,
            resource=resource,
            resource_type=resource_type,
            email=email,
            role=role,
            token_expires_at=token_expires_at,
        )

    @staticmethod
    @transaction.atomic
    def grant_bulk(
        *,
        actor: Actor,
        resource_type: str,
        resource_id: UUID,
        invitations: Iterable[Dict[str, Any]],
        token_expires_at: Optional[datetime] = None,
    ) -> List[SharedAccessGrant]:
        """All-or-nothing: any invalid invitation rolls back the whole batch."""
        _require_manager(actor)

        invitations = list(invitations or [])
        if not invitations:
            raise ValidationError("invitations must contain at least one entry.")

        resource = lock_shareable_resource(resource_type=resource_type, resource_id=resource_id)
        return [
            SharedAccessService._issue(
                actor=actor,
                resource=resource,
                resource_type=resource_type,
                email=inv.get("email", ""),
                role=inv.get("role", ""),
                token_expires_at=inv.get("token_expires_at") or token_expires_at,
            )
            for inv in invitations
        ]

    @staticmethod
    @transaction.atomic
    def revoke(*, actor: Actor, grant_id: UUID) -> SharedAccessGrant:
        _require_manager(actor)

        grant = SharedAccessGrant.objects.select_for_update().filter(id=grant_id).first()
        if grant is None:
            raise NotFoundError("Shared access grant not found.")
        if grant.status == GrantStatus.REVOKED:
            raise ConflictError("Grant is already revoked.", details={"status": grant.status})

        previous = grant.status
        grant.status = GrantStatus.REVOKED
        grant.revoked_by_id = actor.user_id
        grant.revoked_at = timezone.now()
        grant.save(update_fields=["status", "revoked_by", "revoked_at", "updated_at"])

        AuditService.log(
            event_code="shared_access.revoked",
            entity_type=ENTITY,
            entity_id=grant.id,
            actor_user_id=actor.user_id,
            metadata={"from": previous, "email": grant.email},
        )
        publish_on_commit(
            "shared_access.revoked",
            {
                "grant_id": str(grant.id),
                "resource_type": grant.resource_type,
                "resource_id": str(grant.resource_id),
                "email": grant.email,
                "actor_user_id": actor.user_id,
            },
        )
        logger.info("revoked grant %s (%s) by actor=%s", grant.id, grant.email, actor.user_id)
        return grant

    @staticmethod
    @transaction.atomic
    def accept(*, token: str, actor: Optional[Actor] = None) -> SharedAccessGrant:
        grant = SharedAccessGrant.objects.select_for_update().filter(token=token).first() if token else None
        now = timezone.now()

        if grant is None or not grant.is_usable(at=now):
            logger.warning("accept rejected for token %s", redact(token))
            raise NotFoundError("Invitation not found.")
        if grant.status != GrantStatus.PENDING:
            raise ConflictError("Invitation already accepted.", details={"status": grant.status})

        grant.status = GrantStatus.ACCEPTED
        grant.accepted_at = now
        fields = ["status", "accepted_at", "updated_at"]

        if actor is not None and grant.user_id is None and actor.email and actor.email == grant.email.lower():
            grant.user_id = actor.user_id
            fields.append("user")

        grant.save(update_fields=fields)

        AuditService.log(
            event_code="shared_access.accepted",
            entity_type=ENTITY,
            entity_id=grant.id,
            actor_user_id=getattr(actor, "user_id", None),
            metadata={"email": grant.email, "linked_user_id": grant.user_id},
        )
        logger.info("accepted grant %s (%s)", grant.id, grant.email)
        return grant

