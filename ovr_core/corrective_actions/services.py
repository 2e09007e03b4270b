# ovr_core/corrective_actions/services.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from ovr_core.audit.services import AuditService
from ovr_core.common.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ovr_core.common.events import publish_on_commit
from ovr_core.corrective_actions.checklist import is_complete, normalize_checklist, toggle_item
from ovr_core.corrective_actions.models import ActionStatus, CorrectiveAction
from ovr_core.iam import policy
from ovr_core.iam.roles import Actor
from ovr_core.incidents.models import Incident, IncidentStatus
from ovr_core.shared_access.access import EffectiveAccess, grant_roles, resolve_access
from ovr_core.shared_access.models import ResourceType

logger = logging.getLogger(__name__)

ENTITY = "CorrectiveAction"

# Incident stages in which remediation work can be opened.
CREATABLE_STATUSES = {
    IncidentStatus.INVESTIGATING,
    IncidentStatus.HOD_ASSIGNED,
    IncidentStatus.QI_FINAL_REVIEW,
    IncidentStatus.QI_FINAL_ACTIONS,
}

UPDATABLE_FIELDS = ("action_taken", "checklist", "description", "due_date")


def _assignees(raw: Optional[Iterable[Any]], default: int) -> List[int]:
    ids: List[int] = []
    for value in raw or [default]:
        try:
            uid = int(value)
        except (TypeError, ValueError):
            raise ValidationError("assigned_to must be a list of user ids.", details={"value": value})
        if uid not in ids:
            ids.append(uid)

    User = get_user_model()
    found = set(User.objects.filter(id__in=ids, is_active=True).values_list("id", flat=True))
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError("Unknown assignee id(s).", details={"assigned_to": missing})
    return ids


def access_for(
    *, actor: Optional[Actor], action: CorrectiveAction, token: Optional[str] = None
) -> EffectiveAccess:
    return resolve_access(
        actor=actor,
        resource_type=ResourceType.CORRECTIVE_ACTION,
        resource_id=action.id,
        member_ids=action.assigned_to or [],
        token=token,
    )


class CorrectiveActionService:
    @staticmethod
    def _lock(action_id: UUID) -> Tuple[Incident, CorrectiveAction]:
        # incident first, then the action: the close gate reads actions under the incident lock
        incident_id = CorrectiveAction.objects.filter(id=action_id).values_list("incident_id", flat=True).first()
        if incident_id is None:
            raise NotFoundError("Corrective action not found.")

        incident = Incident.objects.select_for_update().get(id=incident_id)
        action = CorrectiveAction.objects.select_for_update().get(id=action_id)
        return incident, action

    @staticmethod
    def _require_update(actor: Optional[Actor], action: CorrectiveAction, token: Optional[str]) -> EffectiveAccess:
        access = access_for(actor=actor, action=action, token=token)
        if not policy.can_update_corrective_action(actor, action.assigned_to or [], grant_roles(access)):
            logger.warning(
                "denied update on corrective action %s for actor=%s via=%s",
                action.id,
                getattr(actor, "user_id", None),
                access.via,
            )
            raise AuthorizationError("You cannot update this corrective action.")
        if action.status != ActionStatus.OPEN:
            raise ConflictError("Corrective action is closed.", details={"status": action.status})
        return access

    @staticmethod
    @transaction.atomic
    def create(
        *,
        actor: Actor,
        incident_id: UUID,
        title: str,
        checklist: Iterable[Any],
        description: str = "",
        due_date: Optional[date] = None,
        assigned_to: Optional[Iterable[Any]] = None,
    ) -> CorrectiveAction:
        if not policy.can_create_corrective_action(actor):
            raise AuthorizationError("Only QI staff can create corrective actions.")

        title = (title or "").strip()
        if not title:
            raise ValidationError("title is required.", details={"fields": ["title"]})
        items = normalize_checklist(checklist)

        incident = Incident.objects.select_for_update().filter(id=incident_id).first()
        if incident is None or not policy.can_view_incident(actor, incident.reporter_id, incident.status):
            raise NotFoundError("Incident not found.")
        if incident.status not in CREATABLE_STATUSES:
            raise ConflictError(
                f"Cannot add corrective action to incident in status '{incident.status}'",
                details={"status": incident.status, "expected": sorted(CREATABLE_STATUSES)},
            )

        action = CorrectiveAction.objects.create(
            incident=incident,
            title=title,
            description=(description or "").strip(),
            due_date=due_date,
            assigned_to=_assignees(assigned_to, actor.user_id),
            checklist=items,
            created_by_id=actor.user_id,
        )

        AuditService.log(
            event_code="corrective_action.created",
            entity_type=ENTITY,
            entity_id=action.id,
            actor_user_id=actor.user_id,
            metadata={"incident_id": str(incident.id), "assigned_to": action.assigned_to},
        )
        publish_on_commit(
            "corrective_action.created",
            {
                "action_id": str(action.id),
                "incident_id": str(incident.id),
                "reference_number": incident.reference_number,
                "assigned_to": action.assigned_to,
                "actor_user_id": actor.user_id,
            },
        )
        logger.info("corrective action %s opened on %s", action.id, incident.reference_number)
        return action

    @staticmethod
    @transaction.atomic
    def update(
        *,
        actor: Optional[Actor],
        action_id: UUID,
        data: Dict[str, Any],
        token: Optional[str] = None,
    ) -> CorrectiveAction:
        unknown = sorted(set(data) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(unknown)}", details={"fields": unknown})

        _, action = CorrectiveActionService._lock(action_id)
        access = CorrectiveActionService._require_update(actor, action, token)

        fields = dict(data)
        if "checklist" in fields:
            fields["checklist"] = normalize_checklist(fields["checklist"])
        for key in ("action_taken", "description"):
            if key in fields:
                fields[key] = (fields[key] or "").strip()

        if not fields:
            return action

        for field, value in fields.items():
            setattr(action, field, value)
        action.save(update_fields=[*fields.keys(), "updated_at"])

        AuditService.log(
            event_code="corrective_action.updated",
            entity_type=ENTITY,
            entity_id=action.id,
            actor_user_id=getattr(actor, "user_id", None),
            metadata={"fields": sorted(fields), "via": list(access.via)},
        )
        return action

    @staticmethod
    @transaction.atomic
    def toggle_checklist(
        *,
        actor: Optional[Actor],
        action_id: UUID,
        index: int,
        completed: Optional[bool] = None,
        token: Optional[str] = None,
    ) -> CorrectiveAction:
        _, action = CorrectiveActionService._lock(action_id)
        access = CorrectiveActionService._require_update(actor, action, token)

        action.checklist = toggle_item(action.checklist or [], index, at=timezone.now(), completed=completed)
        action.save(update_fields=["checklist", "updated_at"])
        done = is_complete(action.checklist)

        AuditService.log(
            event_code="corrective_action.checklist_toggled",
            entity_type=ENTITY,
            entity_id=action.id,
            actor_user_id=getattr(actor, "user_id", None),
            metadata={
                "index": index,
                "completed": action.checklist[index]["completed"],
                "checklist_complete": done,
                "via": list(access.via),
            },
        )
        if done:
            logger.info("checklist complete on corrective action %s", action.id)
        return action

    @staticmethod
    @transaction.atomic
    def close(*, actor: Actor, action_id: UUID, action_taken: Optional[str] = None) -> CorrectiveAction:
        if not policy.can_close_corrective_action(actor):
            raise AuthorizationError("Only QI staff can close corrective actions.")

        incident, action = CorrectiveActionService._lock(action_id)
        if action.status != ActionStatus.OPEN:
            raise ConflictError("Corrective action is already closed.", details={"status": action.status})

        action.status = ActionStatus.CLOSED
        action.closed_by_id = actor.user_id
        action.closed_at = timezone.now()
        fields = ["status", "closed_by", "closed_at", "updated_at"]
        if action_taken is not None and action_taken.strip():
            action.action_taken = action_taken.strip()
            fields.append("action_taken")
        action.save(update_fields=fields)

        AuditService.log(
            event_code="corrective_action.closed",
            entity_type=ENTITY,
            entity_id=action.id,
            actor_user_id=actor.user_id,
            metadata={"incident_id": str(incident.id)},
        )
        publish_on_commit(
            "corrective_action.closed",
            {
                "action_id": str(action.id),
                "incident_id": str(incident.id),
                "reference_number": incident.reference_number,
                "actor_user_id": actor.user_id,
            },
        )
        logger.info("corrective action %s closed on %s", action.id, incident.reference_number)
        return action
