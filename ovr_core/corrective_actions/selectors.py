# ovr_core/corrective_actions/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import Q, QuerySet

from ovr_core.common.errors import NotFoundError
from ovr_core.corrective_actions.models import CorrectiveAction
from ovr_core.corrective_actions.services import access_for
from ovr_core.iam import policy
from ovr_core.iam.roles import Actor
from ovr_core.incidents.models import IncidentStatus
from ovr_core.shared_access.access import EffectiveAccess


class CorrectiveActionSelectors:
    """
    Read-only queries for corrective actions.
    QI sees everything; other staff see actions on an incident they name, or
    actions assigned to them.
    """

    @staticmethod
    def list_actions(
        *,
        actor: Actor,
        incident_id: UUID | None = None,
        status: str | None = None,
    ) -> QuerySet[CorrectiveAction]:
        qs = CorrectiveAction.objects.select_related("incident").exclude(incident__status=IncidentStatus.DRAFT)

        if incident_id:
            qs = qs.filter(incident_id=incident_id)
        elif not policy.has_full_resource_access(actor):
            # JSON containment is not portable to SQLite; filter ids in Python
            mine = [a.id for a in qs.only("id", "assigned_to") if actor.user_id in (a.assigned_to or [])]
            qs = qs.filter(Q(id__in=mine) | Q(created_by_id=actor.user_id))

        if status:
            qs = qs.filter(status=status)
        return qs.order_by("due_date", "created_at")

    @staticmethod
    def get_for_caller(
        *,
        actor: Optional[Actor],
        action_id: UUID,
        token: Optional[str] = None,
    ) -> tuple[CorrectiveAction, EffectiveAccess]:
        action = CorrectiveAction.objects.select_related("incident").filter(id=action_id).first()
        if action is None:
            raise NotFoundError("Corrective action not found.")
        return action, access_for(actor=actor, action=action, token=token)
