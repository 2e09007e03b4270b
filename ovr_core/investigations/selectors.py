# ovr_core/investigations/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import QuerySet

from ovr_core.common.errors import NotFoundError
from ovr_core.iam.roles import Actor
from ovr_core.investigations.models import Investigation
from ovr_core.investigations.services import access_for
from ovr_core.shared_access.access import EffectiveAccess


class InvestigationSelectors:
    """
    Read-only queries for investigations.
    """

    @staticmethod
    def list_investigations(*, incident_id: UUID | None = None, submitted: bool | None = None) -> QuerySet[Investigation]:
        qs = Investigation.objects.select_related("incident")
        if incident_id:
            qs = qs.filter(incident_id=incident_id)
        if submitted is not None:
            qs = qs.filter(submitted_at__isnull=not submitted)
        return qs.order_by("-created_at")

    @staticmethod
    def get_for_caller(
        *,
        actor: Optional[Actor],
        investigation_id: UUID,
        token: Optional[str] = None,
    ) -> tuple[Investigation, EffectiveAccess]:
        investigation = Investigation.objects.select_related("incident").filter(id=investigation_id).first()
        if investigation is None:
            raise NotFoundError("Investigation not found.")
        return investigation, access_for(actor=actor, investigation=investigation, token=token)
