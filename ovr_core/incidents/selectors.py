# ovr_core/incidents/selectors.py
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from django.db.models import Count, Q, QuerySet

from ovr_core.common.errors import AuthorizationError, NotFoundError
from ovr_core.iam import policy
from ovr_core.iam.roles import Actor
from ovr_core.incidents.models import Incident, IncidentComment, IncidentStatus

ORDERING_FIELDS = {"created_at", "occurrence_date", "status"}

RECENT_LIMIT = 5


class IncidentSelectors:
    """
    Read-only queries for incidents.
    Drafts are only ever returned to their reporter.
    """

    @staticmethod
    def _base() -> QuerySet[Incident]:
        return Incident.objects.select_related("reporter", "supervisor", "department_head", "closed_by")

    @staticmethod
    def get_for_actor(*, actor: Optional[Actor], incident_id: UUID) -> Incident:
        incident = IncidentSelectors._base().filter(id=incident_id).first()
        if incident is None or not policy.can_view_incident(actor, incident.reporter_id, incident.status):
            raise NotFoundError("Incident not found.")
        return incident

    @staticmethod
    def list_incidents(
        *,
        actor: Actor,
        status: str | None = None,
        category: str | None = None,
        reporter_id: int | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        search: str | None = None,
        mine: bool = False,
        ordering: str | None = None,
    ) -> QuerySet[Incident]:
        qs = IncidentSelectors._base().exclude(status=IncidentStatus.DRAFT)

        if status:
            qs = qs.filter(status=status)
        if category:
            qs = qs.filter(occurrence_category=category)
        if reporter_id:
            qs = qs.filter(reporter_id=reporter_id)
        if mine:
            qs = qs.filter(reporter_id=actor.user_id)
        if date_from:
            qs = qs.filter(occurrence_date__gte=date_from)
        if date_to:
            qs = qs.filter(occurrence_date__lte=date_to)
        if search:
            term = search.strip()
            qs = qs.filter(
                Q(reference_number__icontains=term)
                | Q(description__icontains=term)
                | Q(involved_person_name__icontains=term)
            )

        order = "-created_at"
        if ordering and ordering.lstrip("-") in ORDERING_FIELDS:
            order = ordering
        return qs.order_by(order, "-id")

    @staticmethod
    def list_drafts(*, actor: Actor) -> QuerySet[Incident]:
        return (
            IncidentSelectors._base()
            .filter(status=IncidentStatus.DRAFT, reporter_id=actor.user_id)
            .order_by("-updated_at")
        )

    @staticmethod
    def stats(*, actor: Actor) -> dict:
        if not policy.can_view_stats(actor):
            raise AuthorizationError("You do not have permission to view statistics.")

        qs = Incident.objects.exclude(status=IncidentStatus.DRAFT)

        def _grouped(field: str) -> dict:
            rows = qs.values(field).annotate(n=Count("id")).order_by(field)
            return {(row[field] or "unspecified"): row["n"] for row in rows}

        recent = [
            {
                "id": str(i.id),
                "reference_number": i.reference_number,
                "status": i.status,
                "created_at": i.created_at,
            }
            for i in qs.order_by("-created_at")[:RECENT_LIMIT]
        ]

        return {
            "total": qs.count(),
            "by_status": _grouped("status"),
            "by_severity": _grouped("severity_level"),
            "by_category": _grouped("occurrence_category"),
            "recent": recent,
        }

    @staticmethod
    def comments(*, actor: Optional[Actor], incident_id: UUID) -> QuerySet[IncidentComment]:
        incident = IncidentSelectors.get_for_actor(actor=actor, incident_id=incident_id)
        return IncidentComment.objects.filter(incident=incident).select_related("user").order_by("created_at")
