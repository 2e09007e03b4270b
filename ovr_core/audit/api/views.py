# ovr_core/audit/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets

from ovr_core.audit.api.serializers import AuditEventSerializer
from ovr_core.audit.models import AuditEvent
from ovr_core.audit.selectors import list_audit_events
from ovr_core.common.api.pagination import paginate
from ovr_core.common.errors import ValidationError
from ovr_core.common.permissions import AuditPermission


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    List audit/timeline events.
    """
    permission_classes = [AuditPermission]

    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter("entity_type", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False,
                             description="Filter by entity type (Incident, Investigation, CorrectiveAction, SharedAccessGrant)."),
            OpenApiParameter("entity_id", OpenApiTypes.UUID, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("event_code", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False,
                             description="Filter by event code (e.g. incident.closed)."),
            OpenApiParameter("actor_user_id", OpenApiTypes.INT, OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        entity_id_raw = request.query_params.get("entity_id") or None
        actor_user_raw = request.query_params.get("actor_user_id")

        entity_id = None
        if entity_id_raw:
            try:
                entity_id = UUID(str(entity_id_raw))
            except ValueError:
                raise ValidationError("Invalid entity_id (UUID expected).")

        actor_user_id = None
        if actor_user_raw not in (None, ""):
            try:
                actor_user_id = int(actor_user_raw)
            except ValueError:
                raise ValidationError("Invalid actor_user_id (int expected).")

        qs = list_audit_events(
            entity_type=request.query_params.get("entity_type") or None,
            entity_id=entity_id,
            event_code=request.query_params.get("event_code") or None,
            actor_user_id=actor_user_id,
        )
        return paginate(request, qs, AuditEventSerializer)
