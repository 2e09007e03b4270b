# ovr_core/corrective_actions/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from ovr_core.common.api.pagination import paginate
from ovr_core.common.errors import NotFoundError, ValidationError
from ovr_core.common.permissions import CorrectiveActionPermission
from ovr_core.corrective_actions.api.serializers import (
    ChecklistToggleSerializer,
    CorrectiveActionCloseSerializer,
    CorrectiveActionCreateSerializer,
    CorrectiveActionSerializer,
    CorrectiveActionUpdateSerializer,
)
from ovr_core.corrective_actions.models import ActionStatus, CorrectiveAction
from ovr_core.corrective_actions.selectors import CorrectiveActionSelectors
from ovr_core.corrective_actions.services import CorrectiveActionService
from ovr_core.iam.roles import actor_from_user
from ovr_core.shared_access.api.caller import caller_from


def _uuid(value) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError("Corrective action not found.")


class CorrectiveActionViewSet(viewsets.ViewSet):
    """
    Corrective actions. Detail reads, updates and checklist toggles accept a
    session or a shared-access token.
    """
    permission_classes = [CorrectiveActionPermission]
    serializer_class = CorrectiveActionSerializer
    queryset = CorrectiveAction.objects.none()
    share_token_actions = CorrectiveActionPermission.token_actions

    @extend_schema(
        tags=["Corrective Actions"],
        responses={200: CorrectiveActionSerializer(many=True)},
        parameters=[
            OpenApiParameter("incident", OpenApiTypes.UUID, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False,
                             enum=list(ActionStatus.values)),
        ],
    )
    def list(self, request):
        incident_raw = request.query_params.get("incident") or request.query_params.get("incident_id")
        status_q = request.query_params.get("status") or None

        incident_id = None
        if incident_raw:
            try:
                incident_id = UUID(str(incident_raw))
            except ValueError:
                raise ValidationError("Invalid incident (UUID expected).")

        qs = CorrectiveActionSelectors.list_actions(
            actor=actor_from_user(request.user),
            incident_id=incident_id,
            status=status_q,
        )
        return paginate(request, qs, CorrectiveActionSerializer)

    @extend_schema(
        tags=["Corrective Actions"],
        request=CorrectiveActionCreateSerializer,
        responses={201: CorrectiveActionSerializer},
    )
    def create(self, request):
        ser = CorrectiveActionCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        data = ser.validated_data
        obj = CorrectiveActionService.create(
            actor=actor_from_user(request.user),
            incident_id=data["incident_id"],
            title=data["title"],
            description=data["description"],
            due_date=data["due_date"],
            assigned_to=data.get("assigned_to") or None,
            checklist=data["checklist"],
        )
        return Response(CorrectiveActionSerializer(obj).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Corrective Actions"], responses={200: CorrectiveActionSerializer})
    def retrieve(self, request, pk=None):
        actor, token = caller_from(request)
        obj, _ = CorrectiveActionSelectors.get_for_caller(actor=actor, action_id=_uuid(pk), token=token)
        return Response(CorrectiveActionSerializer(obj).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Corrective Actions"],
        request=CorrectiveActionUpdateSerializer,
        responses={200: CorrectiveActionSerializer},
    )
    def partial_update(self, request, pk=None):
        actor, token = caller_from(request)

        ser = CorrectiveActionUpdateSerializer(data=request.data or {}, partial=True)
        ser.is_valid(raise_exception=True)

        obj = CorrectiveActionService.update(
            actor=actor,
            action_id=_uuid(pk),
            data=dict(ser.validated_data),
            token=token,
        )
        return Response(CorrectiveActionSerializer(obj).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Corrective Actions"],
        request=ChecklistToggleSerializer,
        responses={200: CorrectiveActionSerializer},
    )
    @action(detail=True, methods=["post"], url_path="checklist")
    def checklist(self, request, pk=None):
        actor, token = caller_from(request)

        ser = ChecklistToggleSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        obj = CorrectiveActionService.toggle_checklist(
            actor=actor,
            action_id=_uuid(pk),
            index=ser.validated_data["index"],
            completed=ser.validated_data["completed"],
            token=token,
        )
        return Response(CorrectiveActionSerializer(obj).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Corrective Actions"],
        request=CorrectiveActionCloseSerializer,
        responses={200: CorrectiveActionSerializer},
    )
    @action(detail=True, methods=["post"], url_path="close")
    def close(self, request, pk=None):
        ser = CorrectiveActionCloseSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        obj = CorrectiveActionService.close(
            actor=actor_from_user(request.user),
            action_id=_uuid(pk),
            action_taken=ser.validated_data.get("action_taken"),
        )
        return Response(CorrectiveActionSerializer(obj).data, status=status.HTTP_200_OK)
