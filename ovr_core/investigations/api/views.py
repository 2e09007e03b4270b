# ovr_core/investigations/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from ovr_core.common.api.pagination import paginate
from ovr_core.common.errors import NotFoundError, ValidationError
from ovr_core.common.permissions import InvestigationPermission
from ovr_core.iam.roles import actor_from_user
from ovr_core.investigations.api.serializers import (
    InvestigationAccessSerializer,
    InvestigationCreateSerializer,
    InvestigationSerializer,
    InvestigationSubmitSerializer,
    InvestigationUpdateSerializer,
)
from ovr_core.investigations.models import Investigation
from ovr_core.investigations.selectors import InvestigationSelectors
from ovr_core.investigations.services import InvestigationService
from ovr_core.shared_access.api.caller import caller_from


def _uuid(value) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError("Investigation not found.")


def _with_access(investigation: Investigation, access) -> dict:
    data = dict(InvestigationSerializer(investigation).data)
    data["access"] = InvestigationAccessSerializer(
        {
            "via": list(access.via),
            "roles": sorted(access.roles),
            "can_view": access.can_view,
            "can_update": access.can_update,
            "can_submit": access.can_submit,
        }
    ).data
    return data


class InvestigationViewSet(viewsets.ViewSet):
    """
    Investigations. Detail endpoints accept a session or a shared-access token.
    """
    permission_classes = [InvestigationPermission]
    serializer_class = InvestigationSerializer
    queryset = Investigation.objects.none()
    share_token_actions = InvestigationPermission.token_actions

    @extend_schema(
        tags=["Investigations"],
        responses={200: InvestigationSerializer(many=True)},
        parameters=[
            OpenApiParameter("incident", OpenApiTypes.UUID, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("submitted", OpenApiTypes.BOOL, OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        incident_raw = request.query_params.get("incident") or request.query_params.get("incident_id")
        submitted_raw = request.query_params.get("submitted")

        incident_id = None
        if incident_raw:
            try:
                incident_id = UUID(str(incident_raw))
            except ValueError:
                raise ValidationError("Invalid incident (UUID expected).")

        submitted = None
        if submitted_raw not in (None, ""):
            submitted = submitted_raw in ("1", "true", "True")

        qs = InvestigationSelectors.list_investigations(incident_id=incident_id, submitted=submitted)
        return paginate(request, qs, InvestigationSerializer)

    @extend_schema(tags=["Investigations"], request=InvestigationCreateSerializer, responses={201: InvestigationSerializer})
    def create(self, request):
        ser = InvestigationCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        investigation = InvestigationService.create(
            actor=actor_from_user(request.user),
            incident_id=ser.validated_data["incident_id"],
            investigators=ser.validated_data.get("investigators") or None,
        )
        return Response(InvestigationSerializer(investigation).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Investigations"], responses={200: InvestigationSerializer})
    def retrieve(self, request, pk=None):
        actor, token = caller_from(request)
        investigation, access = InvestigationSelectors.get_for_caller(
            actor=actor,
            investigation_id=_uuid(pk),
            token=token,
        )
        return Response(_with_access(investigation, access), status=status.HTTP_200_OK)

    @extend_schema(tags=["Investigations"], request=InvestigationUpdateSerializer, responses={200: InvestigationSerializer})
    def partial_update(self, request, pk=None):
        actor, token = caller_from(request)

        ser = InvestigationUpdateSerializer(data=request.data or {}, partial=True)
        ser.is_valid(raise_exception=True)

        investigation = InvestigationService.update(
            actor=actor,
            investigation_id=_uuid(pk),
            data=dict(ser.validated_data),
            token=token,
        )
        return Response(InvestigationSerializer(investigation).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Investigations"], request=InvestigationSubmitSerializer, responses={200: InvestigationSerializer})
    @action(detail=True, methods=["post"], url_path="submit")
    def submit(self, request, pk=None):
        actor, token = caller_from(request)

        ser = InvestigationSubmitSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        investigation = InvestigationService.submit(
            actor=actor,
            investigation_id=_uuid(pk),
            data=dict(ser.validated_data),
            token=token,
        )
        return Response(InvestigationSerializer(investigation).data, status=status.HTTP_200_OK)
