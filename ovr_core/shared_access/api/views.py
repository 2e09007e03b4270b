# ovr_core/shared_access/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from ovr_core.common.api.pagination import paginate
from ovr_core.common.errors import AuthenticationError, ValidationError
from ovr_core.common.permissions import SharedAccessPermission
from ovr_core.iam.roles import actor_from_user
from ovr_core.shared_access.api.caller import share_token_from
from ovr_core.shared_access.api.serializers import (
    AcceptInputSerializer,
    BulkGrantInputSerializer,
    GrantInputSerializer,
    IssuedGrantSerializer,
    SharedAccessGrantSerializer,
)
from ovr_core.shared_access.selectors import list_grants
from ovr_core.shared_access.services import SharedAccessService


def _uuid_param(request, *names: str) -> UUID | None:
    for name in names:
        raw = request.query_params.get(name)
        if raw:
            try:
                return UUID(str(raw))
            except ValueError:
                raise ValidationError(f"Invalid {name} (UUID expected).")
    return None


class SharedAccessView(APIView):
    """
    QI management of shared-access grants:
    GET lists, POST issues one grant, PUT issues a batch, DELETE ?id= revokes.
    """
    permission_classes = [SharedAccessPermission]

    @extend_schema(
        tags=["Shared Access"],
        responses={200: SharedAccessGrantSerializer(many=True)},
        parameters=[
            OpenApiParameter("resource_type", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("resource_id", OpenApiTypes.UUID, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("incident", OpenApiTypes.UUID, OpenApiParameter.QUERY, required=False),
        ],
    )
    def get(self, request):
        qs = list_grants(
            actor=actor_from_user(request.user),
            resource_type=request.query_params.get("resource_type") or None,
            resource_id=_uuid_param(request, "resource_id"),
            incident_id=_uuid_param(request, "incident", "incident_id"),
        )
        return paginate(request, qs, SharedAccessGrantSerializer)

    @extend_schema(tags=["Shared Access"], request=GrantInputSerializer, responses={201: IssuedGrantSerializer})
    def post(self, request):
        ser = GrantInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        grant = SharedAccessService.grant(actor=actor_from_user(request.user), **ser.validated_data)
        return Response(IssuedGrantSerializer(grant).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Shared Access"], request=BulkGrantInputSerializer, responses={201: IssuedGrantSerializer(many=True)})
    def put(self, request):
        ser = BulkGrantInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        data = ser.validated_data
        grants = SharedAccessService.grant_bulk(
            actor=actor_from_user(request.user),
            resource_type=data["resource_type"],
            resource_id=data["resource_id"],
            invitations=[dict(i) for i in data["invitations"]],
            token_expires_at=data["token_expires_at"],
        )
        return Response(IssuedGrantSerializer(grants, many=True).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Shared Access"],
        responses={200: SharedAccessGrantSerializer},
        parameters=[OpenApiParameter("id", OpenApiTypes.UUID, OpenApiParameter.QUERY, required=True)],
    )
    def delete(self, request):
        grant_id = _uuid_param(request, "id")
        if grant_id is None:
            raise ValidationError("id is required.", details={"fields": ["id"]})

        grant = SharedAccessService.revoke(actor=actor_from_user(request.user), grant_id=grant_id)
        return Response(SharedAccessGrantSerializer(grant).data, status=status.HTTP_200_OK)


class SharedAccessAcceptView(APIView):
    """
    Accept an invitation by token. Works without a session; when the caller is
    signed in with the invited email, the grant is linked to their account.
    """
    permission_classes = [SharedAccessPermission]
    action = "accept"
    share_token_actions = {"accept"}

    @extend_schema(tags=["Shared Access"], request=AcceptInputSerializer, responses={200: SharedAccessGrantSerializer})
    def post(self, request):
        ser = AcceptInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        token = ser.validated_data.get("token") or share_token_from(request)
        if not token:
            raise AuthenticationError("A shared-access token is required.")

        grant = SharedAccessService.accept(token=token, actor=actor_from_user(request.user))
        return Response(SharedAccessGrantSerializer(grant).data, status=status.HTTP_200_OK)
