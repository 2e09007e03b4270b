# ovr_core/iam/api/me.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ovr_core.iam.api.schema_serializers import MeResponseSerializer
from ovr_core.iam.roles import resolve_roles


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: MeResponseSerializer}, tags=["IAM"])
    def get(self, request):
        """
        Returns user info + the canonical role set used for authorization.
        """
        user = request.user
        return Response(
            {
                "user": {
                    "id": user.id,
                    "username": getattr(user, "username", None),
                    "email": getattr(user, "email", None),
                    "full_name": user.get_full_name() if hasattr(user, "get_full_name") else "",
                    "is_superuser": bool(getattr(user, "is_superuser", False)),
                },
                "roles": sorted(resolve_roles(user)),
            },
            status=status.HTTP_200_OK,
        )
