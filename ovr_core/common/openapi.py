# ovr_core/common/openapi.py
from __future__ import annotations

from drf_spectacular.openapi import AutoSchema
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter


class OVRAutoSchema(AutoSchema):
    """
    Global OpenAPI improvements for the OVR API:

    - Documents the optional X-Share-Token header on endpoints that accept
      shared-access tokens in place of a session (views set `share_token_actions`).
    - Documents the optional X-Request-Id correlation header everywhere.
    """

    SHARE_TOKEN_HEADER = OpenApiParameter(
        name="X-Share-Token",
        type=OpenApiTypes.STR,
        location=OpenApiParameter.HEADER,
        required=False,
        description="Shared-access token scoped to this investigation or corrective action.",
    )

    REQUEST_ID_HEADER = OpenApiParameter(
        name="X-Request-Id",
        type=OpenApiTypes.STR,
        location=OpenApiParameter.HEADER,
        required=False,
        description="Optional correlation id, echoed back and included in error envelopes.",
    )

    def _accepts_share_token(self) -> bool:
        view = getattr(self, "view", None)
        if view is None:
            return False
        actions = getattr(view, "share_token_actions", ()) or ()
        return getattr(view, "action", None) in actions

    def get_override_parameters(self):
        params = list(super().get_override_parameters() or [])
        existing = {p.name.lower() for p in params}

        if "x-request-id" not in existing:
            params.append(self.REQUEST_ID_HEADER)

        if self._accepts_share_token() and "x-share-token" not in existing:
            params.append(self.SHARE_TOKEN_HEADER)

        return params
