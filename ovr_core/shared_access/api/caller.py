# ovr_core/shared_access/api/caller.py
from __future__ import annotations

from typing import Optional, Tuple

from ovr_core.common.errors import AuthenticationError
from ovr_core.iam.roles import Actor, actor_from_user

SHARE_TOKEN_HEADER = "HTTP_X_SHARE_TOKEN"


def share_token_from(request) -> Optional[str]:
    """X-Share-Token header first, then a `token` query/body param."""
    token = request.META.get(SHARE_TOKEN_HEADER) or request.query_params.get("token")
    if not token and isinstance(getattr(request, "data", None), dict):
        token = request.data.get("token")
    return (str(token).strip() or None) if token else None


def caller_from(request) -> Tuple[Optional[Actor], Optional[str]]:
    """
    Session actor and/or share token for token-capable endpoints.
    At least one must be present.
    """
    actor = actor_from_user(getattr(request, "user", None))
    token = share_token_from(request)
    if actor is None and token is None:
        raise AuthenticationError()
    return actor, token
