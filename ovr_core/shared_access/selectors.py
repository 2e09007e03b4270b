# ovr_core/shared_access/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from ovr_core.common.errors import AuthorizationError, ValidationError
from ovr_core.iam import policy
from ovr_core.iam.roles import Actor
from ovr_core.shared_access.models import ResourceType, SharedAccessGrant


def list_grants(
    *,
    actor: Actor,
    resource_type: str | None = None,
    resource_id: UUID | None = None,
    incident_id: UUID | None = None,
) -> QuerySet[SharedAccessGrant]:
    if not policy.can_manage_shared_access(actor):
        raise AuthorizationError("Only QI staff can manage shared access.")

    qs = SharedAccessGrant.objects.select_related("user", "invited_by", "revoked_by")
    if resource_type:
        if resource_type not in ResourceType.values:
            raise ValidationError("Invalid resource_type.", details={"allowed": list(ResourceType.values)})
        qs = qs.filter(resource_type=resource_type)
    if resource_id:
        qs = qs.filter(resource_id=resource_id)
    if incident_id:
        qs = qs.filter(incident_id=incident_id)
    return qs.order_by("-invited_at")
