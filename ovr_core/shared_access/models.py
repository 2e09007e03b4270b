# ovr_core/shared_access/models.py
from django.conf import settings
from django.db import models

from ovr_core.common.models import UUIDModel


class ResourceType(models.TextChoices):
    INVESTIGATION = "investigation", "Investigation"
    CORRECTIVE_ACTION = "corrective_action", "Corrective Action"


class GrantRole(models.TextChoices):
    INVESTIGATOR = "investigator", "Investigator"
    ACTION_HANDLER = "action_handler", "Action Handler"
    VIEWER = "viewer", "Viewer"


class GrantStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    REVOKED = "revoked", "Revoked"


# Roles a grant may carry per resource type.
COMPATIBLE_ROLES = {
    ResourceType.INVESTIGATION: {GrantRole.INVESTIGATOR, GrantRole.VIEWER},
    ResourceType.CORRECTIVE_ACTION: {GrantRole.ACTION_HANDLER, GrantRole.VIEWER},
}


class SharedAccessGrant(UUIDModel):
    """
    Capability token scoped to exactly one (resource_type, resource_id).
    Never deleted: revocation is the only way to end a grant early.
    """
    resource_type = models.CharField(max_length=32, choices=ResourceType.choices)
    resource_id = models.UUIDField(db_index=True)
    incident = models.ForeignKey(
        "incidents.Incident",
        on_delete=models.SET_NULL,
        related_name="shared_access_grants",
        null=True,
        blank=True,
    )

    email = models.EmailField()
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="shared_access_grants",
        null=True,
        blank=True,
    )
    role = models.CharField(max_length=32, choices=GrantRole.choices)

    token = models.CharField(max_length=64, unique=True)
    token_expires_at = models.DateTimeField()

    status = models.CharField(max_length=16, choices=GrantStatus.choices, default=GrantStatus.PENDING)

    invited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="issued_shared_access_grants",
        null=True,
        blank=True,
    )
    invited_at = models.DateTimeField()
    accepted_at = models.DateTimeField(null=True, blank=True)
    last_accessed_at = models.DateTimeField(null=True, blank=True)

    revoked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="revoked_shared_access_grants",
        null=True,
        blank=True,
    )
    revoked_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "shared_access_grant"
        indexes = [
            models.Index(fields=["resource_type", "resource_id"]),
            models.Index(fields=["user", "status"]),
        ]

    def is_usable(self, *, at) -> bool:
        return self.status != GrantStatus.REVOKED and at < self.token_expires_at

    def __str__(self) -> str:
        return f"{self.role}:{self.resource_type}:{self.resource_id} -> {self.email}"
