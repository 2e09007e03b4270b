# ovr_core/audit/models.py
from django.conf import settings
from django.db import models
from ovr_core.common.models import UUIDModel


class AuditEvent(UUIDModel):
    """
    Immutable audit record.
    Every workflow state change writes one inside the same transaction,
    so this is the ground-truth timeline of an incident.
    """
    event_code = models.CharField(max_length=128, db_index=True)  # e.g. "incident.closed"
    entity_type = models.CharField(max_length=128, db_index=True)  # e.g. "Incident"
    entity_id = models.UUIDField(db_index=True)

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="audit_events",
        null=True,
        blank=True,
    )

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["entity_type", "entity_id"]),
            models.Index(fields=["event_code", "occurred_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.event_code} {self.entity_type}:{self.entity_id}"
