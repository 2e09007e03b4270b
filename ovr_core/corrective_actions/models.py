# ovr_core/corrective_actions/models.py
from django.conf import settings
from django.db import models

from ovr_core.common.models import UUIDModel


class ActionStatus(models.TextChoices):
    OPEN = "open", "Open"
    CLOSED = "closed", "Closed"


class CorrectiveAction(UUIDModel):
    incident = models.ForeignKey(
        "incidents.Incident",
        on_delete=models.CASCADE,
        related_name="corrective_actions",
    )

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    due_date = models.DateField(null=True, blank=True)

    # user ids; defaults to [creator]
    assigned_to = models.JSONField(default=list, blank=True)

    # [{"item": str, "completed": bool, "completed_at": iso8601 | None}]
    checklist = models.JSONField(default=list, blank=True)

    action_taken = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=16,
        choices=ActionStatus.choices,
        default=ActionStatus.OPEN,
        db_index=True,
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_corrective_actions",
        null=True,
        blank=True,
    )
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="closed_corrective_actions",
        null=True,
        blank=True,
    )
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "corrective_actions_corrective_action"
        indexes = [
            models.Index(fields=["incident", "status"]),
        ]

    def __str__(self) -> str:
        return self.title
