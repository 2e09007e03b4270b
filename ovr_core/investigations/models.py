# ovr_core/investigations/models.py
from django.conf import settings
from django.db import models

from ovr_core.common.models import UUIDModel


class Investigation(UUIDModel):
    """
    Root-cause investigation for an incident in `investigating`.
    At most one per incident; submitting it moves the incident to QI final actions.
    """
    incident = models.OneToOneField(
        "incidents.Incident",
        on_delete=models.CASCADE,
        related_name="investigation",
    )

    # ordered, de-duplicated user ids
    investigators = models.JSONField(default=list, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_investigations",
        null=True,
        blank=True,
    )

    findings = models.TextField(blank=True, default="")
    problems_identified = models.TextField(blank=True, default="")
    cause_classification = models.CharField(max_length=64, blank=True, default="")
    cause_details = models.TextField(blank=True, default="")

    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="submitted_investigations",
        null=True,
        blank=True,
    )
    submitted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "investigations_investigation"

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None

    def __str__(self) -> str:
        return f"Investigation {self.id} ({self.incident_id})"
