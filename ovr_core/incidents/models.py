# ovr_core/incidents/models.py
from django.conf import settings
from django.db import models

from ovr_core.common.models import UUIDModel


class IncidentStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SUBMITTED = "submitted", "Submitted"
    SUPERVISOR_APPROVED = "supervisor_approved", "Supervisor Approved"
    INVESTIGATING = "investigating", "Investigating"
    HOD_ASSIGNED = "hod_assigned", "HOD Assigned"
    QI_FINAL_REVIEW = "qi_final_review", "QI Final Review"
    QI_FINAL_ACTIONS = "qi_final_actions", "QI Final Actions"
    CLOSED = "closed", "Closed"


class PersonInvolved(models.TextChoices):
    PATIENT = "patient", "Patient"
    STAFF = "staff", "Staff"
    VISITOR_WATCHER = "visitor_watcher", "Visitor / Watcher"
    OTHERS = "others", "Others"


class SeverityLevel(models.TextChoices):
    NEAR_MISS = "near_miss", "Near Miss (Level 1)"
    NO_APPARENT_INJURY = "no_apparent_injury", "No Apparent Injury (Level 2)"
    MINOR = "minor", "Minor (Level 3)"
    MAJOR = "major", "Major (Level 4)"


def _user_fk(related_name: str, **kwargs):
    return models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name=related_name,
        null=True,
        blank=True,
        **kwargs,
    )


class ReferenceSequence(models.Model):
    """
    Per (year, month) counter behind OVR-YYYY-MM-NNN reference numbers.
    Locked with SELECT ... FOR UPDATE inside the incident insert transaction.
    """
    year = models.PositiveSmallIntegerField()
    month = models.PositiveSmallIntegerField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "incidents_reference_sequence"
        constraints = [
            models.UniqueConstraint(fields=["year", "month"], name="uq_reference_sequence_year_month"),
        ]

    def __str__(self) -> str:
        return f"{self.year}-{self.month:02d}: {self.last_value}"


class Incident(UUIDModel):
    """
    One occurrence variance report and every workflow-relevant stamp.
    Actor stamps are written exactly once, by the transition that owns them.
    """
    reference_number = models.CharField(max_length=32, unique=True)

    status = models.CharField(
        max_length=32,
        choices=IncidentStatus.choices,
        default=IncidentStatus.DRAFT,
        db_index=True,
    )

    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="reported_incidents",
    )

    # Occurrence
    occurrence_date = models.DateField(null=True, blank=True, db_index=True)
    occurrence_time = models.TimeField(null=True, blank=True)
    location = models.CharField(max_length=255, blank=True, default="")
    occurrence_category = models.CharField(max_length=128, blank=True, default="", db_index=True)
    occurrence_subcategory = models.CharField(max_length=128, blank=True, default="")

    # Person involved
    person_involved = models.CharField(max_length=32, choices=PersonInvolved.choices, blank=True, default="")
    involved_person_name = models.CharField(max_length=255, blank=True, default="")
    involved_person_mrn = models.CharField(max_length=64, blank=True, default="")

    # Narrative
    description = models.TextField(blank=True, default="")
    witness_account = models.TextField(blank=True, default="")
    medical_assessment = models.TextField(blank=True, default="")
    level_of_harm = models.CharField(max_length=64, blank=True, default="")
    severity_level = models.CharField(max_length=32, choices=SeverityLevel.choices, blank=True, default="")

    # Submission
    submitted_at = models.DateTimeField(null=True, blank=True)

    # Supervisor sign-off
    supervisor = _user_fk("supervised_incidents")
    supervisor_approved_at = models.DateTimeField(null=True, blank=True)
    supervisor_note = models.TextField(blank=True, default="")

    # QI intake
    qi_received_by = _user_fk("qi_received_incidents")
    qi_received_at = models.DateTimeField(null=True, blank=True)
    qi_assigned_by = _user_fk("qi_assigned_incidents")
    qi_assigned_at = models.DateTimeField(null=True, blank=True)
    qi_reviewed_by = _user_fk("qi_reviewed_incidents")
    qi_reviewed_at = models.DateTimeField(null=True, blank=True)
    qi_rejected_by = _user_fk("qi_rejected_incidents")
    qi_rejected_at = models.DateTimeField(null=True, blank=True)
    qi_rejection_reason = models.TextField(blank=True, default="")

    # HOD stage
    department_head = _user_fk("hod_incidents")
    hod_assigned_at = models.DateTimeField(null=True, blank=True)
    hod_submitted_at = models.DateTimeField(null=True, blank=True)
    problems_identified = models.TextField(blank=True, default="")
    cause_classification = models.CharField(max_length=64, blank=True, default="")
    prevention_recommendation = models.TextField(blank=True, default="")

    # QI final assessment
    qi_feedback = models.TextField(blank=True, default="")
    qi_form_complete = models.BooleanField(null=True, blank=True)
    qi_proper_cause_identified = models.BooleanField(null=True, blank=True)
    qi_proper_timeframe = models.BooleanField(null=True, blank=True)
    qi_action_complies_standards = models.BooleanField(null=True, blank=True)
    qi_effective_corrective_action = models.BooleanField(null=True, blank=True)

    # Closure (written only at close)
    case_review = models.TextField(blank=True, default="")
    reporter_feedback = models.TextField(blank=True, default="")
    closed_by = _user_fk("closed_incidents")
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "incidents_incident"
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["reporter", "status"]),
            models.Index(fields=["occurrence_category", "status"]),
        ]

    def __str__(self) -> str:
        return self.reference_number


class InvestigatorStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    SUBMITTED = "submitted", "Submitted"


class IncidentInvestigator(UUIDModel):
    """
    Investigator assigned to an incident by QI/HOD, each submitting their own findings.
    """
    incident = models.ForeignKey(Incident, on_delete=models.CASCADE, related_name="investigator_assignments")
    investigator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="investigator_assignments",
    )
    assigned_by = _user_fk("assigned_investigators")

    status = models.CharField(
        max_length=16,
        choices=InvestigatorStatus.choices,
        default=InvestigatorStatus.PENDING,
    )
    findings = models.TextField(blank=True, default="")
    submitted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "incidents_incident_investigator"
        constraints = [
            models.UniqueConstraint(fields=["incident", "investigator"], name="uq_incident_investigator"),
        ]


class IncidentComment(UUIDModel):
    incident = models.ForeignKey(Incident, on_delete=models.CASCADE, related_name="comments")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="incident_comments")
    comment = models.TextField()

    class Meta:
        db_table = "incidents_incident_comment"
        ordering = ["created_at"]
