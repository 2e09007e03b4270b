# ovr_core/incidents/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from ovr_core.incidents.models import (
    Incident,
    IncidentComment,
    IncidentInvestigator,
    PersonInvolved,
    SeverityLevel,
)
from ovr_core.incidents.workflow import allowed_transitions


class UserRefSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField()
    email = serializers.CharField()


class IncidentListSerializer(serializers.ModelSerializer):
    reporter_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Incident
        fields = [
            "id",
            "reference_number",
            "status",
            "reporter_id",
            "occurrence_date",
            "occurrence_category",
            "location",
            "severity_level",
            "submitted_at",
            "created_at",
            "updated_at",
        ]


class IncidentSerializer(serializers.ModelSerializer):
    reporter = UserRefSerializer(read_only=True)
    supervisor_id = serializers.IntegerField(read_only=True, allow_null=True)
    department_head_id = serializers.IntegerField(read_only=True, allow_null=True)
    closed_by_id = serializers.IntegerField(read_only=True, allow_null=True)
    allowed_transitions = serializers.SerializerMethodField()

    class Meta:
        model = Incident
        fields = [
            "id",
            "reference_number",
            "status",
            "allowed_transitions",
            "reporter",
            # occurrence
            "person_involved",
            "involved_person_name",
            "involved_person_mrn",
            "occurrence_date",
            "occurrence_time",
            "location",
            "occurrence_category",
            "occurrence_subcategory",
            "description",
            "witness_account",
            "medical_assessment",
            "level_of_harm",
            "severity_level",
            # workflow stamps
            "submitted_at",
            "supervisor_id",
            "supervisor_approved_at",
            "supervisor_note",
            "qi_received_at",
            "qi_assigned_at",
            "qi_reviewed_at",
            "qi_rejected_at",
            "qi_rejection_reason",
            "department_head_id",
            "hod_assigned_at",
            "hod_submitted_at",
            "problems_identified",
            "cause_classification",
            "prevention_recommendation",
            "qi_feedback",
            "qi_form_complete",
            "qi_proper_cause_identified",
            "qi_proper_timeframe",
            "qi_action_complies_standards",
            "qi_effective_corrective_action",
            "case_review",
            "reporter_feedback",
            "closed_by_id",
            "closed_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_allowed_transitions(self, obj) -> list[str]:
        return allowed_transitions(obj.status)


class IncidentWriteSerializer(serializers.Serializer):
    """
    Content fields a reporter may set on a draft. All optional; completeness is
    enforced at submit.
    """
    person_involved = serializers.ChoiceField(choices=PersonInvolved.choices, required=False, allow_blank=True)
    involved_person_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    involved_person_mrn = serializers.CharField(max_length=64, required=False, allow_blank=True)
    occurrence_date = serializers.DateField(required=False, allow_null=True)
    occurrence_time = serializers.TimeField(required=False, allow_null=True)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    occurrence_category = serializers.CharField(max_length=128, required=False, allow_blank=True)
    occurrence_subcategory = serializers.CharField(max_length=128, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    witness_account = serializers.CharField(required=False, allow_blank=True)
    medical_assessment = serializers.CharField(required=False, allow_blank=True)
    level_of_harm = serializers.CharField(max_length=64, required=False, allow_blank=True)
    severity_level = serializers.ChoiceField(choices=SeverityLevel.choices, required=False, allow_blank=True)


class IncidentCreateSerializer(IncidentWriteSerializer):
    submit = serializers.BooleanField(required=False, default=False)


class QIReviewInputSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=["approve", "reject"])
    rejection_reason = serializers.CharField(required=False, allow_blank=True, default="")


class SupervisorApproveInputSerializer(serializers.Serializer):
    note = serializers.CharField(required=False, allow_blank=True, default="")


class AssignHODInputSerializer(serializers.Serializer):
    department_head_id = serializers.IntegerField()


class HODSubmitInputSerializer(serializers.Serializer):
    problems_identified = serializers.CharField()
    cause_classification = serializers.CharField(max_length=64)
    prevention_recommendation = serializers.CharField()


class AssignInvestigatorInputSerializer(serializers.Serializer):
    investigator_id = serializers.IntegerField()


class InvestigatorFindingsInputSerializer(serializers.Serializer):
    findings = serializers.CharField()


class CloseInputSerializer(serializers.Serializer):
    case_review = serializers.CharField()
    reporter_feedback = serializers.CharField()


class QICloseInputSerializer(serializers.Serializer):
    feedback = serializers.CharField()
    severity_level = serializers.ChoiceField(choices=SeverityLevel.choices)
    form_complete = serializers.BooleanField(required=False, default=False)
    proper_cause_identified = serializers.BooleanField(required=False, default=False)
    proper_timeframe = serializers.BooleanField(required=False, default=False)
    action_complies_standards = serializers.BooleanField(required=False, default=False)
    effective_corrective_action = serializers.BooleanField(required=False, default=False)


class IncidentInvestigatorSerializer(serializers.ModelSerializer):
    investigator_id = serializers.IntegerField(read_only=True)
    assigned_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = IncidentInvestigator
        fields = ["id", "incident", "investigator_id", "assigned_by_id", "status", "findings", "submitted_at", "created_at"]
        read_only_fields = fields


class IncidentCommentSerializer(serializers.ModelSerializer):
    user = UserRefSerializer(read_only=True)

    class Meta:
        model = IncidentComment
        fields = ["id", "incident", "user", "comment", "created_at"]
        read_only_fields = fields


class CommentInputSerializer(serializers.Serializer):
    comment = serializers.CharField(max_length=5000)


class IncidentStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    by_status = serializers.DictField(child=serializers.IntegerField())
    by_severity = serializers.DictField(child=serializers.IntegerField())
    by_category = serializers.DictField(child=serializers.IntegerField())
    recent = serializers.ListField(child=serializers.DictField())
