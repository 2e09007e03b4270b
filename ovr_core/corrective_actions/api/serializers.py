# ovr_core/corrective_actions/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from ovr_core.corrective_actions.checklist import progress
from ovr_core.corrective_actions.models import CorrectiveAction


class CorrectiveActionSerializer(serializers.ModelSerializer):
    incident_id = serializers.UUIDField(read_only=True)
    reference_number = serializers.CharField(source="incident.reference_number", read_only=True)
    created_by_id = serializers.IntegerField(read_only=True, allow_null=True)
    closed_by_id = serializers.IntegerField(read_only=True, allow_null=True)
    progress = serializers.SerializerMethodField()

    class Meta:
        model = CorrectiveAction
        fields = [
            "id",
            "incident_id",
            "reference_number",
            "title",
            "description",
            "due_date",
            "assigned_to",
            "checklist",
            "progress",
            "action_taken",
            "status",
            "created_by_id",
            "closed_by_id",
            "closed_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_progress(self, obj) -> dict:
        return progress(obj.checklist)


class CorrectiveActionCreateSerializer(serializers.Serializer):
    incident_id = serializers.UUIDField()
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    due_date = serializers.DateField(required=False, allow_null=True, default=None)
    assigned_to = serializers.ListField(child=serializers.IntegerField(), required=False, allow_empty=True)
    checklist = serializers.ListField(child=serializers.JSONField(), allow_empty=False)


class CorrectiveActionUpdateSerializer(serializers.Serializer):
    action_taken = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    due_date = serializers.DateField(required=False, allow_null=True)
    checklist = serializers.ListField(child=serializers.JSONField(), required=False, allow_empty=False)


class ChecklistToggleSerializer(serializers.Serializer):
    index = serializers.IntegerField(min_value=0)
    completed = serializers.BooleanField(required=False, allow_null=True, default=None)


class CorrectiveActionCloseSerializer(serializers.Serializer):
    action_taken = serializers.CharField(required=False, allow_blank=True)
