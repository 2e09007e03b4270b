# ovr_core/investigations/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from ovr_core.investigations.models import Investigation


class InvestigationSerializer(serializers.ModelSerializer):
    incident_id = serializers.UUIDField(read_only=True)
    reference_number = serializers.CharField(source="incident.reference_number", read_only=True)
    created_by_id = serializers.IntegerField(read_only=True, allow_null=True)
    submitted_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Investigation
        fields = [
            "id",
            "incident_id",
            "reference_number",
            "investigators",
            "created_by_id",
            "findings",
            "problems_identified",
            "cause_classification",
            "cause_details",
            "submitted_by_id",
            "submitted_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class InvestigationAccessSerializer(serializers.Serializer):
    via = serializers.ListField(child=serializers.CharField())
    roles = serializers.ListField(child=serializers.CharField())
    can_view = serializers.BooleanField()
    can_update = serializers.BooleanField()
    can_submit = serializers.BooleanField()


class InvestigationCreateSerializer(serializers.Serializer):
    incident_id = serializers.UUIDField()
    investigators = serializers.ListField(child=serializers.IntegerField(), required=False, allow_empty=True)


class InvestigationUpdateSerializer(serializers.Serializer):
    findings = serializers.CharField(required=False, allow_blank=True)
    problems_identified = serializers.CharField(required=False, allow_blank=True)
    cause_classification = serializers.CharField(required=False, allow_blank=True, max_length=64)
    cause_details = serializers.CharField(required=False, allow_blank=True)
    investigators = serializers.ListField(child=serializers.IntegerField(), required=False)


class InvestigationSubmitSerializer(serializers.Serializer):
    findings = serializers.CharField()
    problems_identified = serializers.CharField()
    cause_classification = serializers.CharField(max_length=64)
    cause_details = serializers.CharField()
