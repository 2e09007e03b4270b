# ovr_core/shared_access/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from ovr_core.shared_access.models import GrantRole, ResourceType, SharedAccessGrant
from ovr_core.shared_access.tokens import redact


class SharedAccessGrantSerializer(serializers.ModelSerializer):
    """Listing shape: the token itself is never echoed back after issuance."""
    token_hint = serializers.SerializerMethodField()
    incident_id = serializers.UUIDField(read_only=True, allow_null=True)
    user_id = serializers.IntegerField(read_only=True, allow_null=True)
    invited_by_id = serializers.IntegerField(read_only=True, allow_null=True)
    revoked_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = SharedAccessGrant
        fields = [
            "id",
            "resource_type",
            "resource_id",
            "incident_id",
            "email",
            "user_id",
            "role",
            "status",
            "token_hint",
            "token_expires_at",
            "invited_by_id",
            "invited_at",
            "accepted_at",
            "last_accessed_at",
            "revoked_by_id",
            "revoked_at",
        ]
        read_only_fields = fields

    def get_token_hint(self, obj) -> str:
        return redact(obj.token)


class IssuedGrantSerializer(SharedAccessGrantSerializer):
    """Issuance shape: includes the token so the invitation link can be delivered."""
    token = serializers.CharField(read_only=True)

    class Meta(SharedAccessGrantSerializer.Meta):
        fields = [*SharedAccessGrantSerializer.Meta.fields, "token"]
        read_only_fields = fields


class GrantInputSerializer(serializers.Serializer):
    resource_type = serializers.ChoiceField(choices=ResourceType.choices)
    resource_id = serializers.UUIDField()
    email = serializers.EmailField()
    role = serializers.ChoiceField(choices=GrantRole.choices)
    token_expires_at = serializers.DateTimeField(required=False, allow_null=True, default=None)


class InvitationSerializer(serializers.Serializer):
    email = serializers.EmailField()
    role = serializers.ChoiceField(choices=GrantRole.choices)


class BulkGrantInputSerializer(serializers.Serializer):
    resource_type = serializers.ChoiceField(choices=ResourceType.choices)
    resource_id = serializers.UUIDField()
    invitations = InvitationSerializer(many=True, allow_empty=False)
    token_expires_at = serializers.DateTimeField(required=False, allow_null=True, default=None)


class AcceptInputSerializer(serializers.Serializer):
    token = serializers.CharField(required=False, allow_blank=True)
