# ovr_core/shared_access/admin.py
from __future__ import annotations

from django.contrib import admin

from ovr_core.shared_access.models import SharedAccessGrant


@admin.register(SharedAccessGrant)
class SharedAccessGrantAdmin(admin.ModelAdmin):
    list_display = ("email", "role", "resource_type", "resource_id", "status", "token_expires_at", "invited_at")
    list_filter = ("status", "role", "resource_type")
    search_fields = ("email", "resource_id")
    exclude = ("token",)
    readonly_fields = ("invited_at", "accepted_at", "last_accessed_at", "revoked_at", "created_at", "updated_at")

    def has_delete_permission(self, request, obj=None):
        return False
