# ovr_core/corrective_actions/admin.py
from __future__ import annotations

from django.contrib import admin

from ovr_core.corrective_actions.models import CorrectiveAction


@admin.register(CorrectiveAction)
class CorrectiveActionAdmin(admin.ModelAdmin):
    list_display = ("title", "incident", "status", "due_date", "closed_at", "created_at")
    list_filter = ("status",)
    search_fields = ("title", "incident__reference_number")
    readonly_fields = ("created_at", "updated_at")
