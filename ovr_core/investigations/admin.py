# ovr_core/investigations/admin.py
from __future__ import annotations

from django.contrib import admin

from ovr_core.investigations.models import Investigation


@admin.register(Investigation)
class InvestigationAdmin(admin.ModelAdmin):
    list_display = ("id", "incident", "created_by", "submitted_at", "created_at")
    search_fields = ("incident__reference_number", "findings")
    readonly_fields = ("created_at", "updated_at")
