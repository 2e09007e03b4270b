# ovr_core/incidents/admin.py
from __future__ import annotations

from django.contrib import admin

from ovr_core.incidents.models import Incident, IncidentComment, IncidentInvestigator, ReferenceSequence


@admin.register(Incident)
class IncidentAdmin(admin.ModelAdmin):
    list_display = (
        "reference_number",
        "status",
        "reporter",
        "occurrence_category",
        "severity_level",
        "submitted_at",
        "closed_at",
        "created_at",
    )
    list_filter = ("status", "severity_level", "person_involved")
    search_fields = ("reference_number", "description", "involved_person_name", "reporter__username")
    readonly_fields = ("reference_number", "created_at", "updated_at")


@admin.register(IncidentInvestigator)
class IncidentInvestigatorAdmin(admin.ModelAdmin):
    list_display = ("incident", "investigator", "status", "submitted_at", "created_at")
    list_filter = ("status",)


@admin.register(IncidentComment)
class IncidentCommentAdmin(admin.ModelAdmin):
    list_display = ("incident", "user", "created_at")
    search_fields = ("incident__reference_number", "comment")


@admin.register(ReferenceSequence)
class ReferenceSequenceAdmin(admin.ModelAdmin):
    list_display = ("year", "month", "last_value")
    ordering = ("-year", "-month")
