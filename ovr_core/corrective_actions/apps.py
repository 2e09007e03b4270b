# ovr_core/corrective_actions/apps.py
from django.apps import AppConfig


class CorrectiveActionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ovr_core.corrective_actions"
