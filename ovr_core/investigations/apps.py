# ovr_core/investigations/apps.py
from django.apps import AppConfig


class InvestigationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ovr_core.investigations"
