# ovr_core/shared_access/apps.py
from django.apps import AppConfig


class SharedAccessConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ovr_core.shared_access"
