# ovr_core/notifications/apps.py
from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ovr_core.notifications"

    def ready(self):
        # Registers event subscribers
        import ovr_core.notifications.subscribers  # noqa: F401
