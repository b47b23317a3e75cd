# core/apps.py

from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
    verbose_name = "Campuses"

    def ready(self):
        """Connect campus signal handlers"""
        import core.signals  # noqa: F401
