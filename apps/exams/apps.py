# exams/apps.py

from django.apps import AppConfig


class ExamsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "exams"
    verbose_name = "Exams & Marksheets"

    def ready(self):
        """Connect the marksheet trigger handlers"""
        import exams.signals  # noqa: F401
