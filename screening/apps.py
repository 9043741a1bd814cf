"""
Screening application configuration.
"""

from django.apps import AppConfig


class ScreeningConfig(AppConfig):
    """Configuration for the screening Django application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "screening"
    verbose_name = "Parcel Screening"

    def ready(self):
        """
        Perform application initialization.

        Imports signal handlers so that edits to word rules invalidate the
        compiled matcher cache.
        """
        from screening import signals  # noqa: F401
