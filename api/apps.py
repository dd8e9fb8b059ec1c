from django.apps import AppConfig


class ApiConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "api"
    verbose_name = "ELECSTRIKE API"

    def ready(self):
        # invoice-on-delivery and order total hooks
        from . import signals  # noqa: F401
