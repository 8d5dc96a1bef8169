from django.apps import AppConfig


class AuditsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'src.apps.audits'
    label = 'audits'
    verbose_name = "Audit log"
