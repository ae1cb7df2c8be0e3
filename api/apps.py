from django.apps import AppConfig


class ApiConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'api'
    verbose_name = 'BantayAni API'

    def ready(self):
        from .realtime import connect_signals
        connect_signals()
