"""AI services app configuration"""
from django.apps import AppConfig

from apps.core.locks import LockManager


class AiServicesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.ai_services'
    verbose_name = 'AI Services'

    # One per process; request handlers reach it through the app config.
    lock_manager = None

    def ready(self):
        self.lock_manager = LockManager()
