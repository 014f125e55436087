from django.apps import AppConfig
from django.conf import settings


class AuthenticationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"

    def ready(self):
        from authentication.core.rbac_log import RbacDecisionLog

        self.rbac_log = RbacDecisionLog(
            max_entries=getattr(settings, 'RBAC_LOG_MAX_ENTRIES', 1000),
            suspicious_threshold=getattr(settings, 'SUSPICIOUS_DENIAL_THRESHOLD', 5),
        )
