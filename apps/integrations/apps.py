from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class IntegrationsConfig(AppConfig):
    """
    🔌 Inbound gateway callbacks

    Handles:
    - Callback deduplication keyed on the gateway's event id
    - The shared processing pipeline used by payment callbacks
    """
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.integrations'
    verbose_name = _('🔌 Integrations')
