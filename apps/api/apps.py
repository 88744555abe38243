# ===============================================================================
# DUKA API APP CONFIGURATION 🛠️
# ===============================================================================

from django.apps import AppConfig


class ApiConfig(AppConfig):
    """
    Configuration for Duka's centralized API app.

    REST endpoints for every storefront domain: catalog, cart, orders,
    payments, wallet, delivery and coupons.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.api"
    label = "duka_api"
    verbose_name = "Duka API"
