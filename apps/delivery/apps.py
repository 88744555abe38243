"""
Django app configuration for Delivery app
"""

from django.apps import AppConfig


class DeliveryConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.delivery'
    verbose_name = 'Delivery'
