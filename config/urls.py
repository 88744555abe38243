"""
URL configuration for Duka
All traffic is the JSON API under /api/.
"""

from django.conf import settings
from django.urls import include, path

urlpatterns = [
    path("api/", include("apps.api.urls")),
]

# ===============================================================================
# DEVELOPMENT URLS (Debug toolbar)
# ===============================================================================

if settings.DEBUG and "debug_toolbar" in settings.INSTALLED_APPS:
    import debug_toolbar  # type: ignore[import-untyped]

    urlpatterns = [path("__debug__/", include(debug_toolbar.urls)), *urlpatterns]
