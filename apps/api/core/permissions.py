# ===============================================================================
# API PERMISSIONS CLASSES 🔐
# ===============================================================================

from typing import Any

from rest_framework import permissions
from rest_framework.request import Request


class IsDeliveryAgent(permissions.BasePermission):
    """Authenticated user with a delivery agent profile"""

    message = "Delivery agent profile not found"

    def has_permission(self, request: Request, view: Any) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.is_delivery_agent)
