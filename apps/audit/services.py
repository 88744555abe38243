"""
Audit services for Duka
Centralized audit logging for payments, wallet and delivery operations.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.http import HttpRequest

from apps.common.utils import get_safe_client_ip

from .models import AuditEvent

if TYPE_CHECKING:
    from apps.users.models import User


logger = logging.getLogger(__name__)


class AuditJSONEncoder(json.JSONEncoder):
    """
    JSON encoder for audit details.

    Handles UUIDs, datetimes, Decimals (kept as strings to preserve
    precision) and model instances.
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, uuid.UUID):
            return str(obj)
        elif isinstance(obj, datetime):
            return obj.isoformat()
        elif isinstance(obj, Decimal):
            return str(obj)
        elif hasattr(obj, 'pk'):
            return f"{obj.__class__.__name__}(pk={obj.pk})"
        return super().default(obj)


def serialize_details(details: dict[str, Any]) -> dict[str, Any]:
    """Round-trip details through the encoder so JSONField can store them"""
    if not details:
        return {}

    try:
        return json.loads(json.dumps(details, cls=AuditJSONEncoder, ensure_ascii=False))
    except (TypeError, ValueError) as e:
        logger.error(f"🔥 [Audit] Failed to serialize details: {e}")
        return {'serialization_error': str(e), 'original_keys': list(details.keys())}


@dataclass
class AuditContext:
    """Parameter object for audit event context information"""
    user: User | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    request_id: str | None = None
    actor_type: str = 'user'

    @classmethod
    def from_request(cls, request: HttpRequest, actor_type: str = 'user') -> AuditContext:
        user = request.user if getattr(request, 'user', None) and request.user.is_authenticated else None
        return cls(
            user=user,
            ip_address=get_safe_client_ip(request),
            user_agent=request.META.get('HTTP_USER_AGENT', ''),
            request_id=request.META.get('REQUEST_ID'),
            actor_type=actor_type,
        )


@dataclass
class AuditEventData:
    """Parameter object for audit event data"""
    action: str
    resource: str
    resource_id: str = ''
    details: dict[str, Any] = field(default_factory=dict)
    severity: str = 'low'
    status: str = 'success'
    error_message: str = ''


class AuditService:
    """Centralized audit logging service"""

    @staticmethod
    def log_event(event_data: AuditEventData, context: AuditContext | None = None) -> AuditEvent:
        """
        🔐 Persist an audit event with request context

        Args:
            event_data: AuditEventData describing what happened
            context: AuditContext with user and request details (optional)
        """
        if context is None:
            context = AuditContext()

        try:
            audit_event = AuditEvent.objects.create(
                user=context.user,
                actor_type=context.actor_type,
                action=event_data.action,
                resource=event_data.resource,
                resource_id=str(event_data.resource_id),
                details=serialize_details(event_data.details),
                severity=event_data.severity,
                status=event_data.status,
                error_message=event_data.error_message,
                ip_address=context.ip_address,
                user_agent=context.user_agent or '',
                request_id=context.request_id or str(uuid.uuid4()),
            )

            logger.info(
                f"✅ [Audit] {event_data.action} event logged for user "
                f"{context.user.email if context.user else 'System'} ({event_data.severity}/{event_data.status})"
            )
            return audit_event

        except Exception as e:
            logger.error(f"🔥 [Audit] Failed to log event {event_data.action}: {e}")
            raise
