from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, TypedDict

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F, QuerySet
from django.utils import timezone

from apps.audit.services import AuditContext, AuditEventData, AuditService
from apps.common.constants import AGENT_PERFORMANCE_MAX_RETRIES, MINUTES_PER_DAY
from apps.common.types import ConcurrencyConflict, Err, Ok, Result, ServiceError
from apps.common.utils import from_cents, to_cents
from apps.common.validators import normalize_kenyan_phone, parse_positive_amount
from apps.orders.models import InvalidStatusTransition, Order
from apps.orders.services import OrderQueryService
from apps.users.models import User

from .models import DeliveryAgent, DeliveryOutcome, DeliveryZone, OrderDelivery

"""
Delivery services for Duka
Agent onboarding and availability, order assignment, courier status
updates with performance tracking, and zone pricing.
"""

logger = logging.getLogger(__name__)

AGENT_DELIVERY_STATUSES = ('picked_up', 'in_transit', 'delivered', 'failed')
ADMIN_AGENT_STATUSES = ('active', 'inactive', 'suspended', 'rejected')

# ===============================================================================
# PARAMETER OBJECTS
# ===============================================================================

class AgentFilters(TypedDict, total=False):
    status: str
    zone: str
    available: bool


@dataclass
class AgentApplicationData:
    national_id: str
    phone: str
    emergency_contact: dict[str, Any]
    vehicle: dict[str, Any]
    alternative_phone: str = ''
    mpesa_number: str = ''
    address: dict[str, Any] = field(default_factory=dict)
    bank_details: dict[str, Any] = field(default_factory=dict)
    zone_ids: list[Any] = field(default_factory=list)


@dataclass
class ZoneData:
    """Zone create/update payload; `provided_fields` scopes a partial update"""
    name: str | None = None
    code: str | None = None
    description: str | None = None
    county: str | None = None
    areas: list[dict[str, Any]] | None = None
    delivery_fee: Decimal | None = None
    free_delivery_threshold: Decimal | None = None
    min_delivery_days: int | None = None
    max_delivery_days: int | None = None
    is_active: bool | None = None
    priority: int | None = None
    restrictions: dict[str, Any] | None = None
    provided_fields: frozenset[str] = frozenset()


@dataclass(frozen=True)
class DeliveryFeeQuote:
    zone: DeliveryZone
    fee_cents: int

    @property
    def fee(self) -> Decimal:
        return from_cents(self.fee_cents)


def _is_uuid(value: Any) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True

# ===============================================================================
# DELIVERY SERVICE
# ===============================================================================

class DeliveryService:
    """Order assignment and courier status updates"""

    @staticmethod
    def get_agent_for_user(user: User) -> Result[DeliveryAgent, ServiceError]:
        agent = DeliveryAgent.objects.live().filter(user=user).first()
        if agent is None:
            return Err(ServiceError.not_found("Delivery agent profile not found"))
        return Ok(agent)

    @staticmethod
    def assign(
        admin: User,
        order_id: Any,
        agent_id: Any,
        instructions: str = '',
        context: AuditContext | None = None,
    ) -> Result[OrderDelivery, ServiceError]:
        """
        Put an order in an agent's hands and move it to processing.

        An existing assignment (e.g. after a failed attempt) is replaced in
        place; the order must be able to enter `processing` from where it is.
        """
        order = OrderQueryService.get_order(order_id)
        if order is None:
            return Err(ServiceError.not_found("Order not found"))

        agent = DeliveryAgent.objects.live().filter(pk=agent_id).first() if _is_uuid(agent_id) else None
        if agent is None:
            return Err(ServiceError.not_found("Delivery agent not found"))
        if agent.status != 'active':
            return Err(ServiceError.validation("Agent is not active"))
        if not agent.is_available:
            return Err(ServiceError.validation("Agent is not available"))

        postal_code = (order.shipping_address or {}).get('postal_code')
        zone = DeliveryZone.find_by_postal_code(postal_code) or agent.zones.filter(is_active=True).first()

        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(pk=order.pk)
                now = timezone.now()
                delivery, _created = OrderDelivery.objects.update_or_create(
                    order=order,
                    defaults={
                        'agent': agent,
                        'zone': zone,
                        'status': 'assigned',
                        'assigned_at': now,
                        'picked_up_at': None,
                        'delivered_at': None,
                        'failed_at': None,
                        'last_update': now,
                        'current_location': {},
                        'instructions': instructions,
                    },
                )
                order.update_status('processing', f"Assigned to delivery agent {agent.agent_id}", admin)

                AuditService.log_event(
                    AuditEventData(
                        action='delivery_assign',
                        resource='delivery',
                        resource_id=str(order.pk),
                        details={
                            'order_number': order.order_number,
                            'agent_id': agent.agent_id,
                            'zone': zone.code if zone else None,
                        },
                    ),
                    context or AuditContext(user=admin),
                )
        except InvalidStatusTransition as e:
            return Err(ServiceError.validation(str(e)))

        logger.info(f"🚚 [Delivery] {order.order_number} assigned to {agent.agent_id}")
        return Ok(delivery)

    @staticmethod
    def update_delivery_status(
        agent_user: User,
        order_id: Any,
        status: str,
        note: str = '',
        location: dict[str, Any] | None = None,
        context: AuditContext | None = None,
    ) -> Result[OrderDelivery, ServiceError]:
        """
        Courier progress report, mirrored onto the order status.

        picked_up/in_transit → shipped, delivered → delivered,
        failed → delivery_failed. The first time a delivery finishes the
        agent's performance counters are updated in the same transaction.
        """
        agent_result = DeliveryService.get_agent_for_user(agent_user)
        if agent_result.is_err():
            return agent_result
        agent = agent_result.unwrap()

        order = OrderQueryService.get_order(order_id)
        if order is None:
            return Err(ServiceError.not_found("Order not found"))

        delivery = OrderDelivery.objects.filter(order=order).select_related('zone').first()
        if delivery is None or delivery.agent_id != agent.pk:
            return Err(ServiceError.forbidden("Not authorized to update this delivery"))

        if status not in AGENT_DELIVERY_STATUSES:
            return Err(ServiceError.validation("Invalid delivery status"))

        new_order_status = OrderDelivery.ORDER_STATUS_MAP[status]

        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(pk=order.pk)
                delivery = OrderDelivery.objects.select_for_update().select_related('zone').get(pk=delivery.pk)
                old_order_status = order.status
                was_finished = delivery.is_finished

                order.update_status(new_order_status, note, agent_user)

                now = timezone.now()
                delivery.status = status
                delivery.last_update = now
                if location:
                    delivery.current_location = location
                if status == 'picked_up' and delivery.picked_up_at is None:
                    delivery.picked_up_at = now
                elif status == 'delivered':
                    delivery.delivered_at = now
                elif status == 'failed':
                    delivery.failed_at = now
                delivery.save()

                if status in OrderDelivery.TERMINAL_STATUSES and not was_finished:
                    DeliveryService.record_performance(agent, DeliveryService._outcome_for(delivery, agent))

                AuditService.log_event(
                    AuditEventData(
                        action='delivery_status_update',
                        resource='delivery',
                        resource_id=str(order.pk),
                        details={
                            'agent_id': agent.agent_id,
                            'order_number': order.order_number,
                            'old_status': old_order_status,
                            'new_status': new_order_status,
                            'delivery_status': status,
                            'note': note,
                            'location': location,
                        },
                    ),
                    context or AuditContext(user=agent_user),
                )
        except InvalidStatusTransition as e:
            return Err(ServiceError.validation(str(e)))
        except ConcurrencyConflict:
            return Err(ServiceError.conflict("Agent performance is busy, please retry"))

        logger.info(f"📍 [Delivery] {order.order_number} → {status} by {agent.agent_id}")
        return Ok(delivery)

    @staticmethod
    def _outcome_for(delivery: OrderDelivery, agent: DeliveryAgent) -> DeliveryOutcome:
        if delivery.status != 'delivered':
            return DeliveryOutcome(is_successful=False, is_on_time=False)

        started_at = delivery.picked_up_at or delivery.assigned_at
        minutes = round((delivery.delivered_at - started_at).total_seconds() / 60)

        zone = delivery.zone or agent.zones.order_by('priority').first()
        max_days = zone.max_delivery_days if zone else settings.DELIVERY_DEFAULT_MAX_DAYS
        return DeliveryOutcome(
            is_successful=True,
            is_on_time=minutes <= max_days * MINUTES_PER_DAY,
            delivery_minutes=minutes,
        )

    @staticmethod
    def record_performance(agent: DeliveryAgent, outcome: DeliveryOutcome) -> DeliveryAgent:
        """
        Fold one outcome into the agent's running counters.

        Compare-and-set on `version`; raises ConcurrencyConflict when every
        attempt loses the race so the caller's transaction rolls back.
        """
        for attempt in range(1, AGENT_PERFORMANCE_MAX_RETRIES + 1):
            current = DeliveryAgent.objects.get(pk=agent.pk)
            values = current.performance_after(outcome)
            updated = DeliveryAgent.objects.filter(pk=agent.pk, version=current.version).update(
                **values,
                version=F('version') + 1,
                updated_at=timezone.now(),
            )
            if updated:
                current.refresh_from_db()
                return current

            logger.warning(f"⚠️ [Delivery] Version conflict on {current.agent_id} performance (attempt {attempt})")

        raise ConcurrencyConflict(f"Could not update performance for agent {agent.agent_id}")

# ===============================================================================
# AGENT SERVICE
# ===============================================================================

class AgentService:
    """Agent self-service and administration"""

    @staticmethod
    def apply(
        user: User, data: AgentApplicationData, context: AuditContext | None = None
    ) -> Result[DeliveryAgent, ServiceError]:
        if DeliveryAgent.objects.filter(user=user).exists():
            return Err(ServiceError.validation("You already have a delivery agent application"))

        if not data.national_id:
            return Err(ServiceError.validation("National ID is required"))
        if DeliveryAgent.objects.filter(national_id=data.national_id).exists():
            return Err(ServiceError.validation("National ID is already registered"))

        phones: dict[str, str] = {}
        for name in ('phone', 'alternative_phone', 'mpesa_number'):
            raw = getattr(data, name)
            if not raw:
                continue
            normalized = normalize_kenyan_phone(raw)
            if normalized.is_err():
                return Err(ServiceError.validation(normalized.unwrap_err()))
            phones[name] = normalized.unwrap()
        if 'phone' not in phones:
            return Err(ServiceError.validation("Phone number is required"))

        zone_ids = [zone_id for zone_id in data.zone_ids if _is_uuid(zone_id)]
        zones = list(DeliveryZone.objects.filter(pk__in=zone_ids, is_active=True))
        if len(zone_ids) != len(data.zone_ids) or len(zones) != len(set(zone_ids)):
            return Err(ServiceError.validation("One or more selected zones are invalid"))

        try:
            with transaction.atomic():
                agent = DeliveryAgent.objects.create(
                    user=user,
                    national_id=data.national_id,
                    phone=phones['phone'],
                    alternative_phone=phones.get('alternative_phone', ''),
                    mpesa_number=phones.get('mpesa_number', phones['phone']),
                    address=data.address,
                    emergency_contact=data.emergency_contact,
                    vehicle=data.vehicle,
                    bank_details=data.bank_details,
                    status='pending_approval',
                )
                agent.zones.set(zones)

                AuditService.log_event(
                    AuditEventData(
                        action='agent_application',
                        resource='delivery_agent',
                        resource_id=str(agent.pk),
                        details={
                            'agent_id': agent.agent_id,
                            'zones': [zone.code for zone in zones],
                            'vehicle_type': data.vehicle.get('type'),
                        },
                    ),
                    context or AuditContext(user=user),
                )
        except IntegrityError:
            return Err(ServiceError.validation("National ID is already registered"))

        logger.info(f"📝 [Delivery] {user.email} applied as agent {agent.agent_id}")
        return Ok(agent)

    @staticmethod
    def set_availability(user: User, is_available: bool) -> Result[DeliveryAgent, ServiceError]:
        agent_result = DeliveryService.get_agent_for_user(user)
        if agent_result.is_err():
            return agent_result
        agent = agent_result.unwrap()

        if agent.status != 'active':
            return Err(ServiceError.validation("Agent account is not active"))

        agent.is_available = bool(is_available)
        agent.last_seen = timezone.now()
        agent.save(update_fields=['is_available', 'last_seen', 'updated_at'])
        return Ok(agent)

    @staticmethod
    def deliveries(user: User, status: str | None = None) -> Result[QuerySet[Order], ServiceError]:
        """Orders assigned to the calling agent, newest first"""
        agent_result = DeliveryService.get_agent_for_user(user)
        if agent_result.is_err():
            return agent_result

        queryset = (
            Order.objects.live()
            .filter(delivery__agent=agent_result.unwrap())
            .select_related('user', 'delivery')
            .order_by('-created_at')
        )
        if status:
            queryset = queryset.filter(status=status)
        return Ok(queryset)

    @staticmethod
    def list_agents(filters: AgentFilters | None = None) -> QuerySet[DeliveryAgent]:
        filters = filters or {}
        queryset = DeliveryAgent.objects.live().select_related('user').prefetch_related('zones')

        if status := filters.get('status'):
            queryset = queryset.filter(status=status)
        if (zone := filters.get('zone')) and _is_uuid(zone):
            queryset = queryset.filter(zones=zone)
        if filters.get('available') is not None:
            queryset = queryset.filter(is_available=filters['available'])
        return queryset.order_by('-created_at')

    @staticmethod
    def set_agent_status(
        admin: User,
        agent_id: Any,
        status: str,
        rejection_reason: str = '',
        context: AuditContext | None = None,
    ) -> Result[DeliveryAgent, ServiceError]:
        if status not in ADMIN_AGENT_STATUSES:
            return Err(ServiceError.validation("Invalid status"))

        agent = DeliveryAgent.objects.live().filter(pk=agent_id).first() if _is_uuid(agent_id) else None
        if agent is None:
            return Err(ServiceError.not_found("Delivery agent not found"))

        old_status = agent.status
        agent.status = status
        if status == 'active':
            agent.approved_by = admin
            agent.approved_at = timezone.now()
        elif status == 'rejected':
            agent.rejection_reason = rejection_reason or ''

        with transaction.atomic():
            # Performance counters and version belong to record_performance
            agent.save(update_fields=['status', 'approved_by', 'approved_at', 'rejection_reason', 'updated_at'])
            AuditService.log_event(
                AuditEventData(
                    action='agent_status_change',
                    resource='delivery_agent',
                    resource_id=str(agent.pk),
                    details={
                        'agent_id': agent.agent_id,
                        'old_status': old_status,
                        'new_status': status,
                        'rejection_reason': rejection_reason,
                    },
                    severity='medium',
                ),
                context or AuditContext(user=admin),
            )

        logger.info(f"👮 [Delivery] Agent {agent.agent_id} {old_status} → {status} by {admin.email}")
        return Ok(agent)

# ===============================================================================
# ZONE SERVICE
# ===============================================================================

class ZoneService:
    """Zone pricing lookups and administration"""

    @staticmethod
    def list_active_zones() -> QuerySet[DeliveryZone]:
        return DeliveryZone.objects.filter(is_active=True).order_by('priority', 'name')

    @staticmethod
    def calculate_fee(
        order_total: Any, zone_code: str | None = None, postal_code: str | None = None
    ) -> Result[DeliveryFeeQuote, ServiceError]:
        zone = None
        if zone_code:
            zone = DeliveryZone.objects.filter(code=zone_code.strip().upper(), is_active=True).first()
        elif postal_code:
            zone = DeliveryZone.find_by_postal_code(postal_code)
        if zone is None:
            return Err(ServiceError.not_found("Delivery zone not found"))

        total_cents = 0
        if order_total not in (None, '', 0):
            parsed = parse_positive_amount(order_total)
            if parsed.is_err():
                return Err(ServiceError.validation(parsed.unwrap_err()))
            total_cents = to_cents(parsed.unwrap())

        return Ok(DeliveryFeeQuote(zone=zone, fee_cents=zone.calculate_fee_cents(total_cents)))

    @staticmethod
    def create_zone(
        admin: User, data: ZoneData, context: AuditContext | None = None
    ) -> Result[DeliveryZone, ServiceError]:
        if not data.code or not data.name:
            return Err(ServiceError.validation("Zone name and code are required"))
        if DeliveryZone.objects.filter(code=data.code.strip().upper()).exists():
            return Err(ServiceError.validation("Zone code already exists"))

        zone = DeliveryZone()
        ZoneService._apply_data(zone, data, creating=True)
        return ZoneService._persist(zone, data, admin, 'zone_create', context)

    @staticmethod
    def update_zone(
        admin: User, zone_id: Any, data: ZoneData, context: AuditContext | None = None
    ) -> Result[DeliveryZone, ServiceError]:
        zone = DeliveryZone.objects.filter(pk=zone_id).first() if _is_uuid(zone_id) else None
        if zone is None:
            return Err(ServiceError.not_found("Delivery zone not found"))

        if 'code' in data.provided_fields and data.code:
            code = data.code.strip().upper()
            if DeliveryZone.objects.filter(code=code).exclude(pk=zone.pk).exists():
                return Err(ServiceError.validation("Zone code already exists"))

        ZoneService._apply_data(zone, data, creating=False)
        return ZoneService._persist(zone, data, admin, 'zone_update', context)

    @staticmethod
    def _apply_data(zone: DeliveryZone, data: ZoneData, creating: bool) -> None:
        for name in ('name', 'code', 'description', 'county', 'areas', 'min_delivery_days',
                     'max_delivery_days', 'is_active', 'priority', 'restrictions'):
            value = getattr(data, name)
            if (creating or name in data.provided_fields) and value is not None:
                setattr(zone, name, value)

        if (creating or 'delivery_fee' in data.provided_fields) and data.delivery_fee is not None:
            zone.delivery_fee_cents = to_cents(data.delivery_fee)
        if (creating or 'free_delivery_threshold' in data.provided_fields) and data.free_delivery_threshold is not None:
            zone.free_delivery_threshold_cents = to_cents(data.free_delivery_threshold)

    @staticmethod
    def _persist(
        zone: DeliveryZone, data: ZoneData, admin: User, action: str, context: AuditContext | None
    ) -> Result[DeliveryZone, ServiceError]:
        if zone.code:
            zone.code = zone.code.strip().upper()

        try:
            with transaction.atomic():
                zone.full_clean()
                zone.save()
                AuditService.log_event(
                    AuditEventData(
                        action=action,
                        resource='delivery_zone',
                        resource_id=str(zone.pk),
                        details={
                            'code': zone.code,
                            'delivery_fee': zone.delivery_fee,
                            'fields': sorted(data.provided_fields),
                        },
                    ),
                    context or AuditContext(user=admin),
                )
        except ValidationError as e:
            return Err(ServiceError.validation("; ".join(e.messages)))
        except IntegrityError:
            return Err(ServiceError.validation("Zone code already exists"))

        logger.info(f"🗺️ [Delivery] Zone {zone.code} {'created' if action == 'zone_create' else 'updated'}")
        return Ok(zone)
