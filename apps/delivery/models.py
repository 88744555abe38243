"""
Delivery models for Duka
Priced delivery zones, courier profiles with running performance averages,
and the per-order delivery assignment.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, ClassVar

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.common.constants import AGENT_ID_PREFIX, MAX_AGENT_RATING
from apps.common.models import SoftDeleteModel
from apps.common.utils import from_cents
from apps.common.validators import validate_kenyan_phone

# ===============================================================================
# DELIVERY ZONES
# ===============================================================================

class DeliveryZone(models.Model):
    """
    Geographic pricing and SLA grouping.
    `areas` holds [{"name": ..., "postal_codes": [...]}].
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    code = models.CharField(max_length=20, unique=True, help_text=_("Uppercase zone code, e.g. NBI-CBD"))
    description = models.TextField(blank=True)
    county = models.CharField(max_length=100)
    areas = models.JSONField(default=list, blank=True)

    delivery_fee_cents = models.BigIntegerField(validators=[MinValueValidator(0)])
    free_delivery_threshold_cents = models.BigIntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text=_("Order total at or above which delivery is free; 0 disables free delivery")
    )

    min_delivery_days = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    max_delivery_days = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    is_active = models.BooleanField(default=True)
    priority = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    restrictions = models.JSONField(
        default=dict,
        blank=True,
        help_text=_("max_weight (kg), max_dimensions (cm), prohibited_items")
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'delivery_zones'
        verbose_name = _('Delivery Zone')
        verbose_name_plural = _('Delivery Zones')
        ordering: ClassVar[tuple[str, ...]] = ('priority', 'name')
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['county'], name='zone_county_idx'),
            models.Index(fields=['is_active', 'priority'], name='zone_active_priority_idx'),
        )

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def clean(self) -> None:
        if self.min_delivery_days and self.max_delivery_days and self.max_delivery_days < self.min_delivery_days:
            raise ValidationError({'max_delivery_days': _("Maximum delivery days cannot be less than minimum")})

    @property
    def delivery_fee(self) -> Decimal:
        return from_cents(self.delivery_fee_cents)

    @property
    def free_delivery_threshold(self) -> Decimal:
        return from_cents(self.free_delivery_threshold_cents)

    @property
    def delivery_time_range(self) -> str:
        if self.min_delivery_days == self.max_delivery_days:
            return f"{self.min_delivery_days} day{'s' if self.min_delivery_days > 1 else ''}"
        return f"{self.min_delivery_days}-{self.max_delivery_days} days"

    def calculate_fee_cents(self, order_total_cents: int) -> int:
        if self.free_delivery_threshold_cents and order_total_cents >= self.free_delivery_threshold_cents:
            return 0
        return self.delivery_fee_cents

    def covers_postal_code(self, postal_code: str) -> bool:
        postal_code = str(postal_code).strip()
        return any(
            postal_code in [str(code).strip() for code in (area.get('postal_codes') or [])]
            for area in (self.areas or [])
            if isinstance(area, dict)
        )

    @classmethod
    def find_by_postal_code(cls, postal_code: str | None) -> DeliveryZone | None:
        """Highest-priority active zone listing the postal code"""
        if not postal_code:
            return None
        return next(
            (zone for zone in cls.objects.filter(is_active=True) if zone.covers_postal_code(postal_code)),
            None,
        )

# ===============================================================================
# DELIVERY AGENTS
# ===============================================================================

@dataclass(frozen=True)
class DeliveryOutcome:
    """One finished delivery as it feeds the agent's performance counters"""
    is_successful: bool
    is_on_time: bool
    delivery_minutes: int | None = None


class DeliveryAgent(SoftDeleteModel):
    """
    Courier profile attached to a user account.

    Performance counters are running averages; they are written with a
    compare-and-set on `version` so concurrent completions never lose an
    update.
    """

    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('pending_approval', _('Pending Approval')),
        ('active', _('Active')),
        ('inactive', _('Inactive')),
        ('suspended', _('Suspended')),
        ('rejected', _('Rejected')),
    )

    VEHICLE_TYPES: ClassVar[tuple[str, ...]] = ('motorcycle', 'bicycle', 'car', 'van', 'truck', 'on_foot')

    WEEKDAYS: ClassVar[tuple[str, ...]] = (
        'monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday',
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField('users.User', on_delete=models.CASCADE, related_name='delivery_agent')
    agent_id = models.CharField(max_length=20, unique=True, help_text=_("Public agent reference, e.g. DA123456001"))
    national_id = models.CharField(max_length=20, unique=True)

    phone = models.CharField(max_length=20, validators=[validate_kenyan_phone])
    alternative_phone = models.CharField(max_length=20, blank=True, validators=[validate_kenyan_phone])
    mpesa_number = models.CharField(max_length=20, blank=True, validators=[validate_kenyan_phone])

    address = models.JSONField(default=dict, blank=True)
    emergency_contact = models.JSONField(default=dict, help_text=_("name, phone, relationship"))
    vehicle = models.JSONField(default=dict, help_text=_("type, registration_number, model, year"))
    bank_details = models.JSONField(default=dict, blank=True)

    zones = models.ManyToManyField(DeliveryZone, blank=True, related_name='agents')

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending_approval')

    # Availability
    is_available = models.BooleanField(default=True)
    working_hours_start = models.CharField(max_length=5, default='08:00')
    working_hours_end = models.CharField(max_length=5, default='18:00')
    working_days = models.JSONField(default=list, blank=True)
    last_seen = models.DateTimeField(null=True, blank=True)

    # Performance
    total_deliveries = models.PositiveIntegerField(default=0)
    successful_deliveries = models.PositiveIntegerField(default=0)
    on_time_deliveries = models.PositiveIntegerField(default=0)
    average_rating = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        default=Decimal('0'),
        validators=[MinValueValidator(0), MaxValueValidator(MAX_AGENT_RATING)]
    )
    total_ratings = models.PositiveIntegerField(default=0)
    average_delivery_minutes = models.FloatField(null=True, blank=True)

    # Approval
    approved_by = models.ForeignKey(
        'users.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_agents'
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'delivery_agents'
        verbose_name = _('Delivery Agent')
        verbose_name_plural = _('Delivery Agents')
        ordering: ClassVar[tuple[str, ...]] = ('-created_at',)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['status', 'is_available'], name='agent_status_available_idx'),
        )

    def __str__(self) -> str:
        return f"{self.agent_id} ({self.full_name})"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.agent_id:
            self.agent_id = self.generate_agent_id()
        super().save(*args, **kwargs)

    @staticmethod
    def generate_agent_id() -> str:
        """DA<last 6 digits of epoch ms><sequence:03d>"""
        sequence = DeliveryAgent.objects.count() + 1
        return f"{AGENT_ID_PREFIX}{str(int(time.time() * 1000))[-6:]}{sequence:03d}"

    @property
    def full_name(self) -> str:
        return self.user.full_name if self.user_id else ''

    @property
    def success_rate(self) -> int:
        if not self.total_deliveries:
            return 0
        return round(self.successful_deliveries / self.total_deliveries * 100)

    @property
    def on_time_rate(self) -> int:
        if not self.total_deliveries:
            return 0
        return round(self.on_time_deliveries / self.total_deliveries * 100)

    def performance_after(self, outcome: DeliveryOutcome) -> dict[str, Any]:
        """
        Counter values after recording `outcome`.

        Averages use new_avg = (old_avg * (n - 1) + value) / n, where n
        counts the successful deliveries the average covers.
        """
        values: dict[str, Any] = {
            'total_deliveries': self.total_deliveries + 1,
            'successful_deliveries': self.successful_deliveries + (1 if outcome.is_successful else 0),
            'on_time_deliveries': self.on_time_deliveries + (1 if outcome.is_on_time else 0),
        }

        if outcome.is_successful and outcome.delivery_minutes is not None:
            n = values['successful_deliveries']
            previous = self.average_delivery_minutes or 0.0
            values['average_delivery_minutes'] = (previous * (n - 1) + outcome.delivery_minutes) / n

        return values

# ===============================================================================
# ORDER DELIVERY
# ===============================================================================

class OrderDelivery(models.Model):
    """Delivery assignment for one order; reassigned in place after a failure"""

    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('assigned', _('Assigned')),
        ('picked_up', _('Picked Up')),
        ('in_transit', _('In Transit')),
        ('delivered', _('Delivered')),
        ('failed', _('Failed')),
    )

    # Agent vocabulary onto order statuses
    ORDER_STATUS_MAP: ClassVar[dict[str, str]] = {
        'picked_up': 'shipped',
        'in_transit': 'shipped',
        'delivered': 'delivered',
        'failed': 'delivery_failed',
    }

    TERMINAL_STATUSES: ClassVar[tuple[str, ...]] = ('delivered', 'failed')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.OneToOneField('orders.Order', on_delete=models.CASCADE, related_name='delivery')
    agent = models.ForeignKey(DeliveryAgent, on_delete=models.PROTECT, related_name='deliveries')
    zone = models.ForeignKey(DeliveryZone, on_delete=models.SET_NULL, null=True, blank=True, related_name='deliveries')

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='assigned')

    assigned_at = models.DateTimeField()
    picked_up_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    last_update = models.DateTimeField(null=True, blank=True)

    current_location = models.JSONField(default=dict, blank=True)
    instructions = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'order_deliveries'
        verbose_name = _('Order Delivery')
        verbose_name_plural = _('Order Deliveries')
        ordering: ClassVar[tuple[str, ...]] = ('-assigned_at',)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['agent', 'status'], name='delivery_agent_status_idx'),
        )

    def __str__(self) -> str:
        return f"{self.order.order_number} → {self.agent.agent_id} ({self.status})"

    @property
    def is_finished(self) -> bool:
        return self.status in self.TERMINAL_STATUSES
