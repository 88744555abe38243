"""
Order Management models for Duka
Order aggregate: frozen line items, money totals, payment info and the
status state machine with its append-only history.
"""

from __future__ import annotations

import time
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any, ClassVar

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.common.constants import ORDER_NUMBER_PREFIX, ORDER_SEQUENCE_WIDTH
from apps.common.models import SoftDeleteModel
from apps.common.utils import from_cents

if TYPE_CHECKING:
    from apps.users.models import User


class InvalidStatusTransition(ValueError):
    """Raised when a status change is not in the transition table"""

    def __init__(self, old_status: str, new_status: str) -> None:
        self.old_status = old_status
        self.new_status = new_status
        super().__init__(f"Invalid status transition from {old_status} to {new_status}")


# ===============================================================================
# ORDER MANAGEMENT MODELS
# ===============================================================================

class Order(SoftDeleteModel):
    """
    Customer order created once per checkout.
    Items and prices are frozen; only status, payment and shipping info move.
    """

    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('pending', _('Pending')),                  # Placed, awaiting payment
        ('confirmed', _('Confirmed')),              # Payment confirmed
        ('processing', _('Processing')),            # Being packed / assigned to an agent
        ('shipped', _('Shipped')),                  # With the courier
        ('delivered', _('Delivered')),
        ('cancelled', _('Cancelled')),
        ('refunded', _('Refunded')),
        ('delivery_failed', _('Delivery Failed')),
    )

    # Re-entering the current state is allowed for every non-terminal state
    VALID_TRANSITIONS: ClassVar[dict[str, tuple[str, ...]]] = {
        'pending': ('pending', 'confirmed', 'processing', 'cancelled'),
        'confirmed': ('confirmed', 'processing', 'cancelled', 'refunded'),
        'processing': ('processing', 'shipped', 'delivered', 'delivery_failed', 'cancelled', 'refunded'),
        'shipped': ('shipped', 'delivered', 'delivery_failed', 'refunded'),
        'delivery_failed': ('delivery_failed', 'processing', 'refunded'),
        'delivered': ('refunded',),
        'cancelled': (),  # Terminal state
        'refunded': (),  # Terminal state
    }

    CANCELLABLE_STATUSES: ClassVar[tuple[str, ...]] = ('pending', 'confirmed', 'processing')

    PAYMENT_METHOD_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('card', _('Credit/Debit Card')),
        ('paypal', _('PayPal')),
        ('bank_transfer', _('Bank Transfer')),
        ('cash_on_delivery', _('Cash on Delivery')),
        ('mpesa', _('M-Pesa')),
        ('wallet', _('Wallet')),
    )

    PAYMENT_STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('pending', _('Pending')),
        ('completed', _('Completed')),
        ('failed', _('Failed')),
        ('refunded', _('Refunded')),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order_number = models.CharField(
        max_length=50,
        unique=True,
        help_text=_("Human-readable order number")
    )
    user = models.ForeignKey(
        'users.User',
        on_delete=models.PROTECT,
        related_name='orders'
    )

    # Address snapshots
    shipping_address = models.JSONField(default=dict, help_text=_("Shipping address snapshot"))
    billing_address = models.JSONField(default=dict, help_text=_("Billing address snapshot"))

    # Payment info
    payment_method = models.CharField(max_length=30, choices=PAYMENT_METHOD_CHOICES)
    transaction_id = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text=_("Gateway correlation id or receipt number")
    )
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='pending')
    paid_at = models.DateTimeField(null=True, blank=True)

    # Amounts in cents for precision
    items_price_cents = models.BigIntegerField(default=0, help_text=_("Sum of line totals in cents"))
    tax_cents = models.BigIntegerField(default=0)
    shipping_cents = models.BigIntegerField(default=0)
    discount_cents = models.BigIntegerField(default=0)
    total_cents = models.BigIntegerField(default=0, help_text=_("items + tax + shipping - discount"))

    # Applied coupon snapshot
    coupon = models.ForeignKey(
        'promotions.Coupon',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    coupon_code = models.CharField(max_length=20, blank=True)

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='pending',
        help_text=_("Current order status")
    )

    # Shipping info
    carrier = models.CharField(max_length=100, blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    estimated_delivery = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True, help_text=_("Notes from customer"))
    admin_notes = models.TextField(blank=True, help_text=_("Internal order notes"))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'orders'
        verbose_name = _('Order')
        verbose_name_plural = _('Orders')
        ordering: ClassVar[tuple[str, ...]] = ('-created_at',)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['user', '-created_at'], name='order_user_created_idx'),
            models.Index(fields=['status', '-created_at'], name='order_status_created_idx'),
            models.Index(fields=['payment_status'], name='order_payment_status_idx'),
            models.Index(fields=['is_deleted'], name='order_deleted_idx'),
        )

    def __str__(self) -> str:
        return f"Order {self.order_number}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Auto-generate order number before saving"""
        if not self.order_number:
            self.generate_order_number()
        super().save(*args, **kwargs)

    # -------------------------------------------------------------------------
    # Money
    # -------------------------------------------------------------------------

    @property
    def items_price(self) -> Decimal:
        return from_cents(self.items_price_cents)

    @property
    def tax_amount(self) -> Decimal:
        return from_cents(self.tax_cents)

    @property
    def shipping_amount(self) -> Decimal:
        return from_cents(self.shipping_cents)

    @property
    def discount_amount(self) -> Decimal:
        return from_cents(self.discount_cents)

    @property
    def total(self) -> Decimal:
        return from_cents(self.total_cents)

    def recalculate_totals(self) -> None:
        """
        Recalculate items price and total from line items.
        total = items + tax + shipping - discount
        """
        self.items_price_cents = sum(item.total_cents for item in self.items.all())
        self.total_cents = self.items_price_cents + self.tax_cents + self.shipping_cents - self.discount_cents

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def is_paid(self) -> bool:
        return self.payment_status == 'completed'

    @property
    def can_be_cancelled(self) -> bool:
        return self.status in self.CANCELLABLE_STATUSES

    @classmethod
    def is_valid_transition(cls, old_status: str, new_status: str) -> bool:
        return new_status in cls.VALID_TRANSITIONS.get(old_status, ())

    def update_status(self, new_status: str, note: str = '', actor: User | None = None) -> OrderStatusHistory:
        """
        The only way to change `status`.

        Validates against VALID_TRANSITIONS, sets the field, stamps
        shipped_at/delivered_at the first time those states are entered
        and appends a history entry. Re-entering the same state appends
        another entry; history is never deduplicated.
        """
        if not self.is_valid_transition(self.status, new_status):
            raise InvalidStatusTransition(self.status, new_status)

        old_status = self.status
        self.status = new_status
        update_fields = ['status', 'updated_at']

        now = timezone.now()
        if new_status == 'shipped' and self.shipped_at is None:
            self.shipped_at = now
            update_fields.append('shipped_at')
        if new_status == 'delivered' and self.delivered_at is None:
            self.delivered_at = now
            update_fields.append('delivered_at')

        self.save(update_fields=update_fields)

        return OrderStatusHistory.objects.create(
            order=self,
            old_status=old_status,
            new_status=new_status,
            notes=note,
            changed_by=actor,
        )

    def generate_order_number(self) -> None:
        """ORD-<epoch ms>-<sequence>"""
        if not self.order_number:
            sequence = str(Order.objects.count() + 1).zfill(ORDER_SEQUENCE_WIDTH)
            self.order_number = f"{ORDER_NUMBER_PREFIX}-{int(time.time() * 1000)}-{sequence}"


class OrderItem(models.Model):
    """
    Frozen copy of a cart line at checkout.
    Name, price and image never follow later catalog edits.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.SET_NULL,
        null=True,
        related_name='order_items',
        help_text=_("Live product reference, used for stock restoration")
    )

    product_name = models.CharField(max_length=200)
    image_url = models.URLField(blank=True)
    unit_price_cents = models.BigIntegerField()
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    selected_variants = models.JSONField(default=list, blank=True)
    total_cents = models.BigIntegerField()

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_items'
        verbose_name = _('Order Item')
        verbose_name_plural = _('Order Items')
        ordering: ClassVar[tuple[str, ...]] = ('created_at',)

    def __str__(self) -> str:
        return f"{self.quantity} x {self.product_name}"

    @property
    def unit_price(self) -> Decimal:
        return from_cents(self.unit_price_cents)

    @property
    def total(self) -> Decimal:
        return from_cents(self.total_cents)


class OrderStatusHistory(models.Model):
    """
    Append-only log of status changes and who made them.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='status_history'
    )

    old_status = models.CharField(max_length=20, blank=True, help_text=_("Previous status"))
    new_status = models.CharField(max_length=20, help_text=_("New status"))

    changed_by = models.ForeignKey(
        'users.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        help_text=_("User who made the change")
    )
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'order_status_history'
        verbose_name = _('Order Status History')
        verbose_name_plural = _('Order Status History')
        ordering: ClassVar[tuple[str, ...]] = ('created_at',)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['order', 'created_at'], name='order_history_order_idx'),
        )

    def __str__(self) -> str:
        return f"{self.order.order_number}: {self.old_status} → {self.new_status}"
