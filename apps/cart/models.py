"""
Shopping cart models for Duka
One cart per user; totals are always recomputed from the lines.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, ClassVar

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.common.utils import from_cents
from apps.promotions.models import compute_discount_cents


def normalize_variants(variants: list[dict[str, Any]] | None) -> list[dict[str, str]]:
    """Canonical, order-independent form of a variant selection"""
    cleaned = [
        {'name': str(v.get('name', '')).strip(), 'value': str(v.get('value', '')).strip()}
        for v in (variants or [])
        if isinstance(v, dict)
    ]
    return sorted(cleaned, key=lambda v: (v['name'], v['value']))


class Cart(models.Model):
    """
    Shopping cart aggregate.

    Derived fields (total_items, total_price_cents, discount_cents,
    final_price_cents) are written only by recalculate(). At most one
    coupon is applied at a time and is kept as a snapshot.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField('users.User', on_delete=models.CASCADE, related_name='cart')

    # Derived totals
    total_items = models.PositiveIntegerField(default=0)
    total_price_cents = models.BigIntegerField(default=0)
    discount_cents = models.BigIntegerField(default=0)
    final_price_cents = models.BigIntegerField(default=0)

    # Applied coupon snapshot
    coupon = models.ForeignKey(
        'promotions.Coupon',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='carts'
    )
    coupon_code = models.CharField(max_length=20, blank=True)
    coupon_discount_type = models.CharField(max_length=20, blank=True)
    coupon_discount_value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Percentage points, or cents for fixed coupons")
    )
    coupon_max_discount_cents = models.BigIntegerField(null=True, blank=True)

    # Bumped on every mutation; checkout claims the cart with a compare-and-set
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    last_modified = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'carts'
        verbose_name = _('Cart')
        verbose_name_plural = _('Carts')

    def __str__(self) -> str:
        return f"Cart of {self.user_id} ({self.total_items} items)"

    @property
    def total_price(self) -> Decimal:
        return from_cents(self.total_price_cents)

    @property
    def discount_amount(self) -> Decimal:
        return from_cents(self.discount_cents)

    @property
    def final_price(self) -> Decimal:
        return from_cents(self.final_price_cents)

    @property
    def has_coupon(self) -> bool:
        return bool(self.coupon_code)

    @property
    def is_empty(self) -> bool:
        return not self.items.exists()

    def set_coupon(self, coupon: Any) -> None:
        """Replace the applied coupon snapshot (caller recalculates)"""
        self.coupon = coupon
        self.coupon_code = coupon.code
        self.coupon_discount_type = coupon.discount_type
        if coupon.discount_type == 'percentage':
            self.coupon_discount_value = coupon.discount_percent
        else:
            self.coupon_discount_value = Decimal(coupon.discount_amount_cents or 0)
        self.coupon_max_discount_cents = coupon.max_discount_cents

    def clear_coupon(self) -> None:
        self.coupon = None
        self.coupon_code = ''
        self.coupon_discount_type = ''
        self.coupon_discount_value = None
        self.coupon_max_discount_cents = None

    def recalculate(self, save: bool = True) -> None:
        """Recompute every derived field from the lines and coupon snapshot"""
        items = list(self.items.all())
        self.total_items = sum(item.quantity for item in items)
        self.total_price_cents = sum(item.line_total_cents for item in items)

        if self.coupon_code:
            self.discount_cents = compute_discount_cents(
                self.coupon_discount_type,
                self.coupon_discount_value,
                self.coupon_max_discount_cents,
                self.total_price_cents,
            )
        else:
            self.discount_cents = 0

        self.final_price_cents = max(0, self.total_price_cents - self.discount_cents)
        self.last_modified = timezone.now()

        if save:
            # Bumped in SQL so a stale instance cannot wind the token back
            self.version = models.F('version') + 1
            self.save()
            self.refresh_from_db(fields=['version'])
        else:
            self.version += 1


class CartItem(models.Model):
    """Cart line: product, quantity, price snapshot and variant selection"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('products.Product', on_delete=models.CASCADE, related_name='cart_items')

    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price_cents = models.BigIntegerField(help_text=_("Product price when the line was added"))
    selected_variants = models.JSONField(default=list, blank=True)

    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'cart_items'
        verbose_name = _('Cart Item')
        verbose_name_plural = _('Cart Items')
        ordering: ClassVar[tuple[str, ...]] = ('added_at',)

    def __str__(self) -> str:
        return f"{self.quantity} x {self.product_id}"

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def matches(self, product_id: Any, variants: list[dict[str, Any]] | None) -> bool:
        """Same product and exactly the same variant selection"""
        return str(self.product_id) == str(product_id) and normalize_variants(
            self.selected_variants
        ) == normalize_variants(variants)
