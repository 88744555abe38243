"""
Promotions and Coupons models for Duka.

Supports:
- Percentage and fixed-amount coupon codes
- Validity windows, global and per-user usage caps
- Minimum order amounts and percentage caps
- User, product and category allow/deny lists
- Append-only usage ledger
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, ClassVar

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinLengthValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.common.constants import COUPON_CODE_MAX_LENGTH, COUPON_CODE_MIN_LENGTH, MAX_PERCENTAGE_DISCOUNT
from apps.common.models import SoftDeleteModel
from apps.common.utils import from_cents

if TYPE_CHECKING:
    from apps.products.models import Product
    from apps.users.models import User

logger = logging.getLogger(__name__)


# ===============================================================================
# Coupon Model
# ===============================================================================


class Coupon(SoftDeleteModel):
    """
    Coupon code that provides a bounded discount on a cart.
    Status is derived from the clock and counters, never stored.
    """

    DISCOUNT_TYPES: ClassVar[tuple[tuple[str, Any], ...]] = (
        ("percentage", _("Percentage")),
        ("fixed", _("Fixed Amount")),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    code = models.CharField(
        max_length=COUPON_CODE_MAX_LENGTH,
        unique=True,
        db_index=True,
        validators=[MinLengthValidator(COUPON_CODE_MIN_LENGTH)],
        help_text=_("Unique coupon code (stored uppercase)"),
    )
    description = models.CharField(max_length=200, blank=True, help_text=_("Description shown to customers"))

    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPES, default="percentage")
    discount_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(MAX_PERCENTAGE_DISCOUNT)],
        help_text=_("Percentage off (percentage coupons)"),
    )
    discount_amount_cents = models.BigIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text=_("Flat amount off in cents (fixed coupons)"),
    )
    min_order_cents = models.BigIntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text=_("Minimum cart amount in cents"),
    )
    max_discount_cents = models.BigIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text=_("Cap for percentage discounts in cents (null = no cap)"),
    )

    # Usage limits
    usage_limit = models.PositiveIntegerField(null=True, blank=True, help_text=_("Total uses allowed (null = unlimited)"))
    usage_count = models.PositiveIntegerField(default=0)
    user_limit = models.PositiveIntegerField(default=1, help_text=_("Uses allowed per user"))

    # Validity window [valid_from, valid_until)
    valid_from = models.DateTimeField()
    valid_until = models.DateTimeField()

    is_active = models.BooleanField(default=True, help_text=_("Master switch for coupon"))
    is_public = models.BooleanField(default=True, help_text=_("Listed to customers"))

    # Restrictions
    applicable_users = models.ManyToManyField("users.User", blank=True, related_name="allowed_coupons")
    excluded_users = models.ManyToManyField("users.User", blank=True, related_name="excluded_coupons")
    applicable_products = models.ManyToManyField("products.Product", blank=True, related_name="allowed_coupons")
    excluded_products = models.ManyToManyField("products.Product", blank=True, related_name="excluded_coupons")
    applicable_categories = models.ManyToManyField("products.Category", blank=True, related_name="allowed_coupons")
    excluded_categories = models.ManyToManyField("products.Category", blank=True, related_name="excluded_coupons")

    # Optimistic concurrency token for counter updates
    version = models.PositiveIntegerField(default=0)

    created_by = models.ForeignKey(
        "users.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_coupons",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "coupons"
        verbose_name = _("Coupon")
        verbose_name_plural = _("Coupons")
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["is_active", "valid_from", "valid_until"], name="coupon_active_window_idx"),
            models.Index(fields=["is_deleted", "-created_at"], name="coupon_deleted_created_idx"),
        )

    def __str__(self) -> str:
        return self.code

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Normalize code to uppercase before saving."""
        if self.code:
            self.code = self.code.upper().strip()
        super().save(*args, **kwargs)

    def clean(self) -> None:
        """Validate coupon configuration."""
        super().clean()
        if self.valid_from and self.valid_until and self.valid_until <= self.valid_from:
            raise ValidationError("End date must be after start date")

        if self.discount_type == "percentage":
            if self.discount_percent is None:
                raise ValidationError("Percentage discount requires discount_percent value")
            if self.discount_percent < 0 or self.discount_percent > MAX_PERCENTAGE_DISCOUNT:
                raise ValidationError("Percentage discount cannot exceed 100%")
        elif self.discount_type == "fixed":
            if self.discount_amount_cents is None:
                raise ValidationError("Fixed discount requires discount_amount_cents value")

    # -------------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------------

    @property
    def discount_value(self) -> Decimal:
        """Percentage points or currency units, depending on the type"""
        if self.discount_type == "percentage":
            return self.discount_percent or Decimal("0")
        return from_cents(self.discount_amount_cents or 0)

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    @property
    def status(self) -> str:
        """inactive, scheduled, expired, exhausted or active"""
        now = timezone.now()
        if not self.is_active:
            return "inactive"
        if now < self.valid_from:
            return "scheduled"
        if now > self.valid_until:
            return "expired"
        if self.is_exhausted:
            return "exhausted"
        return "active"

    @property
    def usage_percentage(self) -> int:
        if not self.usage_limit:
            return 0
        return round(self.usage_count / self.usage_limit * 100)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def get_user_uses(self, user: User) -> int:
        return self.usages.filter(user=user).count()

    def is_valid(self, user: User | None, cart_amount_cents: int) -> tuple[bool, str]:
        """
        Check the coupon against a user and cart amount.

        Checks run in a fixed order and the first failure is returned:
        active flag, start, end, global cap, minimum amount,
        user exclusion, user allow list, per-user cap.
        """
        now = timezone.now()

        if not self.is_active:
            return False, "Coupon is not active"
        if now < self.valid_from:
            return False, "Coupon is not yet active"
        if now > self.valid_until:
            return False, "Coupon has expired"
        if self.is_exhausted:
            return False, "Coupon usage limit reached"
        if cart_amount_cents < self.min_order_cents:
            return False, f"Minimum order amount of KES {from_cents(self.min_order_cents)} required"

        if user is not None:
            if self.excluded_users.filter(pk=user.pk).exists():
                return False, "Coupon not applicable for this user"
            if self.applicable_users.exists() and not self.applicable_users.filter(pk=user.pk).exists():
                return False, "Coupon not applicable for this user"
            if self.get_user_uses(user) >= self.user_limit:
                return False, "User usage limit reached for this coupon"

        return True, "Coupon is valid"

    def calculate_discount(self, amount_cents: int) -> int:
        """Discount in cents; never more than `amount_cents`"""
        return compute_discount_cents(
            self.discount_type,
            self.discount_percent if self.discount_type == "percentage" else self.discount_amount_cents,
            self.max_discount_cents,
            amount_cents,
        )

    def applies_to(self, products: Iterable[Product]) -> bool:
        """
        Whether the coupon covers at least one of the given products.
        Empty allow lists mean every product; deny lists always win.
        """
        allowed_products = set(self.applicable_products.values_list("pk", flat=True))
        allowed_categories = set(self.applicable_categories.values_list("pk", flat=True))
        excluded_products = set(self.excluded_products.values_list("pk", flat=True))
        excluded_categories = set(self.excluded_categories.values_list("pk", flat=True))

        for product in products:
            if product.pk in excluded_products or product.category_id in excluded_categories:
                continue
            if not allowed_products and not allowed_categories:
                return True
            if product.pk in allowed_products or product.category_id in allowed_categories:
                return True
        return False


def compute_discount_cents(
    discount_type: str,
    value: Decimal | int | None,
    max_discount_cents: int | None,
    amount_cents: int,
) -> int:
    """
    Bounded discount shared by coupons and cart snapshots.

    percentage: amount * value / 100, clamped to the cap when one is set
    fixed: the flat value in cents
    The result is always clamped to min(discount, amount).
    """
    if amount_cents <= 0 or value is None:
        return 0

    if discount_type == "percentage":
        raw = (Decimal(amount_cents) * Decimal(value) / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        discount = int(raw)
        if max_discount_cents and discount > max_discount_cents:
            discount = max_discount_cents
    else:
        discount = int(value)

    return max(0, min(discount, amount_cents))


# ===============================================================================
# Coupon Usage Ledger
# ===============================================================================


class CouponUsage(models.Model):
    """
    Append-only record of a coupon redemption.
    Drives the per-user cap and coupon analytics.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    coupon = models.ForeignKey(Coupon, on_delete=models.PROTECT, related_name="usages")
    user = models.ForeignKey("users.User", on_delete=models.PROTECT, related_name="coupon_usages")
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="coupon_usages",
    )
    order_amount_cents = models.BigIntegerField(help_text=_("Cart amount the coupon was applied to"))
    discount_cents = models.BigIntegerField(help_text=_("Discount granted"))
    used_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "coupon_usages"
        verbose_name = _("Coupon Usage")
        verbose_name_plural = _("Coupon Usages")
        ordering: ClassVar[tuple[str, ...]] = ("-used_at",)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["coupon", "user"], name="coupon_usage_coupon_user_idx"),
        )

    def __str__(self) -> str:
        return f"{self.coupon.code} used by {self.user_id}"
