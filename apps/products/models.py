"""
Product Catalog models for Duka
Reference data the cart and orders point at: categories, products, stock counters.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import ClassVar

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.common.models import SoftDeleteModel, SoftDeleteQuerySet

MAX_PRICE_CENTS = 100_000_000_00  # Maximum price in cents (100M major units)


class Category(models.Model):
    """Product category used by coupon allow/deny lists"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, unique=True)
    slug = models.SlugField(max_length=120, unique=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'product_categories'
        verbose_name = _('Category')
        verbose_name_plural = _('Categories')
        ordering: ClassVar[tuple[str, ...]] = ('name',)

    def __str__(self) -> str:
        return self.name


class ProductQuerySet(SoftDeleteQuerySet):
    def active(self) -> ProductQuerySet:
        """Purchasable products: live and in the active status"""
        return self.live().filter(status='active')


class Product(SoftDeleteModel):
    """
    Sellable catalog item.
    Orders copy name/price/image at checkout, so edits here never rewrite history.
    """

    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('active', _('Active')),
        ('inactive', _('Inactive')),
        ('draft', _('Draft')),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    slug = models.SlugField(unique=True, max_length=200, help_text=_("URL-friendly identifier"))
    name = models.CharField(max_length=200, help_text=_("Display name for customers"))
    description = models.TextField(blank=True)
    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='products'
    )

    price_cents = models.BigIntegerField(
        validators=[MinValueValidator(0), MaxValueValidator(MAX_PRICE_CENTS)],
        help_text=_("Unit price in cents")
    )
    image_url = models.URLField(blank=True, help_text=_("Primary product image"))

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active', db_index=True)

    # Inventory
    track_quantity = models.BooleanField(default=True, help_text=_("Whether stock is counted for this product"))
    quantity = models.PositiveIntegerField(default=0, help_text=_("Units in stock"))
    total_sales = models.PositiveIntegerField(default=0, help_text=_("Units sold"))

    # Variant options offered, e.g. [{"name": "Size", "values": ["S", "M"]}]
    variants = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductQuerySet.as_manager()

    class Meta:
        db_table = 'products'
        verbose_name = _('Product')
        verbose_name_plural = _('Products')
        ordering: ClassVar[tuple[str, ...]] = ('name',)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['status', 'is_deleted'], name='product_status_deleted_idx'),
            models.Index(fields=['category', 'status'], name='product_category_status_idx'),
        )

    def __str__(self) -> str:
        return self.name

    @property
    def price(self) -> Decimal:
        """Return price in currency units"""
        return Decimal(self.price_cents) / 100

    @property
    def is_purchasable(self) -> bool:
        return self.status == 'active' and not self.is_deleted

    def has_stock(self, quantity: int) -> bool:
        """Check whether `quantity` units can be sold"""
        return not self.track_quantity or self.quantity >= quantity
