"""
Cart services for Duka
Line merging, quantity updates and coupon application.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.db import transaction

from apps.common.types import Err, Ok, Result, ServiceError
from apps.products.models import Product
from apps.promotions.services import CouponService

from .models import Cart, CartItem, normalize_variants

if TYPE_CHECKING:
    from apps.users.models import User

logger = logging.getLogger(__name__)


class CartService:
    """Every mutating operation finishes with Cart.recalculate()"""

    @staticmethod
    def get_or_create_cart(user: User) -> Cart:
        cart, created = Cart.objects.get_or_create(user=user)
        if created:
            logger.info(f"🛒 [Cart] Created cart for {user.email}")
        return cart

    @staticmethod
    @transaction.atomic
    def add_item(
        user: User,
        product_id: Any,
        quantity: int = 1,
        variants: list[dict[str, Any]] | None = None,
    ) -> Result[Cart, ServiceError]:
        """Add a product, merging into an existing line with the same variants"""
        if quantity < 1:
            return Err(ServiceError.validation("Quantity must be at least 1"))

        product = Product.objects.live().filter(pk=product_id).first()
        if product is None:
            return Err(ServiceError.not_found("Product not found"))
        if not product.is_purchasable:
            return Err(ServiceError.validation("Product is not available"))

        cart = CartService.get_or_create_cart(user)
        existing = next((item for item in cart.items.all() if item.matches(product.pk, variants)), None)
        new_quantity = quantity + (existing.quantity if existing else 0)

        if not product.has_stock(new_quantity):
            return Err(ServiceError.validation(f"Only {product.quantity} items available in stock"))

        if existing:
            existing.quantity = new_quantity
            existing.save(update_fields=['quantity'])
        else:
            CartItem.objects.create(
                cart=cart,
                product=product,
                quantity=quantity,
                unit_price_cents=product.price_cents,
                selected_variants=normalize_variants(variants),
            )

        cart.recalculate()
        logger.info(f"🛒 [Cart] {user.email} added {quantity} x {product.name}")
        return Ok(cart)

    @staticmethod
    @transaction.atomic
    def update_item_quantity(
        user: User,
        product_id: Any,
        quantity: int,
        variants: list[dict[str, Any]] | None = None,
    ) -> Result[Cart, ServiceError]:
        """Set a line's quantity; zero or less removes the line"""
        cart = Cart.objects.filter(user=user).first()
        if cart is None:
            return Err(ServiceError.not_found("Cart not found"))

        if quantity <= 0:
            return CartService.remove_item(user, product_id, variants)

        item = next((i for i in cart.items.select_related('product') if i.matches(product_id, variants)), None)
        if item is None:
            return Err(ServiceError.not_found("Item not found in cart"))

        if not item.product.has_stock(quantity):
            return Err(ServiceError.validation(f"Only {item.product.quantity} items available in stock"))

        item.quantity = quantity
        item.save(update_fields=['quantity'])
        cart.recalculate()
        return Ok(cart)

    @staticmethod
    @transaction.atomic
    def remove_item(
        user: User,
        product_id: Any,
        variants: list[dict[str, Any]] | None = None,
    ) -> Result[Cart, ServiceError]:
        """
        Remove a line. Without a variant selection every line of the
        product goes; with one, only the exactly matching line.
        """
        cart = Cart.objects.filter(user=user).first()
        if cart is None:
            return Err(ServiceError.not_found("Cart not found"))

        if variants is None:
            lines = [item for item in cart.items.all() if str(item.product_id) == str(product_id)]
        else:
            lines = [item for item in cart.items.all() if item.matches(product_id, variants)]

        if not lines:
            return Err(ServiceError.not_found("Item not found in cart"))

        CartItem.objects.filter(pk__in=[line.pk for line in lines]).delete()
        cart.recalculate()
        return Ok(cart)

    @staticmethod
    @transaction.atomic
    def clear_cart(user: User) -> Result[Cart, ServiceError]:
        cart = Cart.objects.filter(user=user).first()
        if cart is None:
            return Err(ServiceError.not_found("Cart not found"))

        CartService.empty(cart)
        return Ok(cart)

    @staticmethod
    def empty(cart: Cart) -> None:
        """Drop lines and coupon together"""
        cart.items.all().delete()
        cart.clear_coupon()
        cart.recalculate()

    @staticmethod
    @transaction.atomic
    def apply_coupon(user: User, code: str) -> Result[Cart, ServiceError]:
        """Validate `code` against the cart and replace the coupon slot"""
        cart = Cart.objects.filter(user=user).first()
        if cart is None:
            return Err(ServiceError.not_found("Cart not found"))
        if cart.is_empty:
            return Err(ServiceError.validation("Cart is empty"))

        coupon = CouponService.get_by_code(code)
        if coupon is None:
            return Err(ServiceError.not_found("Invalid coupon code"))

        valid, message = coupon.is_valid(user, cart.total_price_cents)
        if not valid:
            return Err(ServiceError.validation(message))

        products = [item.product for item in cart.items.select_related('product')]
        if not coupon.applies_to(products):
            return Err(ServiceError.validation("Coupon not applicable to items in cart"))

        cart.set_coupon(coupon)
        cart.recalculate()
        logger.info(f"🎟️ [Cart] {user.email} applied {coupon.code} (-{cart.discount_amount})")
        return Ok(cart)

    @staticmethod
    @transaction.atomic
    def remove_coupon(user: User) -> Result[Cart, ServiceError]:
        cart = Cart.objects.filter(user=user).first()
        if cart is None:
            return Err(ServiceError.not_found("Cart not found"))

        cart.clear_coupon()
        cart.recalculate()
        return Ok(cart)
