from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, TypedDict

from django.conf import settings
from django.db import transaction
from django.db.models import F, QuerySet

from apps.audit.services import AuditContext, AuditEventData, AuditService
from apps.cart.models import Cart
from apps.cart.services import CartService
from apps.common.types import ConcurrencyConflict, Err, Ok, Result, ServiceError
from apps.common.utils import to_cents
from apps.common.validators import log_security_event
from apps.products.services import InventoryService
from apps.promotions.services import CouponService

from .models import InvalidStatusTransition, Order, OrderItem

if TYPE_CHECKING:
    from apps.users.models import User

"""
Order Management Services for Duka
Checkout from cart, status changes, cancellation and order queries.
"""

logger = logging.getLogger(__name__)

# ===============================================================================
# ORDER SERVICE PARAMETER OBJECTS
# ===============================================================================

class OrderFilters(TypedDict, total=False):
    """Type definition for order filtering parameters"""
    status: str
    payment_status: str
    order_number: str
    date_from: str
    date_to: str
    user_id: Any


class AddressData(TypedDict, total=False):
    """Shipping/billing address snapshot"""
    full_name: str
    phone: str
    street: str
    city: str
    county: str
    postal_code: str
    country: str


@dataclass
class OrderCreateData:
    """Parameter object for checkout"""
    shipping_address: AddressData
    payment_method: str
    billing_address: AddressData | None = None
    notes: str = ''


@dataclass
class StatusChangeData:
    """Parameter object for order status changes"""
    new_status: str
    notes: str = ''
    changed_by: User | None = None
    carrier: str = ''
    tracking_number: str = ''


@dataclass(frozen=True)
class OrderPricing:
    items_price_cents: int
    tax_cents: int
    shipping_cents: int
    discount_cents: int
    total_cents: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            'total_cents',
            self.items_price_cents + self.tax_cents + self.shipping_cents - self.discount_cents,
        )

# ===============================================================================
# ORDER CALCULATION SERVICES
# ===============================================================================

class OrderCalculationService:
    """Tax and shipping rules applied at checkout"""

    @staticmethod
    def calculate_tax(items_price_cents: int) -> int:
        """Tax rounded to the cent"""
        tax = Decimal(items_price_cents) * settings.ORDER_TAX_RATE
        return int(tax.quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    @staticmethod
    def calculate_shipping(items_price_cents: int) -> int:
        """Flat fee, free strictly above the threshold"""
        if items_price_cents > to_cents(settings.ORDER_FREE_SHIPPING_THRESHOLD):
            return 0
        return to_cents(settings.ORDER_FLAT_SHIPPING_FEE)

    @staticmethod
    def price_order(items_price_cents: int, discount_cents: int) -> OrderPricing:
        return OrderPricing(
            items_price_cents=items_price_cents,
            tax_cents=OrderCalculationService.calculate_tax(items_price_cents),
            shipping_cents=OrderCalculationService.calculate_shipping(items_price_cents),
            discount_cents=discount_cents,
        )

# ===============================================================================
# ORDER SERVICE
# ===============================================================================

class OrderService:
    """Order lifecycle operations"""

    @staticmethod
    def create_from_cart(
        user: User, data: OrderCreateData, context: AuditContext | None = None
    ) -> Result[Order, ServiceError]:
        """
        Turn the user's cart into an order.

        The cart is claimed with a compare-and-set on its version, so a
        second concurrent checkout of the same cart loses and its whole
        transaction rolls back.
        """
        if data.payment_method not in dict(Order.PAYMENT_METHOD_CHOICES):
            return Err(ServiceError.validation("Invalid payment method"))
        if not data.shipping_address:
            return Err(ServiceError.validation("Shipping address is required"))

        try:
            with transaction.atomic():
                return OrderService._checkout(user, data, context)
        except ConcurrencyConflict as e:
            logger.warning(f"⚠️ [Orders] Checkout conflict for {user.email}: {e}")
            return Err(ServiceError.conflict("Cart was modified by another request, please retry"))

    @staticmethod
    def _checkout(user: User, data: OrderCreateData, context: AuditContext | None) -> Result[Order, ServiceError]:
        cart = Cart.objects.filter(user=user).first()
        if cart is None or cart.is_empty:
            return Err(ServiceError.validation("Cart is empty"))

        claimed = Cart.objects.filter(pk=cart.pk, version=cart.version).update(version=F('version') + 1)
        if not claimed:
            raise ConcurrencyConflict(f"cart {cart.pk} version {cart.version}")
        cart.version += 1

        lines = list(cart.items.select_related('product'))
        for line in lines:
            product = line.product
            if not product.is_purchasable:
                return Err(ServiceError.validation(f"Product {product.name} is no longer available"))
            if not product.has_stock(line.quantity):
                return Err(ServiceError.validation(f"Insufficient stock for {product.name}"))

        # Re-validate the applied coupon against current usage
        coupon = None
        if cart.coupon_code:
            coupon = CouponService.get_by_code(cart.coupon_code)
            if coupon is None:
                return Err(ServiceError.validation("Applied coupon is no longer available"))
            valid, message = coupon.is_valid(user, cart.total_price_cents)
            if not valid:
                return Err(ServiceError.validation(message))

        pricing = OrderCalculationService.price_order(cart.total_price_cents, cart.discount_cents)

        order = Order.objects.create(
            user=user,
            shipping_address=dict(data.shipping_address),
            billing_address=dict(data.billing_address or data.shipping_address),
            payment_method=data.payment_method,
            payment_status='pending',
            tax_cents=pricing.tax_cents,
            shipping_cents=pricing.shipping_cents,
            discount_cents=pricing.discount_cents,
            coupon=coupon,
            coupon_code=cart.coupon_code,
            notes=data.notes,
        )

        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product=line.product,
                product_name=line.product.name,
                image_url=line.product.image_url,
                unit_price_cents=line.unit_price_cents,
                quantity=line.quantity,
                selected_variants=list(line.selected_variants or []),
                total_cents=line.line_total_cents,
            )
            for line in lines
        ])

        order.recalculate_totals()
        order.save(update_fields=['items_price_cents', 'total_cents', 'updated_at'])
        order.status_history.create(old_status='', new_status='pending', notes='Order created', changed_by=user)

        for line in lines:
            if not InventoryService.reserve_stock(line.product_id, line.quantity):
                transaction.set_rollback(True)
                return Err(ServiceError.validation(f"Insufficient stock for {line.product.name}"))

        if coupon is not None:
            usage = CouponService.use_coupon(coupon, user, order, order.total_cents, order.discount_cents)
            if usage.is_err():
                transaction.set_rollback(True)
                return Err(usage.unwrap_err())

        CartService.empty(cart)

        AuditService.log_event(
            AuditEventData(
                action='order_create',
                resource='order',
                resource_id=str(order.pk),
                details={
                    'order_number': order.order_number,
                    'total': order.total,
                    'items': len(lines),
                    'payment_method': order.payment_method,
                    'coupon_code': order.coupon_code,
                },
            ),
            context or AuditContext(user=user),
        )

        logger.info(f"✅ [Orders] Created {order.order_number} for {user.email} total {order.total}")
        return Ok(order)

    @staticmethod
    def cancel_order(user: User, order: Order, context: AuditContext | None = None) -> Result[Order, ServiceError]:
        """Owner cancellation; puts stock back and reverses sales counters"""
        if order.user_id != user.pk:
            log_security_event('order_cancel_denied', {'order_id': str(order.id), 'user_id': str(user.pk)})
            return Err(ServiceError.forbidden("Not authorized to cancel this order"))

        if not order.can_be_cancelled:
            return Err(ServiceError.validation("Order cannot be cancelled at this stage"))

        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=order.pk)
            if not order.can_be_cancelled:
                return Err(ServiceError.validation("Order cannot be cancelled at this stage"))

            OrderService._restore_inventory(order)
            order.update_status('cancelled', 'Cancelled by customer', user)

            AuditService.log_event(
                AuditEventData(
                    action='order_cancel',
                    resource='order',
                    resource_id=str(order.pk),
                    details={'order_number': order.order_number},
                ),
                context or AuditContext(user=user),
            )

        logger.info(f"🛑 [Orders] {order.order_number} cancelled by {user.email}")
        return Ok(order)

    @staticmethod
    def update_order_status(
        order: Order, status_data: StatusChangeData, context: AuditContext | None = None
    ) -> Result[Order, ServiceError]:
        """Admin status change with optional shipping details"""
        new_status = status_data.new_status
        if new_status not in dict(Order.STATUS_CHOICES):
            return Err(ServiceError.validation(f"Unknown status: {new_status}"))

        # Refunds go through RefundService only
        if new_status == 'refunded':
            return Err(ServiceError.validation("Use the refund endpoint to refund an order"))

        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(pk=order.pk)
                old_status = order.status

                if status_data.carrier:
                    order.carrier = status_data.carrier
                if status_data.tracking_number:
                    order.tracking_number = status_data.tracking_number
                if status_data.carrier or status_data.tracking_number:
                    order.save(update_fields=['carrier', 'tracking_number', 'updated_at'])

                if new_status == 'cancelled' and old_status != 'cancelled':
                    OrderService._restore_inventory(order)

                order.update_status(new_status, status_data.notes, status_data.changed_by)

                AuditService.log_event(
                    AuditEventData(
                        action='order_status_change',
                        resource='order',
                        resource_id=str(order.pk),
                        details={
                            'order_number': order.order_number,
                            'old_status': old_status,
                            'new_status': new_status,
                            'carrier': status_data.carrier,
                            'tracking_number': status_data.tracking_number,
                        },
                        severity='medium' if new_status == 'cancelled' else 'low',
                    ),
                    context or AuditContext(user=status_data.changed_by),
                )
        except InvalidStatusTransition as e:
            return Err(ServiceError.validation(str(e)))

        log_security_event(
            'order_status_changed',
            {
                'order_number': order.order_number,
                'order_id': str(order.id),
                'old_status': old_status,
                'new_status': new_status,
                'user_id': str(status_data.changed_by.pk) if status_data.changed_by else None,
                'notes': status_data.notes,
            }
        )
        return Ok(order)

    @staticmethod
    def soft_delete(order: Order, actor: User) -> None:
        order.soft_delete()
        logger.info(f"🗑️ [Orders] {order.order_number} soft-deleted by {actor.email}")

    @staticmethod
    def _restore_inventory(order: Order) -> None:
        for item in order.items.all():
            if item.product_id:
                InventoryService.restore_stock(item.product_id, item.quantity)

# ===============================================================================
# ORDER QUERY SERVICE
# ===============================================================================

class OrderQueryService:
    """Service for order querying and filtering operations"""

    @staticmethod
    def get_order(order_id: Any) -> Order | None:
        try:
            uuid.UUID(str(order_id))
        except ValueError:
            return None
        return Order.objects.live().filter(pk=order_id).select_related('user').first()

    @staticmethod
    def get_order_for_user(user: User, order_id: Any) -> Result[Order, ServiceError]:
        """Owner or admin access"""
        order = OrderQueryService.get_order(order_id)
        if order is None:
            return Err(ServiceError.not_found("Order not found"))
        if order.user_id != user.pk and not user.is_staff:
            return Err(ServiceError.forbidden("Not authorized to access this order"))
        return Ok(order)

    @staticmethod
    def orders_for_user(user: User, status: str | None = None) -> QuerySet[Order]:
        queryset = Order.objects.live().filter(user=user).prefetch_related('items')
        if status:
            queryset = queryset.filter(status=status)
        return queryset

    @staticmethod
    def all_orders(filters: OrderFilters | None = None) -> QuerySet[Order]:
        queryset = Order.objects.live().select_related('user').prefetch_related('items')
        filters = filters or {}

        if status := filters.get('status'):
            queryset = queryset.filter(status=status)
        if payment_status := filters.get('payment_status'):
            queryset = queryset.filter(payment_status=payment_status)
        if order_number := filters.get('order_number'):
            queryset = queryset.filter(order_number__icontains=order_number)
        if user_id := filters.get('user_id'):
            queryset = queryset.filter(user_id=user_id)
        if date_from := filters.get('date_from'):
            queryset = queryset.filter(created_at__date__gte=date_from)
        if date_to := filters.get('date_to'):
            queryset = queryset.filter(created_at__date__lte=date_to)

        return queryset
