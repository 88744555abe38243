# ===============================================================================
# TEST FACTORIES FOR THE STOREFRONT
# ===============================================================================
import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Any, Optional

from django.contrib.auth import get_user_model
from django.utils import timezone

from apps.delivery.models import DeliveryAgent, DeliveryZone
from apps.orders.models import Order, OrderItem
from apps.products.models import Category, Product
from apps.promotions.models import Coupon

User = get_user_model()

SHIPPING_ADDRESS = {
    'full_name': 'Wanjiku Kamau',
    'phone': '254712345678',
    'street': 'Moi Avenue 12',
    'city': 'Nairobi',
    'county': 'Nairobi',
    'postal_code': '00100',
    'country': 'Kenya',
}


def create_user(email: Optional[str] = None, **extra: Any):
    """Create a customer with a unique email unless one is given."""
    email = email or f"user-{uuid.uuid4().hex[:8]}@duka.test"
    return User.objects.create_user(email=email, password='testpass123', **extra)


def create_admin(email: str = 'staff@duka.test'):
    return User.objects.create_user(email=email, password='testpass123', is_staff=True, is_superuser=True)


def create_category(name: str = 'Groceries') -> Category:
    return Category.objects.create(name=name, slug=f"{name.lower()}-{uuid.uuid4().hex[:6]}")


def create_product(
    name: str = 'Sukuma Wiki',
    price_cents: int = 1000,
    quantity: int = 50,
    category: Optional[Category] = None,
    **extra: Any,
) -> Product:
    """Create an active, stocked product."""
    return Product.objects.create(
        name=name,
        slug=f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}",
        price_cents=price_cents,
        quantity=quantity,
        category=category,
        **extra,
    )


def create_coupon(
    code: str = 'WELCOME20',
    discount_type: str = 'percentage',
    discount_percent: Optional[Decimal] = Decimal('20'),
    discount_amount_cents: Optional[int] = None,
    min_order_cents: int = 0,
    max_discount_cents: Optional[int] = None,
    **extra: Any,
) -> Coupon:
    """Create a coupon valid from yesterday for thirty days."""
    now = timezone.now()
    extra.setdefault('valid_from', now - timedelta(days=1))
    extra.setdefault('valid_until', now + timedelta(days=30))
    return Coupon.objects.create(
        code=code,
        discount_type=discount_type,
        discount_percent=discount_percent if discount_type == 'percentage' else None,
        discount_amount_cents=discount_amount_cents,
        min_order_cents=min_order_cents,
        max_discount_cents=max_discount_cents,
        **extra,
    )


def create_order(
    user,
    items: Optional[list[tuple[Product, int]]] = None,
    status: str = 'pending',
    payment_method: str = 'mpesa',
    payment_status: str = 'pending',
    tax_cents: int = 0,
    shipping_cents: int = 0,
    discount_cents: int = 0,
    **extra: Any,
) -> Order:
    """
    Create an order straight from (product, quantity) pairs.
    Stock is not reserved; tests that care reserve it themselves.
    """
    order = Order.objects.create(
        user=user,
        shipping_address=dict(SHIPPING_ADDRESS),
        billing_address=dict(SHIPPING_ADDRESS),
        payment_method=payment_method,
        payment_status=payment_status,
        status=status,
        tax_cents=tax_cents,
        shipping_cents=shipping_cents,
        discount_cents=discount_cents,
        **extra,
    )
    for product, quantity in items or []:
        OrderItem.objects.create(
            order=order,
            product=product,
            product_name=product.name,
            unit_price_cents=product.price_cents,
            quantity=quantity,
            total_cents=product.price_cents * quantity,
        )
    order.recalculate_totals()
    order.save(update_fields=['items_price_cents', 'total_cents', 'updated_at'])
    return order


def create_zone(
    code: str = 'NBI-CBD',
    postal_codes: Optional[list[str]] = None,
    delivery_fee_cents: int = 20000,
    free_delivery_threshold_cents: int = 500000,
    min_delivery_days: int = 1,
    max_delivery_days: int = 2,
    **extra: Any,
) -> DeliveryZone:
    return DeliveryZone.objects.create(
        name=extra.pop('name', 'Nairobi CBD'),
        code=code,
        county=extra.pop('county', 'Nairobi'),
        areas=[{'name': 'CBD', 'postal_codes': postal_codes if postal_codes is not None else ['00100']}],
        delivery_fee_cents=delivery_fee_cents,
        free_delivery_threshold_cents=free_delivery_threshold_cents,
        min_delivery_days=min_delivery_days,
        max_delivery_days=max_delivery_days,
        **extra,
    )


def create_agent(
    user=None,
    status: str = 'active',
    is_available: bool = True,
    zones: Optional[list[DeliveryZone]] = None,
    **extra: Any,
) -> DeliveryAgent:
    """Create an approved, available delivery agent by default."""
    user = user or create_user(first_name='Otieno', last_name='Ouma')
    agent = DeliveryAgent.objects.create(
        user=user,
        national_id=extra.pop('national_id', uuid.uuid4().hex[:8]),
        phone=extra.pop('phone', '254722000111'),
        emergency_contact={'name': 'Akinyi Ouma', 'phone': '254722000222', 'relationship': 'Sister'},
        vehicle={'type': 'motorcycle', 'registration_number': 'KMDA 123A'},
        status=status,
        is_available=is_available,
        **extra,
    )
    if zones:
        agent.zones.set(zones)
    return agent


def mpesa_callback_payload(
    checkout_request_id: str,
    result_code: int = 0,
    amount: int = 1000,
    receipt: str = 'QKL7ABC123',
    phone: int = 254712345678,
) -> dict[str, Any]:
    """Daraja stkCallback body; failed callbacks carry no metadata."""
    callback: dict[str, Any] = {
        'MerchantRequestID': '29115-34620561-1',
        'CheckoutRequestID': checkout_request_id,
        'ResultCode': result_code,
        'ResultDesc': 'The service request is processed successfully.' if result_code == 0
        else 'Request cancelled by user',
    }
    if result_code == 0:
        callback['CallbackMetadata'] = {
            'Item': [
                {'Name': 'Amount', 'Value': amount},
                {'Name': 'MpesaReceiptNumber', 'Value': receipt},
                {'Name': 'TransactionDate', 'Value': 20240101120000},
                {'Name': 'PhoneNumber', 'Value': phone},
            ]
        }
    return {'Body': {'stkCallback': callback}}
