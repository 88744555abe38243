"""
Order API Serializers for Duka
Order snapshots with items, status history and delivery progress.
"""

from rest_framework import serializers

from apps.delivery.models import OrderDelivery
from apps.orders.models import Order, OrderItem, OrderStatusHistory

MONEY = {'max_digits': 12, 'decimal_places': 2, 'read_only': True}


class OrderItemSerializer(serializers.ModelSerializer):
    """Order item with pricing snapshot for API responses"""

    product_id = serializers.UUIDField(read_only=True, allow_null=True)
    unit_price = serializers.DecimalField(**MONEY)
    total = serializers.DecimalField(**MONEY)

    class Meta:
        model = OrderItem
        fields = ['id', 'product_id', 'product_name', 'image_url', 'unit_price', 'quantity', 'selected_variants', 'total']


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    changed_by = serializers.EmailField(source='changed_by.email', read_only=True, default=None)

    class Meta:
        model = OrderStatusHistory
        fields = ['old_status', 'new_status', 'notes', 'changed_by', 'created_at']


class OrderDeliverySerializer(serializers.ModelSerializer):
    agent_id = serializers.CharField(source='agent.agent_id', read_only=True)
    agent_name = serializers.CharField(source='agent.full_name', read_only=True)
    agent_phone = serializers.CharField(source='agent.phone', read_only=True)
    zone = serializers.CharField(source='zone.code', read_only=True, default=None)

    class Meta:
        model = OrderDelivery
        fields = [
            'agent_id', 'agent_name', 'agent_phone', 'zone', 'status', 'assigned_at',
            'picked_up_at', 'delivered_at', 'failed_at', 'current_location', 'last_update', 'instructions',
        ]


class OrderListSerializer(serializers.ModelSerializer):
    """Slim order info for order history"""

    total = serializers.DecimalField(**MONEY)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    customer = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer', 'status', 'status_display', 'payment_method',
            'payment_status', 'total', 'created_at',
        ]


class OrderDetailSerializer(serializers.ModelSerializer):
    """Full order with items, amounts, history and delivery"""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)
    delivery = serializers.SerializerMethodField()
    items_price = serializers.DecimalField(**MONEY)
    tax_amount = serializers.DecimalField(**MONEY)
    shipping_amount = serializers.DecimalField(**MONEY)
    discount_amount = serializers.DecimalField(**MONEY)
    total = serializers.DecimalField(**MONEY)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'status', 'status_display', 'items',
            'shipping_address', 'billing_address',
            'payment_method', 'payment_status', 'transaction_id', 'paid_at',
            'items_price', 'tax_amount', 'shipping_amount', 'discount_amount', 'total', 'coupon_code',
            'carrier', 'tracking_number', 'shipped_at', 'estimated_delivery', 'delivered_at',
            'notes', 'status_history', 'delivery', 'created_at', 'updated_at',
        ]

    def get_delivery(self, obj: Order) -> dict | None:
        delivery = OrderDelivery.objects.filter(order=obj).select_related('agent__user', 'zone').first()
        return OrderDeliverySerializer(delivery).data if delivery else None

# ===============================================================================
# INPUT SERIALIZERS
# ===============================================================================

class AddressSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=100)
    phone = serializers.CharField(max_length=20)
    street = serializers.CharField(max_length=200)
    city = serializers.CharField(max_length=100)
    county = serializers.CharField(max_length=100, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    country = serializers.CharField(max_length=50, default='Kenya')


class OrderCreateInputSerializer(serializers.Serializer):
    shipping_address = AddressSerializer()
    billing_address = AddressSerializer(required=False, allow_null=True, default=None)
    payment_method = serializers.ChoiceField(choices=Order.PAYMENT_METHOD_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class OrderStatusInputSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)
    note = serializers.CharField(required=False, allow_blank=True, default='')
    carrier = serializers.CharField(required=False, allow_blank=True, default='', max_length=100)
    tracking_number = serializers.CharField(required=False, allow_blank=True, default='', max_length=100)
