"""
Payment API Serializers for Duka
"""

from rest_framework import serializers

from apps.orders.models import Order

AMOUNT = {'max_digits': 12, 'decimal_places': 2}


class StkPushInputSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    phone_number = serializers.CharField(max_length=20)
    amount = serializers.DecimalField(**AMOUNT)


class RefundInputSerializer(serializers.Serializer):
    amount = serializers.DecimalField(required=False, allow_null=True, default=None, **AMOUNT)
    reason = serializers.CharField(required=False, allow_blank=True, default='', max_length=500)


class PaymentHistorySerializer(serializers.ModelSerializer):
    """One order seen as a payment"""

    customer = serializers.EmailField(source='user.email', read_only=True)
    amount = serializers.DecimalField(source='total', read_only=True, **AMOUNT)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer', 'payment_method', 'payment_status',
            'transaction_id', 'paid_at', 'amount', 'status', 'created_at',
        ]
