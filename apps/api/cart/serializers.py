"""
Cart API Serializers for Duka
"""

from typing import Any

from rest_framework import serializers

from apps.cart.models import Cart, CartItem
from apps.common.utils import from_cents


class VariantSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50)
    value = serializers.CharField(max_length=100)


class CartItemSerializer(serializers.ModelSerializer):
    product_id = serializers.UUIDField(read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_slug = serializers.CharField(source='product.slug', read_only=True)
    image_url = serializers.CharField(source='product.image_url', read_only=True)
    unit_price = serializers.SerializerMethodField()
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = CartItem
        fields = [
            'id', 'product_id', 'product_name', 'product_slug', 'image_url',
            'quantity', 'unit_price', 'line_total', 'selected_variants', 'added_at',
        ]

    def get_unit_price(self, obj: CartItem) -> str:
        return str(from_cents(obj.unit_price_cents))

    def get_line_total(self, obj: CartItem) -> str:
        return str(from_cents(obj.line_total_cents))


class CartSerializer(serializers.ModelSerializer):
    items = CartItemSerializer(many=True, read_only=True)
    total_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    final_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    coupon = serializers.SerializerMethodField()

    class Meta:
        model = Cart
        fields = [
            'id', 'items', 'total_items', 'total_price', 'discount_amount',
            'final_price', 'coupon', 'last_modified',
        ]

    def get_coupon(self, obj: Cart) -> dict[str, Any] | None:
        if not obj.has_coupon:
            return None
        return {
            'code': obj.coupon_code,
            'discount_type': obj.coupon_discount_type,
            'discount_value': str(obj.coupon_discount_value),
        }

# ===============================================================================
# INPUT SERIALIZERS
# ===============================================================================

class CartItemInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(default=1)
    selected_variants = VariantSerializer(many=True, required=False, allow_null=True, default=None)


class CouponInputSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=20)
