"""
Coupon API Serializers for Duka
"""

from typing import Any

from rest_framework import serializers

from apps.common.utils import from_cents
from apps.promotions.models import Coupon
from apps.promotions.services import RESTRICTION_FIELDS

AMOUNT = {'max_digits': 12, 'decimal_places': 2}


class CouponAmountsMixin(serializers.Serializer):
    discount_value = serializers.DecimalField(read_only=True, **AMOUNT)
    minimum_amount = serializers.SerializerMethodField()
    maximum_discount = serializers.SerializerMethodField()

    def get_minimum_amount(self, obj: Coupon) -> str:
        return str(from_cents(obj.min_order_cents))

    def get_maximum_discount(self, obj: Coupon) -> str | None:
        return str(from_cents(obj.max_discount_cents)) if obj.max_discount_cents else None


class CouponSerializer(CouponAmountsMixin, serializers.ModelSerializer):
    """Admin view of a coupon with derived status"""

    status = serializers.CharField(read_only=True)
    usage_percentage = serializers.IntegerField(read_only=True)
    created_by = serializers.EmailField(source='created_by.email', read_only=True, default=None)
    restrictions = serializers.SerializerMethodField()

    class Meta:
        model = Coupon
        fields = [
            'id', 'code', 'description', 'discount_type', 'discount_value', 'minimum_amount',
            'maximum_discount', 'usage_limit', 'usage_count', 'user_limit', 'usage_percentage',
            'valid_from', 'valid_until', 'is_active', 'is_public', 'status', 'restrictions',
            'created_by', 'created_at', 'updated_at',
        ]

    def get_restrictions(self, obj: Coupon) -> dict[str, list[str]]:
        return {
            name: [str(pk) for pk in getattr(obj, name).values_list('pk', flat=True)]
            for name in RESTRICTION_FIELDS
        }


class PublicCouponSerializer(CouponAmountsMixin, serializers.ModelSerializer):
    """What a customer sees when checking a code"""

    class Meta:
        model = Coupon
        fields = ['code', 'description', 'discount_type', 'discount_value', 'minimum_amount', 'maximum_discount']

# ===============================================================================
# INPUT SERIALIZERS
# ===============================================================================

class CouponInputSerializer(serializers.Serializer):
    code = serializers.CharField(min_length=3, max_length=20)
    description = serializers.CharField(max_length=200, required=False, allow_blank=True)
    discount_type = serializers.ChoiceField(choices=Coupon.DISCOUNT_TYPES)
    discount_value = serializers.DecimalField(min_value=0, **AMOUNT)
    minimum_amount = serializers.DecimalField(required=False, min_value=0, **AMOUNT)
    maximum_discount = serializers.DecimalField(required=False, allow_null=True, min_value=0, **AMOUNT)
    usage_limit = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    user_limit = serializers.IntegerField(required=False, min_value=1)
    valid_from = serializers.DateTimeField()
    valid_until = serializers.DateTimeField()
    is_active = serializers.BooleanField(required=False)
    is_public = serializers.BooleanField(required=False)
    restrictions = serializers.DictField(
        child=serializers.ListField(child=serializers.CharField()), required=False, default=dict
    )

    def validate_restrictions(self, value: dict[str, Any]) -> dict[str, Any]:
        unknown = set(value) - set(RESTRICTION_FIELDS)
        if unknown:
            raise serializers.ValidationError(f"Unknown restriction: {', '.join(sorted(unknown))}")
        return value
