"""
Delivery API Serializers for Duka
Zones, agent profiles and the courier's view of assigned orders.
"""

from typing import Any

from rest_framework import serializers

from apps.api.orders.serializers import OrderDeliverySerializer, OrderListSerializer
from apps.delivery.models import DeliveryAgent, DeliveryZone
from apps.orders.models import Order

AMOUNT = {'max_digits': 12, 'decimal_places': 2}


class DeliveryZoneSerializer(serializers.ModelSerializer):
    delivery_fee = serializers.DecimalField(read_only=True, **AMOUNT)
    free_delivery_threshold = serializers.DecimalField(read_only=True, **AMOUNT)
    delivery_time_range = serializers.CharField(read_only=True)

    class Meta:
        model = DeliveryZone
        fields = [
            'id', 'name', 'code', 'description', 'county', 'areas', 'delivery_fee',
            'free_delivery_threshold', 'min_delivery_days', 'max_delivery_days',
            'delivery_time_range', 'is_active', 'priority', 'restrictions',
        ]


class DeliveryAgentSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    zones = serializers.SerializerMethodField()
    performance = serializers.SerializerMethodField()

    class Meta:
        model = DeliveryAgent
        fields = [
            'id', 'agent_id', 'full_name', 'email', 'national_id', 'phone', 'alternative_phone',
            'mpesa_number', 'address', 'emergency_contact', 'vehicle', 'zones', 'status',
            'is_available', 'working_hours_start', 'working_hours_end', 'working_days', 'last_seen',
            'performance', 'approved_at', 'rejection_reason', 'created_at',
        ]

    def get_zones(self, obj: DeliveryAgent) -> list[dict[str, Any]]:
        return [{'id': str(zone.pk), 'code': zone.code, 'name': zone.name} for zone in obj.zones.all()]

    def get_performance(self, obj: DeliveryAgent) -> dict[str, Any]:
        return {
            'total_deliveries': obj.total_deliveries,
            'successful_deliveries': obj.successful_deliveries,
            'on_time_deliveries': obj.on_time_deliveries,
            'average_rating': str(obj.average_rating),
            'total_ratings': obj.total_ratings,
            'average_delivery_minutes': obj.average_delivery_minutes,
            'success_rate': obj.success_rate,
            'on_time_rate': obj.on_time_rate,
        }


class AgentDeliverySerializer(OrderListSerializer):
    """An assigned order as the courier sees it"""

    delivery = OrderDeliverySerializer(read_only=True)
    customer_name = serializers.CharField(source='user.full_name', read_only=True)
    customer_phone = serializers.CharField(source='user.phone', read_only=True)

    class Meta(OrderListSerializer.Meta):
        model = Order
        fields = [*OrderListSerializer.Meta.fields, 'customer_name', 'customer_phone', 'shipping_address', 'delivery']

# ===============================================================================
# INPUT SERIALIZERS
# ===============================================================================

class EmergencyContactSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    phone = serializers.CharField(max_length=20)
    relationship = serializers.CharField(max_length=50)


class VehicleSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=DeliveryAgent.VEHICLE_TYPES)
    registration_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    model = serializers.CharField(max_length=50, required=False, allow_blank=True)
    year = serializers.IntegerField(required=False, min_value=1950)


class AgentApplicationInputSerializer(serializers.Serializer):
    national_id = serializers.CharField(max_length=20)
    phone = serializers.CharField(max_length=20)
    alternative_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    mpesa_number = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    address = serializers.DictField(required=False, default=dict)
    emergency_contact = EmergencyContactSerializer()
    vehicle = VehicleSerializer()
    bank_details = serializers.DictField(required=False, default=dict)
    zones = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)


class AvailabilityInputSerializer(serializers.Serializer):
    is_available = serializers.BooleanField()


class DeliveryStatusInputSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=20)
    note = serializers.CharField(required=False, allow_blank=True, default='')
    location = serializers.DictField(required=False, allow_null=True, default=None)


class AgentStatusInputSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=20)
    rejection_reason = serializers.CharField(required=False, allow_blank=True, default='')


class AssignInputSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    agent_id = serializers.UUIDField()
    instructions = serializers.CharField(required=False, allow_blank=True, default='')


class FeeInputSerializer(serializers.Serializer):
    zone_code = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    postal_code = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    order_total = serializers.DecimalField(required=False, default=0, min_value=0, **AMOUNT)


class AreaSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    postal_codes = serializers.ListField(child=serializers.CharField(max_length=20), required=False, default=list)


class ZoneInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    code = serializers.CharField(max_length=20)
    description = serializers.CharField(required=False, allow_blank=True)
    county = serializers.CharField(max_length=100)
    areas = AreaSerializer(many=True, required=False)
    delivery_fee = serializers.DecimalField(min_value=0, **AMOUNT)
    free_delivery_threshold = serializers.DecimalField(required=False, min_value=0, **AMOUNT)
    min_delivery_days = serializers.IntegerField(min_value=1)
    max_delivery_days = serializers.IntegerField(min_value=1)
    is_active = serializers.BooleanField(required=False)
    priority = serializers.IntegerField(required=False, min_value=1)
    restrictions = serializers.DictField(required=False)
