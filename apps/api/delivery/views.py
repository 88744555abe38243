"""
Delivery API Views for Duka
Public zone pricing, agent self-service and admin dispatch.
"""

import logging
from typing import Any

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core.permissions import IsDeliveryAgent
from apps.api.core.responses import error_response, success_response, validation_error_response
from apps.audit.services import AuditContext
from apps.common.utils import paginate, parse_page_params
from apps.delivery.services import (
    AgentApplicationData,
    AgentFilters,
    AgentService,
    DeliveryService,
    ZoneData,
    ZoneService,
)

from .serializers import (
    AgentApplicationInputSerializer,
    AgentDeliverySerializer,
    AgentStatusInputSerializer,
    AssignInputSerializer,
    AvailabilityInputSerializer,
    DeliveryAgentSerializer,
    DeliveryStatusInputSerializer,
    DeliveryZoneSerializer,
    FeeInputSerializer,
    ZoneInputSerializer,
)

logger = logging.getLogger(__name__)

# ===============================================================================
# PUBLIC
# ===============================================================================

@api_view(['GET'])
@permission_classes([AllowAny])
def zone_list(request: Request) -> Response:
    return success_response(DeliveryZoneSerializer(ZoneService.list_active_zones(), many=True).data)


@api_view(['POST'])
@permission_classes([AllowAny])
def calculate_fee(request: Request) -> Response:
    """Quote by zone code, falling back to a postal code lookup"""
    serializer = FeeInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = ZoneService.calculate_fee(data['order_total'], data['zone_code'], data['postal_code'])
    if result.is_err():
        return error_response(result.unwrap_err())

    quote = result.unwrap()
    zone = quote.zone
    return success_response({
        'zone': {'name': zone.name, 'code': zone.code, 'county': zone.county},
        'delivery_fee': quote.fee,
        'free_delivery_threshold': zone.free_delivery_threshold,
        'estimated_delivery_days': {'min': zone.min_delivery_days, 'max': zone.max_delivery_days},
        'delivery_time_range': zone.delivery_time_range,
    })

# ===============================================================================
# AGENT SELF-SERVICE
# ===============================================================================

@api_view(['POST'])
def agent_apply(request: Request) -> Response:
    serializer = AgentApplicationInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = AgentService.apply(
        request.user,
        AgentApplicationData(
            national_id=data['national_id'],
            phone=data['phone'],
            emergency_contact=dict(data['emergency_contact']),
            vehicle=dict(data['vehicle']),
            alternative_phone=data['alternative_phone'],
            mpesa_number=data['mpesa_number'],
            address=data['address'],
            bank_details=data['bank_details'],
            zone_ids=data['zones'],
        ),
        AuditContext.from_request(request),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    agent = result.unwrap()
    return success_response(
        {'agent_id': agent.agent_id, 'status': agent.status},
        message="Delivery agent application submitted successfully",
        http_status=status.HTTP_201_CREATED,
    )


@api_view(['GET'])
def agent_profile(request: Request) -> Response:
    result = DeliveryService.get_agent_for_user(request.user)
    if result.is_err():
        return error_response(result.unwrap_err())
    return success_response(DeliveryAgentSerializer(result.unwrap()).data)


@api_view(['PUT'])
def agent_availability(request: Request) -> Response:
    serializer = AvailabilityInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    is_available = serializer.validated_data['is_available']
    result = AgentService.set_availability(request.user, is_available)
    if result.is_err():
        return error_response(result.unwrap_err())

    agent = result.unwrap()
    return success_response(
        {'is_available': agent.is_available, 'last_seen': agent.last_seen},
        message=f"Availability updated to {'available' if is_available else 'unavailable'}",
    )


@api_view(['GET'])
@permission_classes([IsDeliveryAgent])
def agent_deliveries(request: Request) -> Response:
    result = AgentService.deliveries(request.user, request.query_params.get('status'))
    if result.is_err():
        return error_response(result.unwrap_err())

    page, limit = parse_page_params(request.query_params)
    orders, pagination = paginate(result.unwrap(), page, limit)
    return success_response(AgentDeliverySerializer(orders, many=True).data, pagination=pagination)


@api_view(['PUT'])
@permission_classes([IsDeliveryAgent])
def delivery_status(request: Request, order_id: str) -> Response:
    serializer = DeliveryStatusInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = DeliveryService.update_delivery_status(
        request.user,
        order_id,
        data['status'],
        data['note'],
        data['location'],
        AuditContext.from_request(request),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    delivery = result.unwrap()
    return success_response(
        {
            'order_id': str(delivery.order_id),
            'order_number': delivery.order.order_number,
            'order_status': delivery.order.status,
            'delivery_status': delivery.status,
            'last_update': delivery.last_update,
        },
        message="Delivery status updated successfully",
    )

# ===============================================================================
# ADMIN
# ===============================================================================

@api_view(['GET'])
@permission_classes([IsAdminUser])
def admin_agent_list(request: Request) -> Response:
    params = request.query_params
    filters: AgentFilters = {}
    if params.get('status'):
        filters['status'] = params['status']
    if params.get('zone'):
        filters['zone'] = params['zone']
    if params.get('available') in ('true', 'false'):
        filters['available'] = params['available'] == 'true'

    page, limit = parse_page_params(params)
    agents, pagination = paginate(AgentService.list_agents(filters), page, limit)
    return success_response(DeliveryAgentSerializer(agents, many=True).data, pagination=pagination)


@api_view(['PUT'])
@permission_classes([IsAdminUser])
def admin_agent_status(request: Request, agent_id: str) -> Response:
    serializer = AgentStatusInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = AgentService.set_agent_status(
        request.user, agent_id, data['status'], data['rejection_reason'], AuditContext.from_request(request)
    )
    if result.is_err():
        return error_response(result.unwrap_err())
    return success_response(
        DeliveryAgentSerializer(result.unwrap()).data,
        message=f"Agent status updated to {data['status']}",
    )


@api_view(['POST'])
@permission_classes([IsAdminUser])
def admin_assign(request: Request) -> Response:
    serializer = AssignInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = DeliveryService.assign(
        request.user,
        data['order_id'],
        data['agent_id'],
        data['instructions'],
        AuditContext.from_request(request),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    delivery = result.unwrap()
    return success_response(
        {
            'order_id': str(delivery.order_id),
            'order_number': delivery.order.order_number,
            'agent_id': delivery.agent.agent_id,
            'zone': delivery.zone.code if delivery.zone else None,
            'assigned_at': delivery.assigned_at,
        },
        message="Delivery agent assigned successfully",
    )


def _zone_data(validated: dict[str, Any]) -> ZoneData:
    values = dict(validated)
    if 'areas' in values:
        values['areas'] = [dict(area) for area in values['areas']]
    return ZoneData(**values, provided_fields=frozenset(validated))


@api_view(['POST'])
@permission_classes([IsAdminUser])
def admin_zone_create(request: Request) -> Response:
    serializer = ZoneInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    result = ZoneService.create_zone(
        request.user, _zone_data(serializer.validated_data), AuditContext.from_request(request)
    )
    if result.is_err():
        return error_response(result.unwrap_err())
    return success_response(
        DeliveryZoneSerializer(result.unwrap()).data,
        message="Delivery zone created successfully",
        http_status=status.HTTP_201_CREATED,
    )


@api_view(['PUT'])
@permission_classes([IsAdminUser])
def admin_zone_update(request: Request, zone_id: str) -> Response:
    serializer = ZoneInputSerializer(data=request.data, partial=True)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    result = ZoneService.update_zone(
        request.user, zone_id, _zone_data(serializer.validated_data), AuditContext.from_request(request)
    )
    if result.is_err():
        return error_response(result.unwrap_err())
    return success_response(
        DeliveryZoneSerializer(result.unwrap()).data,
        message="Delivery zone updated successfully",
    )
