"""
Order API Views for Duka
Checkout, order history, cancellation and admin status management.
"""

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core.responses import error_response, success_response, validation_error_response
from apps.api.core.throttling import OrderCreateThrottle
from apps.audit.services import AuditContext
from apps.common.types import ServiceError
from apps.common.utils import paginate, parse_page_params
from apps.orders.services import OrderCreateData, OrderFilters, OrderQueryService, OrderService, StatusChangeData

from .serializers import (
    OrderCreateInputSerializer,
    OrderDetailSerializer,
    OrderListSerializer,
    OrderStatusInputSerializer,
)

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@throttle_classes([OrderCreateThrottle])
def order_collection(request: Request) -> Response:
    """POST checks out the caller's cart; GET is the admin order list"""
    if request.method == 'POST':
        return _create_order(request)

    if not request.user.is_staff:
        return error_response(ServiceError.forbidden("Admin access required"))

    params = request.query_params
    filters: OrderFilters = {
        key: params[key]
        for key in ('status', 'payment_status', 'order_number', 'user_id', 'date_from', 'date_to')
        if params.get(key)
    }
    page, limit = parse_page_params(params)
    orders, pagination = paginate(OrderQueryService.all_orders(filters).order_by('-created_at'), page, limit)
    return success_response(OrderListSerializer(orders, many=True).data, pagination=pagination)


def _create_order(request: Request) -> Response:
    serializer = OrderCreateInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = OrderService.create_from_cart(
        request.user,
        OrderCreateData(
            shipping_address=data['shipping_address'],
            payment_method=data['payment_method'],
            billing_address=data['billing_address'],
            notes=data['notes'],
        ),
        AuditContext.from_request(request),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    order = result.unwrap()
    logger.info(f"🛒 [Orders API] {order.order_number} created via API by {request.user.email}")
    return success_response(
        OrderDetailSerializer(order).data,
        message="Order created successfully",
        http_status=status.HTTP_201_CREATED,
    )


@api_view(['GET'])
def my_orders(request: Request) -> Response:
    queryset = OrderQueryService.orders_for_user(request.user, request.query_params.get('status'))
    page, limit = parse_page_params(request.query_params)
    orders, pagination = paginate(queryset.order_by('-created_at'), page, limit)
    return success_response(OrderListSerializer(orders, many=True).data, pagination=pagination)


@api_view(['GET'])
def order_detail(request: Request, order_id: str) -> Response:
    result = OrderQueryService.get_order_for_user(request.user, order_id)
    if result.is_err():
        return error_response(result.unwrap_err())
    return success_response(OrderDetailSerializer(result.unwrap()).data)


@api_view(['PUT'])
def cancel_order(request: Request, order_id: str) -> Response:
    order = OrderQueryService.get_order(order_id)
    if order is None:
        return error_response(ServiceError.not_found("Order not found"))

    result = OrderService.cancel_order(request.user, order, AuditContext.from_request(request))
    if result.is_err():
        return error_response(result.unwrap_err())
    return success_response(OrderDetailSerializer(result.unwrap()).data, message="Order cancelled successfully")


@api_view(['PUT'])
@permission_classes([IsAdminUser])
def update_order_status(request: Request, order_id: str) -> Response:
    serializer = OrderStatusInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    order = OrderQueryService.get_order(order_id)
    if order is None:
        return error_response(ServiceError.not_found("Order not found"))

    data = serializer.validated_data
    result = OrderService.update_order_status(
        order,
        StatusChangeData(
            new_status=data['status'],
            notes=data['note'],
            changed_by=request.user,
            carrier=data['carrier'],
            tracking_number=data['tracking_number'],
        ),
        AuditContext.from_request(request),
    )
    if result.is_err():
        return error_response(result.unwrap_err())
    return success_response(OrderDetailSerializer(result.unwrap()).data, message="Order status updated")
