"""
Payment API Views for Duka
M-Pesa STK push and callback, payment status, refunds and admin history.
"""

import logging
from typing import Any

from django.views.decorators.csrf import csrf_exempt
from rest_framework.decorators import api_view, authentication_classes, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core.responses import error_response, success_response, validation_error_response
from apps.api.core.throttling import MpesaCallbackThrottle, PaymentInitiateThrottle
from apps.audit.services import AuditContext
from apps.common.utils import get_safe_client_ip, paginate, parse_page_params
from apps.payments.services import MpesaPaymentService, PaymentFilters, PaymentQueryService, RefundService
from apps.payments.webhooks import MpesaCallbackProcessor

from .serializers import PaymentHistorySerializer, RefundInputSerializer, StkPushInputSerializer

logger = logging.getLogger(__name__)


@api_view(['POST'])
@throttle_classes([PaymentInitiateThrottle])
def mpesa_stk_push(request: Request) -> Response:
    """Phase 1: ask Safaricom to prompt the buyer's phone"""
    serializer = StkPushInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = MpesaPaymentService.initiate(
        request.user,
        data['order_id'],
        data['phone_number'],
        data['amount'],
        AuditContext.from_request(request),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    response = result.unwrap()
    return success_response(
        {
            'checkoutRequestId': response.checkout_request_id,
            'merchantRequestId': response.merchant_request_id,
            'responseDescription': response.response_description,
            'customerMessage': response.customer_message,
        },
        message="STK push sent successfully",
    )


@csrf_exempt
@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([MpesaCallbackThrottle])
def mpesa_callback(request: Request) -> Response:
    """
    Phase 2: Daraja posts the STK result here.

    Duplicates are acknowledged with 200; an unknown CheckoutRequestID is
    a 404; processing errors answer 500 so Safaricom retries.
    """
    token = request.query_params.get('token') or request.headers.get('X-Callback-Token', '')
    headers: dict[str, Any] = {
        key: value for key, value in request.headers.items() if key.lower() not in ('authorization', 'cookie')
    }

    result = MpesaCallbackProcessor().process_webhook(
        payload=request.data,
        signature=token,
        headers=headers,
        ip_address=get_safe_client_ip(request),
        user_agent=request.headers.get('User-Agent', ''),
    )

    if result.success:
        logger.info(f"📱 [M-Pesa] Callback handled: {result.message}")
        return success_response(
            message=result.message,
            http_status=result.http_status,
            ResultCode=0,
            ResultDesc="Accepted",
        )

    logger.warning(f"⚠️ [M-Pesa] Callback rejected ({result.http_status}): {result.message}")
    return error_response(result.message, http_status=result.http_status, ResultCode=1, ResultDesc=result.message)


@api_view(['GET'])
def payment_status(request: Request, order_id: str) -> Response:
    result = PaymentQueryService.payment_status(request.user, order_id)
    if result.is_err():
        return error_response(result.unwrap_err())
    return success_response(result.unwrap())


@api_view(['GET'])
@permission_classes([IsAdminUser])
def payment_history(request: Request) -> Response:
    params = request.query_params
    filters: PaymentFilters = {
        key: params[key] for key in ('status', 'method', 'start_date', 'end_date') if params.get(key)
    }
    queryset, stats = PaymentQueryService.payment_history(filters)

    page, limit = parse_page_params(params)
    orders, pagination = paginate(queryset, page, limit)
    return success_response(PaymentHistorySerializer(orders, many=True).data, pagination=pagination, stats=stats)


@api_view(['POST'])
@permission_classes([IsAdminUser])
def refund_order(request: Request, order_id: str) -> Response:
    serializer = RefundInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = RefundService.process_refund(
        request.user,
        order_id,
        data['amount'],
        data['reason'],
        AuditContext.from_request(request),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    refund = result.unwrap()
    return success_response(
        {
            'orderId': str(refund.order.pk),
            'orderNumber': refund.order.order_number,
            'refundAmount': refund.amount,
            'newWalletBalance': refund.wallet_balance,
        },
        message="Refund processed successfully",
    )
