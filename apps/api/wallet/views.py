"""
Wallet API Views for Duka
Balance, ledger, wallet checkout and admin credit/reporting.
"""

import logging

from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core.responses import error_response, success_response, validation_error_response
from apps.api.core.throttling import WalletPayThrottle
from apps.audit.services import AuditContext
from apps.common.utils import from_cents, paginate, parse_page_params
from apps.wallet.services import WalletService

from .serializers import (
    AdminWalletSerializer,
    WalletCreditInputSerializer,
    WalletPayInputSerializer,
    WalletSerializer,
    WalletTransactionSerializer,
)

logger = logging.getLogger(__name__)


@api_view(['GET'])
def wallet_detail(request: Request) -> Response:
    wallet = WalletService.get_or_create_wallet(request.user)
    return success_response(WalletSerializer(wallet).data)


@api_view(['GET'])
def wallet_transactions(request: Request) -> Response:
    page, limit = parse_page_params(request.query_params)
    entries, pagination = WalletService.transaction_history(request.user, page, limit)
    return success_response(WalletTransactionSerializer(entries, many=True).data, pagination=pagination)


@api_view(['POST'])
@throttle_classes([WalletPayThrottle])
def wallet_pay(request: Request) -> Response:
    serializer = WalletPayInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = WalletService.pay_order(
        request.user, data['order_id'], data['amount'], AuditContext.from_request(request)
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    payment = result.unwrap()
    return success_response(
        {
            'orderId': str(payment.order.pk),
            'orderNumber': payment.order.order_number,
            'amountPaid': from_cents(payment.amount_cents),
            'walletBalance': payment.wallet_balance,
            'paymentMethod': 'wallet',
        },
        message="Payment completed successfully",
    )


@api_view(['POST'])
@permission_classes([IsAdminUser])
def wallet_credit(request: Request) -> Response:
    serializer = WalletCreditInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = WalletService.admin_credit(
        request.user,
        data['user_id'],
        data['amount'],
        data['description'],
        data['reference'],
        AuditContext.from_request(request),
    )
    if result.is_err():
        return error_response(result.unwrap_err())

    entry = result.unwrap()
    return success_response(
        {
            'walletId': str(entry.wallet_id),
            'newBalance': from_cents(entry.balance_after_cents),
            'transaction': WalletTransactionSerializer(entry).data,
        },
        message="Credit added successfully",
    )


@api_view(['GET'])
@permission_classes([IsAdminUser])
def wallet_stats(request: Request) -> Response:
    return success_response(WalletService.wallet_stats())


@api_view(['GET'])
@permission_classes([IsAdminUser])
def wallet_list(request: Request) -> Response:
    params = request.query_params
    queryset = WalletService.list_wallets(params.get('min_balance'), params.get('max_balance'))
    page, limit = parse_page_params(params)
    wallets, pagination = paginate(queryset, page, limit)
    return success_response(AdminWalletSerializer(wallets, many=True).data, pagination=pagination)
