"""
Payment services for Duka
M-Pesa STK push initiation and callback resolution, refunds to wallet,
payment status and admin payment history.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, TypedDict

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q, QuerySet, Sum
from django.utils import timezone

from apps.audit.services import AuditContext, AuditEventData, AuditService
from apps.common.constants import CENTS_PER_UNIT
from apps.common.types import CheckoutRequestID, Err, Ok, Result, ServiceError, WebhookPayload
from apps.common.utils import from_cents, round_cents_to_unit, to_cents
from apps.common.validators import normalize_kenyan_phone, parse_positive_amount
from apps.orders.models import InvalidStatusTransition, Order
from apps.orders.services import OrderQueryService
from apps.users.models import User
from apps.wallet.models import WalletTransaction
from apps.wallet.services import WalletService

from .gateways.mpesa import MpesaGateway, MpesaGatewayError, StkPushResponse

logger = logging.getLogger(__name__)

UNPAYABLE_STATUSES = ('cancelled', 'refunded')


def _whole_shillings(value: Any) -> int | None:
    """Callback Amount as whole shillings; None when missing or not a number"""
    parsed = parse_positive_amount(value)
    if parsed.is_err():
        return None
    return int(parsed.unwrap().quantize(Decimal('1'), rounding=ROUND_HALF_UP))

# ===============================================================================
# PARAMETER OBJECTS
# ===============================================================================

class PaymentFilters(TypedDict, total=False):
    status: str
    method: str
    start_date: str
    end_date: str


@dataclass(frozen=True)
class MpesaCallbackResult:
    """Parsed stkCallback body; metadata items are looked up by Name"""
    checkout_request_id: CheckoutRequestID
    result_code: int
    result_description: str
    receipt_number: str | None = None
    amount: Any = None
    phone_number: str | None = None
    transaction_date: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.result_code == 0

    @classmethod
    def from_payload(cls, payload: WebhookPayload) -> MpesaCallbackResult | None:
        callback = (payload.get('Body') or {}).get('stkCallback') if isinstance(payload, dict) else None
        if not isinstance(callback, dict) or not callback.get('CheckoutRequestID'):
            return None

        try:
            result_code = int(callback.get('ResultCode'))
        except (TypeError, ValueError):
            return None

        items = (callback.get('CallbackMetadata') or {}).get('Item') or []
        metadata = {item.get('Name'): item.get('Value') for item in items if isinstance(item, dict)}

        phone = metadata.get('PhoneNumber')
        receipt = metadata.get('MpesaReceiptNumber')
        transaction_date = metadata.get('TransactionDate')
        return cls(
            checkout_request_id=str(callback['CheckoutRequestID']),
            result_code=result_code,
            result_description=str(callback.get('ResultDesc', '')),
            receipt_number=str(receipt) if receipt else None,
            amount=metadata.get('Amount'),
            phone_number=str(phone) if phone else None,
            transaction_date=str(transaction_date) if transaction_date else None,
        )


@dataclass(frozen=True)
class RefundResult:
    order: Order
    amount_cents: int
    wallet_transaction: WalletTransaction

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

    @property
    def wallet_balance(self) -> Decimal:
        return from_cents(self.wallet_transaction.balance_after_cents)

# ===============================================================================
# M-PESA PAYMENT SERVICE
# ===============================================================================

class MpesaPaymentService:
    """
    Two-phase M-Pesa payment.

    Phase 1 (initiate) stores the gateway CheckoutRequestID on the order
    with payment pending. Phase 2 (the callback) finds the order by that
    id and resolves the payment.
    """

    @staticmethod
    def initiate(
        user: User,
        order_id: Any,
        phone: str,
        amount: Any,
        context: AuditContext | None = None,
    ) -> Result[StkPushResponse, ServiceError]:
        if not order_id or not phone or amount in (None, ''):
            return Err(ServiceError.validation("Order ID, phone number, and amount are required"))

        phone_result = normalize_kenyan_phone(phone)
        if phone_result.is_err():
            return Err(ServiceError.validation(phone_result.unwrap_err()))
        msisdn = phone_result.unwrap()

        parsed = parse_positive_amount(amount)
        if parsed.is_err():
            return Err(ServiceError.validation(parsed.unwrap_err()))
        # Daraja accepts whole shillings only
        whole_amount = int(parsed.unwrap().quantize(Decimal('1'), rounding=ROUND_HALF_UP))
        if whole_amount < 1:
            return Err(ServiceError.validation("Amount must be at least KES 1"))

        order = OrderQueryService.get_order(order_id)
        if order is None:
            return Err(ServiceError.not_found("Order not found"))

        if order.user_id != user.pk:
            return Err(ServiceError.forbidden("Not authorized to pay for this order"))

        if order.is_paid:
            return Err(ServiceError.validation("Order is already paid"))

        if order.status in UNPAYABLE_STATUSES:
            return Err(ServiceError.validation(f"Cannot pay for a {order.status} order"))

        expected_amount = MpesaPaymentService.billable_amount(order)
        if whole_amount != expected_amount:
            return Err(ServiceError.validation(f"Payment amount must equal the order total of KES {expected_amount}"))

        context = context or AuditContext(user=user)
        details = {'payment_method': 'mpesa', 'amount': whole_amount, 'phone_number': msisdn}

        try:
            response = MpesaGateway().stk_push(
                msisdn,
                whole_amount,
                order.order_number,
                f"Payment for order {order.order_number}",
            )
        except MpesaGatewayError as e:
            logger.error(f"🔥 [M-Pesa] STK push failed for {order.order_number}: {e}")
            AuditService.log_event(
                AuditEventData(
                    action='payment_initiate',
                    resource='payment',
                    resource_id=str(order.pk),
                    details={**details, 'error': e.response_data or str(e)},
                    severity='medium',
                    status='failed',
                    error_message=str(e),
                ),
                context,
            )
            return Err(ServiceError.gateway("Failed to initiate M-Pesa payment"))

        order.transaction_id = response.checkout_request_id
        order.payment_method = 'mpesa'
        order.payment_status = 'pending'
        order.save(update_fields=['transaction_id', 'payment_method', 'payment_status', 'updated_at'])

        AuditService.log_event(
            AuditEventData(
                action='payment_initiate',
                resource='payment',
                resource_id=str(order.pk),
                details={**details, 'checkout_request_id': response.checkout_request_id},
            ),
            context,
        )
        return Ok(response)

    @staticmethod
    def billable_amount(order: Order) -> int:
        """Order total in whole shillings, at least 1"""
        return max(1, round_cents_to_unit(order.total_cents) // CENTS_PER_UNIT)

    @staticmethod
    def find_pending_order(checkout_request_id: CheckoutRequestID) -> Order | None:
        """Correlate a callback with the order that started the STK push"""
        return (
            Order.objects.live()
            .filter(payment_method='mpesa', transaction_id=checkout_request_id)
            .select_related('user')
            .first()
        )

    @staticmethod
    def confirm_payment(order: Order, callback: MpesaCallbackResult, context: AuditContext) -> tuple[bool, str]:
        """
        Successful callback: payment completed, order confirmed, cashback.

        Must run inside the caller's transaction. Returns (False, reason)
        when the order can no longer take a payment.
        """
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.is_paid:
            return False, f"Order {order.order_number} is already paid"
        if order.status in UNPAYABLE_STATUSES:
            return False, f"Order {order.order_number} is {order.status}"

        expected_amount = MpesaPaymentService.billable_amount(order)
        paid_amount = _whole_shillings(callback.amount)
        if paid_amount is None or paid_amount < expected_amount:
            return MpesaPaymentService.reject_underpayment(order, callback, expected_amount, context)

        order.payment_status = 'completed'
        order.paid_at = timezone.now()
        order.transaction_id = callback.receipt_number or callback.checkout_request_id
        order.save(update_fields=['payment_status', 'paid_at', 'transaction_id', 'updated_at'])

        if order.status == 'pending':
            order.update_status('confirmed', f"Payment confirmed via M-Pesa. Receipt: {callback.receipt_number}")

        cashback_cents = MpesaPaymentService.credit_cashback(order, callback.receipt_number)

        AuditService.log_event(
            AuditEventData(
                action='payment_success',
                resource='payment',
                resource_id=str(order.pk),
                details={
                    'payment_method': 'mpesa',
                    'amount': callback.amount,
                    'phone_number': callback.phone_number,
                    'mpesa_receipt_number': callback.receipt_number,
                    'transaction_date': callback.transaction_date,
                    'checkout_request_id': callback.checkout_request_id,
                    'cashback': from_cents(cashback_cents),
                },
            ),
            AuditContext(
                user=order.user,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                request_id=context.request_id,
                actor_type='gateway',
            ),
        )

        logger.info(f"✅ [M-Pesa] {order.order_number} paid, receipt {callback.receipt_number}")
        return True, f"Payment completed for order {order.order_number}"

    @staticmethod
    def reject_underpayment(
        order: Order, callback: MpesaCallbackResult, expected_amount: int, context: AuditContext
    ) -> tuple[bool, str]:
        """Callback paid less than the order total: payment failed, no confirmation, no cashback"""
        order.payment_status = 'failed'
        order.save(update_fields=['payment_status', 'updated_at'])

        AuditService.log_event(
            AuditEventData(
                action='payment_failed',
                resource='payment',
                resource_id=str(order.pk),
                details={
                    'payment_method': 'mpesa',
                    'amount': callback.amount,
                    'expected_amount': expected_amount,
                    'mpesa_receipt_number': callback.receipt_number,
                    'checkout_request_id': callback.checkout_request_id,
                },
                severity='high',
                status='failed',
                error_message="Paid amount is below the order total",
            ),
            AuditContext(
                user=order.user,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                request_id=context.request_id,
                actor_type='gateway',
            ),
        )

        logger.warning(
            f"⚠️ [M-Pesa] {order.order_number} underpaid: got {callback.amount}, expected {expected_amount}"
        )
        return True, f"Payment amount below order total for order {order.order_number}"

    @staticmethod
    def fail_payment(order: Order, callback: MpesaCallbackResult, context: AuditContext) -> tuple[bool, str]:
        """Non-zero result code: payment failed, order status untouched"""
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.is_paid:
            return False, f"Order {order.order_number} is already paid"

        order.payment_status = 'failed'
        order.save(update_fields=['payment_status', 'updated_at'])

        AuditService.log_event(
            AuditEventData(
                action='payment_failed',
                resource='payment',
                resource_id=str(order.pk),
                details={
                    'payment_method': 'mpesa',
                    'result_code': callback.result_code,
                    'result_description': callback.result_description,
                    'checkout_request_id': callback.checkout_request_id,
                },
                severity='medium',
                status='failed',
                error_message=callback.result_description,
            ),
            AuditContext(
                user=order.user,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                request_id=context.request_id,
                actor_type='gateway',
            ),
        )

        logger.warning(f"⚠️ [M-Pesa] {order.order_number} payment failed: {callback.result_description}")
        return True, f"Payment failed for order {order.order_number}"

    @staticmethod
    def credit_cashback(order: Order, receipt_number: str | None = None) -> int:
        """Credit round(total x rate) whole shillings; returns cents credited"""
        cashback_cents = round_cents_to_unit(Decimal(order.total_cents) * settings.WALLET_CASHBACK_RATE)
        if cashback_cents <= 0:
            return 0

        WalletService.credit(
            order.user,
            cashback_cents,
            description=f"Cashback for order {order.order_number}",
            reference=f"CASHBACK-{order.order_number}",
            source='cashback',
            metadata={'order_id': str(order.pk), 'mpesa_receipt_number': receipt_number},
        )
        return cashback_cents

# ===============================================================================
# REFUND SERVICE
# ===============================================================================

class RefundService:
    """Admin refunds; money goes back to the buyer's wallet"""

    @staticmethod
    def process_refund(
        admin: User,
        order_id: Any,
        amount: Any = None,
        reason: str = '',
        context: AuditContext | None = None,
    ) -> Result[RefundResult, ServiceError]:
        order = OrderQueryService.get_order(order_id)
        if order is None:
            return Err(ServiceError.not_found("Order not found"))

        if order.payment_status != 'completed':
            return Err(ServiceError.validation("Cannot refund unpaid order"))

        if amount in (None, ''):
            amount_cents = order.total_cents
        else:
            parsed = parse_positive_amount(amount)
            if parsed.is_err():
                return Err(ServiceError.validation(parsed.unwrap_err()))
            amount_cents = to_cents(parsed.unwrap())
            if amount_cents > order.total_cents:
                return Err(ServiceError.validation("Refund amount cannot exceed order total"))

        if not Order.is_valid_transition(order.status, 'refunded'):
            return Err(ServiceError.validation(f"Order cannot be refunded from status {order.status}"))

        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(pk=order.pk)
                if order.payment_status != 'completed':
                    return Err(ServiceError.validation("Cannot refund unpaid order"))

                order.payment_status = 'refunded'
                order.save(update_fields=['payment_status', 'updated_at'])
                order.update_status(
                    'refunded',
                    f"Refund processed: KES {from_cents(amount_cents)}. Reason: {reason}",
                    admin,
                )

                entry = WalletService.credit(
                    order.user,
                    amount_cents,
                    description=f"Refund for order {order.order_number}",
                    reference=f"REFUND-{order.order_number}",
                    source='refund',
                    metadata={'order_id': str(order.pk), 'admin_id': str(admin.pk), 'reason': reason},
                )

                AuditService.log_event(
                    AuditEventData(
                        action='payment_refund',
                        resource='payment',
                        resource_id=str(order.pk),
                        details={
                            'refund_amount': from_cents(amount_cents),
                            'reason': reason,
                            'original_amount': order.total,
                            'order_number': order.order_number,
                        },
                        severity='medium',
                    ),
                    context or AuditContext(user=admin),
                )
        except InvalidStatusTransition as e:
            return Err(ServiceError.validation(str(e)))

        logger.info(f"💸 [Payments] Refunded {from_cents(amount_cents)} on {order.order_number} by {admin.email}")
        return Ok(RefundResult(order=order, amount_cents=amount_cents, wallet_transaction=entry))

# ===============================================================================
# PAYMENT QUERY SERVICE
# ===============================================================================

class PaymentQueryService:

    @staticmethod
    def payment_status(user: User, order_id: Any) -> Result[dict[str, Any], ServiceError]:
        order = OrderQueryService.get_order(order_id)
        if order is None:
            return Err(ServiceError.not_found("Order not found"))
        if order.user_id != user.pk and not user.is_staff:
            return Err(ServiceError.forbidden("Not authorized to view this order"))

        return Ok({
            'orderId': str(order.pk),
            'orderNumber': order.order_number,
            'paymentStatus': order.payment_status,
            'paymentMethod': order.payment_method,
            'transactionId': order.transaction_id,
            'paidAt': order.paid_at,
            'amount': order.total,
        })

    @staticmethod
    def payment_history(filters: PaymentFilters | None = None) -> tuple[QuerySet[Order], dict[str, Any]]:
        """Filtered orders newest first, with totals over the whole filter"""
        filters = filters or {}
        queryset = Order.objects.live().select_related('user').order_by('-created_at')

        if status := filters.get('status'):
            queryset = queryset.filter(payment_status=status)
        if method := filters.get('method'):
            queryset = queryset.filter(payment_method=method)
        if start_date := filters.get('start_date'):
            queryset = queryset.filter(created_at__date__gte=start_date)
        if end_date := filters.get('end_date'):
            queryset = queryset.filter(created_at__date__lte=end_date)

        totals = queryset.aggregate(
            amount_sum=Sum('total_cents'),
            total_orders=Count('id'),
            completed_payments=Count('id', filter=Q(payment_status='completed')),
            completed_sum=Sum('total_cents', filter=Q(payment_status='completed')),
        )
        stats = {
            'totalAmount': from_cents(totals['amount_sum'] or 0),
            'totalOrders': totals['total_orders'],
            'completedPayments': totals['completed_payments'],
            'completedAmount': from_cents(totals['completed_sum'] or 0),
        }
        return queryset, stats
