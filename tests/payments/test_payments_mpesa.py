"""
Test suite for M-Pesa payments
Tests STK push initiation, callback resolution with deduplication,
cashback and refunds to the wallet.
"""

from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase, override_settings

from apps.audit.models import AuditEvent
from apps.integrations.models import WebhookEvent
from apps.orders.models import Order
from apps.payments.gateways.mpesa import MpesaGatewayError, StkPushResponse
from apps.payments.services import MpesaCallbackResult, MpesaPaymentService, PaymentQueryService, RefundService
from apps.payments.webhooks import MpesaCallbackProcessor
from apps.wallet.models import Wallet, WalletTransaction
from tests.factories.commerce import (
    create_admin,
    create_order,
    create_product,
    create_user,
    mpesa_callback_payload,
)

CHECKOUT_ID = 'ws_CO_191220191020363925'


def _stk_response(checkout_request_id: str = CHECKOUT_ID) -> StkPushResponse:
    return StkPushResponse(
        checkout_request_id=checkout_request_id,
        merchant_request_id='29115-34620561-1',
        response_code='0',
        response_description='Success. Request accepted for processing',
        customer_message='Success. Request accepted for processing',
    )


class CallbackParsingTestCase(TestCase):

    def test_success_payload(self):
        callback = MpesaCallbackResult.from_payload(mpesa_callback_payload(CHECKOUT_ID, amount=1000))

        self.assertTrue(callback.succeeded)
        self.assertEqual(callback.checkout_request_id, CHECKOUT_ID)
        self.assertEqual(callback.receipt_number, 'QKL7ABC123')
        self.assertEqual(callback.amount, 1000)
        self.assertEqual(callback.phone_number, '254712345678')

    def test_failure_payload_has_no_metadata(self):
        callback = MpesaCallbackResult.from_payload(mpesa_callback_payload(CHECKOUT_ID, result_code=1032))

        self.assertFalse(callback.succeeded)
        self.assertIsNone(callback.receipt_number)

    def test_malformed_payloads(self):
        for payload in ({}, {'Body': {}}, {'Body': {'stkCallback': {'ResultCode': 0}}},
                        {'Body': {'stkCallback': {'CheckoutRequestID': 'x', 'ResultCode': 'abc'}}}):
            with self.subTest(payload=payload):
                self.assertIsNone(MpesaCallbackResult.from_payload(payload))


class StkPushInitiateTestCase(TestCase):
    """Phase 1: the order remembers the CheckoutRequestID"""

    def setUp(self):
        self.user = create_user()
        self.order = create_order(self.user, [(create_product(price_cents=150050), 1)])

    @patch('apps.payments.services.MpesaGateway')
    def test_initiate_stores_checkout_id(self, mock_gateway):
        mock_gateway.return_value.stk_push.return_value = _stk_response()

        result = MpesaPaymentService.initiate(self.user, self.order.pk, '0712345678', '1500.50')

        self.assertTrue(result.is_ok(), result)
        mock_gateway.return_value.stk_push.assert_called_once_with(
            '254712345678', 1501, self.order.order_number, f"Payment for order {self.order.order_number}"
        )
        self.order.refresh_from_db()
        self.assertEqual(self.order.transaction_id, CHECKOUT_ID)
        self.assertEqual(self.order.payment_method, 'mpesa')
        self.assertEqual(self.order.payment_status, 'pending')
        self.assertTrue(AuditEvent.objects.filter(action='payment_initiate', status='success').exists())

    @patch('apps.payments.services.MpesaGateway')
    def test_gateway_failure_is_audited(self, mock_gateway):
        mock_gateway.return_value.stk_push.side_effect = MpesaGatewayError('Bad Request', {'errorCode': '400'})

        result = MpesaPaymentService.initiate(self.user, self.order.pk, '254712345678', '1500.50')

        self.assertEqual(result.unwrap_err().code, 'gateway')
        self.assertEqual(result.unwrap_err().message, "Failed to initiate M-Pesa payment")
        event = AuditEvent.objects.get(action='payment_initiate')
        self.assertEqual(event.status, 'failed')
        self.order.refresh_from_db()
        self.assertEqual(self.order.transaction_id, '')

    @patch('apps.payments.services.MpesaGateway')
    def test_rejections_never_reach_gateway(self, mock_gateway):
        paid = create_order(self.user, payment_status='completed')
        cancelled = create_order(self.user, status='cancelled')

        test_cases = [
            (self.user, self.order.pk, '', '10', "Order ID, phone number, and amount are required"),
            (self.user, self.order.pk, '12345', '10', "Invalid phone number format. Use format: 254XXXXXXXXX"),
            (self.user, self.order.pk, '0712345678', '0', "Amount must be greater than 0"),
            (self.user, self.order.pk, '0712345678', '0.4', "Amount must be at least KES 1"),
            (self.user, self.order.pk, '0712345678', '1', "Payment amount must equal the order total of KES 1501"),
            (create_user(), self.order.pk, '0712345678', '10', "Not authorized to pay for this order"),
            (self.user, paid.pk, '0712345678', '10', "Order is already paid"),
            (self.user, cancelled.pk, '0712345678', '10', "Cannot pay for a cancelled order"),
        ]
        for user, order_id, phone, amount, message in test_cases:
            with self.subTest(message=message):
                result = MpesaPaymentService.initiate(user, order_id, phone, amount)
                self.assertEqual(result.unwrap_err().message, message)

        mock_gateway.return_value.stk_push.assert_not_called()


class MpesaCallbackTestCase(TestCase):
    """Phase 2: callback → payment, confirmation and cashback exactly once"""

    def setUp(self):
        self.user = create_user()
        # 1000.00 total → 10.00 cashback at 1%
        self.order = create_order(
            self.user,
            [(create_product(price_cents=100000), 1)],
            transaction_id=CHECKOUT_ID,
        )
        self.processor = MpesaCallbackProcessor()

    def tearDown(self):
        cache.clear()

    def _process(self, payload, signature=''):
        return self.processor.process_webhook(payload, signature=signature, ip_address='196.201.214.200')

    @override_settings(WALLET_CASHBACK_RATE=Decimal('0.01'))
    def test_success_completes_payment_once(self):
        payload = mpesa_callback_payload(CHECKOUT_ID, amount=1000)

        first = self._process(payload)
        second = self._process(payload)

        self.assertTrue(first.success)
        self.assertEqual(first.http_status, 200)
        self.assertTrue(second.success)
        self.assertIn('Duplicate', second.message)

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'completed')
        self.assertEqual(self.order.status, 'confirmed')
        self.assertEqual(self.order.transaction_id, 'QKL7ABC123')
        self.assertIsNotNone(self.order.paid_at)

        wallet = Wallet.objects.get(user=self.user)
        self.assertEqual(wallet.balance_cents, 1000)
        cashback = WalletTransaction.objects.get(wallet=wallet)
        self.assertEqual(cashback.reference, f"CASHBACK-{self.order.order_number}")
        self.assertEqual(cashback.source, 'cashback')

        event = WebhookEvent.objects.get(source='mpesa', event_id=CHECKOUT_ID)
        self.assertEqual(event.status, 'processed')
        self.assertEqual(event.event_type, 'stk_callback.success')
        self.assertEqual(AuditEvent.objects.filter(action='payment_success').count(), 1)

    def test_unknown_checkout_id_changes_nothing(self):
        result = self._process(mpesa_callback_payload('ws_CO_unknown'))

        self.assertFalse(result.success)
        self.assertEqual(result.http_status, 404)
        self.assertEqual(result.message, "Order not found")
        self.assertEqual(WebhookEvent.objects.count(), 0)
        self.assertFalse(Wallet.objects.exists())
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'pending')

    def test_failed_payment_leaves_order_pending(self):
        result = self._process(mpesa_callback_payload(CHECKOUT_ID, result_code=1032))

        self.assertTrue(result.success)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'failed')
        self.assertEqual(self.order.status, 'pending')
        self.assertFalse(Wallet.objects.exists())
        event = AuditEvent.objects.get(action='payment_failed')
        self.assertEqual(event.error_message, 'Request cancelled by user')

    def test_already_paid_order_is_skipped(self):
        Order.objects.filter(pk=self.order.pk).update(payment_status='completed')

        result = self._process(mpesa_callback_payload(CHECKOUT_ID))

        self.assertTrue(result.success)
        event = WebhookEvent.objects.get(event_id=CHECKOUT_ID)
        self.assertEqual(event.status, 'skipped')
        self.assertFalse(Wallet.objects.exists())

    def test_handler_exception_rolls_back(self):
        with patch('apps.payments.webhooks.MpesaPaymentService.confirm_payment', side_effect=RuntimeError('db gone')):
            result = self._process(mpesa_callback_payload(CHECKOUT_ID))

        self.assertFalse(result.success)
        self.assertEqual(result.http_status, 500)
        self.assertEqual(WebhookEvent.objects.count(), 0)

    def test_invalid_payload(self):
        result = self._process({'Body': {'stkCallback': {}}})

        self.assertEqual(result.http_status, 400)
        self.assertEqual(WebhookEvent.objects.count(), 0)

    @override_settings(MPESA_CALLBACK_TOKEN='s3cret')
    def test_callback_token(self):
        rejected = self._process(mpesa_callback_payload(CHECKOUT_ID), signature='wrong')
        self.assertEqual(rejected.http_status, 401)
        self.assertEqual(WebhookEvent.objects.count(), 0)

        accepted = self._process(mpesa_callback_payload(CHECKOUT_ID), signature='s3cret')
        self.assertTrue(accepted.success)

    def test_underpaid_callback_does_not_confirm(self):
        result = self._process(mpesa_callback_payload(CHECKOUT_ID, amount=1))

        self.assertTrue(result.success)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'failed')
        self.assertEqual(self.order.status, 'pending')
        self.assertIsNone(self.order.paid_at)
        self.assertFalse(Wallet.objects.exists())
        event = AuditEvent.objects.get(action='payment_failed')
        self.assertEqual(event.severity, 'high')
        self.assertEqual(event.details['expected_amount'], 1000)

    def test_success_without_amount_is_not_trusted(self):
        payload = mpesa_callback_payload(CHECKOUT_ID)
        items = payload['Body']['stkCallback']['CallbackMetadata']['Item']
        payload['Body']['stkCallback']['CallbackMetadata']['Item'] = [i for i in items if i['Name'] != 'Amount']

        self._process(payload)

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'failed')
        self.assertEqual(self.order.status, 'pending')

    def test_cancelled_order_is_not_confirmed(self):
        self.order.update_status('cancelled')

        self._process(mpesa_callback_payload(CHECKOUT_ID))

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'cancelled')
        self.assertEqual(self.order.payment_status, 'pending')
        self.assertEqual(WebhookEvent.objects.get(event_id=CHECKOUT_ID).status, 'skipped')


class RefundTestCase(TestCase):

    def setUp(self):
        self.admin = create_admin()
        self.user = create_user()
        self.order = create_order(
            self.user,
            [(create_product(price_cents=50000), 1)],
            status='confirmed',
            payment_status='completed',
        )

    def test_full_refund_to_wallet(self):
        result = RefundService.process_refund(self.admin, self.order.pk, reason='Damaged')

        self.assertTrue(result.is_ok(), result)
        refund = result.unwrap()
        self.assertEqual(refund.amount, Decimal('500.00'))
        self.assertEqual(refund.wallet_balance, Decimal('500.00'))

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'refunded')
        self.assertEqual(self.order.payment_status, 'refunded')
        entry = WalletTransaction.objects.get(source='refund')
        self.assertEqual(entry.reference, f"REFUND-{self.order.order_number}")
        self.assertEqual(entry.metadata['reason'], 'Damaged')
        history = self.order.status_history.last()
        self.assertEqual(history.changed_by, self.admin)
        self.assertIn('Reason: Damaged', history.notes)

    def test_partial_refund(self):
        result = RefundService.process_refund(self.admin, self.order.pk, amount='120.50')

        self.assertEqual(result.unwrap().amount_cents, 12050)
        self.assertEqual(Wallet.objects.get(user=self.user).balance_cents, 12050)

    def test_refund_rejections(self):
        unpaid = create_order(self.user, status='confirmed')
        self.assertEqual(
            RefundService.process_refund(self.admin, unpaid.pk).unwrap_err().message, "Cannot refund unpaid order"
        )
        self.assertEqual(
            RefundService.process_refund(self.admin, self.order.pk, amount='500.01').unwrap_err().message,
            "Refund amount cannot exceed order total",
        )
        self.assertFalse(Wallet.objects.exists())

    def test_refund_twice_rejected(self):
        RefundService.process_refund(self.admin, self.order.pk)

        result = RefundService.process_refund(self.admin, self.order.pk)

        self.assertEqual(result.unwrap_err().message, "Cannot refund unpaid order")
        self.assertEqual(Wallet.objects.get(user=self.user).balance_cents, 50000)

    def test_status_changed_after_read_is_rejected(self):
        stale = Order.objects.get(pk=self.order.pk)
        Order.objects.filter(pk=self.order.pk).update(status='cancelled')

        with patch('apps.payments.services.OrderQueryService.get_order', return_value=stale):
            result = RefundService.process_refund(self.admin, self.order.pk)

        self.assertEqual(result.unwrap_err().code, 'validation')
        self.assertEqual(result.unwrap_err().message, "Invalid status transition from cancelled to refunded")
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'completed')
        self.assertFalse(Wallet.objects.exists())


class PaymentQueryTestCase(TestCase):

    def setUp(self):
        self.user = create_user()
        self.paid = create_order(self.user, [(create_product(price_cents=20000), 1)], payment_status='completed')
        self.unpaid = create_order(self.user, [(create_product(price_cents=5000), 1)])

    def test_payment_status_access(self):
        status = PaymentQueryService.payment_status(self.user, self.paid.pk).unwrap()
        self.assertEqual(status['paymentStatus'], 'completed')
        self.assertEqual(status['amount'], Decimal('200.00'))

        self.assertEqual(PaymentQueryService.payment_status(create_user(), self.paid.pk).unwrap_err().code, 'forbidden')

    def test_history_stats(self):
        orders, stats = PaymentQueryService.payment_history()

        self.assertEqual(orders.count(), 2)
        self.assertEqual(stats['totalAmount'], Decimal('250.00'))
        self.assertEqual(stats['completedPayments'], 1)
        self.assertEqual(stats['completedAmount'], Decimal('200.00'))

        orders, stats = PaymentQueryService.payment_history({'status': 'pending'})
        self.assertEqual(list(orders), [self.unpaid])
