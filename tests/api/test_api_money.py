# ===============================================================================
# API TESTS FOR PAYMENTS AND WALLET ENDPOINTS
# ===============================================================================
"""
Endpoint tests for the M-Pesa STK push and callback, refunds, payment
status and history, and the wallet.
"""

from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from apps.integrations.models import WebhookEvent
from apps.payments.gateways.mpesa import MpesaGatewayError, StkPushResponse
from apps.wallet.models import Wallet, WalletTransaction
from apps.wallet.services import WalletService
from tests.factories.commerce import (
    create_admin,
    create_order,
    create_product,
    create_user,
    mpesa_callback_payload,
)

CHECKOUT_ID = 'ws_CO_191220191020363925'


class StkPushAPITestCase(TestCase):
    """📱 Phase 1: STK push initiation"""

    def setUp(self):
        self.user = create_user()
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)
        self.order = create_order(self.user, [(create_product(price_cents=150000), 1)])

    @patch('apps.payments.services.MpesaGateway')
    def test_stk_push(self, gateway_class):
        gateway_class.return_value.stk_push.return_value = StkPushResponse(
            checkout_request_id=CHECKOUT_ID,
            merchant_request_id='29115-34620561-1',
            response_code='0',
            response_description='Success. Request accepted for processing',
            customer_message='Success. Request accepted for processing',
        )

        response = self.client.post(
            reverse('api:payments:mpesa_stk_push'),
            {'order_id': str(self.order.pk), 'phone_number': '0712345678', 'amount': '1500.00'},
            format='json',
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['checkoutRequestId'], CHECKOUT_ID)
        gateway_class.return_value.stk_push.assert_called_once_with(
            '254712345678', 1500, self.order.order_number, f"Payment for order {self.order.order_number}"
        )
        self.order.refresh_from_db()
        self.assertEqual(self.order.transaction_id, CHECKOUT_ID)

    @patch('apps.payments.services.MpesaGateway')
    def test_gateway_failure_is_500(self, gateway_class):
        gateway_class.return_value.stk_push.side_effect = MpesaGatewayError("Daraja unavailable")

        response = self.client.post(
            reverse('api:payments:mpesa_stk_push'),
            {'order_id': str(self.order.pk), 'phone_number': '254712345678', 'amount': '1500'},
            format='json',
        )

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data['message'], 'Failed to initiate M-Pesa payment')

    def test_invalid_phone(self):
        response = self.client.post(
            reverse('api:payments:mpesa_stk_push'),
            {'order_id': str(self.order.pk), 'phone_number': '12345', 'amount': '1500'},
            format='json',
        )
        self.assertEqual(response.status_code, 400)

    @patch('apps.payments.services.MpesaGateway')
    def test_amount_below_total(self, gateway_class):
        response = self.client.post(
            reverse('api:payments:mpesa_stk_push'),
            {'order_id': str(self.order.pk), 'phone_number': '254712345678', 'amount': '1'},
            format='json',
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Payment amount must equal the order total of KES 1500')
        gateway_class.return_value.stk_push.assert_not_called()

    def test_someone_elses_order(self):
        other = APIClient()
        other.force_authenticate(user=create_user())

        response = other.post(
            reverse('api:payments:mpesa_stk_push'),
            {'order_id': str(self.order.pk), 'phone_number': '254712345678', 'amount': '1500'},
            format='json',
        )
        self.assertEqual(response.status_code, 403)


class MpesaCallbackAPITestCase(TestCase):
    """📱 Phase 2: Daraja posts the result"""

    def setUp(self):
        self.client = APIClient()
        self.user = create_user()
        self.order = create_order(self.user, [(create_product(price_cents=100000), 1)], transaction_id=CHECKOUT_ID)

    def _post(self, payload, **kwargs):
        return self.client.post(reverse('api:payments:mpesa_callback'), payload, format='json', **kwargs)

    def test_successful_callback_is_public(self):
        response = self._post(mpesa_callback_payload(CHECKOUT_ID))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['ResultCode'], 0)
        self.assertEqual(response.data['ResultDesc'], 'Accepted')

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'completed')
        self.assertEqual(self.order.status, 'confirmed')
        self.assertEqual(self.order.transaction_id, 'QKL7ABC123')

    def test_retry_is_acknowledged_once(self):
        self._post(mpesa_callback_payload(CHECKOUT_ID))
        response = self._post(mpesa_callback_payload(CHECKOUT_ID))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(WebhookEvent.objects.filter(source='mpesa').count(), 1)
        self.assertEqual(WalletTransaction.objects.filter(source='cashback').count(), 1)

    def test_unknown_checkout_id(self):
        response = self._post(mpesa_callback_payload('ws_CO_unknown'))

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['ResultCode'], 1)
        self.assertFalse(WebhookEvent.objects.exists())

    def test_malformed_payload(self):
        response = self._post({'Body': {}})
        self.assertEqual(response.status_code, 400)

    @override_settings(MPESA_CALLBACK_TOKEN='s3cret')
    def test_callback_token(self):
        response = self._post(mpesa_callback_payload(CHECKOUT_ID))
        self.assertEqual(response.status_code, 401)

        response = self.client.post(
            f"{reverse('api:payments:mpesa_callback')}?token=s3cret",
            mpesa_callback_payload(CHECKOUT_ID),
            format='json',
        )
        self.assertEqual(response.status_code, 200)


class PaymentAdminAPITestCase(TestCase):
    """💸 Refunds, status and history"""

    def setUp(self):
        self.user = create_user()
        self.admin = create_admin()
        self.order = create_order(
            self.user, [(create_product(price_cents=50000), 1)], status='confirmed', payment_status='completed'
        )
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)
        self.admin_client = APIClient()
        self.admin_client.force_authenticate(user=self.admin)

    def test_payment_status(self):
        response = self.client.get(reverse('api:payments:payment_status', args=[self.order.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['paymentStatus'], 'completed')
        self.assertEqual(response.data['data']['amount'], Decimal('500.00'))

        stranger = APIClient()
        stranger.force_authenticate(user=create_user())
        response = stranger.get(reverse('api:payments:payment_status', args=[self.order.pk]))
        self.assertEqual(response.status_code, 403)

    def test_refund(self):
        response = self.admin_client.post(
            reverse('api:payments:refund_order', args=[self.order.pk]),
            {'amount': '200.00', 'reason': 'Bruised fruit'},
            format='json',
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['refundAmount'], Decimal('200.00'))
        self.assertEqual(response.data['data']['newWalletBalance'], Decimal('200.00'))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'refunded')

    def test_refund_over_total(self):
        response = self.admin_client.post(
            reverse('api:payments:refund_order', args=[self.order.pk]), {'amount': '900.00'}, format='json'
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Refund amount cannot exceed order total')

    def test_refund_is_admin_only(self):
        response = self.client.post(reverse('api:payments:refund_order', args=[self.order.pk]), {}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_history_with_stats(self):
        create_order(self.user, [(create_product(price_cents=1000), 1)], payment_method='wallet')

        response = self.admin_client.get(reverse('api:payments:payment_history'), {'method': 'mpesa'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row['id'] for row in response.data['data']], [str(self.order.pk)])
        self.assertIn('stats', response.data)


class WalletAPITestCase(TestCase):
    """👛 Balance, ledger and wallet checkout"""

    def setUp(self):
        self.user = create_user()
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)
        WalletService.credit(self.user, 100000, 'Top up', 'TOPUP-1', 'admin_credit')
        self.order = create_order(self.user, [(create_product(price_cents=30000), 1)], payment_method='wallet')

    def _pay(self, amount):
        return self.client.post(
            reverse('api:wallet:wallet_pay'), {'order_id': str(self.order.pk), 'amount': amount}, format='json'
        )

    def test_wallet_detail(self):
        response = self.client.get(reverse('api:wallet:wallet_detail'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['balance'], '1000.00')

    def test_pay(self):
        response = self._pay('300.00')

        self.assertEqual(response.status_code, 200)
        data = response.data['data']
        self.assertEqual(data['amountPaid'], Decimal('300.00'))
        self.assertEqual(data['walletBalance'], Decimal('700.00'))
        self.assertEqual(data['paymentMethod'], 'wallet')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'confirmed')

    def test_pay_twice(self):
        self._pay('300.00')
        response = self._pay('300.00')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Order is already paid')

    def test_insufficient_balance(self):
        response = self._pay('5000.00')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Insufficient wallet balance')

    def test_transactions_newest_first(self):
        self._pay('300.00')

        response = self.client.get(reverse('api:wallet:wallet_transactions'))

        self.assertEqual([row['type'] for row in response.data['data']], ['debit', 'credit'])
        self.assertEqual(response.data['data'][0]['balance_after'], '700.00')


class WalletAdminAPITestCase(TestCase):
    """🔐 Admin credit and reporting"""

    def setUp(self):
        self.customer = create_user()
        self.admin_client = APIClient()
        self.admin_client.force_authenticate(user=create_admin())

    def test_credit(self):
        response = self.admin_client.post(
            reverse('api:wallet:wallet_credit'),
            {'user_id': self.customer.pk, 'amount': '250.00', 'description': 'Goodwill', 'reference': 'GW-1'},
            format='json',
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['newBalance'], Decimal('250.00'))
        self.assertEqual(Wallet.objects.get(user=self.customer).balance_cents, 25000)

    def test_credit_is_admin_only(self):
        client = APIClient()
        client.force_authenticate(user=self.customer)

        response = client.post(reverse('api:wallet:wallet_credit'), {}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_stats_and_list(self):
        WalletService.credit(self.customer, 5000, 'Top up', 'TOPUP-2', 'admin_credit')

        response = self.admin_client.get(reverse('api:wallet:wallet_stats'))
        self.assertEqual(response.status_code, 200)

        response = self.admin_client.get(reverse('api:wallet:wallet_list'), {'min_balance': '10'})
        self.assertEqual(response.data['data'][0]['user']['email'], self.customer.email)
