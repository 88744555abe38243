"""
Tests for the Daraja (M-Pesa) API client
HTTP calls are mocked at the requests boundary.
"""

import base64
from unittest.mock import Mock, patch

import requests
from django.core.cache import cache
from django.test import SimpleTestCase, override_settings

from apps.payments.gateways.mpesa import MpesaConfig, MpesaGateway, MpesaGatewayError, StkPushResponse


def _config(**overrides) -> MpesaConfig:
    values = {
        'consumer_key': 'key',
        'consumer_secret': 'secret',
        'business_shortcode': '174379',
        'passkey': 'passkey',
        'callback_url': 'https://shop.test/api/payments/mpesa/callback/',
    }
    values.update(overrides)
    return MpesaConfig(**values)


def _response(json_data, status_code=200):
    response = Mock()
    response.json.return_value = json_data
    response.status_code = status_code
    response.ok = status_code < 400
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


STK_ACCEPTED = {
    'MerchantRequestID': '29115-34620561-1',
    'CheckoutRequestID': 'ws_CO_191220191020363925',
    'ResponseCode': '0',
    'ResponseDescription': 'Success. Request accepted for processing',
    'CustomerMessage': 'Success. Request accepted for processing',
}


class MpesaGatewayTestCase(SimpleTestCase):
    """📱 Token caching, password derivation and STK push handling"""

    def setUp(self):
        cache.clear()
        self.gateway = MpesaGateway(_config())

    def tearDown(self):
        cache.clear()

    def test_password_is_base64_of_shortcode_passkey_timestamp(self):
        password, timestamp = self.gateway.generate_password('20240101120000')

        self.assertEqual(timestamp, '20240101120000')
        self.assertEqual(base64.b64decode(password).decode(), '174379passkey20240101120000')

    @patch('apps.payments.gateways.mpesa.requests.get')
    def test_access_token_is_cached(self, mock_get):
        mock_get.return_value = _response({'access_token': 'tok-1', 'expires_in': '3599'})

        self.assertEqual(self.gateway.get_access_token(), 'tok-1')
        self.assertEqual(self.gateway.get_access_token(), 'tok-1')

        mock_get.assert_called_once()
        _args, kwargs = mock_get.call_args
        self.assertEqual(kwargs['auth'], ('key', 'secret'))
        self.assertEqual(kwargs['params'], {'grant_type': 'client_credentials'})

    @patch('apps.payments.gateways.mpesa.requests.get')
    def test_token_failure_raises(self, mock_get):
        mock_get.side_effect = requests.ConnectionError('down')

        with self.assertRaises(MpesaGatewayError):
            self.gateway.get_access_token()

    def test_missing_credentials(self):
        gateway = MpesaGateway(_config(consumer_key=''))
        with self.assertRaisesMessage(MpesaGatewayError, "M-Pesa credentials are not configured"):
            gateway.get_access_token()

    @patch('apps.payments.gateways.mpesa.requests.post')
    @patch('apps.payments.gateways.mpesa.requests.get')
    def test_stk_push_payload(self, mock_get, mock_post):
        mock_get.return_value = _response({'access_token': 'tok-1', 'expires_in': 3599})
        mock_post.return_value = _response(STK_ACCEPTED)

        result = self.gateway.stk_push('254712345678', 1500, 'ORD-1-0001', 'Payment for order ORD-1-0001')

        self.assertIsInstance(result, StkPushResponse)
        self.assertEqual(result.checkout_request_id, 'ws_CO_191220191020363925')
        self.assertTrue(result.accepted)

        _args, kwargs = mock_post.call_args
        payload = kwargs['json']
        self.assertEqual(payload['TransactionType'], 'CustomerPayBillOnline')
        self.assertEqual(payload['Amount'], 1500)
        self.assertEqual(payload['PartyA'], '254712345678')
        self.assertEqual(payload['PhoneNumber'], '254712345678')
        self.assertEqual(payload['PartyB'], '174379')
        self.assertEqual(payload['AccountReference'], 'ORD-1-0001')
        self.assertEqual(payload['CallBackURL'], 'https://shop.test/api/payments/mpesa/callback/')
        self.assertEqual(kwargs['headers'], {'Authorization': 'Bearer tok-1'})

    @patch('apps.payments.gateways.mpesa.requests.post')
    @patch('apps.payments.gateways.mpesa.requests.get')
    def test_stk_push_rejected(self, mock_get, mock_post):
        mock_get.return_value = _response({'access_token': 'tok-1'})
        mock_post.return_value = _response(
            {'requestId': 'x', 'errorCode': '400.002.02', 'errorMessage': 'Bad Request - Invalid PhoneNumber'},
            status_code=400,
        )

        with self.assertRaises(MpesaGatewayError) as ctx:
            self.gateway.stk_push('254712345678', 10, 'ORD-1', 'Payment')

        self.assertEqual(str(ctx.exception), 'Bad Request - Invalid PhoneNumber')
        self.assertEqual(ctx.exception.response_data['errorCode'], '400.002.02')

    @override_settings(MPESA_CALLBACK_TOKEN='s3cret')
    def test_callback_url_carries_token(self):
        self.assertEqual(
            self.gateway.callback_url,
            'https://shop.test/api/payments/mpesa/callback/?token=s3cret',
        )

    @override_settings(MPESA_ENVIRONMENT='production')
    def test_config_from_settings(self):
        config = MpesaConfig.from_settings()
        self.assertEqual(config.environment, 'production')
        self.assertEqual(config.base_url, 'https://api.safaricom.co.ke')
