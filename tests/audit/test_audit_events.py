"""
Tests for the audit trail service
"""

import uuid
from decimal import Decimal

from django.test import RequestFactory, TestCase, override_settings
from django.utils import timezone

from apps.audit.models import AuditEvent
from apps.audit.services import AuditContext, AuditEventData, AuditService, serialize_details
from tests.factories.commerce import create_user


class SerializeDetailsTestCase(TestCase):

    def test_non_json_values_are_stringified(self):
        order_id = uuid.uuid4()
        now = timezone.now()

        details = serialize_details({'amount': Decimal('10.50'), 'order_id': order_id, 'at': now})

        self.assertEqual(details['amount'], '10.50')
        self.assertEqual(details['order_id'], str(order_id))
        self.assertEqual(details['at'], now.isoformat())

    def test_model_instances_are_referenced(self):
        user = create_user()
        self.assertEqual(serialize_details({'user': user})['user'], f"User(pk={user.pk})")

    def test_unserializable_values_are_reported(self):
        details = serialize_details({'blob': object()})
        self.assertIn('serialization_error', details)
        self.assertEqual(details['original_keys'], ['blob'])


class AuditServiceTestCase(TestCase):
    """🔐 Events persist with their context"""

    def setUp(self):
        self.user = create_user()
        self.factory = RequestFactory()

    def test_log_event_with_context(self):
        context = AuditContext(user=self.user, ip_address='10.0.0.1', user_agent='pytest', request_id='req-1')

        event = AuditService.log_event(
            AuditEventData(
                action='payment_failed',
                resource='payment',
                resource_id=uuid.uuid4(),
                details={'amount': Decimal('5.00')},
                severity='medium',
                status='failed',
                error_message='Insufficient funds',
            ),
            context,
        )

        event.refresh_from_db()
        self.assertEqual(event.user, self.user)
        self.assertEqual(event.ip_address, '10.0.0.1')
        self.assertEqual(event.request_id, 'req-1')
        self.assertEqual(event.details, {'amount': '5.00'})
        self.assertEqual(event.status, 'failed')
        self.assertEqual(event.error_message, 'Insufficient funds')

    def test_system_event_gets_request_id(self):
        event = AuditService.log_event(AuditEventData(action='zone_update', resource='delivery_zone'))

        self.assertIsNone(event.user)
        self.assertEqual(event.actor_type, 'user')
        self.assertTrue(event.request_id)

    @override_settings(IPWARE_TRUSTED_PROXY_LIST=[])
    def test_context_from_request(self):
        request = self.factory.post('/api/orders/', HTTP_USER_AGENT='DukaApp/1.0', REMOTE_ADDR='41.90.1.2')
        request.user = self.user
        request.META['REQUEST_ID'] = 'abc123'

        context = AuditContext.from_request(request, actor_type='gateway')

        self.assertEqual(context.user, self.user)
        self.assertEqual(context.ip_address, '41.90.1.2')
        self.assertEqual(context.user_agent, 'DukaApp/1.0')
        self.assertEqual(context.request_id, 'abc123')
        self.assertEqual(context.actor_type, 'gateway')

    def test_anonymous_request_has_no_user(self):
        from django.contrib.auth.models import AnonymousUser

        request = self.factory.post('/api/payments/mpesa/callback/')
        request.user = AnonymousUser()

        self.assertIsNone(AuditContext.from_request(request).user)

    def test_events_newest_first(self):
        AuditService.log_event(AuditEventData(action='order_create', resource='order'))
        AuditService.log_event(AuditEventData(action='order_cancel', resource='order'))

        self.assertEqual(AuditEvent.objects.first().action, 'order_cancel')
