"""
Test suite for delivery services
Tests agent onboarding, assignment, courier status updates with
performance tracking, and zone administration.
"""

from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase

from apps.audit.models import AuditEvent
from apps.common.types import ConcurrencyConflict
from apps.delivery.models import DeliveryAgent, DeliveryOutcome, OrderDelivery
from apps.delivery.services import (
    AgentApplicationData,
    AgentService,
    DeliveryService,
    ZoneData,
    ZoneService,
)
from tests.factories.commerce import (
    create_admin,
    create_agent,
    create_order,
    create_product,
    create_user,
    create_zone,
)


class AgentApplicationTestCase(TestCase):
    """📝 Becoming a delivery agent"""

    def setUp(self):
        self.user = create_user(first_name='Otieno')
        self.zone = create_zone()

    def _data(self, **overrides):
        values = {
            'national_id': '12345678',
            'phone': '0722000111',
            'emergency_contact': {'name': 'Akinyi', 'phone': '254722000222', 'relationship': 'Sister'},
            'vehicle': {'type': 'motorcycle', 'registration_number': 'KMDA 123A'},
            'zone_ids': [self.zone.pk],
        }
        values.update(overrides)
        return AgentApplicationData(**values)

    def test_apply_creates_pending_agent(self):
        result = AgentService.apply(self.user, self._data())

        self.assertTrue(result.is_ok(), result)
        agent = result.unwrap()
        self.assertEqual(agent.status, 'pending_approval')
        self.assertEqual(agent.phone, '254722000111')
        self.assertEqual(agent.mpesa_number, '254722000111')
        self.assertEqual(list(agent.zones.all()), [self.zone])
        self.assertTrue(self.user.is_delivery_agent)
        self.assertTrue(AuditEvent.objects.filter(action='agent_application').exists())

    def test_duplicate_application(self):
        AgentService.apply(self.user, self._data())
        result = AgentService.apply(self.user, self._data(national_id='87654321'))
        self.assertEqual(result.unwrap_err().message, "You already have a delivery agent application")

    def test_application_rejections(self):
        create_agent(national_id='11112222')
        test_cases = [
            (self._data(national_id=''), "National ID is required"),
            (self._data(national_id='11112222'), "National ID is already registered"),
            (self._data(phone='12345'), "Invalid phone number format. Use format: 254XXXXXXXXX"),
            (self._data(phone=''), "Phone number is required"),
            (self._data(zone_ids=['not-a-uuid']), "One or more selected zones are invalid"),
            (self._data(zone_ids=[create_zone(code='OFF', is_active=False).pk]),
             "One or more selected zones are invalid"),
        ]
        for data, message in test_cases:
            with self.subTest(message=message):
                self.assertEqual(AgentService.apply(self.user, data).unwrap_err().message, message)
        self.assertFalse(DeliveryAgent.objects.filter(user=self.user).exists())


class AgentAdministrationTestCase(TestCase):

    def setUp(self):
        self.admin = create_admin()
        self.agent = create_agent(status='pending_approval')

    def test_approve_stamps_approver(self):
        result = AgentService.set_agent_status(self.admin, self.agent.pk, 'active')

        agent = result.unwrap()
        self.assertEqual(agent.status, 'active')
        self.assertEqual(agent.approved_by, self.admin)
        self.assertIsNotNone(agent.approved_at)
        event = AuditEvent.objects.get(action='agent_status_change')
        self.assertEqual(event.details['old_status'], 'pending_approval')
        self.assertEqual(event.severity, 'medium')

    def test_reject_stores_reason(self):
        agent = AgentService.set_agent_status(self.admin, self.agent.pk, 'rejected', 'Expired licence').unwrap()
        self.assertEqual(agent.rejection_reason, 'Expired licence')
        self.assertIsNone(agent.approved_by)

    def test_invalid_requests(self):
        self.assertEqual(
            AgentService.set_agent_status(self.admin, self.agent.pk, 'pending_approval').unwrap_err().message,
            "Invalid status",
        )
        self.assertEqual(
            AgentService.set_agent_status(self.admin, 'nope', 'active').unwrap_err().code, 'not_found'
        )

    def test_status_change_keeps_concurrent_performance(self):
        stale = DeliveryAgent.objects.get(pk=self.agent.pk)
        DeliveryService.record_performance(self.agent, DeliveryOutcome(True, True, delivery_minutes=30))

        with patch.object(DeliveryAgent.objects, 'live') as live:
            live.return_value.filter.return_value.first.return_value = stale
            result = AgentService.set_agent_status(self.admin, self.agent.pk, 'suspended')

        self.assertTrue(result.is_ok(), result)
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.status, 'suspended')
        self.assertEqual(self.agent.total_deliveries, 1)
        self.assertEqual(self.agent.successful_deliveries, 1)
        self.assertEqual(self.agent.average_delivery_minutes, 30)
        self.assertEqual(self.agent.version, 1)

    def test_availability_requires_active_agent(self):
        result = AgentService.set_availability(self.agent.user, False)
        self.assertEqual(result.unwrap_err().message, "Agent account is not active")

        AgentService.set_agent_status(self.admin, self.agent.pk, 'active')
        agent = AgentService.set_availability(self.agent.user, False).unwrap()
        self.assertFalse(agent.is_available)
        self.assertIsNotNone(agent.last_seen)

    def test_list_filters(self):
        zone = create_zone()
        create_agent(zones=[zone], is_available=False)

        self.assertEqual(AgentService.list_agents({'status': 'pending_approval'}).get(), self.agent)
        self.assertEqual(AgentService.list_agents({'zone': str(zone.pk)}).count(), 1)
        self.assertEqual(AgentService.list_agents({'available': False}).count(), 1)
        self.assertEqual(AgentService.list_agents().count(), 2)


class AssignmentTestCase(TestCase):
    """🚚 Admin hands an order to an agent"""

    def setUp(self):
        self.admin = create_admin()
        self.zone = create_zone(postal_codes=['00100'])
        self.agent = create_agent(zones=[self.zone])
        self.order = create_order(create_user(), [(create_product(), 1)], status='confirmed')

    def test_assign_moves_order_to_processing(self):
        result = DeliveryService.assign(self.admin, self.order.pk, self.agent.pk, 'Call on arrival')

        self.assertTrue(result.is_ok(), result)
        delivery = result.unwrap()
        self.assertEqual(delivery.status, 'assigned')
        self.assertEqual(delivery.zone, self.zone)
        self.assertEqual(delivery.instructions, 'Call on arrival')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'processing')
        self.assertEqual(self.order.status_history.last().notes, f"Assigned to delivery agent {self.agent.agent_id}")
        self.assertTrue(AuditEvent.objects.filter(action='delivery_assign').exists())

    def test_assign_rejections(self):
        busy = create_agent(is_available=False)
        pending = create_agent(status='pending_approval')
        test_cases = [
            ('c0ffee00-0000-0000-0000-000000000000', self.agent.pk, "Order not found"),
            (self.order.pk, 'c0ffee00-0000-0000-0000-000000000000', "Delivery agent not found"),
            (self.order.pk, pending.pk, "Agent is not active"),
            (self.order.pk, busy.pk, "Agent is not available"),
        ]
        for order_id, agent_id, message in test_cases:
            with self.subTest(message=message):
                self.assertEqual(DeliveryService.assign(self.admin, order_id, agent_id).unwrap_err().message, message)
        self.assertFalse(OrderDelivery.objects.exists())

    def test_order_that_cannot_be_processed(self):
        self.order.update_status('cancelled')

        result = DeliveryService.assign(self.admin, self.order.pk, self.agent.pk)

        self.assertEqual(result.unwrap_err().message, "Invalid status transition from cancelled to processing")
        self.assertFalse(OrderDelivery.objects.exists())

    def test_reassign_after_failure_reuses_record(self):
        DeliveryService.assign(self.admin, self.order.pk, self.agent.pk)
        DeliveryService.update_delivery_status(self.agent.user, self.order.pk, 'failed', 'Nobody home')
        other = create_agent(zones=[self.zone])

        delivery = DeliveryService.assign(self.admin, self.order.pk, other.pk).unwrap()

        self.assertEqual(OrderDelivery.objects.count(), 1)
        self.assertEqual(delivery.agent, other)
        self.assertEqual(delivery.status, 'assigned')
        self.assertIsNone(delivery.failed_at)


class DeliveryStatusTestCase(TestCase):
    """📍 Courier progress mirrored onto the order"""

    def setUp(self):
        self.admin = create_admin()
        self.zone = create_zone(max_delivery_days=2)
        self.agent = create_agent(zones=[self.zone])
        self.order = create_order(create_user(), [(create_product(), 1)], status='confirmed')
        DeliveryService.assign(self.admin, self.order.pk, self.agent.pk)

    def _update(self, status, **kwargs):
        return DeliveryService.update_delivery_status(self.agent.user, self.order.pk, status, **kwargs)

    def test_happy_path(self):
        self._update('picked_up', location={'lat': -1.28, 'lng': 36.82})
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'shipped')

        self._update('in_transit')
        delivery = self._update('delivered', note='Left with guard').unwrap()

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'delivered')
        self.assertIsNotNone(delivery.picked_up_at)
        self.assertIsNotNone(delivery.delivered_at)
        self.assertEqual(delivery.current_location, {'lat': -1.28, 'lng': 36.82})

        self.agent.refresh_from_db()
        self.assertEqual(self.agent.total_deliveries, 1)
        self.assertEqual(self.agent.successful_deliveries, 1)
        self.assertEqual(self.agent.on_time_deliveries, 1)
        self.assertEqual(self.agent.version, 1)
        self.assertEqual(AuditEvent.objects.filter(action='delivery_status_update').count(), 3)

    def test_failure_counts_once(self):
        self._update('failed', note='Customer unreachable')
        self._update('failed', note='Still unreachable')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'delivery_failed')
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.total_deliveries, 1)
        self.assertEqual(self.agent.successful_deliveries, 0)
        self.assertEqual(self.agent.success_rate, 0)

    def test_other_agent_forbidden(self):
        intruder = create_agent()

        result = DeliveryService.update_delivery_status(intruder.user, self.order.pk, 'delivered')

        self.assertEqual(result.unwrap_err().code, 'forbidden')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'processing')

    def test_non_agent_and_bad_status(self):
        result = DeliveryService.update_delivery_status(create_user(), self.order.pk, 'delivered')
        self.assertEqual(result.unwrap_err().message, "Delivery agent profile not found")
        self.assertEqual(self._update('teleported').unwrap_err().message, "Invalid delivery status")

    def test_delivered_is_final(self):
        self._update('delivered')

        result = self._update('failed')

        self.assertEqual(result.unwrap_err().message, "Invalid status transition from delivered to delivery_failed")
        self.assertEqual(OrderDelivery.objects.get().status, 'delivered')

    def test_performance_conflict_rolls_back(self):
        with patch('apps.delivery.services.DeliveryService.record_performance', side_effect=ConcurrencyConflict()):
            result = self._update('delivered')

        self.assertEqual(result.unwrap_err().code, 'conflict')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'processing')
        self.assertEqual(OrderDelivery.objects.get().status, 'assigned')

    def test_record_performance_gives_up_after_retries(self):
        with patch('apps.delivery.services.DeliveryAgent.objects.filter') as mock_filter:
            mock_filter.return_value.update.return_value = 0
            with self.assertRaises(ConcurrencyConflict):
                DeliveryService.record_performance(self.agent, DeliveryOutcome(True, True, 30))

        self.assertEqual(mock_filter.call_count, 3)

    def test_agent_deliveries_listing(self):
        orders = AgentService.deliveries(self.agent.user).unwrap()
        self.assertEqual(list(orders), [self.order])
        self.assertFalse(AgentService.deliveries(self.agent.user, 'delivered').unwrap().exists())


class ZoneServiceTestCase(TestCase):
    """🗺️ Fee quotes and zone administration"""

    def setUp(self):
        self.admin = create_admin()
        self.zone = create_zone(code='NBI-CBD', postal_codes=['00100'])

    def test_fee_quotes(self):
        quote = ZoneService.calculate_fee('1000', zone_code='nbi-cbd').unwrap()
        self.assertEqual(quote.fee, Decimal('200.00'))

        quote = ZoneService.calculate_fee('5000', postal_code='00100').unwrap()
        self.assertEqual(quote.fee_cents, 0)

        self.assertEqual(ZoneService.calculate_fee(None, zone_code='NBI-CBD').unwrap().fee_cents, 20000)
        self.assertEqual(ZoneService.calculate_fee('10', postal_code='99999').unwrap_err().code, 'not_found')
        self.assertEqual(ZoneService.calculate_fee('abc', zone_code='NBI-CBD').unwrap_err().code, 'validation')

    def test_create_zone(self):
        data = ZoneData(
            name='Westlands',
            code='nbi-wst',
            county='Nairobi',
            areas=[{'name': 'Westlands', 'postal_codes': ['00800']}],
            delivery_fee=Decimal('250'),
            free_delivery_threshold=Decimal('3000'),
            min_delivery_days=1,
            max_delivery_days=2,
        )

        zone = ZoneService.create_zone(self.admin, data).unwrap()

        self.assertEqual(zone.code, 'NBI-WST')
        self.assertEqual(zone.delivery_fee_cents, 25000)
        self.assertEqual(zone.free_delivery_threshold_cents, 300000)
        self.assertTrue(AuditEvent.objects.filter(action='zone_create', resource='delivery_zone').exists())

    def test_create_zone_rejections(self):
        self.assertEqual(
            ZoneService.create_zone(self.admin, ZoneData(name='X')).unwrap_err().message,
            "Zone name and code are required",
        )
        self.assertEqual(
            ZoneService.create_zone(self.admin, ZoneData(name='Dup', code='nbi-cbd')).unwrap_err().message,
            "Zone code already exists",
        )
        result = ZoneService.create_zone(
            self.admin,
            ZoneData(name='Bad', code='BAD', county='Kisumu', delivery_fee=Decimal('100'),
                     min_delivery_days=3, max_delivery_days=1),
        )
        self.assertIn("Maximum delivery days cannot be less than minimum", result.unwrap_err().message)

    def test_partial_update(self):
        data = ZoneData(delivery_fee=Decimal('150'), provided_fields=frozenset({'delivery_fee'}))

        zone = ZoneService.update_zone(self.admin, self.zone.pk, data).unwrap()

        self.assertEqual(zone.delivery_fee_cents, 15000)
        self.assertEqual(zone.name, 'Nairobi CBD')
        self.assertTrue(AuditEvent.objects.filter(action='zone_update').exists())

    def test_update_unknown_zone(self):
        result = ZoneService.update_zone(self.admin, 'c0ffee00-0000-0000-0000-000000000000', ZoneData())
        self.assertEqual(result.unwrap_err().message, "Delivery zone not found")

    def test_active_zones_only(self):
        create_zone(code='OFF', is_active=False)
        self.assertEqual(list(ZoneService.list_active_zones()), [self.zone])
