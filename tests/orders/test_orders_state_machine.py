"""
Tests for the order status transition table and status history
"""

from django.test import TestCase

from apps.orders.models import InvalidStatusTransition, Order
from tests.factories.commerce import create_admin, create_order, create_user

ALL_STATUSES = [code for code, _label in Order.STATUS_CHOICES]

ALLOWED = {
    'pending': {'pending', 'confirmed', 'processing', 'cancelled'},
    'confirmed': {'confirmed', 'processing', 'cancelled', 'refunded'},
    'processing': {'processing', 'shipped', 'delivered', 'delivery_failed', 'cancelled', 'refunded'},
    'shipped': {'shipped', 'delivered', 'delivery_failed', 'refunded'},
    'delivery_failed': {'delivery_failed', 'processing', 'refunded'},
    'delivered': {'refunded'},
    'cancelled': set(),
    'refunded': set(),
}


class TransitionTableTestCase(TestCase):
    """Every (old, new) pair is either allowed or rejected by the table"""

    def test_full_transition_matrix(self):
        for old_status in ALL_STATUSES:
            for new_status in ALL_STATUSES:
                with self.subTest(old=old_status, new=new_status):
                    self.assertEqual(
                        Order.is_valid_transition(old_status, new_status),
                        new_status in ALLOWED[old_status],
                    )

    def test_terminal_states(self):
        for status in ('cancelled', 'refunded'):
            with self.subTest(status=status):
                self.assertEqual(Order.VALID_TRANSITIONS[status], ())

    def test_unknown_status_has_no_transitions(self):
        self.assertFalse(Order.is_valid_transition('lost', 'pending'))


class UpdateStatusTestCase(TestCase):

    def setUp(self):
        self.user = create_user()
        self.admin = create_admin()
        self.order = create_order(self.user)

    def test_rejected_transition_leaves_order_untouched(self):
        self.order.update_status('cancelled', 'Customer changed mind', self.user)

        with self.assertRaises(InvalidStatusTransition) as ctx:
            self.order.update_status('shipped')

        self.assertEqual(str(ctx.exception), "Invalid status transition from cancelled to shipped")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'cancelled')
        self.assertEqual(self.order.status_history.count(), 1)

    def test_history_records_each_change(self):
        self.order.update_status('confirmed', 'Paid', self.admin)
        self.order.update_status('processing', 'Packing', self.admin)

        history = list(self.order.status_history.values_list('old_status', 'new_status', 'notes'))
        self.assertEqual(history, [
            ('pending', 'confirmed', 'Paid'),
            ('confirmed', 'processing', 'Packing'),
        ])
        self.assertEqual(self.order.status_history.last().changed_by, self.admin)

    def test_reentering_same_state_appends_history(self):
        """Repeated updates are not deduplicated"""
        self.order.update_status('processing')
        self.order.update_status('processing')

        self.assertEqual(self.order.status_history.filter(new_status='processing').count(), 2)

    def test_shipping_timestamps_stamped_once(self):
        self.order.update_status('processing')
        self.order.update_status('shipped')
        shipped_at = self.order.shipped_at
        self.assertIsNotNone(shipped_at)

        self.order.update_status('shipped')
        self.order.update_status('delivered')

        self.order.refresh_from_db()
        self.assertEqual(self.order.shipped_at, shipped_at)
        self.assertIsNotNone(self.order.delivered_at)

    def test_order_number_format(self):
        parts = self.order.order_number.split('-')
        self.assertEqual(parts[0], 'ORD')
        self.assertTrue(parts[1].isdigit())
        self.assertEqual(len(parts[2]), 4)
