# ===============================================================================
# API TESTS FOR COUPON ADMINISTRATION
# ===============================================================================

from datetime import timedelta

from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from apps.audit.models import AuditEvent
from apps.promotions.models import Coupon
from tests.factories.commerce import create_admin, create_coupon, create_product, create_user


class CouponAdminAPITestCase(TestCase):
    """🎟️ Admin coupon CRUD"""

    def setUp(self):
        self.admin = create_admin()
        self.client = APIClient()
        self.client.force_authenticate(user=self.admin)

    def _body(self, **overrides):
        now = timezone.now()
        body = {
            'code': 'sikukuu',
            'description': 'Holiday offer',
            'discount_type': 'fixed',
            'discount_value': '150.00',
            'minimum_amount': '1000.00',
            'usage_limit': 100,
            'valid_from': now.isoformat(),
            'valid_until': (now + timedelta(days=14)).isoformat(),
        }
        body.update(overrides)
        return body

    def test_customer_is_forbidden(self):
        customer = APIClient()
        customer.force_authenticate(user=create_user())

        self.assertEqual(customer.get(reverse('api:coupons:coupon_collection')).status_code, 403)

    def test_create(self):
        product = create_product()
        response = self.client.post(
            reverse('api:coupons:coupon_collection'),
            self._body(restrictions={'applicable_products': [str(product.pk)]}),
            format='json',
        )

        self.assertEqual(response.status_code, 201)
        data = response.data['data']
        self.assertEqual(data['code'], 'SIKUKUU')
        self.assertEqual(data['discount_value'], '150.00')
        self.assertEqual(data['minimum_amount'], '1000.00')
        self.assertEqual(data['restrictions']['applicable_products'], [str(product.pk)])
        self.assertEqual(data['created_by'], self.admin.email)
        self.assertTrue(AuditEvent.objects.filter(action='coupon_create').exists())

    def test_duplicate_code(self):
        create_coupon('SIKUKUU')
        response = self.client.post(reverse('api:coupons:coupon_collection'), self._body(), format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Coupon code already exists')

    def test_end_before_start(self):
        now = timezone.now()
        response = self.client.post(
            reverse('api:coupons:coupon_collection'),
            self._body(valid_until=(now - timedelta(days=1)).isoformat()),
            format='json',
        )

        self.assertEqual(response.status_code, 400)
        self.assertFalse(Coupon.objects.filter(code='SIKUKUU').exists())

    def test_unknown_restriction(self):
        response = self.client.post(
            reverse('api:coupons:coupon_collection'), self._body(restrictions={'planets': ['x']}), format='json'
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn('restrictions', response.data['errors'])

    def test_partial_update(self):
        coupon = create_coupon('WELCOME20')

        response = self.client.put(
            reverse('api:coupons:coupon_detail', args=[coupon.pk]), {'usage_limit': 5}, format='json'
        )

        self.assertEqual(response.status_code, 200)
        coupon.refresh_from_db()
        self.assertEqual(coupon.usage_limit, 5)
        self.assertEqual(coupon.discount_type, 'percentage')

    def test_delete_is_soft(self):
        coupon = create_coupon('WELCOME20')

        response = self.client.delete(reverse('api:coupons:coupon_detail', args=[coupon.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(reverse('api:coupons:coupon_detail', args=[coupon.pk])).status_code, 404)
        self.assertTrue(Coupon.objects.filter(pk=coupon.pk).exists())

    def test_list_by_status(self):
        create_coupon('WELCOME20')
        create_coupon('OLD10', valid_from=timezone.now() - timedelta(days=10),
                      valid_until=timezone.now() - timedelta(days=1))

        response = self.client.get(reverse('api:coupons:coupon_collection'), {'status': 'expired'})

        self.assertEqual([row['code'] for row in response.data['data']], ['OLD10'])
