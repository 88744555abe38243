# ===============================================================================
# API TESTS FOR CATALOG, CART AND COUPON VALIDATION
# ===============================================================================
"""
Endpoint tests for the public catalog, the cart and coupon checks.
"""

from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from apps.cart.models import Cart
from tests.factories.commerce import create_category, create_coupon, create_product, create_user


class ProductAPITestCase(TestCase):
    """🛍️ Public catalog"""

    def setUp(self):
        self.client = APIClient()
        self.category = create_category('Vegetables')
        self.sukuma = create_product('Sukuma Wiki', price_cents=1000, category=self.category)
        self.unga = create_product('Unga', price_cents=21000)
        create_product('Hidden', status='inactive')

    def test_list_is_public_and_paginated(self):
        response = self.client.get(reverse('api:products:product_list'))

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])
        names = [item['name'] for item in response.data['data']]
        self.assertEqual(names, ['Sukuma Wiki', 'Unga'])
        self.assertEqual(response.data['pagination']['total'], 2)
        self.assertEqual(response.data['data'][0]['price'], '10.00')

    def test_filters(self):
        response = self.client.get(reverse('api:products:product_list'), {'category': self.category.slug})
        self.assertEqual([item['name'] for item in response.data['data']], ['Sukuma Wiki'])

        response = self.client.get(reverse('api:products:product_list'), {'search': 'ung'})
        self.assertEqual([item['name'] for item in response.data['data']], ['Unga'])

    def test_detail(self):
        response = self.client.get(reverse('api:products:product_detail', args=[self.unga.slug]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['price'], '210.00')
        self.assertTrue(response.data['data']['in_stock'])

    def test_unknown_product(self):
        response = self.client.get(reverse('api:products:product_detail', args=['nope']))

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {'success': False, 'message': 'Product not found'})


class CartAPITestCase(TestCase):
    """🛒 Cart endpoints return the recalculated cart"""

    def setUp(self):
        self.user = create_user()
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)
        self.product = create_product(price_cents=1000, quantity=5)

    def _add(self, quantity=1, **extra):
        return self.client.post(
            reverse('api:cart:cart_add'),
            {'product_id': str(self.product.pk), 'quantity': quantity, **extra},
            format='json',
        )

    def test_requires_login(self):
        response = APIClient().get(reverse('api:cart:cart_detail'))
        self.assertEqual(response.status_code, 403)

    def test_empty_cart_is_created(self):
        response = self.client.get(reverse('api:cart:cart_detail'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['items'], [])
        self.assertEqual(response.data['data']['total_price'], '0.00')
        self.assertTrue(Cart.objects.filter(user=self.user).exists())

    def test_add_update_remove(self):
        response = self._add(quantity=2)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['message'], 'Item added to cart')
        self.assertEqual(response.data['data']['total_items'], 2)
        self.assertEqual(response.data['data']['items'][0]['line_total'], '20.00')

        response = self.client.put(
            reverse('api:cart:cart_update'),
            {'product_id': str(self.product.pk), 'quantity': 3},
            format='json',
        )
        self.assertEqual(response.data['data']['total_price'], '30.00')

        response = self.client.delete(reverse('api:cart:cart_remove', args=[self.product.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['items'], [])

    def test_stock_limit(self):
        response = self._add(quantity=6)

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data['success'])

    def test_invalid_body(self):
        response = self.client.post(reverse('api:cart:cart_add'), {'quantity': 1}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('product_id', response.data['errors'])

    def test_coupon_apply_and_remove(self):
        create_coupon('WELCOME20')
        self._add(quantity=5)

        response = self.client.post(reverse('api:cart:cart_coupon'), {'code': 'welcome20'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['discount_amount'], '10.00')
        self.assertEqual(response.data['data']['final_price'], '40.00')
        self.assertEqual(response.data['data']['coupon']['code'], 'WELCOME20')

        response = self.client.delete(reverse('api:cart:cart_coupon'))
        self.assertIsNone(response.data['data']['coupon'])
        self.assertEqual(response.data['data']['final_price'], '50.00')

    def test_unknown_coupon(self):
        self._add()
        response = self.client.post(reverse('api:cart:cart_coupon'), {'code': 'NOPE'}, format='json')
        self.assertEqual(response.status_code, 404)

    def test_clear(self):
        self._add()
        response = self.client.delete(reverse('api:cart:cart_clear'))

        self.assertEqual(response.data['data']['total_items'], 0)


class CouponValidateAPITestCase(TestCase):
    """🎟️ Customer-facing coupon check"""

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=create_user())
        create_coupon('WELCOME20', min_order_cents=5000)

    def test_valid_code(self):
        response = self.client.get(reverse('api:coupons:validate_coupon'), {'code': 'WELCOME20', 'amount': '1000'})

        self.assertEqual(response.status_code, 200)
        data = response.data['data']
        self.assertEqual(data['coupon']['code'], 'WELCOME20')
        self.assertEqual(str(data['discount']), '200.00')
        self.assertEqual(str(data['final_amount']), '800.00')

    def test_minimum_not_met(self):
        response = self.client.get(reverse('api:coupons:validate_coupon'), {'code': 'WELCOME20', 'amount': '40'})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Minimum order amount of KES 50.00 required')

    def test_code_required(self):
        response = self.client.get(reverse('api:coupons:validate_coupon'))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Coupon code is required')
