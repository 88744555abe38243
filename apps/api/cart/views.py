"""
Cart API Views for Duka
One cart per user; every response carries the recalculated cart.
"""

import logging

from rest_framework.decorators import api_view
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core.responses import error_response, success_response, validation_error_response
from apps.cart.models import Cart
from apps.cart.services import CartService
from apps.common.types import Result, ServiceError

from .serializers import CartItemInputSerializer, CartSerializer, CouponInputSerializer

logger = logging.getLogger(__name__)


def _cart_data(cart: Cart) -> dict:
    cart = Cart.objects.prefetch_related('items__product').get(pk=cart.pk)
    return CartSerializer(cart).data


def _cart_response(result: Result[Cart, ServiceError], message: str | None = None) -> Response:
    if result.is_err():
        return error_response(result.unwrap_err())
    return success_response(_cart_data(result.unwrap()), message=message)


@api_view(['GET'])
def cart_detail(request: Request) -> Response:
    cart = CartService.get_or_create_cart(request.user)
    return success_response(_cart_data(cart))


@api_view(['POST'])
def cart_add(request: Request) -> Response:
    serializer = CartItemInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = CartService.add_item(request.user, data['product_id'], data['quantity'], data['selected_variants'])
    return _cart_response(result, "Item added to cart")


@api_view(['PUT'])
def cart_update(request: Request) -> Response:
    serializer = CartItemInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = CartService.update_item_quantity(
        request.user, data['product_id'], data['quantity'], data['selected_variants']
    )
    return _cart_response(result, "Cart updated")


@api_view(['DELETE'])
def cart_remove(request: Request, product_id: str) -> Response:
    """Removes every line of the product unless a variant selection is sent"""
    variants = request.data.get('selected_variants') if isinstance(request.data, dict) else None
    result = CartService.remove_item(request.user, product_id, variants)
    return _cart_response(result, "Item removed from cart")


@api_view(['DELETE'])
def cart_clear(request: Request) -> Response:
    result = CartService.clear_cart(request.user)
    return _cart_response(result, "Cart cleared")


@api_view(['POST', 'DELETE'])
def cart_coupon(request: Request) -> Response:
    if request.method == 'DELETE':
        return _cart_response(CartService.remove_coupon(request.user), "Coupon removed")

    serializer = CouponInputSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    result = CartService.apply_coupon(request.user, serializer.validated_data['code'])
    return _cart_response(result, "Coupon applied successfully")
