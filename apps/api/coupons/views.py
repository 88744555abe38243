"""
Coupon API Views for Duka
Customer code validation and admin coupon management.
"""

import logging
from typing import Any

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core.responses import error_response, success_response, validation_error_response
from apps.audit.services import AuditContext
from apps.common.types import ServiceError
from apps.common.utils import from_cents, paginate, parse_page_params, to_cents
from apps.common.validators import parse_positive_amount
from apps.promotions.services import CouponData, CouponFilters, CouponService

from .serializers import CouponInputSerializer, CouponSerializer, PublicCouponSerializer

logger = logging.getLogger(__name__)


def _coupon_data(validated: dict[str, Any]) -> CouponData:
    return CouponData(**validated, provided_fields=frozenset(validated))


@api_view(['GET'])
def validate_coupon(request: Request) -> Response:
    """?code=...&amount=... for the calling customer"""
    code = request.query_params.get('code', '').strip()
    if not code:
        return error_response(ServiceError.validation("Coupon code is required"))

    amount_cents = 0
    raw_amount = request.query_params.get('amount')
    if raw_amount:
        parsed = parse_positive_amount(raw_amount)
        if parsed.is_ok():
            amount_cents = to_cents(parsed.unwrap())

    result = CouponService.validate_code(request.user, code, amount_cents)
    if result.is_err():
        return error_response(result.unwrap_err())

    validation = result.unwrap()
    return success_response({
        'coupon': PublicCouponSerializer(validation.coupon).data,
        'discount': from_cents(validation.discount_cents),
        'final_amount': from_cents(validation.final_cents),
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAdminUser])
def coupon_collection(request: Request) -> Response:
    if request.method == 'POST':
        serializer = CouponInputSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        result = CouponService.create_coupon(
            request.user, _coupon_data(serializer.validated_data), AuditContext.from_request(request)
        )
        if result.is_err():
            return error_response(result.unwrap_err())
        return success_response(
            CouponSerializer(result.unwrap()).data,
            message="Coupon created successfully",
            http_status=status.HTTP_201_CREATED,
        )

    params = request.query_params
    filters: CouponFilters = {key: params[key] for key in ('status', 'discount_type', 'search') if params.get(key)}
    page, limit = parse_page_params(params)
    coupons, pagination = paginate(CouponService.list_coupons(filters), page, limit)
    return success_response(CouponSerializer(coupons, many=True).data, pagination=pagination)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAdminUser])
def coupon_detail(request: Request, coupon_id: str) -> Response:
    lookup = CouponService.get_coupon(coupon_id)
    if lookup.is_err():
        return error_response(lookup.unwrap_err())
    coupon = lookup.unwrap()

    if request.method == 'GET':
        return success_response(CouponSerializer(coupon).data)

    context = AuditContext.from_request(request)
    if request.method == 'DELETE':
        CouponService.delete_coupon(request.user, coupon, context)
        return success_response(message="Coupon deleted successfully")

    serializer = CouponInputSerializer(data=request.data, partial=True)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    result = CouponService.update_coupon(request.user, coupon, _coupon_data(serializer.validated_data), context)
    if result.is_err():
        return error_response(result.unwrap_err())
    return success_response(CouponSerializer(result.unwrap()).data, message="Coupon updated successfully")
