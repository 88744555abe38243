"""
Catalog API Views for Duka
Public product listing and detail.
"""

import logging

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core.responses import error_response, success_response
from apps.common.types import ServiceError
from apps.common.utils import paginate, parse_page_params
from apps.products.models import Product

from .serializers import ProductDetailSerializer, ProductListSerializer

logger = logging.getLogger(__name__)


@api_view(['GET'])
@permission_classes([AllowAny])
def product_list(request: Request) -> Response:
    """Active products, optionally filtered by category slug or name search"""
    queryset = Product.objects.active().select_related('category').order_by('name')

    if category := request.query_params.get('category'):
        queryset = queryset.filter(category__slug=category)
    if search := request.query_params.get('search'):
        queryset = queryset.filter(name__icontains=search)

    page, limit = parse_page_params(request.query_params)
    products, pagination = paginate(queryset, page, limit)
    return success_response(ProductListSerializer(products, many=True).data, pagination=pagination)


@api_view(['GET'])
@permission_classes([AllowAny])
def product_detail(request: Request, slug: str) -> Response:
    product = Product.objects.active().select_related('category').filter(slug=slug).first()
    if product is None:
        return error_response(ServiceError.not_found("Product not found"))
    return success_response(ProductDetailSerializer(product).data)
