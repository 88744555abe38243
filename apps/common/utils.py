"""
Shared helpers for Duka
Money conversion, client IP detection and list pagination.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, TypedDict

from django.conf import settings
from django.db.models import QuerySet
from django.http import HttpRequest
from ipware import get_client_ip

from apps.common.constants import CENTS_PER_UNIT, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

# ===============================================================================
# MONEY CONVERSION 💰
# ===============================================================================


def to_cents(amount: Decimal | int | float | str) -> int:
    """Convert a major-unit amount to integer cents, rounding half up"""
    value = Decimal(str(amount)) * CENTS_PER_UNIT
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a 2dp Decimal"""
    return (Decimal(cents) / CENTS_PER_UNIT).quantize(Decimal('0.01'))


def round_cents_to_unit(cents: int | Decimal) -> int:
    """Round a cent amount to whole currency units, returned in cents"""
    units = (Decimal(cents) / CENTS_PER_UNIT).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return int(units) * CENTS_PER_UNIT


# ===============================================================================
# CLIENT IP
# ===============================================================================


def get_safe_client_ip(request: HttpRequest) -> str | None:
    """Proxy-aware client IP; trusts only IPWARE_TRUSTED_PROXY_LIST"""
    trusted_proxies = getattr(settings, 'IPWARE_TRUSTED_PROXY_LIST', [])
    if trusted_proxies:
        client_ip, _routable = get_client_ip(request, proxy_trusted_ips=trusted_proxies)
    else:
        client_ip, _routable = get_client_ip(request)
    return client_ip


# ===============================================================================
# PAGINATION
# ===============================================================================


class PaginationInfo(TypedDict):
    page: int
    limit: int
    total: int
    totalPages: int
    hasNext: bool
    hasPrev: bool


def parse_page_params(params: Any) -> tuple[int, int]:
    """Read page/limit query params with sane bounds"""
    try:
        page = max(int(params.get('page', 1)), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(params.get('limit', DEFAULT_PAGE_SIZE))
    except (TypeError, ValueError):
        limit = DEFAULT_PAGE_SIZE
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    return page, limit


def paginate(items: QuerySet[Any] | Sequence[Any], page: int, limit: int) -> tuple[list[Any], PaginationInfo]:
    """Slice a queryset or list and build the pagination block"""
    total = items.count() if isinstance(items, QuerySet) else len(items)
    offset = (page - 1) * limit
    page_items = list(items[offset:offset + limit])
    total_pages = math.ceil(total / limit) if limit else 0

    return page_items, {
        'page': page,
        'limit': limit,
        'total': total,
        'totalPages': total_pages,
        'hasNext': page < total_pages,
        'hasPrev': page > 1,
    }
