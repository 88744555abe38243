"""
Coupon services for Duka
Redemption with optimistic counters, admin management and customer validation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, TypedDict

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F, QuerySet
from django.utils import timezone

from apps.audit.services import AuditContext, AuditEventData, AuditService
from apps.common.constants import COUPON_USAGE_MAX_RETRIES
from apps.common.types import Err, Ok, Result, ServiceError
from apps.common.utils import from_cents, to_cents

from .models import Coupon, CouponUsage

if TYPE_CHECKING:
    from apps.orders.models import Order
    from apps.users.models import User

logger = logging.getLogger(__name__)

# ===============================================================================
# PARAMETER OBJECTS
# ===============================================================================

class CouponFilters(TypedDict, total=False):
    """Type definition for admin coupon filters"""
    status: str
    discount_type: str
    search: str


@dataclass
class CouponData:
    """Parameter object for coupon create/update"""
    code: str | None = None
    description: str | None = None
    discount_type: str | None = None
    discount_value: Decimal | None = None
    minimum_amount: Decimal | None = None
    maximum_discount: Decimal | None = None
    usage_limit: int | None = None
    user_limit: int | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool | None = None
    is_public: bool | None = None
    restrictions: dict[str, list[Any]] = field(default_factory=dict)
    provided_fields: frozenset[str] = frozenset()


@dataclass(frozen=True)
class CouponValidation:
    """Outcome of validating a code against an amount"""
    coupon: Coupon
    discount_cents: int
    final_cents: int


RESTRICTION_FIELDS = (
    'applicable_users',
    'excluded_users',
    'applicable_products',
    'excluded_products',
    'applicable_categories',
    'excluded_categories',
)

# Admin edits never write usage_count or version; use_coupon owns those
EDITABLE_FIELDS = (
    'code',
    'description',
    'discount_type',
    'discount_percent',
    'discount_amount_cents',
    'min_order_cents',
    'max_discount_cents',
    'usage_limit',
    'user_limit',
    'valid_from',
    'valid_until',
    'is_active',
    'is_public',
    'updated_at',
)

# ===============================================================================
# COUPON SERVICE
# ===============================================================================

class CouponService:
    """Coupon lookup, redemption and administration"""

    @staticmethod
    def get_by_code(code: str) -> Coupon | None:
        if not code:
            return None
        return Coupon.objects.live().filter(code=code.strip().upper()).first()

    @staticmethod
    def validate_code(user: User | None, code: str, amount_cents: int) -> Result[CouponValidation, ServiceError]:
        """Customer-facing check: is `code` usable on `amount_cents` right now"""
        coupon = CouponService.get_by_code(code)
        if coupon is None:
            return Err(ServiceError.not_found("Invalid coupon code"))

        valid, message = coupon.is_valid(user, amount_cents)
        if not valid:
            return Err(ServiceError.validation(message))

        discount_cents = coupon.calculate_discount(amount_cents)
        return Ok(CouponValidation(coupon, discount_cents, max(0, amount_cents - discount_cents)))

    @staticmethod
    def use_coupon(
        coupon: Coupon,
        user: User,
        order: Order | None,
        order_amount_cents: int,
        discount_cents: int,
    ) -> Result[CouponUsage, ServiceError]:
        """
        Record one redemption: bump the global counter and append to the ledger.

        The counter moves with a compare-and-set on `version`; a lost race is
        retried a few times, re-checking the global cap on every attempt.
        Call inside the checkout transaction.
        """
        for attempt in range(1, COUPON_USAGE_MAX_RETRIES + 1):
            current = Coupon.objects.filter(pk=coupon.pk).values('version', 'usage_count', 'usage_limit').first()
            if current is None:
                return Err(ServiceError.not_found("Coupon not found"))

            if current['usage_limit'] is not None and current['usage_count'] >= current['usage_limit']:
                return Err(ServiceError.validation("Coupon usage limit reached"))

            updated = Coupon.objects.filter(pk=coupon.pk, version=current['version']).update(
                usage_count=F('usage_count') + 1,
                version=F('version') + 1,
                updated_at=timezone.now(),
            )
            if updated:
                usage = CouponUsage.objects.create(
                    coupon=coupon,
                    user=user,
                    order=order,
                    order_amount_cents=order_amount_cents,
                    discount_cents=discount_cents,
                )
                logger.info(f"🎟️ [Coupons] {coupon.code} redeemed by {user.email} (-{from_cents(discount_cents)})")
                return Ok(usage)

            logger.warning(f"⚠️ [Coupons] Version conflict redeeming {coupon.code} (attempt {attempt})")

        return Err(ServiceError.conflict("Coupon is busy, please retry"))

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    @staticmethod
    def list_coupons(filters: CouponFilters | None = None) -> QuerySet[Coupon]:
        queryset = Coupon.objects.live().select_related('created_by')
        filters = filters or {}

        if discount_type := filters.get('discount_type'):
            queryset = queryset.filter(discount_type=discount_type)
        if search := filters.get('search'):
            queryset = queryset.filter(code__icontains=search)

        status = filters.get('status')
        if status:
            now = timezone.now()
            if status == 'inactive':
                queryset = queryset.filter(is_active=False)
            elif status == 'scheduled':
                queryset = queryset.filter(is_active=True, valid_from__gt=now)
            elif status == 'expired':
                queryset = queryset.filter(is_active=True, valid_until__lt=now)
            elif status == 'exhausted':
                queryset = queryset.filter(
                    is_active=True, usage_limit__isnull=False, usage_count__gte=F('usage_limit')
                )
            elif status == 'active':
                queryset = queryset.filter(
                    is_active=True, valid_from__lte=now, valid_until__gte=now
                ).exclude(usage_limit__isnull=False, usage_count__gte=F('usage_limit'))

        return queryset

    @staticmethod
    def get_coupon(coupon_id: Any) -> Result[Coupon, ServiceError]:
        coupon = Coupon.objects.live().filter(pk=coupon_id).first()
        if coupon is None:
            return Err(ServiceError.not_found("Coupon not found"))
        return Ok(coupon)

    @staticmethod
    @transaction.atomic
    def create_coupon(
        admin: User, data: CouponData, context: AuditContext | None = None
    ) -> Result[Coupon, ServiceError]:
        if not data.code:
            return Err(ServiceError.validation("Coupon code is required"))

        code = data.code.strip().upper()
        if Coupon.objects.filter(code=code).exists():
            return Err(ServiceError.validation("Coupon code already exists"))

        coupon = Coupon(code=code, created_by=admin)
        CouponService._apply_data(coupon, data, creating=True)
        return CouponService._persist(coupon, data, admin, "created", context)

    @staticmethod
    @transaction.atomic
    def update_coupon(
        admin: User, coupon: Coupon, data: CouponData, context: AuditContext | None = None
    ) -> Result[Coupon, ServiceError]:
        if 'code' in data.provided_fields and data.code:
            code = data.code.strip().upper()
            if Coupon.objects.filter(code=code).exclude(pk=coupon.pk).exists():
                return Err(ServiceError.validation("Coupon code already exists"))
            coupon.code = code

        CouponService._apply_data(coupon, data, creating=False)
        return CouponService._persist(coupon, data, admin, "updated", context)

    @staticmethod
    def delete_coupon(admin: User, coupon: Coupon, context: AuditContext | None = None) -> None:
        coupon.soft_delete(is_active=False)
        AuditService.log_event(
            AuditEventData(
                action='coupon_delete',
                resource='coupon',
                resource_id=str(coupon.pk),
                details={'code': coupon.code, 'usage_count': coupon.usage_count},
                severity='medium',
            ),
            context or AuditContext(user=admin),
        )
        logger.info(f"🗑️ [Coupons] {coupon.code} soft-deleted by {admin.email}")

    @staticmethod
    def _apply_data(coupon: Coupon, data: CouponData, creating: bool) -> None:
        def provided(name: str) -> bool:
            return creating or name in data.provided_fields

        if provided('description') and data.description is not None:
            coupon.description = data.description
        if provided('discount_type') and data.discount_type:
            coupon.discount_type = data.discount_type
        if provided('discount_value') and data.discount_value is not None:
            if coupon.discount_type == 'percentage':
                coupon.discount_percent = data.discount_value
                coupon.discount_amount_cents = None
            else:
                coupon.discount_amount_cents = to_cents(data.discount_value)
                coupon.discount_percent = None
        if provided('minimum_amount') and data.minimum_amount is not None:
            coupon.min_order_cents = to_cents(data.minimum_amount)
        if provided('maximum_discount'):
            coupon.max_discount_cents = to_cents(data.maximum_discount) if data.maximum_discount else None
        if provided('usage_limit'):
            coupon.usage_limit = data.usage_limit
        if provided('user_limit') and data.user_limit is not None:
            coupon.user_limit = data.user_limit
        if provided('valid_from') and data.valid_from is not None:
            coupon.valid_from = data.valid_from
        if provided('valid_until') and data.valid_until is not None:
            coupon.valid_until = data.valid_until
        if provided('is_active') and data.is_active is not None:
            coupon.is_active = data.is_active
        if provided('is_public') and data.is_public is not None:
            coupon.is_public = data.is_public

    @staticmethod
    def _persist(
        coupon: Coupon, data: CouponData, admin: User, verb: str, context: AuditContext | None
    ) -> Result[Coupon, ServiceError]:
        try:
            coupon.full_clean(exclude=['created_by'])
            if verb == "created":
                coupon.save()
            else:
                coupon.save(update_fields=EDITABLE_FIELDS)
                coupon.refresh_from_db(fields=['usage_count', 'version'])
        except ValidationError as e:
            transaction.set_rollback(True)
            return Err(ServiceError.validation("; ".join(e.messages)))
        except IntegrityError:
            transaction.set_rollback(True)
            return Err(ServiceError.validation("Coupon code already exists"))

        for name in RESTRICTION_FIELDS:
            if name in data.restrictions:
                getattr(coupon, name).set(data.restrictions[name])

        AuditService.log_event(
            AuditEventData(
                action='coupon_create' if verb == "created" else 'coupon_update',
                resource='coupon',
                resource_id=str(coupon.pk),
                details={
                    'code': coupon.code,
                    'discount_type': coupon.discount_type,
                    'discount_value': coupon.discount_value,
                    'fields': sorted(data.provided_fields),
                },
            ),
            context or AuditContext(user=admin),
        )

        logger.info(f"✅ [Coupons] {coupon.code} {verb} by {admin.email}")
        return Ok(coupon)
