from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from django.db import transaction
from django.db.models import Avg, Count, Q, QuerySet, Sum
from django.utils import timezone

from apps.audit.services import AuditContext, AuditEventData, AuditService
from apps.common.types import Err, InsufficientBalance, Ok, Result, ServiceError
from apps.common.utils import PaginationInfo, from_cents, paginate, to_cents
from apps.common.validators import parse_positive_amount
from apps.orders.models import Order
from apps.orders.services import OrderQueryService
from apps.users.models import User

from .models import Wallet, WalletTransaction

"""
Wallet services for Duka
Ledger-backed balance changes, wallet checkout and admin reporting.
"""

logger = logging.getLogger(__name__)

# ===============================================================================
# PARAMETER OBJECTS
# ===============================================================================

@dataclass
class WalletTransactionData:
    """Parameter object for a single ledger entry"""
    type: str
    amount_cents: int
    description: str
    reference: str
    source: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class WalletPayment:
    order: Order
    transaction: WalletTransaction
    amount_cents: int

    @property
    def wallet_balance(self) -> Decimal:
        return from_cents(self.transaction.balance_after_cents)

# ===============================================================================
# WALLET SERVICE
# ===============================================================================

class WalletService:
    """Every balance change goes through add_transaction"""

    @staticmethod
    def get_or_create_wallet(user: User) -> Wallet:
        wallet, created = Wallet.objects.get_or_create(user=user)
        if created:
            logger.info(f"👛 [Wallet] Created wallet for {user.email}")
        return wallet

    @staticmethod
    @transaction.atomic
    def add_transaction(user: User, data: WalletTransactionData) -> WalletTransaction:
        """
        Append a ledger entry and move the balance in one transaction.

        The wallet row is locked for the duration, so two concurrent
        debits cannot both pass the balance check. Raises
        InsufficientBalance when a debit exceeds the balance; callers
        running inside their own atomic block roll back with it.
        """
        if data.amount_cents <= 0:
            raise ValueError("Transaction amount must be positive")
        if data.type not in dict(WalletTransaction.TYPE_CHOICES):
            raise ValueError(f"Unknown transaction type: {data.type}")

        WalletService.get_or_create_wallet(user)
        wallet = Wallet.objects.select_for_update().get(user=user)

        if data.type == 'debit' and wallet.balance_cents < data.amount_cents:
            raise InsufficientBalance()

        signed = data.amount_cents if data.type == 'credit' else -data.amount_cents
        wallet.balance_cents += signed
        wallet.last_transaction_at = timezone.now()
        wallet.save(update_fields=['balance_cents', 'last_transaction_at', 'updated_at'])

        entry = WalletTransaction.objects.create(
            wallet=wallet,
            type=data.type,
            amount_cents=data.amount_cents,
            description=data.description,
            reference=data.reference,
            source=data.source,
            metadata=data.metadata,
            status='completed',
            balance_after_cents=wallet.balance_cents,
        )

        logger.info(
            f"💰 [Wallet] {data.type} {from_cents(data.amount_cents)} ({data.source}) for {user.email}, "
            f"balance {wallet.formatted_balance}"
        )
        return entry

    @staticmethod
    def credit(
        user: User,
        amount_cents: int,
        description: str,
        reference: str,
        source: str,
        metadata: dict[str, Any] | None = None,
    ) -> WalletTransaction:
        return WalletService.add_transaction(
            user,
            WalletTransactionData(
                type='credit',
                amount_cents=amount_cents,
                description=description,
                reference=reference,
                source=source,
                metadata=metadata or {},
            ),
        )

    @staticmethod
    def transaction_history(user: User, page: int, limit: int) -> tuple[list[WalletTransaction], PaginationInfo]:
        """Newest first"""
        wallet = WalletService.get_or_create_wallet(user)
        return paginate(wallet.transactions.order_by('-created_at'), page, limit)

    @staticmethod
    def pay_order(
        user: User,
        order_id: Any,
        amount: Any,
        context: AuditContext | None = None,
    ) -> Result[WalletPayment, ServiceError]:
        """
        Pay an order from the wallet balance.

        Checks run in this order: amount, wallet, balance, order,
        ownership, already paid. The debit, the payment fields and the
        confirmation are written together or not at all.
        """
        if not order_id or amount in (None, ''):
            return Err(ServiceError.validation("Order ID and amount are required"))

        parsed = parse_positive_amount(amount)
        if parsed.is_err():
            return Err(ServiceError.validation(parsed.unwrap_err()))
        amount_cents = to_cents(parsed.unwrap())

        wallet = Wallet.objects.filter(user=user).first()
        if wallet is None:
            return Err(ServiceError.not_found("Wallet not found"))

        if wallet.balance_cents < amount_cents:
            return Err(ServiceError.validation("Insufficient wallet balance"))

        order = OrderQueryService.get_order(order_id)
        if order is None:
            return Err(ServiceError.not_found("Order not found"))

        if order.user_id != user.pk:
            return Err(ServiceError.forbidden("Not authorized to pay for this order"))

        if order.is_paid:
            return Err(ServiceError.validation("Order is already paid"))

        if order.status in ('cancelled', 'refunded'):
            return Err(ServiceError.validation(f"Cannot pay for a {order.status} order"))

        if amount_cents != order.total_cents:
            return Err(ServiceError.validation(f"Payment amount must equal the order total of KES {order.total}"))

        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(pk=order.pk)
                if order.is_paid:
                    return Err(ServiceError.validation("Order is already paid"))

                entry = WalletService.add_transaction(
                    user,
                    WalletTransactionData(
                        type='debit',
                        amount_cents=amount_cents,
                        description=f"Payment for order {order.order_number}",
                        reference=f"ORDER-{order.order_number}",
                        source='order_payment',
                        metadata={'order_id': str(order.pk)},
                    ),
                )

                order.payment_method = 'wallet'
                order.payment_status = 'completed'
                order.paid_at = timezone.now()
                order.transaction_id = f"WALLET-{int(time.time() * 1000)}"
                order.save(update_fields=['payment_method', 'payment_status', 'paid_at', 'transaction_id', 'updated_at'])

                if order.status == 'pending':
                    order.update_status('confirmed', 'Payment completed using wallet balance', user)

                AuditService.log_event(
                    AuditEventData(
                        action='payment_success',
                        resource='payment',
                        resource_id=str(order.pk),
                        details={
                            'payment_method': 'wallet',
                            'amount': from_cents(amount_cents),
                            'order_number': order.order_number,
                            'wallet_balance_after': from_cents(entry.balance_after_cents),
                        },
                    ),
                    context or AuditContext(user=user),
                )
        except InsufficientBalance as e:
            return Err(ServiceError.validation(str(e)))

        logger.info(f"✅ [Wallet] {order.order_number} paid from wallet by {user.email}")
        return Ok(WalletPayment(order=order, transaction=entry, amount_cents=amount_cents))

    @staticmethod
    def admin_credit(
        admin: User,
        user_id: Any,
        amount: Any,
        description: str,
        reference: str,
        context: AuditContext | None = None,
    ) -> Result[WalletTransaction, ServiceError]:
        """Manual credit by an admin; always audited"""
        if not user_id or amount in (None, '') or not description or not reference:
            return Err(ServiceError.validation("User ID, amount, description, and reference are required"))

        parsed = parse_positive_amount(amount)
        if parsed.is_err():
            return Err(ServiceError.validation(parsed.unwrap_err()))
        amount_cents = to_cents(parsed.unwrap())

        target = User.objects.filter(pk=user_id).first()
        if target is None:
            return Err(ServiceError.not_found("User not found"))

        with transaction.atomic():
            entry = WalletService.credit(
                target,
                amount_cents,
                description,
                reference,
                source='admin_credit',
                metadata={'admin_id': str(admin.pk)},
            )
            AuditService.log_event(
                AuditEventData(
                    action='admin_wallet_credit',
                    resource='wallet',
                    resource_id=str(entry.wallet_id),
                    details={
                        'target_user_id': str(target.pk),
                        'amount': from_cents(amount_cents),
                        'description': description,
                        'reference': reference,
                        'new_balance': from_cents(entry.balance_after_cents),
                    },
                    severity='medium',
                ),
                context or AuditContext(user=admin),
            )

        return Ok(entry)

    # ===============================================================================
    # ADMIN REPORTING
    # ===============================================================================

    @staticmethod
    def wallet_stats() -> dict[str, Any]:
        """Overview, totals by source and this month's activity by type/source"""
        overview = Wallet.objects.aggregate(
            total_wallets=Count('id'),
            total_balance=Sum('balance_cents'),
            active_wallets=Count('id', filter=Q(balance_cents__gt=0)),
            average_balance=Avg('balance_cents'),
        )

        by_source = (
            WalletTransaction.objects.values('source')
            .annotate(count=Count('id'), total_cents=Sum('amount_cents'))
            .order_by('-total_cents')
        )

        month_start = timezone.localtime().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        monthly = (
            WalletTransaction.objects.filter(created_at__gte=month_start)
            .values('type', 'source')
            .annotate(count=Count('id'), total_cents=Sum('amount_cents'))
            .order_by('type', 'source')
        )

        average = overview['average_balance']
        return {
            'overview': {
                'totalWallets': overview['total_wallets'],
                'totalBalance': from_cents(overview['total_balance'] or 0),
                'activeWallets': overview['active_wallets'],
                'averageBalance': from_cents(round(average)) if average is not None else from_cents(0),
            },
            'transactionsBySource': [
                {'source': row['source'], 'count': row['count'], 'totalAmount': from_cents(row['total_cents'])}
                for row in by_source
            ],
            'monthlyTransactions': [
                {
                    'type': row['type'],
                    'source': row['source'],
                    'count': row['count'],
                    'totalAmount': from_cents(row['total_cents']),
                }
                for row in monthly
            ],
        }

    @staticmethod
    def list_wallets(min_balance: Any = None, max_balance: Any = None) -> QuerySet[Wallet]:
        """Highest balance first; bounds are inclusive major-unit amounts"""
        queryset = Wallet.objects.select_related('user').order_by('-balance_cents')

        if min_balance not in (None, ''):
            try:
                queryset = queryset.filter(balance_cents__gte=to_cents(min_balance))
            except ArithmeticError:
                logger.warning(f"⚠️ [Wallet] Ignoring invalid min_balance filter: {min_balance}")
        if max_balance not in (None, ''):
            try:
                queryset = queryset.filter(balance_cents__lte=to_cents(max_balance))
            except ArithmeticError:
                logger.warning(f"⚠️ [Wallet] Ignoring invalid max_balance filter: {max_balance}")

        return queryset
