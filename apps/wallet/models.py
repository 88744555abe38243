"""
Wallet models for Duka
Per-user stored-value balance backed by an append-only transaction ledger.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import ClassVar

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Case, F, Sum, When
from django.utils.translation import gettext_lazy as _

from apps.common.constants import DEFAULT_CURRENCY
from apps.common.utils import from_cents


class Wallet(models.Model):
    """
    One wallet per user, created lazily.
    The balance only moves through WalletService.add_transaction.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField('users.User', on_delete=models.CASCADE, related_name='wallet')

    balance_cents = models.BigIntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text=_("Current balance in cents, never negative")
    )
    currency = models.CharField(max_length=3, default=DEFAULT_CURRENCY)
    is_active = models.BooleanField(default=True)
    last_transaction_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'wallets'
        verbose_name = _('Wallet')
        verbose_name_plural = _('Wallets')
        ordering: ClassVar[tuple[str, ...]] = ('-balance_cents',)
        constraints: ClassVar[tuple[models.CheckConstraint, ...]] = (
            models.CheckConstraint(condition=models.Q(balance_cents__gte=0), name='wallet_balance_non_negative'),
        )

    def __str__(self) -> str:
        return f"Wallet {self.user.email}: {self.formatted_balance}"

    @property
    def balance(self) -> Decimal:
        return from_cents(self.balance_cents)

    @property
    def formatted_balance(self) -> str:
        return f"{self.currency} {self.balance:,.2f}"

    def ledger_balance_cents(self) -> int:
        """Signed sum of completed ledger entries; always equals balance_cents"""
        total = self.transactions.filter(status='completed').aggregate(
            total=Sum(
                Case(
                    When(type='credit', then=F('amount_cents')),
                    When(type='debit', then=-F('amount_cents')),
                    default=0,
                    output_field=models.BigIntegerField(),
                )
            )
        )['total']
        return total or 0


class WalletTransaction(models.Model):
    """Append-only ledger entry"""

    TYPE_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('credit', _('Credit')),
        ('debit', _('Debit')),
    )

    SOURCE_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('mpesa', _('M-Pesa')),
        ('refund', _('Refund')),
        ('cashback', _('Cashback')),
        ('admin_credit', _('Admin Credit')),
        ('order_payment', _('Order Payment')),
        ('withdrawal', _('Withdrawal')),
    )

    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('pending', _('Pending')),
        ('completed', _('Completed')),
        ('failed', _('Failed')),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    wallet = models.ForeignKey(Wallet, on_delete=models.PROTECT, related_name='transactions')

    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    amount_cents = models.BigIntegerField(validators=[MinValueValidator(1)])
    description = models.CharField(max_length=255)
    reference = models.CharField(max_length=100, db_index=True)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='completed')
    metadata = models.JSONField(default=dict, blank=True, help_text=_("order_id, mpesa_receipt_number, admin_id"))

    balance_after_cents = models.BigIntegerField(help_text=_("Wallet balance right after this entry"))

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'wallet_transactions'
        verbose_name = _('Wallet Transaction')
        verbose_name_plural = _('Wallet Transactions')
        ordering: ClassVar[tuple[str, ...]] = ('-created_at',)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['wallet', '-created_at'], name='wallet_tx_wallet_created_idx'),
            models.Index(fields=['source', 'created_at'], name='wallet_tx_source_created_idx'),
        )

    def __str__(self) -> str:
        return f"{self.type} {self.amount} ({self.source}) {self.reference}"

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)
