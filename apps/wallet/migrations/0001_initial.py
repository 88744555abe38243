# Generated manually for the wallet app - balances and the transaction ledger

import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Wallet",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "balance_cents",
                    models.BigIntegerField(
                        default=0,
                        help_text="Current balance in cents, never negative",
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("currency", models.CharField(default="KES", max_length=3)),
                ("is_active", models.BooleanField(default=True)),
                ("last_transaction_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="wallet",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Wallet",
                "verbose_name_plural": "Wallets",
                "db_table": "wallets",
                "ordering": ("-balance_cents",),
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(balance_cents__gte=0), name="wallet_balance_non_negative"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WalletTransaction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("type", models.CharField(choices=[("credit", "Credit"), ("debit", "Debit")], max_length=10)),
                (
                    "amount_cents",
                    models.BigIntegerField(validators=[django.core.validators.MinValueValidator(1)]),
                ),
                ("description", models.CharField(max_length=255)),
                ("reference", models.CharField(db_index=True, max_length=100)),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("mpesa", "M-Pesa"),
                            ("refund", "Refund"),
                            ("cashback", "Cashback"),
                            ("admin_credit", "Admin Credit"),
                            ("order_payment", "Order Payment"),
                            ("withdrawal", "Withdrawal"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("completed", "Completed"), ("failed", "Failed")],
                        default="completed",
                        max_length=20,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(blank=True, default=dict, help_text="order_id, mpesa_receipt_number, admin_id"),
                ),
                ("balance_after_cents", models.BigIntegerField(help_text="Wallet balance right after this entry")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "wallet",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="wallet.wallet",
                    ),
                ),
            ],
            options={
                "verbose_name": "Wallet Transaction",
                "verbose_name_plural": "Wallet Transactions",
                "db_table": "wallet_transactions",
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["wallet", "-created_at"], name="wallet_tx_wallet_created_idx"),
                    models.Index(fields=["source", "created_at"], name="wallet_tx_source_created_idx"),
                ],
            },
        ),
    ]
