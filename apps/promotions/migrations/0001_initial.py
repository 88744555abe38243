# Generated manually for the promotions app - coupons and the usage ledger

import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("products", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Coupon",
            fields=[
                ("is_deleted", models.BooleanField(db_index=True, default=False)),
                (
                    "deleted_at",
                    models.DateTimeField(blank=True, help_text="When the record was soft-deleted", null=True),
                ),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "code",
                    models.CharField(
                        db_index=True,
                        help_text="Unique coupon code (stored uppercase)",
                        max_length=20,
                        unique=True,
                        validators=[django.core.validators.MinLengthValidator(3)],
                    ),
                ),
                (
                    "description",
                    models.CharField(blank=True, help_text="Description shown to customers", max_length=200),
                ),
                (
                    "discount_type",
                    models.CharField(
                        choices=[("percentage", "Percentage"), ("fixed", "Fixed Amount")],
                        default="percentage",
                        max_length=20,
                    ),
                ),
                (
                    "discount_percent",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Percentage off (percentage coupons)",
                        max_digits=5,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0")),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                    ),
                ),
                (
                    "discount_amount_cents",
                    models.BigIntegerField(
                        blank=True,
                        help_text="Flat amount off in cents (fixed coupons)",
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "min_order_cents",
                    models.BigIntegerField(
                        default=0,
                        help_text="Minimum cart amount in cents",
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "max_discount_cents",
                    models.BigIntegerField(
                        blank=True,
                        help_text="Cap for percentage discounts in cents (null = no cap)",
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "usage_limit",
                    models.PositiveIntegerField(blank=True, help_text="Total uses allowed (null = unlimited)", null=True),
                ),
                ("usage_count", models.PositiveIntegerField(default=0)),
                ("user_limit", models.PositiveIntegerField(default=1, help_text="Uses allowed per user")),
                ("valid_from", models.DateTimeField()),
                ("valid_until", models.DateTimeField()),
                ("is_active", models.BooleanField(default=True, help_text="Master switch for coupon")),
                ("is_public", models.BooleanField(default=True, help_text="Listed to customers")),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "applicable_categories",
                    models.ManyToManyField(blank=True, related_name="allowed_coupons", to="products.category"),
                ),
                (
                    "applicable_products",
                    models.ManyToManyField(blank=True, related_name="allowed_coupons", to="products.product"),
                ),
                (
                    "applicable_users",
                    models.ManyToManyField(blank=True, related_name="allowed_coupons", to=settings.AUTH_USER_MODEL),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_coupons",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "excluded_categories",
                    models.ManyToManyField(blank=True, related_name="excluded_coupons", to="products.category"),
                ),
                (
                    "excluded_products",
                    models.ManyToManyField(blank=True, related_name="excluded_coupons", to="products.product"),
                ),
                (
                    "excluded_users",
                    models.ManyToManyField(blank=True, related_name="excluded_coupons", to=settings.AUTH_USER_MODEL),
                ),
            ],
            options={
                "verbose_name": "Coupon",
                "verbose_name_plural": "Coupons",
                "db_table": "coupons",
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["is_active", "valid_from", "valid_until"], name="coupon_active_window_idx"),
                    models.Index(fields=["is_deleted", "-created_at"], name="coupon_deleted_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CouponUsage",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("order_amount_cents", models.BigIntegerField(help_text="Cart amount the coupon was applied to")),
                ("discount_cents", models.BigIntegerField(help_text="Discount granted")),
                ("used_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "coupon",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="usages",
                        to="promotions.coupon",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="coupon_usages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Coupon Usage",
                "verbose_name_plural": "Coupon Usages",
                "db_table": "coupon_usages",
                "ordering": ("-used_at",),
                "indexes": [
                    models.Index(fields=["coupon", "user"], name="coupon_usage_coupon_user_idx"),
                ],
            },
        ),
    ]
