# Generated manually for the delivery app - zones, agents and order deliveries

import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import apps.common.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="DeliveryZone",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=100)),
                ("code", models.CharField(help_text="Uppercase zone code, e.g. NBI-CBD", max_length=20, unique=True)),
                ("description", models.TextField(blank=True)),
                ("county", models.CharField(max_length=100)),
                ("areas", models.JSONField(blank=True, default=list)),
                (
                    "delivery_fee_cents",
                    models.BigIntegerField(validators=[django.core.validators.MinValueValidator(0)]),
                ),
                (
                    "free_delivery_threshold_cents",
                    models.BigIntegerField(
                        default=0,
                        help_text="Order total at or above which delivery is free; 0 disables free delivery",
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "min_delivery_days",
                    models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)]),
                ),
                (
                    "max_delivery_days",
                    models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)]),
                ),
                ("is_active", models.BooleanField(default=True)),
                (
                    "priority",
                    models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)]),
                ),
                (
                    "restrictions",
                    models.JSONField(
                        blank=True, default=dict, help_text="max_weight (kg), max_dimensions (cm), prohibited_items"
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Delivery Zone",
                "verbose_name_plural": "Delivery Zones",
                "db_table": "delivery_zones",
                "ordering": ("priority", "name"),
                "indexes": [
                    models.Index(fields=["county"], name="zone_county_idx"),
                    models.Index(fields=["is_active", "priority"], name="zone_active_priority_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DeliveryAgent",
            fields=[
                ("is_deleted", models.BooleanField(db_index=True, default=False)),
                (
                    "deleted_at",
                    models.DateTimeField(blank=True, help_text="When the record was soft-deleted", null=True),
                ),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "agent_id",
                    models.CharField(help_text="Public agent reference, e.g. DA123456001", max_length=20, unique=True),
                ),
                ("national_id", models.CharField(max_length=20, unique=True)),
                (
                    "phone",
                    models.CharField(max_length=20, validators=[apps.common.validators.validate_kenyan_phone]),
                ),
                (
                    "alternative_phone",
                    models.CharField(
                        blank=True, max_length=20, validators=[apps.common.validators.validate_kenyan_phone]
                    ),
                ),
                (
                    "mpesa_number",
                    models.CharField(
                        blank=True, max_length=20, validators=[apps.common.validators.validate_kenyan_phone]
                    ),
                ),
                ("address", models.JSONField(blank=True, default=dict)),
                ("emergency_contact", models.JSONField(default=dict, help_text="name, phone, relationship")),
                ("vehicle", models.JSONField(default=dict, help_text="type, registration_number, model, year")),
                ("bank_details", models.JSONField(blank=True, default=dict)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending_approval", "Pending Approval"),
                            ("active", "Active"),
                            ("inactive", "Inactive"),
                            ("suspended", "Suspended"),
                            ("rejected", "Rejected"),
                        ],
                        default="pending_approval",
                        max_length=20,
                    ),
                ),
                ("is_available", models.BooleanField(default=True)),
                ("working_hours_start", models.CharField(default="08:00", max_length=5)),
                ("working_hours_end", models.CharField(default="18:00", max_length=5)),
                ("working_days", models.JSONField(blank=True, default=list)),
                ("last_seen", models.DateTimeField(blank=True, null=True)),
                ("total_deliveries", models.PositiveIntegerField(default=0)),
                ("successful_deliveries", models.PositiveIntegerField(default=0)),
                ("on_time_deliveries", models.PositiveIntegerField(default=0)),
                (
                    "average_rating",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=3,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(Decimal("5")),
                        ],
                    ),
                ),
                ("total_ratings", models.PositiveIntegerField(default=0)),
                ("average_delivery_minutes", models.FloatField(blank=True, null=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True)),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "approved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="approved_agents",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="delivery_agent",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "zones",
                    models.ManyToManyField(blank=True, related_name="agents", to="delivery.deliveryzone"),
                ),
            ],
            options={
                "verbose_name": "Delivery Agent",
                "verbose_name_plural": "Delivery Agents",
                "db_table": "delivery_agents",
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["status", "is_available"], name="agent_status_available_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderDelivery",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("assigned", "Assigned"),
                            ("picked_up", "Picked Up"),
                            ("in_transit", "In Transit"),
                            ("delivered", "Delivered"),
                            ("failed", "Failed"),
                        ],
                        default="assigned",
                        max_length=20,
                    ),
                ),
                ("assigned_at", models.DateTimeField()),
                ("picked_up_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("last_update", models.DateTimeField(blank=True, null=True)),
                ("current_location", models.JSONField(blank=True, default=dict)),
                ("instructions", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "agent",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="deliveries",
                        to="delivery.deliveryagent",
                    ),
                ),
                (
                    "order",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="delivery",
                        to="orders.order",
                    ),
                ),
                (
                    "zone",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="deliveries",
                        to="delivery.deliveryzone",
                    ),
                ),
            ],
            options={
                "verbose_name": "Order Delivery",
                "verbose_name_plural": "Order Deliveries",
                "db_table": "order_deliveries",
                "ordering": ("-assigned_at",),
                "indexes": [
                    models.Index(fields=["agent", "status"], name="delivery_agent_status_idx"),
                ],
            },
        ),
    ]
