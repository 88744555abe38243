# Generated manually for the audit app - immutable action trail

import uuid

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
            name="AuditEvent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("timestamp", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True)),
                ("request_id", models.CharField(blank=True, db_index=True, max_length=64)),
                ("actor_type", models.CharField(default="user", max_length=20)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("order_create", "Order Create"),
                            ("order_cancel", "Order Cancel"),
                            ("order_status_change", "Order Status Change"),
                            ("payment_initiate", "Payment Initiate"),
                            ("payment_success", "Payment Success"),
                            ("payment_failed", "Payment Failed"),
                            ("payment_refund", "Payment Refund"),
                            ("admin_wallet_credit", "Admin Wallet Credit"),
                            ("delivery_assign", "Delivery Assign"),
                            ("delivery_status_update", "Delivery Status Update"),
                            ("agent_application", "Agent Application"),
                            ("agent_status_change", "Agent Status Change"),
                            ("zone_create", "Zone Create"),
                            ("zone_update", "Zone Update"),
                            ("coupon_create", "Coupon Create"),
                            ("coupon_update", "Coupon Update"),
                            ("coupon_delete", "Coupon Delete"),
                        ],
                        db_index=True,
                        max_length=40,
                    ),
                ),
                (
                    "resource",
                    models.CharField(
                        choices=[
                            ("order", "Order"),
                            ("payment", "Payment"),
                            ("wallet", "Wallet"),
                            ("delivery", "Delivery"),
                            ("delivery_agent", "Delivery Agent"),
                            ("delivery_zone", "Delivery Zone"),
                            ("coupon", "Coupon"),
                            ("system", "System"),
                        ],
                        max_length=20,
                    ),
                ),
                ("resource_id", models.CharField(blank=True, db_index=True, max_length=64)),
                ("details", models.JSONField(blank=True, default=dict)),
                (
                    "severity",
                    models.CharField(
                        choices=[("low", "Low"), ("medium", "Medium"), ("high", "High"), ("critical", "Critical")],
                        default="low",
                        max_length=10,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("success", "Success"), ("failed", "Failed"), ("pending", "Pending")],
                        default="success",
                        max_length=10,
                    ),
                ),
                ("error_message", models.TextField(blank=True)),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "audit_event",
                "ordering": ("-timestamp",),
                "indexes": [
                    models.Index(fields=["user", "-timestamp"], name="audit_user_ts_idx"),
                    models.Index(fields=["resource", "resource_id", "-timestamp"], name="audit_resource_ts_idx"),
                    models.Index(fields=["action", "-timestamp"], name="audit_action_ts_idx"),
                    models.Index(fields=["severity", "status"], name="audit_severity_status_idx"),
                ],
            },
        ),
    ]
