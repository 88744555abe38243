# Generated manually for the integrations app - inbound webhook deduplication

import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "source",
                    models.CharField(
                        choices=[("mpesa", "📱 M-Pesa"), ("other", "🔌 Other")],
                        help_text="External service that sent the callback",
                        max_length=50,
                    ),
                ),
                (
                    "event_id",
                    models.CharField(help_text="Idempotency key from the external service", max_length=255),
                ),
                (
                    "event_type",
                    models.CharField(help_text="Type of event (e.g., 'stk_callback.success')", max_length=100),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "⏳ Pending"), ("processed", "✅ Processed"), ("skipped", "⏭️ Skipped")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("received_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("payload", models.JSONField(help_text="Complete callback payload")),
                (
                    "signature_hash",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="SHA-256 hash of the callback token for verification tracking",
                        max_length=64,
                    ),
                ),
                ("error_message", models.TextField(blank=True)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True)),
                ("headers", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "🔄 Webhook Event",
                "verbose_name_plural": "🔄 Webhook Events",
                "db_table": "webhook_events",
                "ordering": ("-received_at",),
                "indexes": [
                    models.Index(fields=["source", "event_type", "received_at"], name="webhook_source_type_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("source", "event_id"), name="webhook_source_event_unique"),
                ],
            },
        ),
    ]
