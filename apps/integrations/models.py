import uuid
from typing import ClassVar

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

# ===============================================================================
# INBOUND WEBHOOK DEDUPLICATION
# ===============================================================================


class WebhookEvent(models.Model):
    """
    🔄 Inbound gateway callback record

    One row per (source, event_id). For M-Pesa the event id is the STK
    CheckoutRequestID, so a callback the gateway delivers twice is only
    applied once.
    """

    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("pending", _("⏳ Pending")),
        ("processed", _("✅ Processed")),
        ("skipped", _("⏭️ Skipped")),  # Nothing to apply
    )

    SOURCE_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("mpesa", _("📱 M-Pesa")),
        ("other", _("🔌 Other")),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source = models.CharField(
        max_length=50, choices=SOURCE_CHOICES, help_text=_("External service that sent the callback")
    )
    event_id = models.CharField(max_length=255, help_text=_("Idempotency key from the external service"))
    event_type = models.CharField(max_length=100, help_text=_("Type of event (e.g., 'stk_callback.success')"))

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")

    received_at = models.DateTimeField(default=timezone.now)
    processed_at = models.DateTimeField(null=True, blank=True)

    payload = models.JSONField(help_text=_("Complete callback payload"))
    signature_hash = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text=_("SHA-256 hash of the callback token for verification tracking"),
    )

    error_message = models.TextField(blank=True)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    headers = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "webhook_events"
        verbose_name = _("🔄 Webhook Event")
        verbose_name_plural = _("🔄 Webhook Events")
        constraints: ClassVar[tuple[models.UniqueConstraint, ...]] = (
            models.UniqueConstraint(fields=["source", "event_id"], name="webhook_source_event_unique"),
        )
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["source", "event_type", "received_at"], name="webhook_source_type_idx"),
        )
        ordering: ClassVar[tuple[str, ...]] = ("-received_at",)

    def __str__(self) -> str:
        return f"🔄 {self.get_source_display()} | {self.event_type} | {self.status}"

    def mark_processed(self, save: bool = True) -> None:
        """✅ Mark callback as applied"""
        self.status = "processed"
        self.processed_at = timezone.now()
        if save:
            self.save(update_fields=["status", "processed_at", "updated_at"])

    def mark_skipped(self, reason: str = "Nothing to apply", save: bool = True) -> None:
        """⏭️ Mark callback as skipped"""
        self.status = "skipped"
        self.error_message = reason
        self.processed_at = timezone.now()
        if save:
            self.save(update_fields=["status", "error_message", "processed_at", "updated_at"])

    @classmethod
    def is_duplicate(cls, source: str, event_id: str) -> bool:
        """🔍 Check if the callback has already been recorded"""
        return cls.objects.filter(source=source, event_id=event_id).exists()
