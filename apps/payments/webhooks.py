import hmac
import logging

from django.conf import settings

from apps.audit.services import AuditContext
from apps.common.types import Err, Ok, Result, WebhookPayload
from apps.integrations.models import WebhookEvent
from apps.integrations.webhooks.base import BaseWebhookProcessor
from apps.orders.models import Order

from .services import MpesaCallbackResult, MpesaPaymentService

logger = logging.getLogger(__name__)


class MpesaCallbackProcessor(BaseWebhookProcessor):
    """
    📱 Daraja STK callback processor

    The CheckoutRequestID is both the correlation id back to the order and
    the idempotency key, so a retried callback is acknowledged without
    touching the order or the wallet again.
    """

    source_name = "mpesa"

    def extract_event_id(self, payload: WebhookPayload) -> str | None:
        callback = MpesaCallbackResult.from_payload(payload)
        return callback.checkout_request_id if callback else None

    def extract_event_type(self, payload: WebhookPayload) -> str | None:
        callback = MpesaCallbackResult.from_payload(payload)
        if callback is None:
            return None
        return "stk_callback.success" if callback.succeeded else "stk_callback.failed"

    def verify_signature(self, payload: WebhookPayload, signature: str, headers: dict[str, str]) -> bool:
        """Daraja does not sign callbacks; an optional URL token is checked instead"""
        expected = getattr(settings, "MPESA_CALLBACK_TOKEN", "")
        if not expected:
            return True
        if not signature:
            return False
        return hmac.compare_digest(signature.encode(), expected.encode())

    def resolve_target(self, payload: WebhookPayload) -> Result[Order, str]:
        callback = MpesaCallbackResult.from_payload(payload)
        order = MpesaPaymentService.find_pending_order(callback.checkout_request_id)
        if order is None:
            logger.error(f"🔥 [M-Pesa] Order not found for CheckoutRequestID {callback.checkout_request_id}")
            return Err("Order not found")
        return Ok(order)

    def handle_event(self, webhook_event: WebhookEvent, target: Order) -> tuple[bool, str]:
        callback = MpesaCallbackResult.from_payload(webhook_event.payload)
        context = AuditContext(
            ip_address=webhook_event.ip_address,
            user_agent=webhook_event.user_agent,
            actor_type="gateway",
        )

        if callback.succeeded:
            return MpesaPaymentService.confirm_payment(target, callback, context)
        return MpesaPaymentService.fail_payment(target, callback, context)
