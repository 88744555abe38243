import hashlib
import logging
from dataclasses import dataclass
from typing import Any

from django.db import IntegrityError, transaction

from apps.common.types import Err, Ok, Result, WebhookPayload
from apps.integrations.models import WebhookEvent

logger = logging.getLogger(__name__)


# ===============================================================================
# WEBHOOK PROCESSING RESULT TYPES
# ===============================================================================


@dataclass(frozen=True)
class WebhookProcessingResult:
    """Outcome of a callback with the HTTP status to acknowledge it with."""

    success: bool
    message: str
    webhook_event: WebhookEvent | None = None
    http_status: int = 200

    @classmethod
    def success_result(cls, message: str, event: WebhookEvent | None) -> "WebhookProcessingResult":
        return cls(success=True, message=message, webhook_event=event)

    @classmethod
    def error_result(
        cls, message: str, event: WebhookEvent | None = None, http_status: int = 400
    ) -> "WebhookProcessingResult":
        return cls(success=False, message=message, webhook_event=event, http_status=http_status)


@dataclass(frozen=True)
class WebhookContext:
    """Context for webhook event processing."""

    payload: WebhookPayload
    signature: str
    headers: dict[str, str]
    ip_address: str | None
    user_agent: str | None
    event_info: dict[str, str]
    target: Any = None


@dataclass(frozen=True)
class WebhookRequestMetadata:
    """Metadata extracted from webhook request."""

    signature: str
    headers: dict[str, str]
    ip_address: str | None
    user_agent: str | None


# ===============================================================================
# BASE WEBHOOK PROCESSING
# ===============================================================================


class BaseWebhookProcessor:
    """
    🔧 Base class for inbound callback processing with deduplication

    Pipeline:
    - payload validation and event id extraction
    - duplicate check on (source, event_id)
    - signature verification
    - target lookup (unknown target answers 404 and records nothing)
    - event recording and handling in one transaction; an exception rolls
      both back and answers 500 so the sender retries
    """

    source_name: str | None = None  # Override in subclasses

    def __init__(self) -> None:
        if not self.source_name:
            raise ValueError("source_name must be defined in subclass")

    def process_webhook(
        self,
        payload: WebhookPayload,
        signature: str = "",
        headers: dict[str, str] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> WebhookProcessingResult:
        """🔄 Main webhook processing pipeline"""
        headers = headers or {}
        metadata = WebhookRequestMetadata(signature, headers, ip_address, user_agent)

        result = (
            self._validate_payload(payload)
            .and_then(lambda event_info: self._check_duplicates(event_info))
            .and_then(lambda event_info: self._create_context(payload, metadata, event_info))
            .and_then(lambda context: self._verify_signature_with_context(context))
            .and_then(lambda context: self._resolve_target_with_context(context))
            .and_then(lambda context: self._create_and_process_event(context))
        )

        match result:
            case Ok(processing_result):
                return processing_result
            case Err(WebhookProcessingResult() as rejection):
                return rejection
            case Err(error_message):
                # Ok.and_then turns a raised exception into Err(str)
                logger.error(f"💥 Critical error processing {self.source_name} webhook: {error_message}")
                return WebhookProcessingResult.error_result(f"Critical error: {error_message}", http_status=500)

    def _validate_payload(self, payload: WebhookPayload) -> Result[dict[str, str], WebhookProcessingResult]:
        """Step 1: Validate payload and extract event information."""
        if not isinstance(payload, dict):
            return Err(WebhookProcessingResult.error_result("❌ Payload must be a JSON object"))

        event_id = self.extract_event_id(payload)
        event_type = self.extract_event_type(payload)

        if not event_id:
            return Err(WebhookProcessingResult.error_result("❌ Missing event ID in payload"))

        if not event_type:
            return Err(WebhookProcessingResult.error_result("❌ Missing event type in payload"))

        return Ok({"event_id": str(event_id), "event_type": event_type})

    def _check_duplicates(self, event_info: dict[str, str]) -> Result[dict[str, str], WebhookProcessingResult]:
        """Step 2: Check for duplicate webhook processing."""
        event_id = event_info["event_id"]

        if WebhookEvent.is_duplicate(self.source_name, event_id):
            logger.info(f"🔄 Duplicate webhook {self.source_name}:{event_id} - skipping")
            return Err(self._duplicate_result(event_id))

        return Ok(event_info)

    def _create_context(
        self, payload: WebhookPayload, metadata: WebhookRequestMetadata, event_info: dict[str, str]
    ) -> Result[WebhookContext, WebhookProcessingResult]:
        """Step 3: Create webhook processing context."""
        context = WebhookContext(
            payload=payload,
            signature=metadata.signature,
            headers=metadata.headers,
            ip_address=metadata.ip_address,
            user_agent=metadata.user_agent,
            event_info=event_info,
        )
        return Ok(context)

    def _verify_signature_with_context(self, context: WebhookContext) -> Result[WebhookContext, WebhookProcessingResult]:
        """Step 4: Verify webhook signature using context."""
        if not self.verify_signature(context.payload, context.signature, context.headers):
            logger.warning(f"🚨 Invalid {self.source_name} webhook signature from {context.ip_address}")
            return Err(WebhookProcessingResult.error_result("❌ Invalid webhook signature", http_status=401))

        return Ok(context)

    def _resolve_target_with_context(self, context: WebhookContext) -> Result[WebhookContext, WebhookProcessingResult]:
        """Step 5: Look up what the event applies to before recording anything."""
        match self.resolve_target(context.payload):
            case Ok(target):
                return Ok(
                    WebhookContext(
                        payload=context.payload,
                        signature=context.signature,
                        headers=context.headers,
                        ip_address=context.ip_address,
                        user_agent=context.user_agent,
                        event_info=context.event_info,
                        target=target,
                    )
                )
            case Err(message):
                logger.warning(f"⚠️ {self.source_name} webhook {context.event_info['event_id']}: {message}")
                return Err(WebhookProcessingResult.error_result(message, http_status=404))

    def _create_and_process_event(self, context: WebhookContext) -> Result[WebhookProcessingResult, WebhookProcessingResult]:
        """Step 6: Record the event and handle it atomically."""
        event_id = context.event_info["event_id"]
        event_type = context.event_info["event_type"]

        try:
            with transaction.atomic():
                try:
                    with transaction.atomic():
                        webhook_event = WebhookEvent.objects.create(
                            source=self.source_name,
                            event_id=event_id,
                            event_type=event_type,
                            payload=context.payload,
                            signature_hash=(
                                hashlib.sha256(context.signature.encode()).hexdigest() if context.signature else ""
                            ),
                            ip_address=context.ip_address,
                            user_agent=context.user_agent or "",
                            headers=context.headers,
                            status="pending",
                        )
                except IntegrityError:
                    # Lost the insert race to a concurrent delivery of the same event
                    logger.info(f"🔄 Concurrent duplicate webhook {self.source_name}:{event_id}")
                    return Err(self._duplicate_result(event_id))

                applied, message = self.handle_event(webhook_event, context.target)

                if applied:
                    webhook_event.mark_processed()
                    logger.info(f"✅ Processed {self.source_name} webhook {event_id}: {message}")
                else:
                    webhook_event.mark_skipped(message)
                    logger.warning(f"⏭️ Skipped {self.source_name} webhook {event_id}: {message}")

                return Ok(WebhookProcessingResult.success_result(message, webhook_event))

        except Exception as e:
            logger.exception(f"💥 Exception processing {self.source_name} webhook {event_id}")
            return Err(WebhookProcessingResult.error_result(f"Processing error: {e!s}", http_status=500))

    def _duplicate_result(self, event_id: str) -> WebhookProcessingResult:
        existing = WebhookEvent.objects.filter(source=self.source_name, event_id=event_id).first()
        return WebhookProcessingResult.success_result(f"⏭️ Duplicate webhook skipped: {event_id}", existing)

    def extract_event_id(self, payload: WebhookPayload) -> str | None:
        """🔍 Extract unique event ID from payload - override in subclasses"""
        return payload.get("id")

    def extract_event_type(self, payload: WebhookPayload) -> str | None:
        """🏷️ Extract event type from payload - override in subclasses"""
        return payload.get("type")

    def verify_signature(self, payload: WebhookPayload, signature: str, headers: dict[str, str]) -> bool:
        """🔐 Verify webhook signature - secure default is to fail.

        Subclasses should implement proper verification.
        """
        logger.error("Signature verification not implemented for this processor")
        return False

    def resolve_target(self, payload: WebhookPayload) -> Result[Any, str]:
        """🎯 Find the record the event applies to - override in subclasses"""
        return Ok(None)

    def handle_event(self, webhook_event: WebhookEvent, target: Any) -> tuple[bool, str]:
        """
        🎯 Apply the event to its target - override in subclasses

        Returns:
            (applied: bool, message: str); not applied marks the event skipped
        """
        raise NotImplementedError("Subclasses must implement handle_event")
