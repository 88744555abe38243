"""
Safaricom Daraja (M-Pesa) API client.

Covers the two calls the checkout needs:
- OAuth client-credentials token, cached until shortly before it expires
- Lipa Na M-Pesa Online STK push

Calls are made once; there is no retry. Failures raise MpesaGatewayError
so the caller can audit and report them.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, ClassVar

import requests
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from apps.common.types import CheckoutRequestID, PhoneNumber

logger = logging.getLogger(__name__)

STK_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class MpesaGatewayError(Exception):
    """Raised when the Daraja API cannot be reached or rejects a request"""

    def __init__(self, message: str, response_data: Any = None) -> None:
        super().__init__(message)
        self.response_data = response_data


@dataclass
class MpesaConfig:
    """Daraja credentials and endpoints."""

    consumer_key: str
    consumer_secret: str
    business_shortcode: str
    passkey: str
    callback_url: str
    environment: str = "sandbox"
    auth_timeout: int = 10
    stk_timeout: int = 30

    @classmethod
    def from_settings(cls) -> MpesaConfig:
        timeouts = getattr(settings, "API_TIMEOUTS", {})
        return cls(
            consumer_key=settings.MPESA_CONSUMER_KEY,
            consumer_secret=settings.MPESA_CONSUMER_SECRET,
            business_shortcode=str(settings.MPESA_BUSINESS_SHORTCODE),
            passkey=settings.MPESA_PASSKEY,
            callback_url=settings.MPESA_CALLBACK_URL,
            environment=settings.MPESA_ENVIRONMENT,
            auth_timeout=timeouts.get("mpesa_auth", 10),
            stk_timeout=timeouts.get("mpesa_stk_push", 30),
        )

    @property
    def base_url(self) -> str:
        return settings.MPESA_BASE_URLS["production" if self.environment == "production" else "sandbox"]

    def is_valid(self) -> bool:
        return bool(self.consumer_key and self.consumer_secret and self.business_shortcode and self.passkey)


@dataclass(frozen=True)
class StkPushResponse:
    checkout_request_id: CheckoutRequestID
    merchant_request_id: str
    response_code: str
    response_description: str
    customer_message: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StkPushResponse:
        return cls(
            checkout_request_id=data.get("CheckoutRequestID", ""),
            merchant_request_id=data.get("MerchantRequestID", ""),
            response_code=str(data.get("ResponseCode", "")),
            response_description=data.get("ResponseDescription", ""),
            customer_message=data.get("CustomerMessage", ""),
        )

    @property
    def accepted(self) -> bool:
        return self.response_code == "0" and bool(self.checkout_request_id)


class MpesaGateway:
    """
    Client for the Daraja STK push API.

    Usage:
        gateway = MpesaGateway()
        response = gateway.stk_push("254712345678", 1500, "ORD-...", "Payment for order ORD-...")
    """

    TOKEN_CACHE_KEY: ClassVar[str] = "mpesa_access_token_{env}"

    def __init__(self, config: MpesaConfig | None = None) -> None:
        self.config = config or MpesaConfig.from_settings()

    def get_access_token(self) -> str:
        """Fetch an OAuth token, reusing the cached one while it is valid"""
        cache_key = self.TOKEN_CACHE_KEY.format(env=self.config.environment)
        token = cache.get(cache_key)
        if token:
            return token

        if not self.config.is_valid():
            raise MpesaGatewayError("M-Pesa credentials are not configured")

        try:
            response = requests.get(
                f"{self.config.base_url}/oauth/v1/generate",
                params={"grant_type": "client_credentials"},
                auth=(self.config.consumer_key, self.config.consumer_secret),
                timeout=self.config.auth_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"🔥 [M-Pesa] Token request failed: {e}")
            raise MpesaGatewayError("Failed to get M-Pesa access token") from e
        except ValueError as e:
            raise MpesaGatewayError("Invalid M-Pesa token response") from e

        token = data.get("access_token")
        if not token:
            raise MpesaGatewayError("Failed to get M-Pesa access token", data)

        expires_in = int(data.get("expires_in", 3599))
        cache.set(cache_key, token, timeout=max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 1))
        return token

    def generate_password(self, timestamp: str | None = None) -> tuple[str, str]:
        """base64(shortcode + passkey + timestamp), with the timestamp used"""
        timestamp = timestamp or timezone.localtime().strftime(STK_TIMESTAMP_FORMAT)
        raw = f"{self.config.business_shortcode}{self.config.passkey}{timestamp}"
        return base64.b64encode(raw.encode()).decode(), timestamp

    def stk_push(self, phone: PhoneNumber, amount: int, account_reference: str, description: str) -> StkPushResponse:
        """Send a Lipa Na M-Pesa Online prompt to `phone` (254XXXXXXXXX)"""
        token = self.get_access_token()
        password, timestamp = self.generate_password()

        payload = {
            "BusinessShortCode": self.config.business_shortcode,
            "Password": password,
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": amount,
            "PartyA": phone,
            "PartyB": self.config.business_shortcode,
            "PhoneNumber": phone,
            "CallBackURL": self.callback_url,
            "AccountReference": account_reference,
            "TransactionDesc": description,
        }

        try:
            response = requests.post(
                f"{self.config.base_url}/mpesa/stkpush/v1/processrequest",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.config.stk_timeout,
            )
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"🔥 [M-Pesa] STK push request failed: {e}")
            raise MpesaGatewayError(f"STK push request failed: {e}") from e
        except ValueError as e:
            raise MpesaGatewayError("Invalid STK push response") from e

        result = StkPushResponse.from_dict(data)
        if not response.ok or not result.accepted:
            message = data.get("errorMessage") or result.response_description or f"HTTP {response.status_code}"
            logger.warning(f"⚠️ [M-Pesa] STK push rejected for {account_reference}: {message}")
            raise MpesaGatewayError(message, data)

        logger.info(f"📱 [M-Pesa] STK push sent for {account_reference}: {result.checkout_request_id}")
        return result

    @property
    def callback_url(self) -> str:
        token = getattr(settings, "MPESA_CALLBACK_TOKEN", "")
        if not token:
            return self.config.callback_url
        separator = "&" if "?" in self.config.callback_url else "?"
        return f"{self.config.callback_url}{separator}token={token}"
