"""
Input validators for Duka
Kenyan phone numbers, money amounts and security event logging.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from apps.common.constants import KENYAN_COUNTRY_CODE, KENYAN_PHONE_PATTERN, MAX_PHONE_LENGTH
from apps.common.types import Err, Ok, Result

logger = logging.getLogger(__name__)


# ===============================================================================
# PHONE NUMBERS 🇰🇪
# ===============================================================================

def normalize_kenyan_phone(phone: str) -> Result[str, str]:
    """
    Validate a Kenyan mobile number and return its canonical 2547XXXXXXXX form.

    Accepts +254, 254 or 0 prefixes followed by a 7xx or 1xx subscriber number.
    Spaces, dashes and parentheses are ignored.
    """
    if not phone or not isinstance(phone, str):
        return Err("Phone number is required")

    if len(phone) > MAX_PHONE_LENGTH:
        return Err("Invalid phone number format. Use format: 254XXXXXXXXX")

    cleaned = re.sub(r'[\s\-\(\)]', '', phone.strip())
    match = re.match(KENYAN_PHONE_PATTERN, cleaned)
    if not match:
        return Err("Invalid phone number format. Use format: 254XXXXXXXXX")

    return Ok(f"{KENYAN_COUNTRY_CODE}{match.group(2)}")


def validate_kenyan_phone(phone: str) -> None:
    """Model/serializer field validator for Kenyan phone numbers"""
    if not phone:
        return
    result = normalize_kenyan_phone(phone)
    if result.is_err():
        raise ValidationError(_("Invalid Kenyan phone number format"))


# ===============================================================================
# MONEY
# ===============================================================================

def parse_positive_amount(value: Any) -> Result[Decimal, str]:
    """Parse a user supplied amount into a positive Decimal"""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Err("Amount must be a number")

    if not amount.is_finite() or amount <= 0:
        return Err("Amount must be greater than 0")

    return Ok(amount)


# ===============================================================================
# SECURITY EVENT LOGGING
# ===============================================================================

def log_security_event(event_type: str, details: dict[str, Any], request_ip: str | None = None) -> None:
    """
    Log security events for monitoring and forensics
    """
    try:
        logger.warning(f"🚨 [Security] {event_type}: {details} from IP: {request_ip}")
    except Exception as e:
        logger.error(f"Failed to log security event: {e}")
