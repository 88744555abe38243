"""
Type system for Duka
Rust-inspired Result pattern and commerce type aliases for clean architecture.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

# Type variables for generic Result
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type

# ===============================================================================
# RESULT TYPES
# ===============================================================================


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Success result containing a value"""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the success value"""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Get the success value (ignores default)"""
        return self.value

    def map(self, func: Callable[[T], Any]) -> Result[Any, Any]:
        """Transform the success value"""
        try:
            return Ok(func(self.value))
        except Exception as e:
            return Err(str(e))

    def and_then(self, func: Callable[[T], Result[Any, Any]]) -> Result[Any, Any]:
        """Chain operations that can fail"""
        try:
            return func(self.value)
        except Exception as e:
            return Err(str(e))

    def unwrap_err(self) -> Any:
        """Raises an exception since this is success, not error - provides consistent API"""
        raise ValueError(f"Called unwrap_err on Ok: {self.value}")


@dataclass(frozen=True)
class Err(Generic[E]):
    """Error result containing an error value"""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> Any:
        """Raises an exception - use unwrap_or() for safe access"""
        raise ValueError(f"Called unwrap on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Get the default value since this is an error"""
        return default

    def map(self, func: Callable[[Any], Any]) -> Result[Any, E]:
        """No-op for error results"""
        return self

    def and_then(self, func: Callable[[Any], Result[Any, Any]]) -> Result[Any, E]:
        """No-op for error results - return self"""
        return self

    def unwrap_err(self) -> E:
        """Get the error value"""
        return self.error


# Result type alias
Result = Ok[T] | Err[E]

# ===============================================================================
# SERVICE ERRORS
# ===============================================================================


@dataclass(frozen=True)
class ServiceError:
    """
    Categorized service failure.

    `code` tells the API layer which HTTP status to answer with:
    validation, not_found, forbidden, conflict, business, gateway.
    """

    message: str
    code: str = "business"

    def __str__(self) -> str:
        return self.message

    @classmethod
    def validation(cls, message: str) -> ServiceError:
        return cls(message, "validation")

    @classmethod
    def not_found(cls, message: str) -> ServiceError:
        return cls(message, "not_found")

    @classmethod
    def forbidden(cls, message: str) -> ServiceError:
        return cls(message, "forbidden")

    @classmethod
    def conflict(cls, message: str) -> ServiceError:
        return cls(message, "conflict")

    @classmethod
    def gateway(cls, message: str) -> ServiceError:
        return cls(message, "gateway")


class ConcurrencyConflict(Exception):
    """Raised inside a transaction when an optimistic version check loses a race"""


class InsufficientBalance(Exception):
    """Raised inside a transaction when a wallet debit exceeds the balance"""

    def __init__(self, message: str = "Insufficient wallet balance") -> None:
        super().__init__(message)


# ===============================================================================
# BUSINESS TYPES
# ===============================================================================

PhoneNumber = str  # Canonical Kenyan MSISDN: "254712345678"
CheckoutRequestID = str  # M-Pesa STK correlation id

# ===============================================================================
# WEBHOOK TYPES
# ===============================================================================

WebhookPayload = dict[str, Any]
