"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import Enum, IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    UNSUPPORTED_PROVIDER = 60000
    SIGNATURE_ERROR = 60002


class PaymentErrorType(str, Enum):
    """Error vocabulary shared by the storefront and webhook callers."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    UNSUPPORTED_PROVIDER = "UNSUPPORTED_PROVIDER"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CanonicalStatus(str, Enum):
    """Internal payment outcome every provider status is translated into."""

    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


# Provider -> canonical status mapping; anything unlisted is pending
PROVIDER_STATUS_TO_CANONICAL: dict[str, dict[str, CanonicalStatus]] = {
    "stripe": {
        "succeeded": CanonicalStatus.SUCCESS,
        "canceled": CanonicalStatus.FAILED,
    },
    "payplus": {
        "completed": CanonicalStatus.SUCCESS,
        "failed": CanonicalStatus.FAILED,
    },
}
