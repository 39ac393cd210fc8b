"""
Exceptions for payment providers mapped to unified BusinessException variants.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode, PaymentErrorType


class PaymentNetworkError(BusinessException):
    """Gateway unreachable, timed out, or answered non-2xx.

    Raised inside adapters only; ``create_payment`` converts it into a
    ``success=False`` result before returning.
    """

    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=BusinessCode.NETWORK_ERROR,
            message=message,
            error_type=PaymentErrorType.NETWORK_ERROR.value,
            details=full_details,
        )


class UnsupportedProviderError(BusinessException):
    def __init__(self, provider: str, *, supported: Optional[list[str]] = None):
        super().__init__(
            code=PaymentCode.UNSUPPORTED_PROVIDER,
            message=f"Unsupported payment provider: {provider}",
            error_type=PaymentErrorType.UNSUPPORTED_PROVIDER.value,
            details={"provider": provider, "supported": supported or []},
        )
