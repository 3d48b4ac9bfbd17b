from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


@dataclass
class AppError(Exception):
    status_code: int
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    retryable: Optional[bool] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "details": self.details or {},
        }
        if self.retryable is not None:
            payload["retryable"] = self.retryable
        return {"error": payload}


class PricingErrorCode(str, Enum):
    NO_BUNDLE_AVAILABLE = "NO_BUNDLE_AVAILABLE"
    MARKUP_NOT_FOUND = "MARKUP_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    INVALID_COUPON = "INVALID_COUPON"
    COUPON_INACTIVE = "COUPON_INACTIVE"
    COUPON_EXPIRED = "COUPON_EXPIRED"
    UNSUPPORTED_COUPON_TYPE = "UNSUPPORTED_COUPON_TYPE"


class _PricingError(AppError):
    """Base for the fixed-code pricing errors below."""

    status: int = 400
    error_code: PricingErrorCode

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            status_code=self.status,
            code=self.error_code.value,
            message=message,
            details=details,
            retryable=False,
        )


class NoBundleAvailable(_PricingError):
    status = 404
    error_code = PricingErrorCode.NO_BUNDLE_AVAILABLE


class MarkupNotFound(_PricingError):
    """Raised by markup lookups; `get_markup` resolves it to 0."""

    status = 404
    error_code = PricingErrorCode.MARKUP_NOT_FOUND


class SessionNotFound(_PricingError):
    status = 404
    error_code = PricingErrorCode.SESSION_NOT_FOUND


class InvalidCoupon(_PricingError):
    error_code = PricingErrorCode.INVALID_COUPON


class CouponInactive(_PricingError):
    error_code = PricingErrorCode.COUPON_INACTIVE


class CouponExpired(_PricingError):
    error_code = PricingErrorCode.COUPON_EXPIRED


class UnsupportedCouponType(_PricingError):
    error_code = PricingErrorCode.UNSUPPORTED_COUPON_TYPE
