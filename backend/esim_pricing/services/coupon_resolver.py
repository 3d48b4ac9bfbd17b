from __future__ import annotations

"""Coupon application for checkout sessions.

Two paths, tried in order:

1. Auto-match: codes derived from the session itself, no coupon row needed.
   Candidates are `{country}{days}`, `{continent of country}{days}` and
   `{continent from bundle name}{days}`, compared case-insensitively. A hit
   applies a flat AUTO_MATCH_DISCOUNT_PERCENT.
2. Coupon table: the row must be active, already valid, not expired, of a
   supported type and applicable to the session's bundle/region.

Coupons never compound: the discount is always computed from the price the
session had before any coupon, so re-applying (or switching) a coupon
replaces the previous one.
"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from esim_pricing import config
from esim_pricing.constants.continents import continent_for_bundle_name, continent_for_country
from esim_pricing.errors import (
    CouponExpired,
    CouponInactive,
    InvalidCoupon,
    SessionNotFound,
    UnsupportedCouponType,
)
from esim_pricing.schemas_pricing import Coupon, CouponDiscount, CouponType, PricingBreakdown
from esim_pricing.utils import ZERO, as_utc, now_utc, q2, safe_int

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

SOURCE_AUTO_MATCH = "auto_match"
SOURCE_COUPON_TABLE = "coupon_table"


class SessionStore(Protocol):
    async def get(self, session_id: str) -> Optional[dict[str, Any]]: ...

    async def update_pricing(
        self,
        session_id: str,
        pricing: dict[str, Any],
        metadata_updates: Optional[dict[str, Any]] = None,
    ) -> None: ...


class CouponStore(Protocol):
    async def find_by_code(self, code: str) -> Optional[dict[str, Any]]: ...


def _first(mapping: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = mapping.get(key)
        if value not in (None, ""):
            return value
    return None


def derive_auto_match_codes(
    country_iso: Optional[str],
    requested_days: Optional[int],
    bundle_name: Optional[str],
) -> list[str]:
    """Lower-cased auto-match candidates; empty when days are unknown."""
    if not requested_days:
        return []
    prefixes = [
        country_iso.strip().lower() if country_iso else None,
        continent_for_country(country_iso),
        continent_for_bundle_name(bundle_name),
    ]
    codes: list[str] = []
    for prefix in prefixes:
        if prefix:
            code = f"{prefix}{requested_days}"
            if code not in codes:
                codes.append(code)
    return codes


def compute_coupon_discount(coupon: Coupon, original_price: Decimal) -> Decimal:
    if coupon.coupon_type == CouponType.PERCENTAGE.value:
        amount = original_price * coupon.value / HUNDRED
    elif coupon.coupon_type == CouponType.FIXED_AMOUNT.value:
        amount = coupon.value
    else:
        raise UnsupportedCouponType(
            f"Unsupported coupon type: {coupon.coupon_type}",
            {"code": coupon.code, "coupon_type": coupon.coupon_type},
        )

    if coupon.max_discount is not None:
        amount = min(amount, coupon.max_discount)
    amount = min(amount, original_price)
    return q2(max(ZERO, amount))


def _check_applicability(coupon: Coupon, bundle_id: Optional[str], region: Optional[str]) -> None:
    if coupon.allowed_bundle_ids and (not bundle_id or bundle_id not in coupon.allowed_bundle_ids):
        raise InvalidCoupon(
            "Coupon not valid for selected bundle",
            {"code": coupon.code, "bundle_id": bundle_id},
        )

    if coupon.allowed_regions:
        if not region:
            raise InvalidCoupon(
                "Cannot validate coupon region restrictions",
                {"code": coupon.code},
            )
        target = region.lower()
        if not any(
            target in allowed.lower() or allowed.lower() in target
            for allowed in coupon.allowed_regions
        ):
            raise InvalidCoupon(
                "Coupon not valid for selected region",
                {"code": coupon.code, "region": region},
            )


class CouponService:
    def __init__(self, sessions: SessionStore, coupons: CouponStore) -> None:
        self.sessions = sessions
        self.coupons = coupons

    async def apply_coupon(
        self,
        session_id: str,
        coupon_code: str,
        *,
        now: Optional[datetime] = None,
    ) -> PricingBreakdown:
        session = await self.sessions.get(session_id)
        if not session or not session.get("pricing"):
            raise SessionNotFound("Checkout session not found", {"session_id": session_id})

        code = (coupon_code or "").strip()
        if not code:
            raise InvalidCoupon("Coupon code is empty", {"session_id": session_id})

        pricing = PricingBreakdown.model_validate(session["pricing"])
        metadata: dict[str, Any] = session.get("metadata") or {}

        original_price = pricing.discount.original_price if pricing.discount else pricing.final_price

        requested_days = safe_int(
            _first(metadata, "numOfDays", "requestedDays") or pricing.requested_days, 0
        )
        country_iso = _first(metadata, "countryId", "countryIso", "country")
        bundle_name = _first(metadata, "bundleName") or pricing.bundle_name

        candidates = (
            derive_auto_match_codes(country_iso, requested_days, bundle_name)
            if config.ENABLE_AUTO_MATCH_COUPONS
            else []
        )

        if code.lower() in candidates:
            source = SOURCE_AUTO_MATCH
            amount = q2(min(original_price * config.AUTO_MATCH_DISCOUNT_PERCENT / HUNDRED, original_price))
        else:
            source = SOURCE_COUPON_TABLE
            coupon = await self._load_coupon(code, now=now)
            _check_applicability(
                coupon,
                _first(metadata, "bundleId") or pricing.selected_bundle_id,
                _first(metadata, "regionId", "region") or country_iso,
            )
            amount = compute_coupon_discount(coupon, original_price)

        final_price = original_price - amount
        processing_cost = final_price * pricing.processing_rate / HUNDRED
        updated = pricing.model_copy(
            update={
                "discount": CouponDiscount(
                    code=code.upper(),
                    amount=amount,
                    original_price=original_price,
                    source=source,
                ),
                "final_price": final_price,
                "processing_cost": q2(processing_cost),
                "net_profit": q2(final_price - pricing.base_cost - processing_cost),
            }
        )

        await self.sessions.update_pricing(
            session_id,
            updated.model_dump(mode="json", by_alias=True),
            {"couponCode": code.upper(), "couponSource": source},
        )

        logger.info(
            "coupon %s applied to session %s via %s: %s -> %s",
            code.upper(),
            session_id,
            source,
            original_price,
            final_price,
        )
        return updated

    async def _load_coupon(self, code: str, *, now: Optional[datetime]) -> Coupon:
        doc = await self.coupons.find_by_code(code)
        if not doc:
            raise InvalidCoupon("Invalid coupon code", {"code": code.upper()})

        try:
            coupon = Coupon.model_validate(doc)
        except ValidationError as exc:
            logger.warning("coupon %s has a malformed row: %s", code.upper(), exc)
            raise InvalidCoupon("Invalid coupon code", {"code": code.upper()}) from exc

        at = as_utc(now) if now is not None else now_utc()
        if not coupon.is_active:
            raise CouponInactive("Coupon is not active", {"code": coupon.code})
        if coupon.valid_from is not None and as_utc(coupon.valid_from) > at:
            raise CouponInactive("Coupon is not yet valid", {"code": coupon.code})
        if coupon.valid_until is not None and as_utc(coupon.valid_until) < at:
            raise CouponExpired("Coupon has expired", {"code": coupon.code})
        if coupon.coupon_type not in {t.value for t in CouponType}:
            raise UnsupportedCouponType(
                f"Unsupported coupon type: {coupon.coupon_type}",
                {"code": coupon.code, "coupon_type": coupon.coupon_type},
            )
        return coupon
