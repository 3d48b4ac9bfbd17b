from __future__ import annotations

"""Markup lookup and tiered (upper/lower bound) price assembly.

Used for wholesale catalogs, where a bundle's `base_price` is the provider cost
and the retail price is cost + a configured markup.

Markup rows are keyed by provider, plan type and exact duration. A missing row
never blocks a quote: the lookup logs a warning and returns 0.

Tiered assembly prorates on the *markup* differential between the selected
bundle and its shorter neighbour:

    discount_per_day = (upper_markup - lower_markup) / (upper_days - lower_days)
    final_price      = ceil(base_price + upper_markup - discount_per_day * unused_days)

This is the formula for wholesale catalogs only; retail catalogs use the
price-differential proration in `domain.bundle_selection`.
"""

from dataclasses import dataclass
from decimal import Decimal
import logging
from typing import Any, Optional, Protocol, Sequence

from esim_pricing.domain.bundle_selection import select_bundle
from esim_pricing.errors import MarkupNotFound
from esim_pricing.schemas_pricing import Bundle
from esim_pricing.utils import ZERO, ceil_to, safe_int, to_decimal

logger = logging.getLogger(__name__)

WHOLE_UNIT = Decimal("1")


class MarkupStore(Protocol):
    async def list_for_plan(self, provider_id: str, plan_type: str) -> list[dict[str, Any]]: ...


class MarkupResolver:
    def __init__(self, store: MarkupStore) -> None:
        self.store = store

    async def find_markup(self, provider_id: Optional[str], plan_type: Optional[str], duration_days: int) -> Decimal:
        """Strict lookup; raises MarkupNotFound when no row applies."""
        details = {"provider_id": provider_id, "plan_type": plan_type, "duration_days": duration_days}
        if not provider_id or not plan_type:
            raise MarkupNotFound("Bundle has no provider/plan to look up a markup for", details)

        rows = await self.store.list_for_plan(provider_id, plan_type)
        for row in rows:
            if safe_int(row.get("duration_days"), -1) == duration_days:
                return to_decimal(row.get("markup_amount"))

        raise MarkupNotFound("No markup configured for duration", details)

    async def get_markup(self, provider_id: Optional[str], plan_type: Optional[str], duration_days: int) -> Decimal:
        try:
            return await self.find_markup(provider_id, plan_type, duration_days)
        except MarkupNotFound as exc:
            logger.warning("%s; using 0 (%s)", exc.message, exc.details)
            return ZERO


@dataclass(frozen=True)
class TieredQuote:
    final_price: Decimal
    upper_price: Decimal
    upper_markup: Decimal
    lower_markup: Decimal
    unused_days: int
    discount_per_day: Decimal
    total_discount: Decimal
    selected_bundle: Bundle
    previous_bundle: Optional[Bundle]


async def calculate_tiered_price(
    resolver: MarkupResolver,
    bundles: Sequence[Bundle],
    requested_days: int,
) -> TieredQuote:
    selection = select_bundle(bundles, requested_days)
    upper = selection.selected_bundle
    lower = selection.previous_bundle

    upper_markup = await resolver.get_markup(upper.provider_id, upper.plan_type, upper.validity_in_days)
    upper_price = upper.base_price + upper_markup
    unused_days = max(0, upper.validity_in_days - requested_days)

    if selection.is_exact_match or lower is None or unused_days == 0:
        return TieredQuote(
            final_price=ceil_to(upper_price, WHOLE_UNIT),
            upper_price=upper_price,
            upper_markup=upper_markup,
            lower_markup=ZERO,
            unused_days=0,
            discount_per_day=ZERO,
            total_discount=ZERO,
            selected_bundle=upper,
            previous_bundle=lower,
        )

    lower_markup = await resolver.get_markup(lower.provider_id, lower.plan_type, lower.validity_in_days)
    day_gap = upper.validity_in_days - lower.validity_in_days
    discount_per_day = max(ZERO, (upper_markup - lower_markup) / Decimal(day_gap))
    total_discount = min(discount_per_day * unused_days, upper_price)

    logger.debug(
        "tiered price: upper=%s (%sd, markup %s) lower=%s (%sd, markup %s) unused=%s per_day=%s",
        upper.id,
        upper.validity_in_days,
        upper_markup,
        lower.id,
        lower.validity_in_days,
        lower_markup,
        unused_days,
        discount_per_day,
    )

    return TieredQuote(
        final_price=ceil_to(upper_price - total_discount, WHOLE_UNIT),
        upper_price=upper_price,
        upper_markup=upper_markup,
        lower_markup=lower_markup,
        unused_days=unused_days,
        discount_per_day=discount_per_day,
        total_discount=total_discount,
        selected_bundle=upper,
        previous_bundle=lower,
    )
