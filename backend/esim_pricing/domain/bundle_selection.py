from __future__ import annotations

"""Bundle selection and unused-day proration.

Both functions are pure: they work on an already-fetched catalog slice and
never touch storage.

Selection (single pass):
- exact `validity_in_days` match wins, no proration neighbour;
- else the shortest bundle that still covers the request, with the longest
  strictly-shorter bundle as its neighbour;
- else (nothing covers the request) the longest bundle, with the runner-up as
  its neighbour.

Callers must not mix bundles of equal duration from the same provider/group;
which duplicate wins is unspecified.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from esim_pricing.errors import NoBundleAvailable
from esim_pricing.schemas_pricing import Bundle
from esim_pricing.utils import ZERO


@dataclass(frozen=True)
class BundleSelection:
    selected_bundle: Bundle
    previous_bundle: Optional[Bundle] = None
    is_exact_match: bool = False


@dataclass(frozen=True)
class Proration:
    unused_days: int = 0
    discount_per_day: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.discount_per_day * self.unused_days


def select_bundle(bundles: Sequence[Bundle], requested_days: int) -> BundleSelection:
    if not bundles:
        raise NoBundleAvailable(
            "No bundle available for the requested coverage",
            {"requested_days": requested_days},
        )

    exact: Optional[Bundle] = None
    smallest_suitable: Optional[Bundle] = None
    largest: Optional[Bundle] = None
    runner_up: Optional[Bundle] = None

    for bundle in bundles:
        days = bundle.validity_in_days
        if days == requested_days and exact is None:
            exact = bundle
        if days >= requested_days and (
            smallest_suitable is None or days < smallest_suitable.validity_in_days
        ):
            smallest_suitable = bundle
        if largest is None or days > largest.validity_in_days:
            runner_up = largest
            largest = bundle
        elif runner_up is None or days > runner_up.validity_in_days:
            runner_up = bundle

    if exact is not None:
        return BundleSelection(selected_bundle=exact, is_exact_match=True)

    if smallest_suitable is not None:
        ceiling = smallest_suitable.validity_in_days
        previous: Optional[Bundle] = None
        for bundle in bundles:
            days = bundle.validity_in_days
            if days < ceiling and (previous is None or days > previous.validity_in_days):
                previous = bundle
        return BundleSelection(selected_bundle=smallest_suitable, previous_bundle=previous)

    assert largest is not None
    return BundleSelection(selected_bundle=largest, previous_bundle=runner_up)


def comparison_set(bundles: Sequence[Bundle], selected: Bundle) -> list[Bundle]:
    """Bundles sharing at least one group and one covered country with `selected`."""
    groups = set(selected.groups)
    countries = set(selected.countries)
    return [
        b
        for b in bundles
        if groups.intersection(b.groups) and countries.intersection(b.countries)
    ]


def calculate_unused_day_discount(
    bundles: Sequence[Bundle],
    selected_bundle: Bundle,
    requested_days: int,
) -> Decimal:
    """Per-unused-day discount from the price gap to the nearest shorter bundle.

    `bundles` must already be restricted with `comparison_set`. Never negative:
    a longer-but-cheaper catalog anomaly yields 0.
    """
    previous: Optional[Bundle] = None
    for bundle in bundles:
        days = bundle.validity_in_days
        if days >= requested_days or days >= selected_bundle.validity_in_days:
            continue
        if previous is None or days > previous.validity_in_days:
            previous = bundle

    if previous is None:
        return ZERO

    day_gap = selected_bundle.validity_in_days - previous.validity_in_days
    discount_per_day = (selected_bundle.base_price - previous.base_price) / Decimal(day_gap)
    return max(ZERO, discount_per_day)


def select_in_comparison_set(bundles: Sequence[Bundle], requested_days: int) -> BundleSelection:
    """`select_bundle`, with the neighbour taken from the selected bundle's comparison set.

    The selected bundle is the same as over the full catalog; only the shorter
    neighbour changes, so it matches the bundle proration prices against.
    """
    selection = select_bundle(bundles, requested_days)
    peers = comparison_set(bundles, selection.selected_bundle)
    if not peers:
        return selection
    restricted = select_bundle(peers, requested_days)
    return BundleSelection(
        selected_bundle=selection.selected_bundle,
        previous_bundle=restricted.previous_bundle,
        is_exact_match=selection.is_exact_match,
    )


def prorate(
    bundles: Sequence[Bundle],
    selection: BundleSelection,
    requested_days: int,
) -> Proration:
    """Unused days and per-day discount for a selection (zero for exact matches)."""
    selected = selection.selected_bundle
    unused_days = max(0, selected.validity_in_days - requested_days)
    if unused_days == 0:
        return Proration()

    per_day = calculate_unused_day_discount(
        comparison_set(bundles, selected), selected, requested_days
    )
    return Proration(unused_days=unused_days, discount_per_day=per_day)


def apply_unused_day_discount(price: Decimal, proration: Proration) -> tuple[Decimal, Decimal]:
    """Deduct the unused-day discount, capped at `price`.

    Returns (new_price, deducted_amount).
    """
    deduction = min(max(ZERO, proration.total), max(ZERO, price))
    return price - deduction, deduction
