from __future__ import annotations

import logging
from decimal import Decimal

import pytest

from esim_pricing.errors import MarkupNotFound
from esim_pricing.repositories.markup_repository import MarkupRepository
from esim_pricing.services.markup_resolver import MarkupResolver, calculate_tiered_price

PROVIDER = "maya"
PLAN = "unlimited"


async def _seed_markups(fake_db, rows) -> None:
    for days, amount in rows:
        await fake_db.markups.insert_one(
            {
                "_id": f"{PROVIDER}-{PLAN}-{days}",
                "provider_id": PROVIDER,
                "plan_type": PLAN,
                "duration_days": days,
                "markup_amount": amount,
            }
        )
    # other plan, must never be picked
    await fake_db.markups.insert_one(
        {"provider_id": PROVIDER, "plan_type": "limited", "duration_days": 1, "markup_amount": 99}
    )


@pytest.fixture
def wholesale_bundles(bundle_factory):
    return [
        bundle_factory("w-7", 7, "5", provider_id=PROVIDER, plan_type=PLAN),
        bundle_factory("w-14", 14, "9", provider_id=PROVIDER, plan_type=PLAN),
        bundle_factory("w-30", 30, "16", provider_id=PROVIDER, plan_type=PLAN),
    ]


@pytest.mark.anyio
async def test_markup_matches_duration_exactly(fake_db) -> None:
    await _seed_markups(fake_db, [(7, 3), (14, 5), (30, "8.5")])
    resolver = MarkupResolver(MarkupRepository(fake_db))

    assert await resolver.get_markup(PROVIDER, PLAN, 7) == Decimal("3")
    assert await resolver.get_markup(PROVIDER, PLAN, 14) == Decimal("5")
    assert await resolver.get_markup(PROVIDER, PLAN, 30) == Decimal("8.5")


@pytest.mark.anyio
async def test_no_row_for_duration_is_zero_and_logged(fake_db, caplog) -> None:
    # Only a 7 day row: 14 days must not borrow it
    await _seed_markups(fake_db, [(7, 3)])
    resolver = MarkupResolver(MarkupRepository(fake_db))

    with caplog.at_level(logging.WARNING, logger="esim_pricing.services.markup_resolver"):
        assert await resolver.get_markup(PROVIDER, PLAN, 14) == Decimal("0")
        assert await resolver.get_markup(PROVIDER, PLAN, 10) == Decimal("0")

    assert "No markup configured for duration" in caplog.text
    with pytest.raises(MarkupNotFound):
        await resolver.find_markup(PROVIDER, PLAN, 14)


@pytest.mark.anyio
async def test_missing_markup_is_zero_and_logged(fake_db, caplog) -> None:
    await _seed_markups(fake_db, [(7, 3)])
    resolver = MarkupResolver(MarkupRepository(fake_db))

    with caplog.at_level(logging.WARNING, logger="esim_pricing.services.markup_resolver"):
        assert await resolver.get_markup(PROVIDER, PLAN, 3) == Decimal("0")
        assert await resolver.get_markup("unknown", PLAN, 30) == Decimal("0")
        assert await resolver.get_markup(None, None, 30) == Decimal("0")

    assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 3


@pytest.mark.anyio
async def test_find_markup_is_strict(fake_db) -> None:
    resolver = MarkupResolver(MarkupRepository(fake_db))

    with pytest.raises(MarkupNotFound) as exc:
        await resolver.find_markup(PROVIDER, PLAN, 7)

    assert exc.value.code == "MARKUP_NOT_FOUND"
    assert exc.value.details["duration_days"] == 7


@pytest.mark.anyio
async def test_tiered_price_exact_match_is_ceiling_of_cost_plus_markup(fake_db, wholesale_bundles) -> None:
    await _seed_markups(fake_db, [(7, 3), (14, 5), (30, "8.5")])
    resolver = MarkupResolver(MarkupRepository(fake_db))

    quote = await calculate_tiered_price(resolver, wholesale_bundles, 30)

    assert quote.selected_bundle.id == "w-30"
    assert quote.upper_price == Decimal("24.5")
    assert quote.final_price == Decimal("25")
    assert quote.total_discount == Decimal("0")


@pytest.mark.anyio
async def test_tiered_price_prorates_on_markup_differential(fake_db, wholesale_bundles) -> None:
    await _seed_markups(fake_db, [(7, 3), (14, 5), (30, "8.5")])
    resolver = MarkupResolver(MarkupRepository(fake_db))

    quote = await calculate_tiered_price(resolver, wholesale_bundles, 10)

    assert quote.selected_bundle.id == "w-14"
    assert quote.previous_bundle.id == "w-7"
    assert quote.unused_days == 4
    # (5 - 3) / (14 - 7) per day, 4 days off 9 + 5
    assert quote.discount_per_day == Decimal(2) / Decimal(7)
    assert quote.upper_price == Decimal("14")
    assert quote.final_price == Decimal("13")


@pytest.mark.anyio
async def test_tiered_price_never_adds_for_inverted_markups(fake_db, wholesale_bundles) -> None:
    await _seed_markups(fake_db, [(7, 6), (14, 2)])
    resolver = MarkupResolver(MarkupRepository(fake_db))

    quote = await calculate_tiered_price(resolver, wholesale_bundles, 10)

    assert quote.discount_per_day == Decimal("0")
    assert quote.final_price == Decimal("11")


@pytest.mark.anyio
async def test_tiered_price_without_lower_bundle(fake_db, wholesale_bundles) -> None:
    await _seed_markups(fake_db, [(7, 3)])
    resolver = MarkupResolver(MarkupRepository(fake_db))

    quote = await calculate_tiered_price(resolver, wholesale_bundles, 5)

    assert quote.selected_bundle.id == "w-7"
    assert quote.previous_bundle is None
    assert quote.final_price == Decimal("8")
