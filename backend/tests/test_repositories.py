from __future__ import annotations

import logging

import pytest

from esim_pricing.indexes.pricing_indexes import ensure_pricing_indexes
from esim_pricing.repositories.checkout_session_repository import CheckoutSessionRepository
from esim_pricing.repositories.pricing_rule_repository import PricingRuleRepository
from esim_pricing.schemas_pricing import RuleCategory
from esim_pricing.services.rule_pipeline import parse_rules


@pytest.mark.anyio
async def test_active_rules_come_back_by_priority(fake_db) -> None:
    await fake_db.pricing_rules.insert_one(
        {"_id": "r1", "name": "low", "category": "DISCOUNT", "priority": 1, "is_active": True}
    )
    await fake_db.pricing_rules.insert_one(
        {"_id": "r2", "name": "off", "category": "DISCOUNT", "priority": 50, "is_active": False}
    )
    await fake_db.pricing_rules.insert_one(
        {"_id": "r3", "name": "high", "category": "FEE", "priority": 9, "is_active": True}
    )

    docs = await PricingRuleRepository(fake_db).list_active()

    assert [d["id"] for d in docs] == ["r3", "r1"]
    assert "_id" not in docs[0]


def test_parse_rules_skips_malformed_documents(caplog) -> None:
    docs = [
        {"id": "ok", "name": "markup", "category": "BUNDLE_ADJUSTMENT", "actions": [{"type": "ADD_MARKUP", "value": "1"}]},
        {"id": "bad-category", "name": "x", "category": "SHIPPING"},
        {"id": "bad-action", "name": "y", "category": "FEE", "actions": [{"type": "TELEPORT", "value": 1}]},
    ]

    with caplog.at_level(logging.WARNING, logger="esim_pricing.services.rule_pipeline"):
        rules = parse_rules(docs)

    assert [r.id for r in rules] == ["ok"]
    assert rules[0].category == RuleCategory.BUNDLE_ADJUSTMENT
    assert "bad-category" in caplog.text
    assert "bad-action" in caplog.text


@pytest.mark.anyio
async def test_update_pricing_sets_metadata_keys_individually(fake_db) -> None:
    await fake_db.checkout_sessions.insert_one(
        {"_id": "s1", "pricing": {"finalPrice": "10"}, "metadata": {"countryId": "IT"}}
    )
    repo = CheckoutSessionRepository(fake_db)

    await repo.update_pricing("s1", {"finalPrice": "9"}, {"couponCode": "IT10"})
    session = await repo.get("s1")

    assert session["id"] == "s1"
    assert session["pricing"] == {"finalPrice": "9"}
    assert session["metadata"] == {"countryId": "IT", "couponCode": "IT10"}
    assert "updated_at" in fake_db.checkout_sessions.updates[0]["update"]["$set"]


@pytest.mark.anyio
async def test_ensure_pricing_indexes(fake_db) -> None:
    await ensure_pricing_indexes(fake_db)

    markup_index = fake_db.markups.indexes[0]
    assert markup_index["unique"] is True
    assert [k for k, _ in markup_index["keys"]] == ["provider_id", "plan_type", "duration_days"]
    assert fake_db.coupons.indexes[0]["name"] == "uniq_coupon_code"
    assert fake_db.pricing_rules.indexes[0]["name"] == "idx_pricing_rules_active_category"
