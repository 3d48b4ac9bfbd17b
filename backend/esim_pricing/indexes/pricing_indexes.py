from __future__ import annotations

"""Indexes for the collections the pricing engine reads and writes."""

import logging
from pymongo import ASCENDING
from pymongo.errors import OperationFailure

logger = logging.getLogger(__name__)


async def _safe_create(collection, *args, **kwargs) -> None:
    try:
        await collection.create_index(*args, **kwargs)
    except OperationFailure as e:
        msg = str(e).lower()
        if (
            "indexoptionsconflict" in msg
            or "indexkeyspecsconflict" in msg
            or "already exists" in msg
        ):
            logger.warning(
                "[pricing_indexes] Keeping existing index for %s (name=%s): %s",
                collection.name,
                kwargs.get("name"),
                msg,
            )
            return
        raise


async def ensure_pricing_indexes(db) -> None:
    # Markup lookup: provider + plan + exact duration
    await _safe_create(
        db.markups,
        [("provider_id", ASCENDING), ("plan_type", ASCENDING), ("duration_days", ASCENDING)],
        unique=True,
        name="uniq_markup_provider_plan_duration",
    )

    await _safe_create(
        db.coupons,
        [("code", ASCENDING)],
        unique=True,
        name="uniq_coupon_code",
    )

    await _safe_create(
        db.pricing_rules,
        [("is_active", ASCENDING), ("category", ASCENDING), ("priority", ASCENDING)],
        name="idx_pricing_rules_active_category",
    )
