from __future__ import annotations

from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from esim_pricing.repositories.base_repository import get_collection, strip_id


class PricingRuleRepository:
    """Pricing rules stored with snake_case keys (`is_active`, `valid_from`, ...)."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._col = get_collection(db, "pricing_rules")

    async def list_active(self, limit: int = 1000) -> list[dict[str, Any]]:
        # Validity windows are checked by the pipeline at evaluation time.
        cur = self._col.find({"is_active": True}).sort("priority", DESCENDING)
        docs = await cur.to_list(length=limit)
        return [strip_id(d) for d in docs]
