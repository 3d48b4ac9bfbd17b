from __future__ import annotations

from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from esim_pricing.repositories.base_repository import get_collection, strip_id


class MarkupRepository:
    """Admin-configured markup rows.

    Document shape:
        {provider_id, plan_type, duration_days, markup_amount}
    """

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._col = get_collection(db, "markups")

    async def list_for_plan(self, provider_id: str, plan_type: str) -> list[dict[str, Any]]:
        # Coarse filter here; duration matching happens in the resolver.
        cur = self._col.find({"provider_id": provider_id, "plan_type": plan_type})
        docs = await cur.to_list(length=500)
        return [strip_id(d) for d in docs]
