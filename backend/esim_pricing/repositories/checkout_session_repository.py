from __future__ import annotations

from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from esim_pricing.repositories.base_repository import get_collection, strip_id
from esim_pricing.utils import now_utc


class CheckoutSessionRepository:
    """Checkout sessions: `{_id, pricing: {...}, metadata: {...}}`.

    Writes are last-write-wins; concurrent coupon applications on one session
    are expected to be serialized by the caller or the storage layer.
    """

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._col = get_collection(db, "checkout_sessions")

    async def get(self, session_id: str) -> Optional[dict[str, Any]]:
        doc = await self._col.find_one({"_id": session_id})
        return strip_id(doc) if doc else None

    async def update_pricing(
        self,
        session_id: str,
        pricing: dict[str, Any],
        metadata_updates: Optional[dict[str, Any]] = None,
    ) -> None:
        update: dict[str, Any] = {"pricing": pricing, "updated_at": now_utc()}
        for key, value in (metadata_updates or {}).items():
            update[f"metadata.{key}"] = value
        await self._col.update_one({"_id": session_id}, {"$set": update})
