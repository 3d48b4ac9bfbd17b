from __future__ import annotations

from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from esim_pricing.repositories.base_repository import get_collection, strip_id


class CouponRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._col = get_collection(db, "coupons")

    async def find_by_code(self, code: str) -> Optional[dict[str, Any]]:
        """Coupon row by code (stored upper-case), regardless of its status.

        Activity and validity are checked by the resolver so it can report
        which check failed.
        """

        norm = (code or "").strip().upper()
        if not norm:
            return None
        doc = await self._col.find_one({"code": norm, "deleted_at": None})
        return strip_id(doc) if doc else None
