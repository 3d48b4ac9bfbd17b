from __future__ import annotations

from typing import Any, Dict

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase


def get_collection(db: AsyncIOMotorDatabase, name: str) -> AsyncIOMotorCollection:
    """Return a Motor collection from the given database.

    This is the only place where repositories should obtain collections.
    """

    return db[name]


def strip_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a Mongo document with `_id` exposed as a string `id`."""

    out = dict(doc)
    if "_id" in out:
        out["id"] = str(out.pop("_id"))
    return out
