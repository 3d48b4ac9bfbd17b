"""Shared test configuration and fixtures for the pricing engine tests.

Key principles:
- Pure components are tested directly, no storage involved.
- Repository-backed services run against an in-memory stand-in for the Motor
  collection API (find/find_one/update_one/insert_one), so no Mongo server is
  needed.
- AnyIO is the single async runner via pytest-anyio (@pytest.mark.anyio).
"""

from __future__ import annotations

import copy
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Ensure backend root is on sys.path so that `esim_pricing` is importable
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from esim_pricing.schemas_pricing import Bundle  # noqa: E402


def _matches(doc: Dict[str, Any], flt: Dict[str, Any]) -> bool:
    # Plain equality; a None filter value also matches a missing key (Mongo semantics).
    return all(doc.get(k) == v for k, v in flt.items())


class _Cursor:
    def __init__(self, docs: List[Dict[str, Any]]) -> None:
        self._docs = docs

    def sort(self, key: str, direction: int = 1) -> "_Cursor":
        self._docs = sorted(self._docs, key=lambda d: d.get(key), reverse=direction < 0)
        return self

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._docs if length is None else self._docs[:length]

    def __aiter__(self):
        self._it = iter(self._docs)
        return self

    async def __anext__(self) -> Dict[str, Any]:
        try:
            return next(self._it)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, name: str = "") -> None:
        self.name = name
        self.docs: List[Dict[str, Any]] = []
        self.updates: List[Dict[str, Any]] = []
        self.indexes: List[Dict[str, Any]] = []

    async def create_index(self, keys, **kwargs) -> str:
        self.indexes.append({"keys": list(keys), **kwargs})
        return kwargs.get("name", "")

    async def insert_one(self, doc: Dict[str, Any]) -> None:
        self.docs.append(copy.deepcopy(doc))

    def find(self, flt: Optional[Dict[str, Any]] = None) -> _Cursor:
        return _Cursor([copy.deepcopy(d) for d in self.docs if _matches(d, flt or {})])

    async def find_one(self, flt: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for d in self.docs:
            if _matches(d, flt):
                return copy.deepcopy(d)
        return None

    async def update_one(self, flt: Dict[str, Any], update: Dict[str, Any]) -> None:
        self.updates.append({"filter": flt, "update": copy.deepcopy(update)})
        for d in self.docs:
            if _matches(d, flt):
                for path, value in update.get("$set", {}).items():
                    target = d
                    parts = path.split(".")
                    for p in parts[:-1]:
                        target = target.setdefault(p, {})
                    target[parts[-1]] = copy.deepcopy(value)
                return


class FakeDB:
    def __init__(self) -> None:
        self._cols: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self._cols.setdefault(name, FakeCollection(name))

    def __getattr__(self, name: str) -> FakeCollection:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force pytest-anyio to use asyncio event loop."""

    return "asyncio"


@pytest.fixture
def fake_db() -> FakeDB:
    return FakeDB()


def make_bundle(
    bundle_id: str,
    days: int,
    price: str,
    *,
    groups: Optional[List[str]] = None,
    countries: Optional[List[str]] = None,
    provider_id: Optional[str] = None,
    plan_type: Optional[str] = None,
    name: Optional[str] = None,
) -> Bundle:
    return Bundle(
        id=bundle_id,
        name=name or f"{bundle_id} {days}d",
        groups=groups if groups is not None else ["Standard Unlimited Essential"],
        countries=countries if countries is not None else ["IT"],
        validity_in_days=days,
        base_price=Decimal(price),
        provider_id=provider_id,
        plan_type=plan_type,
    )


@pytest.fixture
def italy_bundles() -> List[Bundle]:
    """7d/$10, 14d/$18, 30d/$35 for Italy in a single group."""

    return [
        make_bundle("it-7", 7, "10"),
        make_bundle("it-14", 14, "18"),
        make_bundle("it-30", 30, "35"),
    ]


@pytest.fixture
def bundle_factory():
    return make_bundle
