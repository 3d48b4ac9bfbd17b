from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping


class _Missing:
    """Marker for a field path that does not resolve (distinct from None)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

ZERO = Decimal("0")
CENT = Decimal("0.01")


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (Mongo default) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_decimal(v: Any, default: Decimal = ZERO) -> Decimal:
    if isinstance(v, Decimal):
        return v
    if v is None or isinstance(v, bool):
        return default
    try:
        return Decimal(str(v))
    except (InvalidOperation, ValueError):
        return default


def safe_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return default


def q2(value: Decimal) -> Decimal:
    """Quantize to 2 decimal places with HALF_UP rounding."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def ceil_to(value: Decimal, step: Decimal = CENT) -> Decimal:
    """Round up to the next multiple of `step` (1 => whole units)."""
    if step <= 0:
        return value
    units = (value / step).to_integral_value(rounding=ROUND_CEILING)
    return (units * step).quantize(step)


def get_path(payload: Any, path: str) -> Any:
    """Resolve a dot-path ("a.b.c") against nested mappings.

    Returns MISSING when any segment is absent or an intermediate value is not a
    mapping. A present key holding None resolves to None.
    """
    if not path:
        return MISSING
    cur = payload
    for part in path.split("."):
        if isinstance(cur, Mapping) and part in cur:
            cur = cur[part]
        else:
            return MISSING
    return cur
