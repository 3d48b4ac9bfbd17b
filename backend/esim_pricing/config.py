from __future__ import annotations

"""Engine configuration.

Settings come from the environment. A `.env` file next to the backend is
loaded first when present (development fallback); in deployed environments the
variables are injected directly.

All flags default to the behaviour the checkout flow expects, so an empty
environment yields a working engine.
"""

from decimal import Decimal
from pathlib import Path
import os

from dotenv import load_dotenv


ROOT_DIR = Path(__file__).resolve().parents[1]

env_path = ROOT_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _env_flag(name: str, default: bool = True) -> bool:
    """Read a boolean-like flag from environment.

    Accepted falsy values: "0", "false", "off", "no" (case-insensitive).
    Anything else (or unset) falls back to `default`.
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"0", "false", "off", "no"}:
        return False
    if value in {"1", "true", "on", "yes"}:
        return True
    return default


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return Decimal(default)
    try:
        return Decimal(raw.strip())
    except ArithmeticError:
        return Decimal(default)


# Coupons
ENABLE_AUTO_MATCH_COUPONS: bool = _env_flag("ENABLE_AUTO_MATCH_COUPONS", default=True)
AUTO_MATCH_DISCOUNT_PERCENT: Decimal = _env_decimal("AUTO_MATCH_DISCOUNT_PERCENT", "10")

# Pricing
DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")
DEFAULT_PAYMENT_METHOD = os.environ.get("DEFAULT_PAYMENT_METHOD", "ISRAELI_CARD")
PRICE_ROUNDING_STEP: Decimal = _env_decimal("PRICE_ROUNDING_STEP", "0.01")
