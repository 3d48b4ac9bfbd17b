from __future__ import annotations

"""Rule action pipeline.

Active rules run category by category in a fixed order:

    BUNDLE_ADJUSTMENT -> DISCOUNT -> CONSTRAINT -> FEE

Within a category, higher priority runs first; equal priorities keep input
order. The ordering is a single stable sort on
(category rank, -priority, input index).

A rule matches when all its conditions hold (empty list = always). Its actions
then run in list order against a running price/profit state. The unused-day
deduction (proration) is applied once, right after the DISCOUNT stage.

Constraint floors (minimum profit / minimum price) can lift an over-discounted
price back up. The quote never fails on a floor: when the floor cannot be met
after fees, or lifts the price above the supplied ceiling, the breakdown flags
it instead.

Rounding: the customer price is rounded up to PRICE_ROUNDING_STEP once, after
all stages.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Iterable, Mapping, Optional, Sequence

from pydantic import ValidationError

from esim_pricing import config
from esim_pricing.domain.bundle_selection import Proration, apply_unused_day_discount
from esim_pricing.schemas_pricing import (
    CATEGORY_ORDER,
    Action,
    ActionType,
    AppliedRule,
    CustomerDiscount,
    PricingBreakdown,
    PricingRule,
    PricingStep,
    RuleCategory,
)
from esim_pricing.services.condition_evaluator import evaluate_all
from esim_pricing.utils import ZERO, as_utc, ceil_to, now_utc, q2, to_decimal

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

FLAG_MIN_PROFIT_SHORTFALL = "MIN_PROFIT_SHORTFALL"
FLAG_PRICE_CEILING_EXCEEDED = "PRICE_CEILING_EXCEEDED"


@dataclass
class _PricingState:
    price: Decimal
    cost: Decimal
    markup: Decimal = ZERO
    discount_amount: Decimal = ZERO
    processing_rate: Decimal = ZERO
    unused_days: int = 0
    discount_per_day: Decimal = ZERO
    min_profit: Optional[Decimal] = None
    floor_raised: bool = False
    steps: list[PricingStep] = field(default_factory=list)
    applied: list[AppliedRule] = field(default_factory=list)

    def step(self, name: str, before: Decimal, rule_id: Optional[str] = None) -> None:
        self.steps.append(
            PricingStep(
                order=len(self.steps),
                name=name,
                price_before=q2(before),
                price_after=q2(self.price),
                impact=q2(self.price - before),
                rule_id=rule_id,
            )
        )

    def processing_cost(self, price: Optional[Decimal] = None) -> Decimal:
        return (self.price if price is None else price) * self.processing_rate / HUNDRED


# ---- Ordering ----


def _in_window(rule: PricingRule, now: datetime) -> bool:
    if rule.valid_from is not None and as_utc(rule.valid_from) > now:
        return False
    if rule.valid_until is not None and as_utc(rule.valid_until) < now:
        return False
    return True


def order_rules(rules: Sequence[PricingRule], now: Optional[datetime] = None) -> list[PricingRule]:
    """Active, in-window rules in execution order."""
    at = as_utc(now) if now is not None else now_utc()
    indexed = [
        (idx, r) for idx, r in enumerate(rules) if r.is_active and _in_window(r, at)
    ]
    indexed.sort(key=lambda pair: (CATEGORY_ORDER[pair[1].category], -pair[1].priority, pair[0]))
    return [r for _, r in indexed]


# ---- Actions ----


def _min_price_for_profit(state: _PricingState, min_profit: Decimal) -> Optional[Decimal]:
    """Smallest price whose net profit (after processing) reaches `min_profit`."""
    keep_ratio = Decimal("1") - state.processing_rate / HUNDRED
    if keep_ratio <= 0:
        return None
    return (state.cost + min_profit) / keep_ratio


def _apply_action(action: Action, state: _PricingState) -> str:
    """Apply one action to the running state; returns a step label."""
    value = action.value
    kind = action.type

    if kind == ActionType.ADD_MARKUP:
        state.price += value
        state.markup += value
        return "Markup Application"

    if kind == ActionType.APPLY_DISCOUNT_PERCENTAGE:
        amount = state.price * value / HUNDRED
        state.price -= amount
        state.discount_amount += amount
        return f"Discount {value}%"

    if kind == ActionType.APPLY_FIXED_DISCOUNT:
        amount = min(max(ZERO, value), max(ZERO, state.price))
        state.price -= amount
        state.discount_amount += amount
        return "Fixed Discount"

    if kind == ActionType.SET_DISCOUNT_PER_UNUSED_DAY:
        state.discount_per_day = max(ZERO, value)
        return "Unused Day Rate"

    if kind == ActionType.SET_PROCESSING_RATE:
        state.processing_rate = value
        return "Processing Fee"

    if kind == ActionType.SET_MINIMUM_PROFIT:
        state.min_profit = value
        required = _min_price_for_profit(state, value)
        if required is not None and state.price < required:
            state.price = required
            state.floor_raised = True
        return "Profit Adjustment"

    if kind == ActionType.SET_MINIMUM_PRICE:
        if state.price < value:
            state.price = value
            state.floor_raised = True
        return "Minimum Price"

    # ActionType is closed; reaching here means the enum grew without a handler.
    raise ValueError(f"Unhandled action type: {kind}")


def _snapshot(state: _PricingState) -> tuple:
    return (state.price, state.processing_rate, state.discount_per_day, state.min_profit)


def _run_rule(rule: PricingRule, state: _PricingState) -> None:
    price_before = state.price
    snapshot = _snapshot(state)
    for action in rule.actions:
        before = state.price
        label = _apply_action(action, state)
        if state.price != before:
            state.step(f"{rule.name}: {label}", before, rule_id=rule.id)

    # Only rules that moved price, rate or a floor are reported
    if _snapshot(state) != snapshot:
        state.applied.append(
            AppliedRule(
                id=rule.id,
                name=rule.name,
                category=rule.category,
                impact=q2(state.price - price_before),
            )
        )


# ---- Breakdown ----


def _customer_discounts(steps: list[PricingStep], reference: Decimal) -> list[CustomerDiscount]:
    out: list[CustomerDiscount] = []
    for s in steps:
        if s.impact >= 0:
            continue
        amount = -s.impact
        pct = (amount / reference * HUNDRED) if reference > 0 else ZERO
        lowered = s.name.lower()
        if "multi-day" in lowered or "unused" in lowered:
            name, reason = "Multi-day Savings", "Save more with longer validity periods"
        elif "volume" in lowered:
            name, reason = "Volume Discount", "Bulk purchase savings"
        elif "loyalty" in lowered:
            name, reason = "Loyalty Reward", "Thank you for being a valued customer"
        elif "promo" in lowered:
            name, reason = "Special Promotion", "Limited time offer"
        else:
            name, reason = s.name, "Special discount applied"
        out.append(
            CustomerDiscount(
                name=name,
                amount=amount,
                percentage=pct.quantize(Decimal("0.1")),
                reason=reason,
            )
        )
    return out


def apply_rules(
    rules: Sequence[PricingRule],
    context: Mapping[str, Any],
    base_price: Decimal,
    *,
    cost: Optional[Decimal] = None,
    proration: Optional[Proration] = None,
    price_ceiling: Optional[Decimal] = None,
    now: Optional[datetime] = None,
    currency: Optional[str] = None,
) -> PricingBreakdown:
    """Run the pipeline and return an immutable breakdown.

    `cost` defaults to `base_price` (retail catalogs where the bundle price is
    the provider cost). Neither `rules` nor `context` is modified.
    """
    base_price = to_decimal(base_price)
    proration = proration or Proration()
    state = _PricingState(
        price=base_price,
        cost=to_decimal(cost) if cost is not None else base_price,
        unused_days=proration.unused_days,
        discount_per_day=proration.discount_per_day,
    )
    state.step("Base Price", ZERO)

    ordered = order_rules(rules, now)

    for category in sorted(CATEGORY_ORDER, key=CATEGORY_ORDER.__getitem__):
        for rule in (r for r in ordered if r.category == category):
            matched = evaluate_all(rule.conditions, context)
            logger.debug("rule %r (%s, priority=%s) matched=%s", rule.name, category.value, rule.priority, matched)
            if matched:
                _run_rule(rule, state)

        if category == RuleCategory.DISCOUNT and state.unused_days > 0:
            before = state.price
            state.price, deducted = apply_unused_day_discount(
                state.price, Proration(state.unused_days, state.discount_per_day)
            )
            state.discount_amount += deducted
            if deducted > 0:
                state.step("Multi-day Discount", before)

    before_rounding = state.price
    final_price = ceil_to(max(ZERO, state.price), config.PRICE_ROUNDING_STEP)
    state.price = final_price
    if final_price != before_rounding:
        state.step("Price Rounding", before_rounding)

    processing_cost = state.processing_cost(final_price)
    net_profit = final_price - state.cost - processing_cost

    flags: list[str] = []
    shortfall = ZERO
    if state.min_profit is not None and net_profit < state.min_profit:
        shortfall = state.min_profit - net_profit
        flags.append(FLAG_MIN_PROFIT_SHORTFALL)
        logger.warning(
            "Minimum profit %s not met: net_profit=%s final_price=%s cost=%s",
            state.min_profit,
            q2(net_profit),
            final_price,
            state.cost,
        )
    if price_ceiling is not None and state.floor_raised and final_price > to_decimal(price_ceiling):
        flags.append(FLAG_PRICE_CEILING_EXCEEDED)
        logger.warning("Price floor lifted price %s above ceiling %s", final_price, price_ceiling)

    total_before_discount = base_price + state.markup
    discount_amount = state.discount_amount
    savings_pct = (
        (discount_amount / total_before_discount * HUNDRED) if total_before_discount > 0 else ZERO
    )

    return PricingBreakdown(
        base_cost=q2(state.cost),
        markup=q2(state.markup),
        total_before_discount=q2(total_before_discount),
        unused_days=state.unused_days,
        discount_per_day=q2(state.discount_per_day),
        discount_amount=q2(discount_amount),
        total_after_discount=q2(total_before_discount - discount_amount),
        processing_rate=state.processing_rate,
        processing_cost=q2(processing_cost),
        final_price=final_price,
        net_profit=q2(net_profit),
        currency=currency or config.DEFAULT_CURRENCY,
        applied_rules=state.applied,
        pricing_steps=state.steps,
        customer_discounts=_customer_discounts(state.steps, total_before_discount),
        savings_amount=q2(discount_amount),
        savings_percentage=savings_pct.quantize(Decimal("0.1")),
        profit_shortfall=q2(shortfall),
        constraint_flags=flags,
        rules_evaluated=len(ordered),
    )


# ---- Authoring helpers ----


def validate_rule(rule: PricingRule) -> list[str]:
    errors: list[str] = []
    if not rule.name or not rule.name.strip():
        errors.append("Rule name is required")
    if not rule.actions:
        errors.append("At least one action is required")
    if rule.priority < 0 or rule.priority > 1000:
        errors.append("Priority must be between 0 and 1000")
    return errors


def _condition_key(rule: PricingRule) -> list[tuple[str, str, str]]:
    return sorted((c.field, c.operator, repr(c.value)) for c in rule.conditions)


def _action_key(rule: PricingRule) -> list[tuple[str, Decimal]]:
    return sorted((a.type.value, a.value) for a in rule.actions)


def find_conflicts(rule: PricingRule, rules: Sequence[PricingRule]) -> list[PricingRule]:
    """Rules with the same condition set as `rule` but different actions."""
    conflicts: list[PricingRule] = []
    for other in rules:
        if other is rule or (rule.id is not None and other.id == rule.id):
            continue
        if _condition_key(other) == _condition_key(rule) and _action_key(other) != _action_key(rule):
            conflicts.append(other)
    return conflicts


def parse_rules(docs: Iterable[Mapping[str, Any]]) -> list[PricingRule]:
    """Validate stored rule documents; malformed ones are skipped with a warning."""
    rules: list[PricingRule] = []
    for doc in docs:
        try:
            rules.append(PricingRule.model_validate(doc))
        except ValidationError as exc:
            logger.warning(
                "Skipping invalid pricing rule %s: %s",
                doc.get("id") or doc.get("name"),
                exc.errors(include_url=False),
            )
    return rules
