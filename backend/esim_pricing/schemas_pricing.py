from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class RuleCategory(str, Enum):
    BUNDLE_ADJUSTMENT = "BUNDLE_ADJUSTMENT"
    DISCOUNT = "DISCOUNT"
    CONSTRAINT = "CONSTRAINT"
    FEE = "FEE"


# Pipeline stage order; lower rank runs first.
CATEGORY_ORDER: dict[RuleCategory, int] = {
    RuleCategory.BUNDLE_ADJUSTMENT: 0,
    RuleCategory.DISCOUNT: 1,
    RuleCategory.CONSTRAINT: 2,
    RuleCategory.FEE: 3,
}


class ActionType(str, Enum):
    ADD_MARKUP = "ADD_MARKUP"
    APPLY_DISCOUNT_PERCENTAGE = "APPLY_DISCOUNT_PERCENTAGE"
    APPLY_FIXED_DISCOUNT = "APPLY_FIXED_DISCOUNT"
    SET_DISCOUNT_PER_UNUSED_DAY = "SET_DISCOUNT_PER_UNUSED_DAY"
    SET_PROCESSING_RATE = "SET_PROCESSING_RATE"
    SET_MINIMUM_PROFIT = "SET_MINIMUM_PROFIT"
    SET_MINIMUM_PRICE = "SET_MINIMUM_PRICE"


class ConditionOperator(str, Enum):
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    IN = "IN"
    NOT_IN = "NOT_IN"
    CONTAINS = "CONTAINS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    BETWEEN = "BETWEEN"
    EXISTS = "EXISTS"
    NOT_EXISTS = "NOT_EXISTS"


class CouponType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class PaymentMethod(str, Enum):
    ISRAELI_CARD = "ISRAELI_CARD"
    FOREIGN_CARD = "FOREIGN_CARD"
    AMEX = "AMEX"
    DINERS = "DINERS"
    BIT = "BIT"


class CamelModel(BaseModel):
    """Base for records exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---- Catalog ----


class Bundle(CamelModel):
    id: str
    name: str
    groups: list[str] = Field(default_factory=list)
    countries: list[str] = Field(default_factory=list)
    validity_in_days: int = Field(gt=0)
    base_price: Decimal = Field(ge=0)
    currency: str = "USD"
    is_unlimited: bool = False
    data_amount_mb: Optional[int] = Field(default=None, alias="dataAmountMB")

    # Wholesale catalogs: key into the markup table
    provider_id: Optional[str] = None
    plan_type: Optional[str] = None


class PricingRequest(CamelModel):
    country_id: Optional[str] = None
    region_id: Optional[str] = None
    requested_duration_days: int = Field(ge=1)
    num_of_esims: int = Field(default=1, ge=1)
    group: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    customer_attributes: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _require_coverage(self) -> "PricingRequest":
        if not self.country_id and not self.region_id:
            raise ValueError("countryId or regionId is required")
        return self


# ---- Rules ----


class Condition(BaseModel):
    field: str
    # Kept as a plain string: unknown operators must parse and evaluate to False.
    operator: str
    value: Any = None

    @field_validator("operator", mode="before")
    @classmethod
    def _normalise_operator(cls, v: Any) -> Any:
        if isinstance(v, Enum):
            v = v.value
        if isinstance(v, str):
            return v.strip().upper()
        return v


class Action(BaseModel):
    type: ActionType
    value: Decimal = Decimal("0")


class PricingRule(CamelModel):
    id: Optional[str] = None
    name: str
    category: RuleCategory
    conditions: list[Condition] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)
    priority: int = 0
    is_active: bool = True
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None


# ---- Coupons ----


class Coupon(BaseModel):
    """Coupon row as stored in the `coupons` collection (snake_case)."""

    code: str
    is_active: bool = Field(default=True, validation_alias=AliasChoices("is_active", "isActive"))
    coupon_type: str
    value: Decimal = Field(ge=0)
    max_discount: Optional[Decimal] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    allowed_bundle_ids: list[str] = Field(default_factory=list)
    allowed_regions: list[str] = Field(default_factory=list)


# ---- Engine output ----


class AppliedRule(CamelModel):
    id: Optional[str] = None
    name: str
    category: RuleCategory
    impact: Decimal


class PricingStep(CamelModel):
    order: int
    name: str
    price_before: Decimal
    price_after: Decimal
    impact: Decimal
    rule_id: Optional[str] = None


class CustomerDiscount(CamelModel):
    name: str
    amount: Decimal
    percentage: Decimal
    reason: str


class CouponDiscount(CamelModel):
    code: str
    amount: Decimal
    original_price: Decimal
    source: str = "coupon_table"


class PricingBreakdown(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    base_cost: Decimal
    markup: Decimal = Decimal("0")
    total_before_discount: Decimal
    unused_days: int = 0
    discount_per_day: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    total_after_discount: Decimal
    processing_rate: Decimal = Decimal("0")
    processing_cost: Decimal = Decimal("0")
    final_price: Decimal
    net_profit: Decimal
    discount: Optional[CouponDiscount] = None

    currency: str = "USD"
    requested_days: Optional[int] = None
    selected_bundle_id: Optional[str] = None
    previous_bundle_id: Optional[str] = None
    bundle_name: Optional[str] = None
    applied_rules: list[AppliedRule] = Field(default_factory=list)
    pricing_steps: list[PricingStep] = Field(default_factory=list)
    customer_discounts: list[CustomerDiscount] = Field(default_factory=list)
    savings_amount: Decimal = Decimal("0")
    savings_percentage: Decimal = Decimal("0")
    profit_shortfall: Decimal = Decimal("0")
    constraint_flags: list[str] = Field(default_factory=list)
    rules_evaluated: int = 0
