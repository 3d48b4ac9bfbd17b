from __future__ import annotations

"""Condition evaluation for pricing rules.

`evaluate(condition, context)` is total: malformed values, unknown operators
and missing fields all produce False (or True for the negated operators where
that is the defined result) instead of raising.

Field paths are dot-separated and resolved against nested mappings. A missing
path is distinct from a present key holding None.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional, Union

from esim_pricing.schemas_pricing import Condition, ConditionOperator
from esim_pricing.utils import MISSING, get_path


ConditionLike = Union[Condition, Mapping[str, Any]]


def _as_number(v: Any) -> Optional[Decimal]:
    """Numeric coercion: numbers and numeric strings; never booleans."""
    if isinstance(v, bool) or v is None or v is MISSING:
        return None
    if isinstance(v, (int, float, Decimal)):
        try:
            num = Decimal(str(v))
        except InvalidOperation:
            return None
        return num if num.is_finite() else None
    if isinstance(v, str):
        raw = v.strip()
        if not raw:
            return None
        try:
            num = Decimal(raw)
        except InvalidOperation:
            return None
        return num if num.is_finite() else None
    return None


def _strict_equals(left: Any, right: Any) -> bool:
    if left is MISSING or right is MISSING:
        return left is right
    if left is None or right is None:
        return left is None and right is None
    # bool is an int subclass; True must not equal 1
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    try:
        return bool(left == right)
    except Exception:
        return False


def _equals(left: Any, right: Any) -> bool:
    lnum = _as_number(left)
    rnum = _as_number(right)
    if lnum is not None and rnum is not None:
        return lnum == rnum
    return _strict_equals(left, right)


def _is_sequence(v: Any) -> bool:
    return isinstance(v, (list, tuple))


def _op_equals(left: Any, value: Any) -> bool:
    return _equals(left, value)


def _op_not_equals(left: Any, value: Any) -> bool:
    return not _equals(left, value)


def _op_in(left: Any, value: Any) -> bool:
    if not _is_sequence(value) or left is MISSING:
        return False
    return any(_equals(left, item) for item in value)


def _op_not_in(left: Any, value: Any) -> bool:
    if not _is_sequence(value):
        return False
    if left is MISSING:
        return True
    return not any(_equals(left, item) for item in value)


def _op_contains(left: Any, value: Any) -> bool:
    if isinstance(left, str):
        return isinstance(value, str) and value in left
    if _is_sequence(left):
        return any(_equals(item, value) for item in left)
    return False


def _compare(check: Callable[[Decimal, Decimal], bool]) -> Callable[[Any, Any], bool]:
    def op(left: Any, value: Any) -> bool:
        lnum = _as_number(left)
        rnum = _as_number(value)
        if lnum is None or rnum is None:
            return False
        return check(lnum, rnum)

    return op


def _op_between(left: Any, value: Any) -> bool:
    if not _is_sequence(value) or len(value) != 2:
        return False
    lnum = _as_number(left)
    low = _as_number(value[0])
    high = _as_number(value[1])
    if lnum is None or low is None or high is None:
        return False
    return low <= lnum <= high


def _op_exists(left: Any, value: Any) -> bool:
    return left is not MISSING and left is not None


def _op_not_exists(left: Any, value: Any) -> bool:
    return left is MISSING or left is None


_OPERATORS: dict[ConditionOperator, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: _op_equals,
    ConditionOperator.NOT_EQUALS: _op_not_equals,
    ConditionOperator.IN: _op_in,
    ConditionOperator.NOT_IN: _op_not_in,
    ConditionOperator.CONTAINS: _op_contains,
    ConditionOperator.GREATER_THAN: _compare(lambda a, b: a > b),
    ConditionOperator.LESS_THAN: _compare(lambda a, b: a < b),
    ConditionOperator.GREATER_THAN_OR_EQUAL: _compare(lambda a, b: a >= b),
    ConditionOperator.LESS_THAN_OR_EQUAL: _compare(lambda a, b: a <= b),
    ConditionOperator.BETWEEN: _op_between,
    ConditionOperator.EXISTS: _op_exists,
    ConditionOperator.NOT_EXISTS: _op_not_exists,
}


def _unpack(condition: ConditionLike) -> tuple[Any, Any, Any]:
    if isinstance(condition, Condition):
        return condition.field, condition.operator, condition.value
    if isinstance(condition, Mapping):
        return condition.get("field"), condition.get("operator"), condition.get("value")
    return None, None, None


def evaluate(condition: ConditionLike, context: Mapping[str, Any]) -> bool:
    field, operator, value = _unpack(condition)
    if not isinstance(field, str) or not field:
        return False

    if isinstance(operator, ConditionOperator):
        op = operator
    elif isinstance(operator, str):
        try:
            op = ConditionOperator(operator.strip().upper())
        except ValueError:
            return False
    else:
        return False

    left = get_path(context, field)
    try:
        return bool(_OPERATORS[op](left, value))
    except Exception:
        return False


def evaluate_all(conditions: list[ConditionLike], context: Mapping[str, Any]) -> bool:
    """AND-combine; an empty list always matches."""
    return all(evaluate(c, context) for c in conditions)
