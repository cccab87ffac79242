from __future__ import annotations
import logging
import operator as _op
from typing import Any, Callable, Dict, Iterable, Optional, Union

from .context import FilterContext
from .errors import ExpressionError
from .expr import replace_formula_data, safe_eval
from .models import Actor, Item
from .schema_models import ComparisonTriple

logger = logging.getLogger(__name__)

_NUMERIC: Dict[str, Callable[[Any, Any], bool]] = {
    "EQ": _op.eq,
    "LT": _op.lt,
    "GT": _op.gt,
    "LE": _op.le,
    "GE": _op.ge,
}

def _string_compare(operator: str, left: str, right: str) -> bool:
    # Ordering operators mean containment once the operands are not numbers:
    # LT/LE -> left is a substring of right, GT/GE -> right is a substring of left.
    if operator == "EQ":
        return left == right
    if operator in ("LT", "LE"):
        return left in right
    if operator in ("GT", "GE"):
        return right in left
    return False

def roll_data_for(subject: Union[Actor, Item], target: Optional[Actor]) -> Dict[str, Any]:
    data = subject.get_roll_data()
    if target is not None:
        data["target"] = target.get_roll_data()
    return data

def compare(triple: ComparisonTriple, roll_data: Dict[str, Any]) -> bool:
    """Evaluate one {one, other, operator} triple against substituted roll data."""
    left = replace_formula_data(triple.one, roll_data)
    right = replace_formula_data(triple.other, roll_data)
    try:
        n_left = safe_eval(left)
        n_right = safe_eval(right)
    except ExpressionError as e:
        logger.debug("comparison %r %s %r falls back to strings (%s)", left, triple.operator, right, e.reason)
        return _string_compare(triple.operator, left, right)
    return _NUMERIC[triple.operator](n_left, n_right)

def compare_all(subject: Union[Actor, Item], triples: Iterable[ComparisonTriple], ctx: FilterContext) -> bool:
    triples = list(triples)
    # any missing operand invalidates the whole filter
    if any(not t.one or not t.other for t in triples):
        return False
    roll_data = roll_data_for(subject, ctx.target)
    return all(compare(t, roll_data) for t in triples)
