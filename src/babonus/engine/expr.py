from __future__ import annotations
from typing import Any, Dict, Mapping, Optional
from functools import lru_cache
import math
import re

from py_expression_eval import Parser
from .errors import ExpressionError

# Single global parser; only arithmetic helpers are exposed to formulas
_parser = Parser()
_parser.functions["min"] = min
_parser.functions["max"] = max
_parser.functions["floor"] = math.floor
_parser.functions["ceil"] = math.ceil
_parser.functions["trunc"] = math.trunc
_parser.functions["sign"] = lambda x: (x > 0) - (x < 0)
# no nondeterminism inside the sandbox
_parser.functions.pop("random", None)
# unbounded integer work (factorials, int ** int) must not stall a filter pass
_parser.functions.pop("fac", None)

def _float_pow(base, exp):
    # math.pow raises OverflowError instead of building a huge int
    return math.pow(base, exp)

_parser.functions["pow"] = _float_pow
for _op in ("^", "**"):
    if _op in _parser.ops2:
        _parser.ops2[_op] = _float_pow

_DATA_REF = re.compile(r"@([a-z.0-9_\-]+)", re.IGNORECASE)

def get_property(data: Any, path: str) -> Any:
    """Resolve a dotted path ("abilities.int.mod") inside nested dicts/lists."""
    cur = data
    for part in path.split("."):
        if isinstance(cur, Mapping):
            if part not in cur:
                return None
            cur = cur[part]
        elif isinstance(cur, (list, tuple)) and part.isdigit() and int(part) < len(cur):
            cur = cur[int(part)]
        else:
            return None
    return cur

def _to_formula_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()

def replace_formula_data(formula: str, data: Mapping[str, Any], *, missing: Optional[str] = None) -> str:
    """
    Substitute @path references with values from roll data.
    Unresolved references are left verbatim unless `missing` is given.
    """
    def _sub(m: re.Match) -> str:
        value = get_property(data, m.group(1))
        if value is None:
            return missing if missing is not None else m.group(0)
        return _to_formula_text(value)
    return _DATA_REF.sub(_sub, formula)

# LRU-compiled AST cache
@lru_cache(maxsize=4096)
def _compile_expr(expr: str):
    return _parser.parse(expr)

def safe_eval(expr: str | int | float, variables: Optional[Dict[str, Any]] = None) -> int | float:
    """
    Evaluate a substituted formula as plain arithmetic.
    Raises ExpressionError on syntax errors, unknown names or a non-numeric result.
    """
    if isinstance(expr, bool):
        raise ExpressionError(str(expr), "boolean is not a number")
    if isinstance(expr, (int, float)):
        value: Any = expr
    else:
        text = expr.strip()
        if not text:
            raise ExpressionError(expr, "empty expression")
        try:
            value = _compile_expr(text).evaluate(dict(variables or {}))
        except Exception as e:  # parser raises bare Exception for bad input
            raise ExpressionError(text, str(e) or type(e).__name__) from e

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ExpressionError(str(expr), f"result {value!r} is not numeric")
    if math.isnan(value):
        raise ExpressionError(str(expr), "result is NaN")
    # Normalize ints
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value

def expr_cache_info() -> str:
    info = _compile_expr.cache_info()
    return f"expr-cache: hits={info.hits}, misses={info.misses}, size={info.currsize}/{info.maxsize}"
