from __future__ import annotations
from pathlib import Path
import re
from typing import Any, Dict, List, Tuple
import typer
from pydantic import ValidationError

from babonus.engine.errors import ContentError, ExpressionError
from babonus.engine.expr import safe_eval
from babonus.engine.loader import BonusAdapter, load_candidates
from babonus.engine.schema_models import FILTERS_BY_TYPE, PAYLOAD_KEYS_BY_TYPE, BonusDefinition, FilterKey

_DATA_REF = re.compile(r"@([a-z.0-9_\-]+)", re.IGNORECASE)

def _stub_refs(expr: str) -> str:
    # roll data is unknown at validation time; any reference stands in as a number
    return _DATA_REF.sub("1", expr)

def _check_comparisons(bonus: BonusDefinition, *, strict: bool) -> Tuple[List[str], List[str]]:
    errors: list[str] = []
    warnings: list[str] = []
    for idx, triple in enumerate(bonus.filters.get(FilterKey.ARBITRARY_COMPARISON) or []):
        path = f"filters.arbitraryComparison[{idx}]"
        if not triple.one or not triple.other:
            errors.append(f"{path}: both 'one' and 'other' are required (the filter never passes)")
            continue
        for side in ("one", "other"):
            expr = getattr(triple, side)
            try:
                safe_eval(_stub_refs(expr))
            except ExpressionError:
                msg = f"{path}.{side}: {expr!r} is not arithmetic; compared as a string"
                (errors if strict else warnings).append(msg)
    return errors, warnings

def _check_relevance(bonus: BonusDefinition) -> List[str]:
    warnings: list[str] = []
    allowed = FILTERS_BY_TYPE[bonus.type]
    for key, _value in bonus.filters.present():
        if key not in allowed:
            warnings.append(f"filters.{key.value} has no effect on '{bonus.type}' bonuses")
    set_payload = {k for k, v in bonus.bonuses if v is not None}
    for key in sorted(set_payload - PAYLOAD_KEYS_BY_TYPE[bonus.type]):
        warnings.append(f"bonuses.{key} is ignored for '{bonus.type}' bonuses")
    if not bonus.bonuses.bonus and set_payload <= {"bonus"}:
        warnings.append("bonuses: no formula set")
    return warnings

def validate_records(records: List[Tuple[str, Any]], *, strict: bool = False) -> Dict[str, List[str]]:
    """Returns {"errors": [...], "warnings": [...]} for raw (id, record) pairs."""
    out: Dict[str, List[str]] = {"errors": [], "warnings": []}
    for bid, raw in records:
        label = bid or "<no id>"
        try:
            bonus = BonusAdapter.validate_python(raw)
        except ValidationError as e:
            for err in e.errors(include_url=False):
                loc = ".".join(str(p) for p in err["loc"])
                out["errors"].append(f"{label}: {loc}: {err['msg']}")
            continue
        errs, warns = _check_comparisons(bonus, strict=strict)
        out["errors"].extend(f"{label}: {m}" for m in errs)
        out["warnings"].extend(f"{label}: {m}" for m in warns)
        out["warnings"].extend(f"{label}: {m}" for m in _check_relevance(bonus))
    return out

def validate_cmd(
    path: Path = typer.Argument(..., help="Bonus definition file or directory"),
    strict: bool = typer.Option(False, "--strict", help="Treat non-arithmetic comparison operands as errors"),
):
    """Validate bonus definition files."""
    try:
        records = load_candidates(path)
    except ContentError as e:
        typer.echo(f"[ERROR] {e}", err=True)
        raise typer.Exit(code=1)

    report = validate_records(records, strict=strict)
    for msg in report["warnings"]:
        typer.echo(f"[WARN] {msg}")
    for msg in report["errors"]:
        typer.echo(f"[ERROR] {msg}", err=True)
    if report["errors"]:
        raise typer.Exit(code=1)
    typer.echo(f"{len(records)} bonus definition(s) validated successfully.")
