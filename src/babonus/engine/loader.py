from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple, Union
import json
import yaml
from pydantic import TypeAdapter, ValidationError

from .errors import ContentError
from .models import Actor, Item, ItemUnion
from .schema_models import BonusDefinition
from .sources import Candidate

ItemAdapter = TypeAdapter(ItemUnion)
BonusAdapter = TypeAdapter(BonusDefinition)
ACTOR_TYPES = {"character", "npc", "vehicle"}

def _load_file(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in [".yaml", ".yml"]:
            return yaml.safe_load(text) or {}
        return json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ContentError(f"Cannot parse {path}: {e}") from e

def _iter_files(root: Path, exts: Tuple[str, ...] = (".json", ".yaml", ".yml")) -> Iterable[Path]:
    if root.is_file():
        yield root
        return
    if not root.exists():
        raise ContentError(f"No such file or directory: {root}")
    for p in sorted(root.rglob("*")):
        if p.is_file() and p.suffix.lower() in exts:
            yield p

def _records(data: Any) -> List[Tuple[str, Dict[str, Any]]]:
    """
    Accepts one definition, a list of definitions, or the stored {id: definition} mapping.
    """
    if isinstance(data, list):
        return [(str(d.get("id", "")) if isinstance(d, dict) else "", d) for d in data]
    if isinstance(data, dict):
        if "bonuses" in data and isinstance(data["bonuses"], dict) and "type" not in data:
            data = data["bonuses"]
        if "type" in data:
            return [(str(data.get("id", "")), data)]
        out = []
        for bid, d in data.items():
            if isinstance(d, dict):
                d = {"id": bid, **d}
            out.append((str(bid), d))
        return out
    return []

def load_candidates(path: Path) -> List[Candidate]:
    """Raw (id, dict) pairs in file order; malformed records are left for the filter pass to drop."""
    out: List[Candidate] = []
    seen: Dict[str, Path] = {}
    for fp in _iter_files(path):
        for bid, raw in _records(_load_file(fp)):
            if bid and bid in seen:
                raise ContentError(f"Duplicate bonus id {bid} in {fp} (first seen in {seen[bid]})")
            seen[bid] = fp
            out.append((bid, raw))
    return out

def load_bonuses(path: Path) -> List[BonusDefinition]:
    out: List[BonusDefinition] = []
    for bid, raw in load_candidates(path):
        try:
            out.append(BonusAdapter.validate_python(raw))
        except ValidationError as e:
            raise ContentError(f"Invalid bonus {bid or '<no id>'} under {path}: {e}") from e
    return out

def parse_subject(data: Dict[str, Any]) -> Union[Actor, Item]:
    if data.get("type") in ACTOR_TYPES:
        return Actor.model_validate(data)
    return ItemAdapter.validate_python(data)

def load_subject(path: Path) -> Union[Actor, Item]:
    data = _load_file(path)
    if not isinstance(data, dict):
        raise ContentError(f"{path} must contain a single actor or item")
    try:
        return parse_subject(data)
    except ValidationError as e:
        raise ContentError(f"Invalid subject in {path}: {e}") from e
