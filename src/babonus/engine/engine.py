from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from .context import FilterContext
from .filters import Subject, predicate_for
from .models import Actor, Item
from .schema_models import ITEM_HOOK_TYPES, BonusDefinition, BonusPayload, BonusType, FilterKey
from .sources import BonusSource, Candidate, NoTargets, TargetProvider
from .trace import TraceSession

logger = logging.getLogger(__name__)

class FilterEngine:
    """
    Reduces candidate bonuses to the payloads that apply to one roll.
    A bonus applies iff it is enabled and every filter it sets passes.
    One malformed bonus is dropped on its own; it never stops the rest of the pass.
    """

    def __init__(self, trace: Optional[TraceSession] = None):
        self.trace = trace

    def _note(self, line: str) -> None:
        if self.trace is not None:
            self.trace.add(line)

    def _coerce(self, bid: str, raw: Union[BonusDefinition, Dict[str, Any]]) -> Optional[BonusDefinition]:
        if isinstance(raw, BonusDefinition):
            return raw
        if isinstance(raw, dict) and raw.get("enabled", True) is False:
            self._note(f"bonus {bid}: disabled")
            return None
        try:
            return BonusDefinition.model_validate(raw)
        except ValidationError as e:
            logger.warning("Dropping malformed bonus %s: %s", bid, e.errors(include_url=False))
            self._note(f"bonus {bid}: malformed definition ({e.error_count()} error(s))")
            return None

    def explain(self, definition: BonusDefinition, subject: Subject, context: FilterContext) -> List[Tuple[FilterKey, bool]]:
        """Verdict of every filter the bonus sets, without short-circuiting."""
        return [(key, bool(predicate_for(key)(subject, value, context)))
                for key, value in definition.filters.present()]

    def matches(self, definition: BonusDefinition, subject: Subject, context: FilterContext) -> bool:
        if not definition.enabled:
            self._note(f"bonus {definition.id}: disabled")
            return False
        for key, value in definition.filters.present():
            if not predicate_for(key)(subject, value, context):
                self._note(f"bonus {definition.id}: dropped by {key.value}")
                return False
        self._note(f"bonus {definition.id}: applies ({len(definition.filters)} filter(s))")
        return True

    def evaluate(self, candidates: Sequence[Candidate], subject: Subject, context: FilterContext) -> List[BonusPayload]:
        if not candidates:
            return []
        self._note(f"pass over {len(candidates)} bonus(es) ({context.describe()})")
        valids: List[BonusPayload] = []
        for bid, raw in candidates:
            definition = self._coerce(bid, raw)
            if definition is None:
                continue
            try:
                ok = self.matches(definition, subject, context)
            except Exception as e:
                logger.warning("Dropping bonus %s: filter evaluation failed: %s", bid, e, exc_info=True)
                self._note(f"bonus {bid}: filter error ({type(e).__name__})")
                continue
            if ok:
                logger.debug("bonus %s applies", bid)
                valids.append(definition.bonuses)
        return valids

def filter_bonuses(candidates: Sequence[Candidate], subject: Subject, context: Optional[FilterContext] = None,
                   trace: Optional[TraceSession] = None) -> List[BonusPayload]:
    return FilterEngine(trace).evaluate(candidates, subject, context or FilterContext())

# -------- entry points --------

def _snapshot_target(targets: Optional[TargetProvider]) -> Optional[Actor]:
    # read once per pass; predicates only ever see this value
    return (targets or NoTargets()).first_target()

def hit_die_check(actor: Actor, source: BonusSource, targets: Optional[TargetProvider] = None,
                  trace: Optional[TraceSession] = None) -> List[BonusPayload]:
    candidates = source.bonuses_for(actor, "hitdie")
    if not candidates:
        return []
    ctx = FilterContext(kind="misc", target=_snapshot_target(targets))
    return FilterEngine(trace).evaluate(candidates, actor, ctx)

def throw_check(actor: Actor, ability_id: str, source: BonusSource, *, is_conc_save: bool = False,
                targets: Optional[TargetProvider] = None, trace: Optional[TraceSession] = None) -> List[BonusPayload]:
    candidates = source.bonuses_for(actor, "throw")
    if not candidates:
        return []
    ctx = FilterContext(kind="throw", throw_type=ability_id, is_conc_save=is_conc_save,
                        target=_snapshot_target(targets))
    return FilterEngine(trace).evaluate(candidates, actor, ctx)

def item_check(item: Item, hook_type: BonusType, source: BonusSource, targets: Optional[TargetProvider] = None,
               trace: Optional[TraceSession] = None) -> List[BonusPayload]:
    """Attack rolls, damage rolls and save DCs of an item, using bonuses available to its owner."""
    if hook_type not in ITEM_HOOK_TYPES:
        raise ValueError(f"item_check hook type must be one of {ITEM_HOOK_TYPES}, got {hook_type!r}")
    candidates = source.bonuses_for(item.actor, hook_type)
    if not candidates:
        return []
    ctx = FilterContext(kind="item", target=_snapshot_target(targets))
    return FilterEngine(trace).evaluate(candidates, item, ctx)

def bonus_formulas(payloads: Iterable[BonusPayload]) -> List[str]:
    return [p.bonus for p in payloads if p.bonus]
