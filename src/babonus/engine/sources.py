from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from .models import Actor
from .schema_models import BonusDefinition, BonusType

Candidate = Tuple[str, Union[BonusDefinition, Dict[str, Any]]]

class BonusSource(Protocol):
    """Supplies the bonuses an actor could receive for one roll type, already merged and ordered."""

    def bonuses_for(self, actor: Optional[Actor], bonus_type: BonusType) -> List[Candidate]: ...

class TargetProvider(Protocol):
    """Zero or one actor currently targeted by the acting user."""

    def first_target(self) -> Optional[Actor]: ...

class StaticBonusSource:
    """
    In-memory bonus source. Definitions may be models or raw stored dicts;
    raw dicts are handed through so the filter pass can reject malformed ones individually.
    """

    def __init__(self, bonuses: Iterable[Union[BonusDefinition, Dict[str, Any], Candidate]] = ()):
        self._items: List[Candidate] = []
        for b in bonuses:
            self.add(b)

    def add(self, bonus: Union[BonusDefinition, Dict[str, Any], Candidate]) -> None:
        if isinstance(bonus, tuple):
            self._items.append(bonus)
        elif isinstance(bonus, BonusDefinition):
            self._items.append((bonus.id, bonus))
        else:
            self._items.append((str(bonus.get("id", "")), bonus))

    def bonuses_for(self, actor: Optional[Actor], bonus_type: BonusType) -> List[Candidate]:
        return [(bid, b) for bid, b in self._items if _type_of(b) == bonus_type]

    def __len__(self) -> int:
        return len(self._items)

def _type_of(bonus: Union[BonusDefinition, Dict[str, Any]]) -> Any:
    if isinstance(bonus, BonusDefinition):
        return bonus.type
    return bonus.get("type") if isinstance(bonus, dict) else None

class UserTargets:
    """Ordered set of actors targeted by one user; only the first one matters to filters."""

    def __init__(self, targets: Iterable[Actor] = ()):
        self._targets: List[Actor] = []
        for t in targets:
            self.add(t)

    def add(self, actor: Actor) -> None:
        if all(t.id != actor.id for t in self._targets):
            self._targets.append(actor)

    def clear(self) -> None:
        self._targets.clear()

    def first_target(self) -> Optional[Actor]:
        return self._targets[0] if self._targets else None

class NoTargets:
    def first_target(self) -> Optional[Actor]:
        return None
