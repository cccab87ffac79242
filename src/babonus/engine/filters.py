from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional, Union

from .comparison import compare_all
from .context import FilterContext
from .models import SPELL_ATTACKS, Actor, Item, Spell, Weapon
from .schema_models import (
    MATCH, ComparisonTriple, FilterKey, ItemRequirements, SpellComponentsFilter, WeaponPropertiesFilter,
)

Subject = Union[Actor, Item]
Predicate = Callable[[Subject, Any, FilterContext], bool]

_REGISTRY: Dict[FilterKey, Predicate] = {}

def register(key: FilterKey) -> Callable[[Predicate], Predicate]:
    def deco(fn: Predicate) -> Predicate:
        if key in _REGISTRY:
            raise RuntimeError(f"Duplicate predicate for filter {key.value}")
        _REGISTRY[key] = fn
        return fn
    return deco

def predicate_for(key: FilterKey) -> Predicate:
    return _REGISTRY[key]

def missing_predicates() -> List[FilterKey]:
    return [k for k in FilterKey if k not in _REGISTRY]

# -------- helpers --------

def _empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, SpellComponentsFilter):
        return not value.types
    if isinstance(value, WeaponPropertiesFilter):
        return not value.needed and not value.unfit
    if isinstance(value, ItemRequirements):
        return value.is_empty()
    return len(value) == 0

def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

def _spellcasting_of(item: Item) -> Optional[str]:
    return item.actor.spellcasting if item.actor else None

# -------- item predicates --------

@register(FilterKey.ITEM_TYPES)
def item_types(subject: Subject, filter_: List[str], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if not isinstance(subject, Item):
        return False
    return subject.type in filter_

@register(FilterKey.BASE_WEAPONS)
def base_weapons(subject: Subject, filter_: List[str], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    # only weapons have a base weapon
    if not isinstance(subject, Weapon):
        return False
    return subject.base_item in filter_

@register(FilterKey.DAMAGE_TYPES)
def damage_types(subject: Subject, filter_: List[str], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if not isinstance(subject, Item):
        return False
    return any(t in filter_ for t in subject.derived_damage_types())

@register(FilterKey.SPELL_SCHOOLS)
def spell_schools(subject: Subject, filter_: List[str], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if not isinstance(subject, Spell):
        return False
    return subject.school in filter_

@register(FilterKey.ABILITIES)
def abilities(subject: Subject, filter_: List[str], ctx: FilterContext) -> bool:
    """
    Whether the item rolls with one of the filter's abilities.
    Items left on the default ability use the finesse tie-break, then the action type:
    mwak -> str, rwak -> dex, spell attacks and saves -> the actor's spellcasting ability.
    """
    if _empty(filter_):
        return True
    if not isinstance(subject, Item) or not subject.action_type:
        return False

    if not subject.ability:
        actor = subject.actor
        if isinstance(subject, Weapon) and subject.has_property("fin"):
            # finesse uses the better of str/dex, and never the plain mwak rule; both hold on a tie
            if actor is not None:
                str_mod = actor.ability_mod("str")
                dex_mod = actor.ability_mod("dex")
                if "str" in filter_ and str_mod >= dex_mod:
                    return True
                if "dex" in filter_ and dex_mod >= str_mod:
                    return True
        elif subject.action_type == "mwak":
            if "str" in filter_:
                return True
        elif subject.action_type == "rwak":
            if "dex" in filter_:
                return True
        elif subject.action_type in SPELL_ATTACKS:
            spellcasting = _spellcasting_of(subject)
            if spellcasting and spellcasting in filter_:
                return True

    return subject.ability in filter_

@register(FilterKey.SPELL_COMPONENTS)
def spell_components(subject: Subject, filter_: SpellComponentsFilter, ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if not isinstance(subject, Spell):
        return False
    if filter_.match == MATCH.ALL.value:
        return all(subject.has_component(t) for t in filter_.types)
    if filter_.match == MATCH.ANY.value:
        return any(subject.has_component(t) for t in filter_.types)
    return False

@register(FilterKey.SPELL_LEVELS)
def spell_levels(subject: Subject, filter_: List[Union[int, str]], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if not isinstance(subject, Spell):
        return False
    # an upcast spell carries the level it was cast at
    level = float(subject.level)
    return any(_as_number(v) == level for v in filter_)

@register(FilterKey.ATTACK_TYPES)
def attack_types(subject: Subject, filter_: List[str], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if not isinstance(subject, Item) or not subject.action_type:
        return False
    return subject.action_type in filter_

@register(FilterKey.WEAPON_PROPERTIES)
def weapon_properties(subject: Subject, filter_: WeaponPropertiesFilter, ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if not isinstance(subject, Weapon):
        return False
    # unfit is checked first, so a property listed in both lists fails
    if any(subject.has_property(p) for p in filter_.unfit):
        return False
    if filter_.needed and not any(subject.has_property(p) for p in filter_.needed):
        return False
    return True

@register(FilterKey.SAVE_ABILITIES)
def save_abilities(subject: Subject, filter_: List[str], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if not isinstance(subject, Item):
        return False
    scaling = subject.save.scaling
    if not scaling:
        return False
    if scaling == "spell":
        return _spellcasting_of(subject) in filter_
    return scaling in filter_

@register(FilterKey.ITEM_REQUIREMENTS)
def item_requirements(subject: Subject, filter_: ItemRequirements, ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if not isinstance(subject, Item):
        return False
    if filter_.equipped is not None and subject.equipped != filter_.equipped:
        return False
    if filter_.attuned is not None and subject.attuned != filter_.attuned:
        return False
    return True

# -------- actor / context predicates --------

@register(FilterKey.THROW_TYPES)
def throw_types(subject: Subject, filter_: List[str], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if not ctx.throw_type:
        return False
    return ctx.throw_type in filter_ or ("concentration" in filter_ and ctx.is_conc_save)

@register(FilterKey.ARBITRARY_COMPARISON)
def arbitrary_comparison(subject: Subject, filter_: List[ComparisonTriple], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    return compare_all(subject, filter_, ctx)

@register(FilterKey.STATUS_EFFECTS)
def status_effects(subject: Subject, filter_: List[str], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    owner = subject.effect_owner()
    if owner is None:
        return False
    return not owner.active_status_ids().isdisjoint(filter_)

@register(FilterKey.TARGET_EFFECTS)
def target_effects(subject: Subject, filter_: List[str], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if ctx.target is None:
        return False
    return not ctx.target.active_status_ids().isdisjoint(filter_)

@register(FilterKey.CREATURE_TYPES)
def creature_types(subject: Subject, filter_: List[str], ctx: FilterContext) -> bool:
    if _empty(filter_):
        return True
    if ctx.target is None:
        return False
    return any(label in filter_ for label in ctx.target.creature_type.labels())
