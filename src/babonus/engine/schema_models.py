from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Iterator, List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Enums
BonusType = Literal["attack", "damage", "save", "throw", "hitdie"]
ComparisonOperator = Literal["EQ", "LT", "GT", "LE", "GE"]
ITEM_HOOK_TYPES = ("attack", "damage", "save")

class MATCH(str, Enum):
    ALL = "ALL"
    ANY = "ANY"

class FilterKey(str, Enum):
    ITEM_TYPES = "itemTypes"
    BASE_WEAPONS = "baseWeapons"
    DAMAGE_TYPES = "damageTypes"
    SPELL_SCHOOLS = "spellSchools"
    ABILITIES = "abilities"
    SPELL_COMPONENTS = "spellComponents"
    SPELL_LEVELS = "spellLevels"
    ATTACK_TYPES = "attackTypes"
    WEAPON_PROPERTIES = "weaponProperties"
    SAVE_ABILITIES = "saveAbilities"
    THROW_TYPES = "throwTypes"
    ARBITRARY_COMPARISON = "arbitraryComparison"
    STATUS_EFFECTS = "statusEffects"
    TARGET_EFFECTS = "targetEffects"
    CREATURE_TYPES = "creatureTypes"
    ITEM_REQUIREMENTS = "itemRequirements"

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# -----------------------------
# Filter payloads
class SpellComponentsFilter(_CamelModel):
    types: List[str] = Field(default_factory=list)
    match: str = MATCH.ALL.value

class WeaponPropertiesFilter(_CamelModel):
    needed: List[str] = Field(default_factory=list)
    unfit: List[str] = Field(default_factory=list)

class ComparisonTriple(_CamelModel):
    one: str = ""
    other: str = ""
    operator: ComparisonOperator

class ItemRequirements(_CamelModel):
    equipped: Optional[bool] = None
    attuned: Optional[bool] = None

    def is_empty(self) -> bool:
        return self.equipped is None and self.attuned is None

FilterValue = Union[
    List[str], List[Union[int, str]], SpellComponentsFilter, WeaponPropertiesFilter,
    List[ComparisonTriple], ItemRequirements,
]

class Filters(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    item_types: Optional[List[str]] = None
    base_weapons: Optional[List[str]] = None
    damage_types: Optional[List[str]] = None
    spell_schools: Optional[List[str]] = None
    abilities: Optional[List[str]] = None
    spell_components: Optional[SpellComponentsFilter] = None
    spell_levels: Optional[List[Union[int, str]]] = None
    attack_types: Optional[List[str]] = None
    weapon_properties: Optional[WeaponPropertiesFilter] = None
    save_abilities: Optional[List[str]] = None
    throw_types: Optional[List[str]] = None
    arbitrary_comparison: Optional[List[ComparisonTriple]] = None
    status_effects: Optional[List[str]] = None
    target_effects: Optional[List[str]] = None
    creature_types: Optional[List[str]] = None
    item_requirements: Optional[ItemRequirements] = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_keys(cls, data: Any) -> Any:
        # older stored bonuses spell the base weapon key in lower case
        if isinstance(data, dict) and "baseweapons" in data and "baseWeapons" not in data:
            data = dict(data)
            data["baseWeapons"] = data.pop("baseweapons")
        return data

    def present(self) -> Iterator[Tuple[FilterKey, FilterValue]]:
        """Set filter keys with their payloads, in FilterKey declaration order."""
        for key in FilterKey:
            value = getattr(self, _FIELD_BY_KEY[key])
            if value is not None:
                yield key, value

    def get(self, key: FilterKey) -> Optional[FilterValue]:
        return getattr(self, _FIELD_BY_KEY[key])

    def __len__(self) -> int:
        return sum(1 for _ in self.present())

_FIELD_BY_KEY: Dict[FilterKey, str] = {
    FilterKey(info.alias): name for name, info in Filters.model_fields.items()
}

# -----------------------------
# Payload and definition
class BonusPayload(_CamelModel):
    """Formula strings handed back to the caller untouched."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    bonus: Optional[str] = None
    critical_bonus_dice: Optional[str] = None
    critical_bonus_damage: Optional[str] = None
    death_save_target_value: Optional[str] = None
    critical_range: Optional[str] = None
    fumble_range: Optional[str] = None

class AuraConfig(_CamelModel):
    enabled: bool = False
    is_template: bool = False
    range: Optional[float] = None
    self_: bool = Field(default=False, alias="self")
    disposition: Literal[1, -1, 0] = 1
    blockers: List[str] = Field(default_factory=list)

class BonusDefinition(_CamelModel):
    id: str
    enabled: bool = True
    type: BonusType
    name: str = ""
    description: str = ""
    filters: Filters = Field(default_factory=Filters)
    bonuses: BonusPayload = Field(default_factory=BonusPayload)
    aura: Optional[AuraConfig] = None

    @model_validator(mode="before")
    @classmethod
    def _null_sections(cls, data: Any) -> Any:
        # stored bonuses may carry null filters/bonuses; null means "none set"
        if isinstance(data, dict) and any(data.get(k, {}) is None for k in ("filters", "bonuses")):
            data = {k: v for k, v in data.items() if not (k in ("filters", "bonuses") and v is None)}
        return data

    @model_validator(mode="after")
    def _validate(self):
        errs: list[str] = []
        if not self.id:
            errs.append("bonus id must be a non-empty string")
        if self.aura and self.aura.range is not None and self.aura.range < 0:
            errs.append("aura.range must be >= 0")
        if errs:
            raise ValueError("; ".join(errs))
        return self

# Filter keys and payload keys that mean something for each bonus type.
# The filter pass does not enforce these; the content validator warns on mismatches.
_UNIVERSAL = {
    FilterKey.ARBITRARY_COMPARISON, FilterKey.STATUS_EFFECTS, FilterKey.TARGET_EFFECTS,
    FilterKey.CREATURE_TYPES, FilterKey.ITEM_REQUIREMENTS,
}
_ITEM_ROLL = {
    FilterKey.DAMAGE_TYPES, FilterKey.ABILITIES, FilterKey.SAVE_ABILITIES, FilterKey.ITEM_TYPES,
    FilterKey.SPELL_COMPONENTS, FilterKey.SPELL_LEVELS, FilterKey.SPELL_SCHOOLS,
    FilterKey.BASE_WEAPONS, FilterKey.WEAPON_PROPERTIES,
}
FILTERS_BY_TYPE: Dict[str, set] = {
    "attack": _UNIVERSAL | _ITEM_ROLL | {FilterKey.ATTACK_TYPES},
    "damage": _UNIVERSAL | _ITEM_ROLL | {FilterKey.ATTACK_TYPES},
    "save": _UNIVERSAL | _ITEM_ROLL,
    "throw": _UNIVERSAL | {FilterKey.THROW_TYPES},
    "hitdie": set(_UNIVERSAL),
}
PAYLOAD_KEYS_BY_TYPE: Dict[str, set] = {
    "attack": {"bonus", "critical_range", "fumble_range"},
    "damage": {"bonus", "critical_bonus_dice", "critical_bonus_damage"},
    "save": {"bonus"},
    "throw": {"bonus", "death_save_target_value"},
    "hitdie": {"bonus"},
}
