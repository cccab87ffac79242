from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional, Union
from typing_extensions import Annotated
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, field_validator

ABILITY_KEYS = ("str", "dex", "con", "int", "wis", "cha")

ActionType = Literal["mwak", "rwak", "msak", "rsak", "save", "heal", "abil", "util", "other"]
SPELL_ATTACKS = {"msak", "rsak", "save"}

class ActiveEffect(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str = ""
    disabled: bool = False
    is_suppressed: bool = Field(default=False, validation_alias=AliasChoices("is_suppressed", "isSuppressed"))
    flags: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    def get_flag(self, scope: str, key: str) -> Any:
        return (self.flags.get(scope) or {}).get(key)

    @property
    def status_id(self) -> Optional[str]:
        return self.get_flag("core", "statusId")

    @property
    def is_active(self) -> bool:
        return not (self.disabled or self.is_suppressed)

class AbilityScore(BaseModel):
    value: int = 10

    @computed_field
    @property
    def mod(self) -> int:
        return (self.value - 10) // 2

class CreatureType(BaseModel):
    value: str = ""
    subtype: str = ""
    custom: str = ""

    def labels(self) -> set[str]:
        # value is matched verbatim; subtype and custom are free text
        out = {self.value} if self.value else set()
        if self.subtype:
            out.add(self.subtype.lower())
        if self.custom:
            out.add(self.custom.lower())
        return out

class DamagePart(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    formula: str = ""
    damage_type: str = Field(default="", validation_alias=AliasChoices("damage_type", "damageType", "type"))

class SaveSpec(BaseModel):
    ability: str = ""
    dc: Optional[int] = None
    scaling: str = ""

class ItemUses(BaseModel):
    value: Optional[int] = None
    max: Optional[int] = None
    per: Optional[str] = None

class Item(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    type: Literal["item", "equipment", "consumable", "feat", "tool", "loot", "backpack", "class"] = "item"
    action_type: Optional[ActionType] = Field(default=None, validation_alias=AliasChoices("action_type", "actionType"))
    ability: Optional[str] = None
    damage_parts: List[DamagePart] = Field(default_factory=list, validation_alias=AliasChoices("damage_parts", "damageParts", "damage"))
    save: SaveSpec = Field(default_factory=SaveSpec)
    equipped: bool = False
    attuned: bool = False
    uses: ItemUses = Field(default_factory=ItemUses)
    # owning actor; set by Actor.add_item, never serialized
    actor: Optional["Actor"] = Field(default=None, exclude=True, repr=False)

    @field_validator("action_type", "ability", mode="before")
    @classmethod
    def _blank_is_none(cls, v: Any) -> Any:
        # stored item data uses "" for "not set"
        return None if v == "" else v

    def derived_damage_types(self) -> List[str]:
        return [p.damage_type for p in self.damage_parts if p.damage_type]

    def effect_owner(self) -> Optional["Actor"]:
        return self.actor

    def item_roll_data(self) -> Dict[str, Any]:
        return self.model_dump(mode="python", by_alias=False)

    def get_roll_data(self) -> Dict[str, Any]:
        data = self.actor.get_roll_data() if self.actor else {}
        data["item"] = self.item_roll_data()
        return data

class Weapon(Item):
    type: Literal["weapon"] = "weapon"
    base_item: str = Field(default="", validation_alias=AliasChoices("base_item", "baseItem"))
    properties: Dict[str, bool] = Field(default_factory=dict)

    def has_property(self, key: str) -> bool:
        return bool(self.properties.get(key))

class Spell(Item):
    type: Literal["spell"] = "spell"
    school: str = ""
    level: int = 0
    components: Dict[str, bool] = Field(default_factory=dict)

    def has_component(self, key: str) -> bool:
        return bool(self.components.get(key))

ItemUnion = Annotated[Union[Weapon, Spell, Item], Field(discriminator="type")]

class Actor(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    type: Literal["character", "npc", "vehicle"] = "character"
    level: int = 1
    abilities: Dict[str, AbilityScore] = Field(default_factory=lambda: {k: AbilityScore() for k in ABILITY_KEYS})
    spellcasting: Optional[str] = None
    prof: int = 2
    creature_type: CreatureType = Field(default_factory=CreatureType, validation_alias=AliasChoices("creature_type", "creatureType"))
    effects: List[ActiveEffect] = Field(default_factory=list)
    items: List[ItemUnion] = Field(default_factory=list)

    def model_post_init(self, __context: Any) -> None:
        for it in self.items:
            it.actor = self

    def ability_mod(self, key: str) -> int:
        score = self.abilities.get(key)
        return score.mod if score else 0

    def add_item(self, item: Item) -> Item:
        item.actor = self
        self.items.append(item)
        return item

    def get_item(self, item_id: str) -> Optional[Item]:
        for it in self.items:
            if it.id == item_id:
                return it
        return None

    def effect_owner(self) -> "Actor":
        return self

    def active_status_ids(self) -> set[str]:
        return {e.status_id for e in self.effects if e.is_active and e.status_id}

    def get_roll_data(self) -> Dict[str, Any]:
        return {
            "abilities": {k: {"value": v.value, "mod": v.mod} for k, v in self.abilities.items()},
            "attributes": {"spellcasting": self.spellcasting or "", "prof": self.prof},
            "details": {
                "level": self.level,
                "type": self.creature_type.model_dump(),
            },
            "prof": self.prof,
        }

Subject = Union[Actor, Weapon, Spell, Item]

Item.model_rebuild()
Weapon.model_rebuild()
Spell.model_rebuild()
Actor.model_rebuild()
