import logging
import pytest
from babonus.engine.context import FilterContext
from babonus.engine.engine import FilterEngine, bonus_formulas, filter_bonuses, hit_die_check, item_check, throw_check
from babonus.engine.models import AbilityScore, ActiveEffect, Actor, CreatureType, Spell, Weapon
from babonus.engine.schema_models import BonusDefinition, FilterKey
from babonus.engine.sources import StaticBonusSource, UserTargets
from babonus.engine.trace import TraceSession

def bonus(bid: str, type_: str = "attack", filters: dict | None = None, formula: str | None = None, **kw) -> dict:
    return {"id": bid, "type": type_, "filters": filters or {}, "bonuses": {"bonus": formula or bid}, **kw}

@pytest.fixture
def fighter():
    a = Actor(id="a1", name="Fighter", abilities={"str": AbilityScore(value=16), "dex": AbilityScore(value=12)},
              spellcasting="wis")
    a.add_item(Weapon(id="w1", name="Longsword", action_type="mwak", base_item="longsword",
                      properties={"ver": True}, equipped=True))
    a.add_item(Spell(id="s1", name="Sacred Flame", action_type="save", school="evo", level=0))
    return a

@pytest.fixture
def sword(fighter):
    return fighter.get_item("w1")

@pytest.fixture
def zombie():
    return Actor(id="z1", name="Zombie", type="npc", creature_type=CreatureType(value="undead"),
                 effects=[ActiveEffect(id="e1", flags={"core": {"statusId": "prone"}})])

# --- Filter Engine ---

def test_empty_candidates_give_empty_result(sword):
    assert filter_bonuses([], sword) == []

def test_no_filters_means_included(sword):
    out = filter_bonuses([("b1", bonus("b1")), ("b2", bonus("b2", filters=None))], sword)
    assert bonus_formulas(out) == ["b1", "b2"]

def test_null_filters_and_payload_mean_none_set(sword):
    raw = {"id": "b", "type": "attack", "filters": None, "bonuses": {"bonus": "1"}}
    bare = {"id": "c", "type": "attack", "filters": None, "bonuses": None}
    out = filter_bonuses([("b", raw), ("c", bare)], sword)
    assert bonus_formulas(out) == ["1"]
    assert len(out) == 2

def test_disabled_bonus_is_skipped(sword):
    out = filter_bonuses([("b1", bonus("b1", enabled=False)), ("b2", bonus("b2"))], sword)
    assert bonus_formulas(out) == ["b2"]

def test_conjunction_requires_every_filter(sword):
    passing = {"itemTypes": ["weapon"]}
    failing = {"spellSchools": ["evo"]}
    both = {**passing, **failing}
    assert bonus_formulas(filter_bonuses([("b", bonus("b", filters=passing))], sword)) == ["b"]
    assert filter_bonuses([("b", bonus("b", filters=both))], sword) == []
    # key order in the stored mapping does not matter
    reversed_both = {**failing, **passing}
    assert filter_bonuses([("b", bonus("b", filters=reversed_both))], sword) == []

def test_output_keeps_input_order(sword):
    cands = [
        ("x", bonus("x", filters={"baseWeapons": ["longsword"]})),
        ("skip", bonus("skip", filters={"baseWeapons": ["dagger"]})),
        ("y", bonus("y")),
        ("z", bonus("z", filters={"attackTypes": ["mwak"]})),
    ]
    assert bonus_formulas(filter_bonuses(cands, sword)) == ["x", "y", "z"]

def test_payload_is_returned_untouched(sword):
    raw = bonus("b", filters={"itemTypes": ["weapon"]})
    raw["bonuses"] = {"bonus": "1d4 + @abilities.int.mod", "criticalRange": "1", "homebrew": "2"}
    out = filter_bonuses([("b", raw)], sword)
    assert out[0].bonus == "1d4 + @abilities.int.mod"
    assert out[0].critical_range == "1"
    assert out[0].model_dump(by_alias=True)["homebrew"] == "2"

def test_models_and_dicts_mix(sword):
    model = BonusDefinition(id="m", type="attack", filters={"attackTypes": ["mwak"]}, bonuses={"bonus": "m"})
    out = filter_bonuses([("m", model), ("d", bonus("d"))], sword)
    assert bonus_formulas(out) == ["m", "d"]

def test_malformed_bonus_does_not_block_others(sword, caplog):
    cands = [
        ("bad-shape", bonus("bad-shape", filters={"weaponProperties": ["fin"]})),
        ("bad-key", bonus("bad-key", filters={"notAFilter": ["x"]})),
        ("bad-op", bonus("bad-op", filters={"arbitraryComparison": [{"one": "1", "other": "1", "operator": "NE"}]})),
        ("not-a-dict", "garbage"),
        ("good", bonus("good")),
    ]
    with caplog.at_level(logging.WARNING, logger="babonus.engine.engine"):
        out = filter_bonuses(cands, sword)
    assert bonus_formulas(out) == ["good"]
    assert "bad-shape" in caplog.text

def test_runaway_comparison_does_not_stall_the_pass(sword):
    cands = [
        ("huge", bonus("huge", filters={"arbitraryComparison": [{"one": "9^(9^10)", "other": "1", "operator": "EQ"}]})),
        ("fac", bonus("fac", filters={"arbitraryComparison": [{"one": "fac(2000000)", "other": "fac", "operator": "GE"}]})),
        ("good", bonus("good")),
    ]
    # runaway operands fail arithmetic and compare as text
    assert bonus_formulas(filter_bonuses(cands, sword)) == ["fac", "good"]

def test_predicate_error_drops_only_that_bonus(sword, monkeypatch):
    from babonus.engine import engine as engine_mod

    real = engine_mod.predicate_for

    def exploding(key):
        if key is FilterKey.BASE_WEAPONS:
            def boom(*_a):
                raise AttributeError("broken subject")
            return boom
        return real(key)

    monkeypatch.setattr(engine_mod, "predicate_for", exploding)
    cands = [("b1", bonus("b1", filters={"baseWeapons": ["longsword"]})), ("b2", bonus("b2"))]
    trace = TraceSession()
    assert bonus_formulas(filter_bonuses(cands, sword, trace=trace)) == ["b2"]
    assert any("filter error" in line for line in trace.dump())

def test_trace_reports_dropping_filter(sword):
    trace = TraceSession()
    FilterEngine(trace).evaluate([("b1", bonus("b1", filters={"spellSchools": ["evo"]}))], sword, FilterContext())
    lines = trace.dump()
    assert len(trace) == len(lines) == 2
    assert lines[0].startswith("[Filter] pass over 1 bonus(es)")
    assert "[Filter] bonus b1: dropped by spellSchools" in lines

def test_explain_lists_every_filter(sword):
    definition = BonusDefinition.model_validate(
        bonus("b", filters={"itemTypes": ["weapon"], "spellSchools": ["evo"], "attackTypes": ["mwak"]}))
    verdicts = dict(FilterEngine().explain(definition, sword, FilterContext()))
    assert verdicts == {FilterKey.ITEM_TYPES: True, FilterKey.SPELL_SCHOOLS: False, FilterKey.ATTACK_TYPES: True}

# --- entry points ---

def test_item_check_filters_by_hook_type(sword):
    source = StaticBonusSource([
        bonus("atk", "attack", {"baseWeapons": ["longsword"]}),
        bonus("dmg", "damage", {"damageTypes": ["fire"]}),
        bonus("dmg2", "damage"),
    ])
    assert bonus_formulas(item_check(sword, "attack", source)) == ["atk"]
    assert bonus_formulas(item_check(sword, "damage", source)) == ["dmg2"]
    assert item_check(sword, "save", source) == []

def test_item_check_rejects_actor_hook_types(sword):
    with pytest.raises(ValueError):
        item_check(sword, "throw", StaticBonusSource())

def test_item_check_save_dc_uses_spellcasting(fighter):
    flame = fighter.get_item("s1")
    source = StaticBonusSource([
        bonus("wis-dc", "save", {"abilities": ["wis"]}),
        bonus("int-dc", "save", {"abilities": ["int"]}),
    ])
    assert bonus_formulas(item_check(flame, "save", source)) == ["wis-dc"]

def test_throw_check_concentration(fighter):
    source = StaticBonusSource([
        bonus("conc", "throw", {"throwTypes": ["concentration"]}),
        bonus("death", "throw", {"throwTypes": ["death"]}),
    ])
    assert bonus_formulas(throw_check(fighter, "con", source, is_conc_save=True)) == ["conc"]
    assert throw_check(fighter, "con", source) == []
    assert bonus_formulas(throw_check(fighter, "death", source)) == ["death"]

def test_hit_die_check_uses_actor_status(fighter):
    fighter.effects = [ActiveEffect(id="e1", flags={"core": {"statusId": "exhaustion"}})]
    source = StaticBonusSource([
        bonus("tired", "hitdie", {"statusEffects": ["exhaustion"]}),
        bonus("cursed", "hitdie", {"statusEffects": ["cursed"]}),
        bonus("attack-only", "attack"),
    ])
    assert bonus_formulas(hit_die_check(fighter, source)) == ["tired"]

def test_target_dependent_filters(sword, zombie):
    source = StaticBonusSource([
        bonus("undead", "damage", {"creatureTypes": ["undead"]}),
        bonus("prone", "damage", {"targetEffects": ["prone"]}),
    ])
    assert item_check(sword, "damage", source) == []
    assert bonus_formulas(item_check(sword, "damage", source, UserTargets([zombie]))) == ["undead", "prone"]

class _CountingTargets:
    def __init__(self, first, second):
        self.calls = 0
        self._seq = [first, second]

    def first_target(self):
        value = self._seq[min(self.calls, 1)]
        self.calls += 1
        return value

def test_target_is_read_once_per_pass(sword, zombie):
    # a provider that would change its answer after the first read
    targets = _CountingTargets(zombie, None)
    source = StaticBonusSource([bonus(f"b{i}", "attack", {"creatureTypes": ["undead"]}) for i in range(3)])
    out = item_check(sword, "attack", source, targets)
    assert targets.calls == 1
    assert bonus_formulas(out) == ["b0", "b1", "b2"]

def test_user_targets_first_and_dedupe(zombie):
    other = Actor(id="z2", name="Ghoul", type="npc")
    targets = UserTargets([zombie, other, zombie])
    assert targets.first_target() is zombie
    targets.clear()
    assert targets.first_target() is None
