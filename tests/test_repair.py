"""Tests for the repair passes."""

from conftest import NARRATOR
from models.casting import Candidate, Voice
from pipeline.repair import (
    REPAIR_DUPLICATE,
    REPAIR_IDENTIFIER,
    REPAIR_IN_USE,
    REPAIR_NARRATOR,
    repair_duplicates,
    repair_reserved_conflicts,
    resolve_identifiers,
    run_repairs,
)
from pipeline.voice_catalog import VoiceCatalog


def _c(name, voice_id, reasoning="fits"):
    return Candidate(character_name=name, voice_id=voice_id, reasoning=reasoning)


# --- Identifier resolution ---

def test_trailing_parenthesized_id_is_extracted():
    """"Gigi (jBpfuIE2acCO8z3wKNLl)" resolves to the id in parentheses."""
    catalog = VoiceCatalog.default()
    [result] = resolve_identifiers([_c("Ann", "Gigi (jBpfuIE2acCO8z3wKNLl)")], catalog)
    assert result.voice_id == "jBpfuIE2acCO8z3wKNLl"
    assert result.voice_name == "Gigi"
    assert result.original_voice_id == "Gigi (jBpfuIE2acCO8z3wKNLl)"
    assert result.repairs == (REPAIR_IDENTIFIER,)


def test_valid_id_is_untouched():
    catalog = VoiceCatalog.default()
    original = _c("Ann", "jBpfuIE2acCO8z3wKNLl")
    [result] = resolve_identifiers([original], catalog)
    assert result is original


def test_resolution_is_idempotent(catalog):
    once = resolve_identifiers([_c("Ann", "fiona"), _c("Bob", "Marcus (bogus)")], catalog)
    twice = resolve_identifiers(once, catalog)
    assert once == twice
    assert [c.voice_id for c in twice] == ["F1", "M1"]


def test_display_name_lookup_is_case_insensitive(catalog):
    [result] = resolve_identifiers([_c("Ann", "FREYA")], catalog)
    assert result.voice_id == "F2"


def test_name_before_parenthesis(catalog):
    """Parenthesized text that is not an id still resolves by the name part."""
    [result] = resolve_identifiers([_c("Bob", "Milo (young male)")], catalog)
    assert result.voice_id == "M2"


def test_unresolvable_left_in_place(catalog):
    [result] = resolve_identifiers([_c("Bob", "Nobody")], catalog)
    assert result.voice_id == "Nobody"
    assert not result.repaired


# --- Duplicate repair ---

def test_duplicate_gets_same_gender_voice(catalog):
    """Second use of M1 moves to the unused male voice M2."""
    result = repair_duplicates([_c("Bob", "M1"), _c("Cy", "M1")], catalog, NARRATOR)
    assert [c.voice_id for c in result] == ["M1", "M2"]
    assert result[1].repairs == (REPAIR_DUPLICATE,)
    assert result[1].reasoning.startswith("(auto-reassigned to avoid duplicate)")
    assert result[1].original_voice_id == "M1"
    assert not result[0].repaired


def test_duplicate_falls_back_to_any_gender(catalog):
    """With every male voice claimed the repair takes any unused voice."""
    candidates = [_c("Bob", "M1"), _c("Cy", "M2"), _c("Dan", "M1")]
    result = repair_duplicates(candidates, catalog, NARRATOR)
    assert result[2].voice_id == "F1"


def test_duplicate_never_uses_narrator_or_excluded(catalog):
    candidates = [_c("Bob", "M1"), _c("Cy", "M1")]
    result = repair_duplicates(candidates, catalog, NARRATOR, excluded={"M2", "F1", "F2"})
    assert result[1].voice_id == "X1"


def test_duplicate_left_when_pool_empty(small_catalog):
    candidates = [_c("Bob", "M1"), _c("Cy", "F1"), _c("Dan", "M1")]
    result = repair_duplicates(candidates, small_catalog, NARRATOR)
    assert [c.voice_id for c in result] == ["M1", "F1", "M1"]
    assert not result[2].repaired


def test_duplicate_repair_returns_new_list(catalog):
    candidates = [_c("Bob", "M1"), _c("Cy", "M1")]
    result = repair_duplicates(candidates, catalog, NARRATOR)
    assert result is not candidates
    assert candidates[1].voice_id == "M1"


# --- Reserved voice repair ---

def test_narrator_conflict_reassigned(catalog):
    result = repair_reserved_conflicts([_c("Bob", NARRATOR), _c("Cy", "M1")], catalog, NARRATOR)
    assert result[0].voice_id == "M2"
    assert result[0].repairs == (REPAIR_NARRATOR,)
    assert "narrator" in result[0].reasoning


def test_voice_already_bound_in_session_reassigned(catalog):
    result = repair_reserved_conflicts([_c("Ann", "F1")], catalog, NARRATOR, excluded={"F1"})
    assert result[0].voice_id == "F2"
    assert result[0].repairs == (REPAIR_IN_USE,)


def test_narrator_conflict_left_when_pool_empty():
    catalog = VoiceCatalog([Voice(id=NARRATOR, name="Nigel", gender="male"),
                            Voice(id="M1", name="Marcus", gender="male")])
    result = repair_reserved_conflicts([_c("Bob", "M1"), _c("Cy", NARRATOR)], catalog, NARRATOR)
    assert result[1].voice_id == NARRATOR


# --- Full pipeline ---

def test_pipeline_fixes_name_then_duplicate_then_narrator(catalog):
    candidates = [
        _c("Bob", "Marcus"),      # name -> M1
        _c("Cy", "M1"),           # duplicate of Bob -> M2
        _c("Ann", NARRATOR),      # narrator, no male voice left
    ]
    result = run_repairs(candidates, catalog, NARRATOR)
    ids = [c.voice_id for c in result]
    assert ids[:2] == ["M1", "M2"]
    assert ids[2] not in (NARRATOR, "M1", "M2")
    assert len(set(ids)) == 3


def test_narrator_conflict_follows_character_gender(catalog):
    """A female character moved off the male narrator voice gets a female voice."""
    genders = {"ava": "female", "bo": "male"}
    result = run_repairs([_c("Ava", NARRATOR), _c("Bo", "M1")], catalog, NARRATOR,
                         character_genders=genders)
    assert result[0].voice_id == "F1"
    assert result[0].repairs == (REPAIR_NARRATOR,)


def test_duplicate_follows_character_gender(catalog):
    result = repair_duplicates([_c("Bob", "M1"), _c("Ann", "M1")], catalog, NARRATOR,
                               character_genders={"bob": "male", "ann": "female"})
    assert result[1].voice_id == "F1"


def test_unknown_character_gender_uses_replaced_voice_gender(catalog):
    result = repair_reserved_conflicts([_c("Sam", "F1")], catalog, NARRATOR, excluded={"F1"},
                                       character_genders={"sam": "unknown"})
    assert result[0].voice_id == "F2"
