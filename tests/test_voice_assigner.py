"""Tests for the voice assigner and proposal parsing."""

import asyncio

import pytest

from conftest import NARRATOR, FakeProposer, echo_cast, make_character
from adapters.base import CastingProposer
from config import settings
from models.casting import Voice
from pipeline.errors import CapacityError, ErrorKind, ProposerError, ValidationError
from pipeline.voice_assigner import VoiceAssigner, parse_proposal
from pipeline.voice_catalog import VoiceCatalog


def _row(name, voice_id, reasoning="fits"):
    return {"character_name": name, "voice_id": voice_id, "voice_name": "", "reasoning": reasoning}


# --- parse_proposal ---

def test_parse_plain_document():
    candidates = parse_proposal('{"assignments": [{"character_name": " Ann ", "voice_id": "F1"}]}')
    assert len(candidates) == 1
    assert candidates[0].character_name == "Ann"
    assert candidates[0].voice_id == "F1"


def test_parse_salvages_json_from_prose():
    content = 'Here is the cast:\n```json\n{"assignments": [{"character_name": "Bob", "voice_id": "M1"}]}\n```'
    assert parse_proposal(content)[0].voice_id == "M1"


@pytest.mark.parametrize("content", [
    "",
    "   ",
    "not json at all",
    "[1, 2]",
    '{"assignments": []}',
    '{"something": "else"}',
    '{"assignments": ["Ann"]}',
    '{"assignments": [{"voice_id": "F1"}]}',
])
def test_parse_rejects_unusable_documents(content):
    with pytest.raises(ProposerError):
        parse_proposal(content)


def test_parse_error_field_is_proposer_error():
    with pytest.raises(ProposerError) as exc:
        parse_proposal({"error": "Not enough voices"})
    assert "Not enough voices" in str(exc.value)
    assert exc.value.to_dict()["error"] == "proposer"


# --- assign_voices ---

def test_assigns_unique_gender_matched_voices(small_catalog, story_context):
    """One male and one female character get M1 and F1; the narrator is never offered."""
    proposer = FakeProposer(echo_cast)
    assigner = VoiceAssigner(proposer, small_catalog, strict_gender=True)
    characters = [make_character("Bob Hale", "male"), make_character("Ann", "female")]

    result = asyncio.run(assigner.assign_voices(characters, story_context, NARRATOR))

    assert result == {"bob hale": "M1", "ann": "F1"}
    [request] = proposer.requests
    assert NARRATOR not in [v.id for v in request.voices]
    assert request.narrator_voice.name == "Nigel"


def test_empty_character_list_skips_proposer(small_catalog, story_context):
    proposer = FakeProposer(echo_cast)
    assigner = VoiceAssigner(proposer, small_catalog)
    assert asyncio.run(assigner.assign_voices([], story_context, NARRATOR)) == {}
    assert proposer.requests == []


def test_capacity_failure_never_calls_proposer(small_catalog, story_context):
    """Two male characters against one non-narrator male voice."""
    proposer = FakeProposer(echo_cast)
    assigner = VoiceAssigner(proposer, small_catalog)
    characters = [make_character("Bob", "male"), make_character("Cy", "male")]

    with pytest.raises(CapacityError):
        asyncio.run(assigner.assign_voices(characters, story_context, NARRATOR))
    assert proposer.requests == []


def test_excluded_voices_not_offered(catalog, story_context):
    proposer = FakeProposer(echo_cast)
    assigner = VoiceAssigner(proposer, catalog)
    characters = [make_character("Bob", "male")]

    result = asyncio.run(assigner.assign_voices(characters, story_context, NARRATOR, excluded={"M1"}))

    assert result == {"bob": "M2"}
    assert [v.id for v in proposer.requests[0].male_voices] == ["M2"]


def test_duplicate_from_proposer_is_repaired(catalog, story_context):
    proposer = FakeProposer({"assignments": [_row("Bob", "M1"), _row("Cy", "Marcus")]})
    assigner = VoiceAssigner(proposer, catalog, strict_gender=True)
    characters = [make_character("Bob", "male"), make_character("Cy", "male")]

    result = asyncio.run(assigner.assign_voices(characters, story_context, NARRATOR))

    assert result == {"bob": "M1", "cy": "M2"}


def test_duplicate_moves_to_remaining_voice(small_catalog, story_context):
    proposer = FakeProposer({"assignments": [_row("Bob", "M1"), _row("Ann", "M1")]})
    assigner = VoiceAssigner(proposer, small_catalog, strict_gender=True)
    characters = [make_character("Bob", "male"), make_character("Ann", "female")]

    result = asyncio.run(assigner.assign_voices(characters, story_context, NARRATOR))
    assert result == {"bob": "M1", "ann": "F1"}


def test_unrepairable_duplicate_fails_validation(small_catalog, story_context):
    """Every non-narrator voice is claimed, so the duplicate cannot move."""
    proposer = FakeProposer({"assignments": [_row("Bob", "M1"), _row("Ann", "M1"), _row("Zed", "F1")]})
    assigner = VoiceAssigner(proposer, small_catalog)
    characters = [make_character("Bob", "male"), make_character("Ann", "female")]

    with pytest.raises(ValidationError) as exc:
        asyncio.run(assigner.assign_voices(characters, story_context, NARRATOR))
    errors = exc.value.errors
    assert any(e.startswith("Duplicate voice assignment: M1") for e in errors)
    assert 'Assignment for unrequested character "Zed"' in errors


def test_invalid_voice_fails_validation(catalog, story_context):
    proposer = FakeProposer({"assignments": [_row("Bob", "nobody-here")]})
    assigner = VoiceAssigner(proposer, catalog)

    with pytest.raises(ValidationError) as exc:
        asyncio.run(assigner.assign_voices([make_character("Bob", "male")], story_context, NARRATOR))
    assert exc.value.kind is ErrorKind.VALIDATION
    assert any("Invalid voice_id" in e for e in exc.value.errors)


def test_strict_gender_mismatch_fails(catalog, story_context):
    proposer = FakeProposer({"assignments": [_row("Ann", "M1")]})
    characters = [make_character("Ann", "female")]

    with pytest.raises(ValidationError):
        asyncio.run(VoiceAssigner(proposer, catalog, strict_gender=True)
                    .assign_voices(characters, story_context, NARRATOR))

    lenient = VoiceAssigner(proposer, catalog, strict_gender=False)
    assert asyncio.run(lenient.assign_voices(characters, story_context, NARRATOR)) == {"ann": "M1"}


def test_proposer_error_propagates(catalog, story_context):
    proposer = FakeProposer(ProposerError("model offline"))
    assigner = VoiceAssigner(proposer, catalog)

    with pytest.raises(ProposerError, match="model offline"):
        asyncio.run(assigner.assign_voices([make_character("Bob", "male")], story_context, NARRATOR))


class SlowProposer(CastingProposer):
    name = "slow"

    async def propose(self, request):
        await asyncio.sleep(5)
        return "{}"


def test_proposer_timeout_is_proposer_error(catalog, story_context):
    assigner = VoiceAssigner(SlowProposer(), catalog, timeout=0.01)

    with pytest.raises(ProposerError, match="timed out"):
        asyncio.run(assigner.assign_voices([make_character("Bob", "male")], story_context, NARRATOR))


def test_female_character_on_narrator_voice_recast_as_female(catalog, story_context):
    proposer = FakeProposer({"assignments": [_row("Ava", NARRATOR), _row("Bo", "M1")]})
    assigner = VoiceAssigner(proposer, catalog, strict_gender=True)
    characters = [make_character("Ava", "female"), make_character("Bo", "male")]

    result = asyncio.run(assigner.assign_voices(characters, story_context, NARRATOR))

    assert result == {"ava": "F1", "bo": "M1"}


class BrokenProposer(CastingProposer):
    name = "broken"

    async def propose(self, request):
        raise RuntimeError("socket closed")


def test_unexpected_proposer_exception_is_proposer_error(catalog, story_context):
    assigner = VoiceAssigner(BrokenProposer(), catalog)

    with pytest.raises(ProposerError, match="RuntimeError: socket closed") as exc:
        asyncio.run(assigner.assign_voices([make_character("Bob", "male")], story_context, NARRATOR))
    assert isinstance(exc.value.__cause__, RuntimeError)


def test_explicit_timeout_is_kept(catalog):
    assert VoiceAssigner(FakeProposer(), catalog, timeout=0).timeout == 0
    assert VoiceAssigner(FakeProposer(), catalog).timeout == settings.proposer_timeout


def test_available_voices_listing(catalog):
    voices = VoiceAssigner(FakeProposer(), catalog).get_available_voices()
    assert [v["id"] for v in voices] == ["N", "M1", "M2", "F1", "F2", "X1"]


def test_no_female_voice_left_fails_before_proposer(story_context):
    """Catalog of just the narrator and M1 cannot cast a female character."""
    catalog = VoiceCatalog([Voice(id=NARRATOR, name="Nigel", gender="male"),
                            Voice(id="M1", name="Marcus", gender="male")])
    proposer = FakeProposer(echo_cast)
    characters = [make_character("Bob", "male"), make_character("Ann", "female")]

    with pytest.raises(CapacityError) as exc:
        asyncio.run(VoiceAssigner(proposer, catalog).assign_voices(characters, story_context, NARRATOR))
    assert exc.value.gender == "female"
    assert proposer.requests == []


@pytest.mark.parametrize("voices", [
    ["M1", "M1", "F1"],
    ["M1", "M1", "M1"],
    [NARRATOR, "M1", "F1"],
    [NARRATOR, NARRATOR, "Fiona"],
    ["F1", "F1", "F1"],
])
def test_accepted_casts_are_unique_and_skip_narrator(catalog, story_context, voices):
    """Injected duplicates and narrator picks are either repaired or rejected, never accepted."""
    names = ["Bob", "Cy", "Ann"]
    proposer = FakeProposer({"assignments": [_row(n, v) for n, v in zip(names, voices)]})
    assigner = VoiceAssigner(proposer, catalog, strict_gender=False)
    characters = [make_character("Bob", "male"), make_character("Cy", "male"), make_character("Ann", "female")]

    try:
        result = asyncio.run(assigner.assign_voices(characters, story_context, NARRATOR))
    except ValidationError:
        return
    assert len(result) == 3
    assert len(set(result.values())) == 3
    assert NARRATOR not in result.values()
