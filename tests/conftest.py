"""Shared fixtures for voice casting tests."""

import asyncio
import json

import pytest

from adapters.base import CastingProposer
from models.casting import Character, StoryContext, Voice
from pipeline.assignment_store import AssignmentStore
from pipeline.voice_catalog import VoiceCatalog

NARRATOR = "N"


class FakeProposer(CastingProposer):
    """Returns a canned document and records every request it sees."""

    name = "fake"

    def __init__(self, response=None):
        self.response = response
        self.requests = []

    async def propose(self, request):
        self.requests.append(request)
        response = self.response(request) if callable(self.response) else self.response
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


def echo_cast(request):
    """Propose the first same-gender voice for each character, like a well-behaved model."""
    pools = {
        "male": list(request.male_voices),
        "female": list(request.female_voices),
    }
    assignments = []
    for character in request.characters:
        pool = pools["female"] if character.gender == "female" else pools["male"]
        voice = pool.pop(0)
        assignments.append({
            "character_name": character.name,
            "voice_id": voice.id,
            "voice_name": voice.name,
            "reasoning": "fits"
        })
    return {"assignments": assignments, "validation": {"all_unique": True}}


def make_character(name, gender="unknown", role="supporting", session_id="s1", id=""):
    return Character(id=id or name.lower().replace(" ", "_"), session_id=session_id,
                     name=name, gender=gender, role=role)


@pytest.fixture
def catalog():
    """Narrator N, two male, two female and one neutral voice."""
    return VoiceCatalog([
        Voice(id=NARRATOR, name="Nigel", gender="male", style="warm"),
        Voice(id="M1", name="Marcus", gender="male", style="deep"),
        Voice(id="M2", name="Milo", gender="male", style="young"),
        Voice(id="F1", name="Fiona", gender="female", style="soft"),
        Voice(id="F2", name="Freya", gender="female", style="gentle"),
        Voice(id="X1", name="Sky", gender="neutral", style="calm"),
    ])


@pytest.fixture
def small_catalog():
    """Narrator N plus one male (M1) and one female (F1) voice."""
    return VoiceCatalog([
        Voice(id=NARRATOR, name="Nigel", gender="male"),
        Voice(id="M1", name="Marcus", gender="male"),
        Voice(id="F1", name="Fiona", gender="female"),
    ])


@pytest.fixture
def story_context():
    return StoryContext(genre="fantasy", mood="tense", audience="adult",
                        setting="a harbor town", themes=["loyalty"], synopsis="A storm is coming.")


@pytest.fixture
def store(tmp_path):
    store = AssignmentStore(tmp_path / "voicecast.db")
    asyncio.run(store.init())
    return store
