"""
Speaker Reconciler - make sure every dialogue speaker is a tracked, voiced character

Called after scene generation returns its dialogue:

1. Match each speaker to an existing character (full name, then first name)
2. Create declared or undeclared minor characters for unmatched speakers
3. Cast voices for every character still lacking one
4. Re-read stored bindings and fail loud if any speaker is left uncovered

Steps 1-2 never fail the scene. From casting onward every failure raises, and
the caller must stop audio generation for the scene.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Union

from config import settings
from models.casting import (
    Character,
    DialogueEntry,
    QuickValidation,
    ReconcileResult,
    StoryContext,
    VoiceAssignment,
    first_name_key,
    name_key,
)
from pipeline.assignment_store import AssignmentStore
from pipeline.errors import CastingError, CoverageError
from pipeline.voice_assigner import VoiceAssigner

logger = logging.getLogger(__name__)

CREATED_BY = "speaker_reconciler"


@dataclass
class ReconcileOutcome:
    """Result-or-error wrapper for callers that prefer branching to catching."""
    result: Optional[ReconcileResult] = None
    error: Optional[CastingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def collect_speakers(dialogue: Iterable[DialogueEntry]) -> List[str]:
    """Distinct non-narrator speakers in order of first appearance."""
    speakers = {}
    for entry in dialogue:
        if not entry.speaker.strip() or entry.is_narrator:
            continue
        speakers.setdefault(name_key(entry.speaker), entry.speaker.strip())
    return list(speakers.values())


class SpeakerIndex:
    """
    Full-name and first-name lookup over characters.

    A first name is indexed only when no character carries it as a full name,
    and the first character to claim it keeps it.
    """

    def __init__(self, characters: Iterable[Character] = ()):
        self.full_names: Dict[str, Character] = {}
        self.first_names: Dict[str, Character] = {}
        for character in characters:
            self.add(character)

    def add(self, character: Character):
        self.full_names.setdefault(character.key, character)
        first = character.first_name
        if first and first != character.key and first not in self.full_names:
            self.first_names.setdefault(first, character)

    def match(self, speaker: str) -> Optional[Character]:
        key = name_key(speaker)
        return self.full_names.get(key) or self.first_names.get(key)


def build_coverage_index(assignments: Iterable[VoiceAssignment]) -> Dict[str, str]:
    """Speaker key -> voice_id over stored bindings; full names win over first names."""
    assignments = list(assignments)
    coverage = {}
    for assignment in assignments:
        coverage.setdefault(name_key(assignment.character_name), assignment.voice_id)
    for assignment in assignments:
        first = first_name_key(assignment.character_name)
        if first:
            coverage.setdefault(first, assignment.voice_id)
    return coverage


def _match_declared(speaker: str, declared: List[Character]) -> Optional[Character]:
    key = name_key(speaker)
    for character in declared:
        if character.key == key:
            return character
    for character in declared:
        if character.first_name == key:
            return character
    return None


def _as_dialogue(entries) -> List[DialogueEntry]:
    return [e if isinstance(e, DialogueEntry) else DialogueEntry.from_dict(e) for e in entries or []]


def _as_characters(characters, session_id: str, default_role: str) -> List[Character]:
    result = []
    for c in characters or []:
        if isinstance(c, Character):
            result.append(c)
        else:
            result.append(Character.from_dict({"role": default_role, **c}, session_id))
    return result


class SpeakerReconciler:
    """Resolve dialogue speakers to characters and guarantee each has a voice."""

    def __init__(self, store: AssignmentStore, assigner: VoiceAssigner):
        self.store = store
        self.assigner = assigner

    async def reconcile(
        self,
        session_id: str,
        dialogue: List[Union[DialogueEntry, Dict]],
        declared_new_characters: Optional[List[Union[Character, Dict]]] = None,
        existing_characters: Optional[List[Union[Character, Dict]]] = None,
        story_context: Optional[Union[StoryContext, Dict]] = None,
        narrator_voice_id: Optional[str] = None
    ) -> ReconcileResult:
        """
        Returns:
            ReconcileResult with the dialogue (character ids filled in), the
            characters created for this scene and the session's speaker -> voice map.

        Raises:
            CapacityError, ProposerError, ValidationError, CoverageError
        """
        dialogue = _as_dialogue(dialogue)
        declared = _as_characters(declared_new_characters, session_id, "minor")
        if not isinstance(story_context, StoryContext):
            story_context = StoryContext.from_dict(story_context)
        narrator_voice_id = narrator_voice_id or settings.default_narrator_voice_id

        logger.info(
            f"Validating speakers for session {session_id}: {len(dialogue)} dialogue entries, "
            f"{len(declared)} declared new characters"
        )

        if not dialogue:
            logger.info("No dialogue to validate - returning empty result")
            return ReconcileResult(validated_dialogue=[], created_characters=[], voice_assignments={})

        if existing_characters is None:
            existing = await self.store.get_characters(session_id)
        else:
            existing = _as_characters(existing_characters, session_id, "supporting")

        speakers = collect_speakers(dialogue)
        index = SpeakerIndex(existing)
        logger.info(f"Unique speakers in dialogue: {', '.join(speakers) or 'none'}")

        resolved: Dict[str, Character] = {}
        unknown = []
        for speaker in speakers:
            character = index.match(speaker)
            if character is None:
                unknown.append(speaker)
                continue
            resolved[name_key(speaker)] = character
            if character.key != name_key(speaker):
                logger.info(f"First-name match: \"{speaker}\" -> \"{character.name}\"")

        logger.info(f"Known speakers: {len(resolved)}, unknown speakers: {', '.join(unknown) or 'none'}")

        to_create: Dict[str, Character] = {}
        speaker_templates: Dict[str, str] = {}
        undeclared = []
        for speaker in unknown:
            template = _match_declared(speaker, declared)
            if template is None:
                undeclared.append(speaker)
                template = Character(
                    id="",
                    session_id=session_id,
                    name=speaker,
                    gender="unknown",
                    role="minor",
                    description=f"Minor character introduced in scene: {speaker}"
                )
            else:
                logger.info(f"Will create declared character: {template.name} ({template.gender})")
            to_create.setdefault(template.key, template)
            speaker_templates[name_key(speaker)] = template.key

        if undeclared:
            logger.warning(f"Auto-creating {len(undeclared)} undeclared speakers: [{', '.join(undeclared)}]")

        created: List[Character] = []
        created_by_key: Dict[str, Character] = {}
        for key, template in to_create.items():
            row = await self.store.insert_character(
                session_id,
                template.name,
                gender=template.gender,
                role=template.role or "minor",
                description=template.description or f"Minor character: {template.name}",
                traits={**template.traits, "scene_introduced": True},
                age_group=template.age_group,
                created_by=CREATED_BY
            )
            created.append(row)
            created_by_key[key] = row
            logger.info(f"Created minor character: {row.name} (ID: {row.id})")

        for speaker_key, template_key in speaker_templates.items():
            resolved[speaker_key] = created_by_key[template_key]

        stored = await self._cast_missing_voices(session_id, existing + created, story_context, narrator_voice_id)

        coverage = build_coverage_index(await self.store.get_voice_assignments(session_id))
        missing = [s for s in speakers if name_key(s) not in coverage]
        if missing:
            error = CoverageError(missing)
            logger.error(f"Speaker validation failed: {error}")
            raise error

        validated = [
            entry if entry.is_narrator or name_key(entry.speaker) not in resolved
            else replace(entry, character_id=self._character_id(resolved[name_key(entry.speaker)], stored))
            for entry in dialogue
        ]

        logger.info(
            f"Validation complete for session {session_id} - all {len(speakers)} speakers have voices, "
            f"{len(created)} characters created"
        )
        return ReconcileResult(
            validated_dialogue=validated,
            created_characters=created,
            voice_assignments=coverage
        )

    async def _cast_missing_voices(
        self,
        session_id: str,
        characters: List[Character],
        story_context: StoryContext,
        narrator_voice_id: str
    ) -> Dict[str, Character]:
        """
        Cast and persist voices for every listed character without a binding.
        Returns the session's stored characters by name key.
        """
        stored = {c.key: c for c in await self.store.get_characters(session_id)}

        needing: Dict[str, Character] = {}
        for character in characters:
            row = stored.get(character.key)
            if row is None:
                logger.warning(f"Character {character.name} is not stored for session {session_id} - adding it")
                row = await self.store.insert_character(
                    session_id,
                    character.name,
                    gender=character.gender,
                    role=character.role,
                    description=character.description,
                    traits=character.traits,
                    age_group=character.age_group,
                    created_by=character.created_by
                )
                stored[row.key] = row
            if not row.voice_id:
                needing.setdefault(row.key, row)

        if not needing:
            return stored

        logger.info(f"Assigning voices to {len(needing)} characters: {', '.join(c.name for c in needing.values())}")
        bound_voices = {c.voice_id for c in stored.values() if c.voice_id}
        voice_map = await self.assigner.assign_voices(
            list(needing.values()),
            story_context,
            narrator_voice_id,
            excluded=bound_voices,
            session_id=session_id
        )

        bindings = {c.id: voice_map[key] for key, c in needing.items() if key in voice_map}
        await self.store.save_voice_assignments(session_id, bindings)
        for key, character in needing.items():
            if key in voice_map:
                logger.info(f"Assigned voice {voice_map[key]} to {character.name}")
        return stored

    @staticmethod
    def _character_id(character: Character, stored: Dict[str, Character]) -> str:
        row = stored.get(character.key)
        return row.id if row else character.id

    async def try_reconcile(self, *args, **kwargs) -> ReconcileOutcome:
        """Like reconcile(), but casting failures come back as ``outcome.error``."""
        try:
            return ReconcileOutcome(result=await self.reconcile(*args, **kwargs))
        except CastingError as e:
            return ReconcileOutcome(error=e)

    async def quick_validate(self, session_id: str, dialogue: List[Union[DialogueEntry, Dict]]) -> QuickValidation:
        """
        Read-only pre-flight: does every speaker already have a stored voice?
        Nothing is created or repaired.
        """
        speakers = collect_speakers(_as_dialogue(dialogue))
        if not speakers:
            return QuickValidation(valid=True, missing_speakers=[])

        coverage = build_coverage_index(await self.store.get_voice_assignments(session_id))
        missing = [s for s in speakers if name_key(s) not in coverage]
        return QuickValidation(valid=not missing, missing_speakers=missing)
