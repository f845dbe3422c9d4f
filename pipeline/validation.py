"""
Validation Gate - final authority on a proposed cast
All rules are evaluated and reported together; nothing is partially accepted.
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional

from config import settings
from models.casting import Candidate, Character, IntegrityReport, name_key
from pipeline.errors import ValidationError
from pipeline.voice_catalog import VoiceCatalog

logger = logging.getLogger(__name__)


def collect_violations(
    candidates: List[Candidate],
    characters: List[Character],
    catalog: VoiceCatalog,
    narrator_voice_id: str,
    excluded: Iterable[str] = (),
    strict_gender: Optional[bool] = None
) -> List[str]:
    """Return every rule the candidates break, in rule order."""
    if strict_gender is None:
        strict_gender = settings.strict_gender_match
    in_use = set(excluded) - {narrator_voice_id}
    errors = []

    if len(candidates) != len(characters):
        errors.append(f"Expected {len(characters)} assignments, got {len(candidates)}")

    requested = {c.key: c for c in characters}
    named = Counter(name_key(c.character_name) for c in candidates)
    for character in characters:
        if named[character.key] == 0:
            errors.append(f"No voice assigned to character \"{character.name}\"")
        elif named[character.key] > 1:
            errors.append(f"Character \"{character.name}\" has {named[character.key]} assignments")
    for candidate in candidates:
        if name_key(candidate.character_name) not in requested:
            errors.append(f"Assignment for unrequested character \"{candidate.character_name}\"")

    seen = set()
    for candidate in candidates:
        if candidate.voice_id in seen:
            errors.append(
                f"Duplicate voice assignment: {candidate.voice_id} ({candidate.voice_name}) "
                f"assigned to multiple characters"
            )
        seen.add(candidate.voice_id)

    for candidate in candidates:
        if candidate.voice_id == narrator_voice_id:
            errors.append(
                f"Narrator voice assigned to character \"{candidate.character_name}\" - this is not allowed"
            )

    for candidate in candidates:
        if candidate.voice_id in in_use:
            errors.append(
                f"Voice {candidate.voice_id} for \"{candidate.character_name}\" "
                f"is already bound to another character in this session"
            )

    for candidate in candidates:
        if candidate.voice_id not in catalog:
            errors.append(
                f"Invalid voice_id \"{candidate.voice_id}\" for character \"{candidate.character_name}\""
            )

    for candidate in candidates:
        character = requested.get(name_key(candidate.character_name))
        voice = catalog.get(candidate.voice_id)
        if not character or not voice or character.gender == "unknown":
            continue
        if character.gender != voice.gender:
            message = (
                f"Gender mismatch: {character.name} ({character.gender}) "
                f"assigned {voice.name} ({voice.gender})"
            )
            if strict_gender:
                errors.append(message)
            else:
                logger.warning(message)

    return errors


def validate_assignments(
    candidates: List[Candidate],
    characters: List[Character],
    catalog: VoiceCatalog,
    narrator_voice_id: str,
    excluded: Iterable[str] = (),
    strict_gender: Optional[bool] = None
) -> None:
    """
    Raises:
        ValidationError: listing every violated rule.
    """
    errors = collect_violations(
        candidates, characters, catalog, narrator_voice_id, excluded, strict_gender
    )
    if errors:
        logger.error(f"Voice assignment validation failed with {len(errors)} errors")
        for error in errors:
            logger.error(f"  - {error}")
        raise ValidationError(errors)


def validate_existing_assignments(character_voices: Dict[str, str], narrator_voice_id: str) -> IntegrityReport:
    """
    Check stored character -> voice bindings before they are used for audio.

    Args:
        character_voices: character name -> voice_id
        narrator_voice_id: the session's narrator voice
    """
    errors = []
    voice_ids = [v for v in character_voices.values() if v]

    duplicates = sorted(v for v, count in Counter(voice_ids).items() if count > 1)
    if duplicates:
        errors.append(f"Duplicate voice assignments detected: {', '.join(duplicates)}")

    for name, voice_id in character_voices.items():
        if voice_id and voice_id == narrator_voice_id:
            errors.append(f"Character \"{name}\" has same voice as narrator")

    for name, voice_id in character_voices.items():
        if not voice_id:
            errors.append(f"Character \"{name}\" has no voice")

    return IntegrityReport(valid=not errors, errors=errors)
