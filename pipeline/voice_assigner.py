"""
Voice Assigner - Cast unique voices for a batch of characters
Capacity check -> proposer -> repair -> validation. There is no fallback voice:
any step that cannot produce a valid cast raises and the batch is abandoned.
"""

import asyncio
import json
import logging
from typing import Dict, Iterable, List, Optional, Union

from adapters.base import CastingProposer, CastingRequest
from config import settings
from models.casting import Candidate, Character, StoryContext, name_key
from pipeline.capacity import check_capacity
from pipeline.errors import ProposerError
from pipeline.repair import run_repairs
from pipeline.validation import validate_assignments
from pipeline.voice_catalog import VoiceCatalog

logger = logging.getLogger(__name__)


def _extract_json(text: str) -> Optional[Dict]:
    """Salvage a JSON object wrapped in prose or code fences."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        return json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        return None


def parse_proposal(content: Union[str, Dict, None]) -> List[Candidate]:
    """
    Turn the proposer's document into candidates.

    Raises:
        ProposerError: for empty content, unparsable JSON, an ``error`` field,
            a missing/empty ``assignments`` list or malformed rows.
    """
    if isinstance(content, dict):
        document = content
    else:
        if not content or not content.strip():
            raise ProposerError("Empty response from casting proposer")
        try:
            document = json.loads(content)
        except json.JSONDecodeError:
            document = _extract_json(content)
            if document is None:
                raise ProposerError(
                    "Casting proposer returned unparsable JSON",
                    {"content": content[:500]}
                )

    if not isinstance(document, dict):
        raise ProposerError("Casting proposer returned a non-object document")

    if document.get("error"):
        raise ProposerError(f"Casting proposer declined: {document['error']}", {"error": document["error"]})

    rows = document.get("assignments")
    if not isinstance(rows, list) or not rows:
        raise ProposerError("Casting proposer returned no assignments")

    candidates = []
    for row in rows:
        if not isinstance(row, dict) or not str(row.get("character_name") or "").strip():
            raise ProposerError(f"Malformed assignment row: {row!r}")
        candidates.append(Candidate(
            character_name=str(row["character_name"]).strip(),
            voice_id=str(row.get("voice_id") or "").strip(),
            voice_name=str(row.get("voice_name") or ""),
            reasoning=str(row.get("reasoning") or "")
        ))

    self_check = document.get("validation")
    if isinstance(self_check, dict) and not all(self_check.values()):
        logger.warning(f"Proposer flagged its own assignment: {self_check}")

    return candidates


class VoiceAssigner:
    """
    Assign catalog voices to characters through an untrusted proposer.
    """

    def __init__(
        self,
        proposer: CastingProposer,
        catalog: Optional[VoiceCatalog] = None,
        strict_gender: Optional[bool] = None,
        timeout: Optional[float] = None
    ):
        self.proposer = proposer
        self.catalog = catalog or VoiceCatalog.default()
        self.strict_gender = settings.strict_gender_match if strict_gender is None else strict_gender
        self.timeout = settings.proposer_timeout if timeout is None else timeout

    def get_available_voices(self) -> List[Dict]:
        """Return list of all catalog voices."""
        return self.catalog.to_list()

    async def assign_voices(
        self,
        characters: List[Character],
        story_context: StoryContext,
        narrator_voice_id: str,
        excluded: Iterable[str] = (),
        session_id: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Cast one unique voice per character.

        Args:
            characters: characters that still need a voice
            story_context: genre, mood, audience, setting, themes, synopsis
            narrator_voice_id: reserved voice, never assigned to a character
            excluded: voices already bound elsewhere in the session

        Returns:
            Dict of lowercased character name -> voice_id

        Raises:
            CapacityError, ProposerError, ValidationError
        """
        if not characters:
            logger.warning("No characters provided for voice assignment")
            return {}

        excluded = set(excluded) - {narrator_voice_id}
        reserved = excluded | {narrator_voice_id}

        logger.info(f"Starting voice assignment for {len(characters)} characters (session {session_id})")
        logger.info(
            f"Story context: genre={story_context.genre}, mood={story_context.mood}, "
            f"audience={story_context.audience}"
        )
        if excluded:
            logger.info(f"Excluding {len(excluded)} already-assigned voices from pool")

        check_capacity(characters, self.catalog, narrator_voice_id, excluded)

        request = CastingRequest(
            characters=characters,
            story_context=story_context,
            narrator_voice_id=narrator_voice_id,
            narrator_voice=self.catalog.get(narrator_voice_id),
            male_voices=self.catalog.by_gender("male", reserved),
            female_voices=self.catalog.by_gender("female", reserved),
            neutral_voices=self.catalog.by_gender("neutral", reserved),
            session_id=session_id
        )

        try:
            content = await asyncio.wait_for(self.proposer.propose(request), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Casting proposer timed out after {self.timeout}s")
            raise ProposerError(f"Casting proposer timed out after {self.timeout}s") from e
        except ProposerError as e:
            logger.error(f"Casting proposer failed: {e}")
            raise
        except Exception as e:
            logger.error(f"Casting proposer {self.proposer.name} failed: {type(e).__name__}: {e}")
            raise ProposerError(f"Casting proposer failed: {type(e).__name__}: {e}") from e

        if isinstance(content, str):
            logger.info(f"Raw proposer response (first 500 chars): {content[:500]}")

        candidates = parse_proposal(content)
        candidates = run_repairs(
            candidates, self.catalog, narrator_voice_id, excluded,
            character_genders={c.key: c.gender for c in characters}
        )
        validate_assignments(
            candidates, characters, self.catalog, narrator_voice_id,
            excluded=excluded, strict_gender=self.strict_gender
        )

        voice_map = {}
        for candidate in candidates:
            voice_map[name_key(candidate.character_name)] = candidate.voice_id
            logger.info(
                f"{candidate.character_name} -> {self.catalog.voice_name(candidate.voice_id)} "
                f"({candidate.voice_id}): {candidate.reasoning}"
            )

        logger.info(f"Successfully assigned {len(voice_map)} unique voices")
        return voice_map
