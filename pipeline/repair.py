"""
Repair Pipeline - deterministic fixes for proposer mistakes
Passes run in a fixed order: identifier resolution, duplicate repair,
reserved-voice (narrator / already bound) repair. Each pass returns a new list.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional

from models.casting import Candidate, Voice, name_key
from pipeline.voice_catalog import VoiceCatalog

logger = logging.getLogger(__name__)

# "Gigi (jBpfuIE2acCO8z3wKNLl)" -> "jBpfuIE2acCO8z3wKNLl"
TRAILING_ID_PATTERN = re.compile(r"\(([A-Za-z0-9]+)\)\s*$")

REPAIR_IDENTIFIER = "identifier"
REPAIR_DUPLICATE = "duplicate"
REPAIR_NARRATOR = "narrator"
REPAIR_IN_USE = "in_use"


def _resolve_voice(raw: str, catalog: VoiceCatalog) -> Optional[Voice]:
    """Try each identifier strategy in turn; first hit wins."""
    stripped = raw.strip()
    if stripped in catalog:
        return catalog.get(stripped)

    match = TRAILING_ID_PATTERN.search(stripped)
    if match and match.group(1) in catalog:
        return catalog.get(match.group(1))

    voice = catalog.find_by_name(stripped)
    if voice:
        return voice

    name_part = stripped.split("(")[0].strip()
    if name_part:
        return catalog.find_by_name(name_part)
    return None


def resolve_identifiers(candidates: List[Candidate], catalog: VoiceCatalog) -> List[Candidate]:
    """
    Map display names and "Name (id)" strings back to catalog ids.

    Candidates already holding a catalog id are returned untouched, so the
    pass is idempotent. Unresolvable ids are left for validation to reject.
    """
    resolved = []
    for candidate in candidates:
        if candidate.voice_id in catalog:
            resolved.append(candidate)
            continue

        voice = _resolve_voice(candidate.voice_id or "", catalog)
        if voice is None:
            logger.warning(
                f"Could not resolve voice '{candidate.voice_id}' for {candidate.character_name}"
            )
            resolved.append(candidate)
            continue

        logger.warning(
            f"Resolved voice '{candidate.voice_id}' to id '{voice.id}' for {candidate.character_name}"
        )
        resolved.append(candidate.resolved_to(voice, REPAIR_IDENTIFIER))
    return resolved


def _take_voice(pool: List[Voice], preferred_gender: Optional[str]) -> Optional[Voice]:
    """Pop a same-gender voice from the pool, else any voice, else None."""
    if preferred_gender:
        for index, voice in enumerate(pool):
            if voice.gender == preferred_gender:
                return pool.pop(index)
    if pool:
        return pool.pop(0)
    return None


def _preferred_gender(
    candidate: Candidate,
    original: Optional[Voice],
    character_genders: Optional[Dict[str, str]]
) -> Optional[str]:
    """The character's own gender when known, else the gender of the voice being replaced."""
    gender = (character_genders or {}).get(name_key(candidate.character_name))
    if gender in ("male", "female"):
        return gender
    return original.gender if original else None


def repair_duplicates(
    candidates: List[Candidate],
    catalog: VoiceCatalog,
    narrator_voice_id: str,
    excluded: Iterable[str] = (),
    character_genders: Optional[Dict[str, str]] = None
) -> List[Candidate]:
    """
    Reassign every repeated voice after its first occurrence.

    Replacements come from voices nobody claimed, preferring the character's
    gender (from ``character_genders``, keyed by name key), else the gender
    of the voice being replaced. When the pool is empty the duplicate stays.
    """
    claimed = set()
    duplicates = []
    for index, candidate in enumerate(candidates):
        if candidate.voice_id in claimed:
            duplicates.append(index)
        else:
            claimed.add(candidate.voice_id)

    if not duplicates:
        return list(candidates)

    logger.warning(f"Found {len(duplicates)} duplicate voice assignments - auto-repairing")

    pool = catalog.available(claimed | {narrator_voice_id} | set(excluded))
    repaired = list(candidates)
    for index in duplicates:
        candidate = repaired[index]
        original = catalog.get(candidate.voice_id)
        voice = _take_voice(pool, _preferred_gender(candidate, original, character_genders))
        if voice is None:
            logger.error(
                f"Cannot repair duplicate for {candidate.character_name} - no more voices available"
            )
            continue
        logger.info(
            f"Reassigned {candidate.character_name} from "
            f"{original.name if original else candidate.voice_id} to {voice.name}"
        )
        repaired[index] = candidate.reassigned_to(
            voice, REPAIR_DUPLICATE, "auto-reassigned to avoid duplicate"
        )
    return repaired


def repair_reserved_conflicts(
    candidates: List[Candidate],
    catalog: VoiceCatalog,
    narrator_voice_id: str,
    excluded: Iterable[str] = (),
    character_genders: Optional[Dict[str, str]] = None
) -> List[Candidate]:
    """
    Move characters off the narrator's voice and off voices already bound
    to other characters in the session.
    """
    in_use = set(excluded) - {narrator_voice_id}
    conflicts = [
        index for index, candidate in enumerate(candidates)
        if candidate.voice_id == narrator_voice_id or candidate.voice_id in in_use
    ]
    if not conflicts:
        return list(candidates)

    claimed = {c.voice_id for c in candidates}
    pool = catalog.available(claimed | in_use | {narrator_voice_id})
    repaired = list(candidates)
    for index in conflicts:
        candidate = repaired[index]
        original = catalog.get(candidate.voice_id)
        if candidate.voice_id == narrator_voice_id:
            repair, note = REPAIR_NARRATOR, "auto-reassigned to avoid narrator voice"
        else:
            repair, note = REPAIR_IN_USE, "auto-reassigned to avoid voice already in use"

        voice = _take_voice(pool, _preferred_gender(candidate, original, character_genders))
        if voice is None:
            logger.error(
                f"Cannot move {candidate.character_name} off reserved voice "
                f"{candidate.voice_id} - no more voices available"
            )
            continue
        logger.warning(
            f"{candidate.character_name} was given reserved voice {candidate.voice_id}; "
            f"reassigned to {voice.name}"
        )
        repaired[index] = candidate.reassigned_to(voice, repair, note)
    return repaired


def run_repairs(
    candidates: List[Candidate],
    catalog: VoiceCatalog,
    narrator_voice_id: str,
    excluded: Iterable[str] = (),
    character_genders: Optional[Dict[str, str]] = None
) -> List[Candidate]:
    """Apply all repair passes in order."""
    excluded = set(excluded)
    candidates = resolve_identifiers(candidates, catalog)
    candidates = repair_duplicates(candidates, catalog, narrator_voice_id, excluded, character_genders)
    candidates = repair_reserved_conflicts(
        candidates, catalog, narrator_voice_id, excluded, character_genders
    )
    repaired = sum(1 for c in candidates if c.repaired)
    if repaired:
        logger.info(f"Repair pipeline touched {repaired} of {len(candidates)} assignments")
    return candidates
