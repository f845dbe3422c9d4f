"""
Capacity Checker - refuse casts that cannot have a unique gender-matched assignment
Runs before the proposer is called so impossible requests never reach the model.
"""

import logging
from typing import Iterable, List

from models.casting import CapacityReport, Character
from pipeline.errors import CapacityError
from pipeline.voice_catalog import VoiceCatalog

logger = logging.getLogger(__name__)


def check_capacity(
    characters: List[Character],
    catalog: VoiceCatalog,
    narrator_voice_id: str,
    excluded: Iterable[str] = ()
) -> CapacityReport:
    """
    Compare the cast's gender mix with the voices left in the pool.

    Characters of unknown gender are counted against male voices.
    Neutral voices do not count toward either side.

    Raises:
        CapacityError: with exact counts when either side is short.
    """
    excluded_set = set(excluded) | {narrator_voice_id}

    female_characters = [c for c in characters if c.gender == "female"]
    male_or_unknown = [c for c in characters if c.gender != "female"]
    female_voices = catalog.by_gender("female", excluded_set)
    male_voices = catalog.by_gender("male", excluded_set)

    report = CapacityReport(
        male_or_unknown_characters=len(male_or_unknown),
        female_characters=len(female_characters),
        male_voices=len(male_voices),
        female_voices=len(female_voices)
    )

    logger.info(
        f"Character breakdown: {report.male_or_unknown_characters} male/unknown, "
        f"{report.female_characters} female"
    )
    logger.info(
        f"Available voices: {report.male_voices} male, {report.female_voices} female "
        f"({len(excluded_set)} excluded incl. narrator)"
    )

    if report.female_characters > report.female_voices:
        logger.error(
            f"Capacity check failed: {report.female_characters} female characters, "
            f"{report.female_voices} female voices"
        )
        raise CapacityError("female", report.female_characters, report.female_voices)

    if report.male_or_unknown_characters > report.male_voices:
        logger.error(
            f"Capacity check failed: {report.male_or_unknown_characters} male/unknown characters, "
            f"{report.male_voices} male voices"
        )
        raise CapacityError("male/unknown", report.male_or_unknown_characters, report.male_voices)

    return report
