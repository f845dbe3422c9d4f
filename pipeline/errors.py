"""
Casting errors.

Every failure from the capacity check onward aborts the whole casting
operation for the scene. Callers branch on ``kind`` rather than on the
concrete class when they only need to know what went wrong.
"""

from enum import Enum
from typing import Dict, List, Optional


class ErrorKind(str, Enum):
    CAPACITY = "capacity"
    PROPOSER = "proposer"
    VALIDATION = "validation"
    COVERAGE = "coverage"


class CastingError(Exception):
    """Base class for fatal voice casting failures."""

    kind: ErrorKind

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self):
        return {
            "error": self.kind.value,
            "message": self.message,
            "details": self.details
        }


class CapacityError(CastingError):
    """Not enough gender-matched voices left for the requested cast."""

    kind = ErrorKind.CAPACITY

    def __init__(self, gender: str, characters: int, voices: int):
        message = (
            f"{characters} {gender} characters but only {voices} {gender.split('/')[0]} voices "
            f"available (excluding narrator and voices already in use). "
            f"Reduce the number of {gender} characters."
        )
        super().__init__(message, {"gender": gender, "characters": characters, "voices": voices})
        self.gender = gender
        self.characters = characters
        self.voices = voices


class ProposerError(CastingError):
    """The casting proposer returned nothing usable."""

    kind = ErrorKind.PROPOSER


class ValidationError(CastingError):
    """One or more assignment rules still fail after repair."""

    kind = ErrorKind.VALIDATION

    def __init__(self, errors: List[str]):
        message = "Voice assignment validation failed:\n- " + "\n- ".join(errors)
        super().__init__(message, {"errors": list(errors)})
        self.errors = list(errors)


class CoverageError(CastingError):
    """Dialogue speakers left without a bound voice after persistence."""

    kind = ErrorKind.COVERAGE

    def __init__(self, missing_speakers: List[str]):
        message = (
            f"The following speakers still have no voice assigned: "
            f"[{', '.join(missing_speakers)}]. Voice pool may be exhausted."
        )
        super().__init__(message, {"missing_speakers": list(missing_speakers)})
        self.missing_speakers = list(missing_speakers)
