"""Casting Proposer Base Interface"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from models.casting import Character, StoryContext, Voice


@dataclass
class CastingRequest:
    characters: List[Character]
    story_context: StoryContext
    narrator_voice_id: str
    narrator_voice: Optional[Voice] = None
    male_voices: List[Voice] = field(default_factory=list)
    female_voices: List[Voice] = field(default_factory=list)
    neutral_voices: List[Voice] = field(default_factory=list)
    session_id: Optional[str] = None

    @property
    def voices(self) -> List[Voice]:
        return self.male_voices + self.female_voices + self.neutral_voices


class CastingProposer(ABC):
    """Base interface for every model that proposes a cast."""

    name = "base"

    @abstractmethod
    async def propose(self, request: CastingRequest) -> str:
        """
        Return the raw JSON document produced by the model.

        Raises:
            ProposerError: on timeout, transport failure, bad status or empty content.
        """
        pass
