"""
Data Models for VoiceCast
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

CHARACTER_GENDERS = ("male", "female", "unknown")
VOICE_GENDERS = ("male", "female", "neutral")
NARRATOR_SPEAKER = "narrator"


def normalize_gender(value: Optional[str]) -> str:
    """Map free-text gender to male, female or unknown."""
    gender = (value or "").strip().lower()
    return gender if gender in CHARACTER_GENDERS else "unknown"


def name_key(name: str) -> str:
    """Case-insensitive key used for every name comparison."""
    return " ".join((name or "").split()).lower()


def first_name_key(name: str) -> str:
    key = name_key(name)
    return key.split(" ")[0] if key else ""


def parse_traits(raw) -> Dict:
    """
    Parse a character's stored traits.

    Accepts a dict, a list of trait words, a JSON string of either,
    or a plain comma-separated string like "calm, wise, bold".
    """
    if not raw:
        return {}
    parsed = raw
    if isinstance(parsed, str):
        try:
            parsed = json.loads(parsed)
        except json.JSONDecodeError:
            return {"traits": [t.strip() for t in raw.split(",") if t.strip()]}
    if isinstance(parsed, list):
        return {"traits": parsed}
    if isinstance(parsed, dict):
        return parsed
    logger.warning(f"Ignoring unsupported traits value: {raw!r}")
    return {}


@dataclass(frozen=True)
class Voice:
    """Synthetic voice from the catalog."""
    id: str
    name: str
    gender: str  # male, female, neutral
    style: str = ""
    category: str = ""
    description: str = ""
    suitable_for: Tuple[str, ...] = ()
    age_group: str = "adult"
    suitable_ages: Tuple[str, ...] = ()
    can_be_child: bool = False

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "gender": self.gender,
            "style": self.style,
            "category": self.category,
            "description": self.description,
            "suitable_for": list(self.suitable_for),
            "age_group": self.age_group,
            "suitable_ages": list(self.suitable_ages),
            "can_be_child": self.can_be_child
        }


@dataclass
class Character:
    """Character tracked within a story session."""
    id: str
    session_id: str
    name: str
    gender: str = "unknown"  # male, female, unknown
    role: str = "supporting"
    description: str = ""
    traits: Dict = field(default_factory=dict)
    age_group: Optional[str] = None
    created_by: Optional[str] = None
    voice_id: Optional[str] = None

    def __post_init__(self):
        self.gender = normalize_gender(self.gender)

    @property
    def key(self) -> str:
        return name_key(self.name)

    @property
    def first_name(self) -> str:
        return first_name_key(self.name)

    @property
    def age(self) -> str:
        return self.age_group or self.traits.get("age") or "adult"

    @property
    def personality(self) -> List:
        value = self.traits.get("personality") or self.traits.get("traits") or []
        return value if isinstance(value, list) else [value]

    @classmethod
    def from_dict(cls, data: Dict, session_id: str = ""):
        return cls(
            id=str(data.get("id") or ""),
            session_id=str(data.get("session_id") or session_id),
            name=str(data.get("name") or "").strip(),
            gender=data.get("gender"),
            role=data.get("role") or "supporting",
            description=data.get("description") or "",
            traits=parse_traits(data.get("traits") or data.get("traits_json")),
            age_group=data.get("age_group"),
            created_by=data.get("created_by"),
            voice_id=data.get("voice_id")
        )

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "name": self.name,
            "gender": self.gender,
            "role": self.role,
            "description": self.description,
            "traits": self.traits,
            "age_group": self.age_group,
            "created_by": self.created_by,
            "voice_id": self.voice_id
        }


@dataclass
class DialogueEntry:
    """One utterance from generated scene dialogue."""
    speaker: str
    text: str = ""
    emotion: Optional[str] = None
    delivery: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None
    character_id: Optional[str] = None

    @property
    def is_narrator(self) -> bool:
        return name_key(self.speaker) == NARRATOR_SPEAKER

    @classmethod
    def from_dict(cls, data: Dict):
        return cls(
            speaker=str(data.get("speaker") or ""),
            text=data.get("text") or data.get("quote") or "",
            emotion=data.get("emotion"),
            delivery=data.get("delivery"),
            start=data.get("start"),
            end=data.get("end"),
            character_id=data.get("character_id")
        )

    def to_dict(self):
        return {
            "speaker": self.speaker,
            "text": self.text,
            "emotion": self.emotion,
            "delivery": self.delivery,
            "start": self.start,
            "end": self.end,
            "character_id": self.character_id
        }


@dataclass
class StoryContext:
    """Story-level hints handed to the casting proposer."""
    genre: Optional[str] = None
    mood: Optional[str] = None
    audience: Optional[str] = None
    setting: Optional[str] = None
    themes: List[str] = field(default_factory=list)
    synopsis: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict]):
        data = data or {}
        themes = data.get("themes") or []
        if isinstance(themes, str):
            themes = [t.strip() for t in themes.split(",") if t.strip()]
        return cls(
            genre=data.get("genre"),
            mood=data.get("mood"),
            audience=data.get("audience"),
            setting=data.get("setting"),
            themes=list(themes),
            synopsis=data.get("synopsis")
        )

    def to_dict(self):
        return {
            "genre": self.genre,
            "mood": self.mood,
            "audience": self.audience,
            "setting": self.setting,
            "themes": self.themes,
            "synopsis": self.synopsis
        }


@dataclass(frozen=True)
class Candidate:
    """One proposed character -> voice row, threaded through the repair passes."""
    character_name: str
    voice_id: str
    voice_name: str = ""
    reasoning: str = ""
    original_voice_id: Optional[str] = None
    repairs: Tuple[str, ...] = ()

    @property
    def repaired(self) -> bool:
        return bool(self.repairs)

    def resolved_to(self, voice: Voice, repair: str) -> "Candidate":
        return replace(
            self,
            voice_id=voice.id,
            voice_name=voice.name,
            original_voice_id=self.original_voice_id or self.voice_id,
            repairs=self.repairs + (repair,)
        )

    def reassigned_to(self, voice: Voice, repair: str, note: str) -> "Candidate":
        return replace(
            self.resolved_to(voice, repair),
            reasoning=f"({note}) {self.reasoning}".strip()
        )

    def to_dict(self):
        return {
            "character_name": self.character_name,
            "voice_id": self.voice_id,
            "voice_name": self.voice_name,
            "reasoning": self.reasoning,
            "original_voice_id": self.original_voice_id,
            "repairs": list(self.repairs)
        }


@dataclass
class VoiceAssignment:
    """Stored character -> voice binding."""
    session_id: str
    character_id: str
    character_name: str
    voice_id: str

    def to_dict(self):
        return {
            "session_id": self.session_id,
            "character_id": self.character_id,
            "character_name": self.character_name,
            "voice_id": self.voice_id
        }


@dataclass
class CapacityReport:
    male_or_unknown_characters: int
    female_characters: int
    male_voices: int
    female_voices: int


@dataclass
class ReconcileResult:
    validated_dialogue: List[DialogueEntry]
    created_characters: List[Character]
    voice_assignments: Dict[str, str]  # lowercased full/first name -> voice_id

    def to_dict(self):
        return {
            "validated_dialogue": [d.to_dict() for d in self.validated_dialogue],
            "created_characters": [c.to_dict() for c in self.created_characters],
            "voice_assignments": self.voice_assignments
        }


@dataclass
class QuickValidation:
    valid: bool
    missing_speakers: List[str]

    def to_dict(self):
        return {"valid": self.valid, "missing_speakers": self.missing_speakers}


@dataclass
class IntegrityReport:
    valid: bool
    errors: List[str]

    def to_dict(self):
        return {"valid": self.valid, "errors": self.errors}
