"""
Voice Catalog - Registry of synthetic voices available for casting
Reference data only; the narrator's voice lives here too and is excluded per session.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional

from models.casting import Voice

logger = logging.getLogger(__name__)


# ElevenLabs premade voices, grouped by category
AVAILABLE_VOICES = {
    "male_narrators": [
        {"id": "JBFqnCBsd6RMkjVDRZzb", "name": "George", "gender": "male", "style": "warm", "description": "Warm British narrator, perfect for classic tales", "age_group": "middle_aged", "suitable_ages": ["adult", "middle_aged", "elderly"]},
        {"id": "onwK4e9ZLuTAKqWW03F9", "name": "Daniel", "gender": "male", "style": "authoritative", "description": "Deep authoritative British accent", "age_group": "adult", "suitable_ages": ["adult", "middle_aged", "elderly"]},
        {"id": "N2lVS1w4EtoT3dr4eOWO", "name": "Callum", "gender": "male", "style": "gravelly", "description": "Gravelly Transatlantic, great for D&D", "age_group": "adult", "suitable_ages": ["adult", "middle_aged"]},
        {"id": "TxGEqnHWrfWFTfGW9XjX", "name": "Josh", "gender": "male", "style": "deep", "description": "Deep American male", "age_group": "adult", "suitable_ages": ["adult", "middle_aged"]},
        {"id": "VR6AewLTigWG4xSOukaG", "name": "Arnold", "gender": "male", "style": "crisp", "description": "Crisp American narrator", "age_group": "adult", "suitable_ages": ["young_adult", "adult", "middle_aged"]},
        {"id": "pNInz6obpgDQGcFmaJgB", "name": "Adam", "gender": "male", "style": "middle", "description": "Deep middle-aged American", "age_group": "middle_aged", "suitable_ages": ["adult", "middle_aged", "elderly"]},
        {"id": "yoZ06aMxZJJ28mfd3POQ", "name": "Sam", "gender": "male", "style": "raspy", "description": "Raspy American, great for mystery", "age_group": "adult", "suitable_ages": ["adult", "middle_aged", "elderly"]},
    ],
    "female_narrators": [
        {"id": "EXAVITQu4vr4xnSDxMaL", "name": "Bella", "gender": "female", "style": "soft", "description": "Soft American female, ideal for calm stories", "age_group": "adult", "suitable_ages": ["young_adult", "adult", "middle_aged"]},
        {"id": "XB0fDUnXU5powFXDhCwa", "name": "Charlotte", "gender": "female", "style": "seductive", "description": "Swedish seductive voice", "age_group": "adult", "suitable_ages": ["young_adult", "adult"]},
        {"id": "pFZP5JQG7iQjIQuC4Bku", "name": "Lily", "gender": "female", "style": "British", "description": "British warm narrator", "age_group": "adult", "suitable_ages": ["young_adult", "adult", "middle_aged"]},
        {"id": "jBpfuIE2acCO8z3wKNLl", "name": "Gigi", "gender": "female", "style": "young", "description": "Young American female, great for YA", "age_group": "young", "suitable_ages": ["child", "teen", "young_adult"], "can_be_child": True},
        {"id": "ThT5KcBeYPX3keUQqHPh", "name": "Dorothy", "gender": "female", "style": "pleasant", "description": "Pleasant British storyteller", "age_group": "middle_aged", "suitable_ages": ["adult", "middle_aged", "elderly"]},
        {"id": "MF3mGyEYCl7XYWbV9V6O", "name": "Elli", "gender": "female", "style": "emotional", "description": "Emotional American female", "age_group": "young_adult", "suitable_ages": ["teen", "young_adult", "adult"]},
        {"id": "oWAxZDx7w5VEj9dCyTzz", "name": "Grace", "gender": "female", "style": "gentle", "description": "Gentle Southern American", "age_group": "adult", "suitable_ages": ["adult", "middle_aged", "elderly"]},
    ],
    "character_voices": [
        {"id": "IKne3meq5aSn9XLyUdCD", "name": "Charlie", "gender": "male", "style": "Australian", "description": "Friendly Australian male", "age_group": "young_adult", "suitable_ages": ["teen", "young_adult", "adult"]},
        {"id": "g5CIjZEefAph4nQFvHAz", "name": "Ethan", "gender": "male", "style": "young", "description": "Young American male", "age_group": "young", "suitable_ages": ["child", "teen", "young_adult"], "can_be_child": True},
        {"id": "cjVigY5qzO86Huf0OWal", "name": "Eric", "gender": "male", "style": "friendly", "description": "Friendly middle-aged American", "age_group": "middle_aged", "suitable_ages": ["adult", "middle_aged"]},
        {"id": "ODq5zmih8GrVes37Dizd", "name": "Patrick", "gender": "male", "style": "shouty", "description": "Shouty American, great for action", "age_group": "adult", "suitable_ages": ["adult", "middle_aged"]},
        {"id": "SOYHLrjzK2X1ezoPC6cr", "name": "Harry", "gender": "male", "style": "anxious", "description": "Anxious young British male", "age_group": "young", "suitable_ages": ["child", "teen", "young_adult"], "can_be_child": True},
        {"id": "GBv7mTt0atIp3Br8iCZE", "name": "Thomas", "gender": "male", "style": "calm", "description": "Calm American male", "age_group": "adult", "suitable_ages": ["young_adult", "adult", "middle_aged"]},
    ],
    "expressive_voices": [
        {"id": "XrExE9yKIg1WjnnlVkGX", "name": "Matilda", "gender": "female", "style": "warm", "description": "Warm American, great for children's stories", "age_group": "young", "suitable_ages": ["child", "teen", "young_adult"], "can_be_child": True},
        {"id": "CYw3kZ02Hs0563khs1Fj", "name": "Dave", "gender": "male", "style": "conversational", "description": "Conversational British-Essex", "age_group": "adult", "suitable_ages": ["young_adult", "adult"]},
        {"id": "FGY2WhTYpPnrIDTdsKH5", "name": "Laura", "gender": "female", "style": "upbeat", "description": "Upbeat American female", "age_group": "young_adult", "suitable_ages": ["child", "teen", "young_adult", "adult"], "can_be_child": True},
        {"id": "TX3LPaxmHKxFdv7VOQHJ", "name": "Liam", "gender": "male", "style": "articulate", "description": "Articulate American male", "age_group": "adult", "suitable_ages": ["young_adult", "adult", "middle_aged"]},
    ],
}

CATEGORY_HINTS = {
    "male_narrators": ["narration", "storytelling", "authoritative roles"],
    "female_narrators": ["narration", "storytelling", "gentle roles"],
    "character_voices": ["character dialogue", "supporting roles"],
    "expressive_voices": ["emotional scenes", "dynamic characters"],
}

STYLE_HINTS = {
    "warm": ["friendly characters", "mentors", "kind figures"],
    "authoritative": ["leaders", "authority figures", "villains", "heroic commanders"],
    "gravelly": ["rugged characters", "warriors", "authority figures"],
    "deep": ["serious characters", "deep thinkers", "antagonists"],
    "crisp": ["professional characters", "narrators"],
    "raspy": ["mysterious characters", "rogues", "shadowy figures"],
    "middle": ["generic characters", "supporting roles", "background characters"],
    "soft": ["gentle characters", "nurturing roles", "bedtime stories"],
    "seductive": ["romantic leads", "charming characters"],
    "young": ["young characters", "sidekicks", "youthful protagonists"],
    "pleasant": ["friendly characters", "guides", "helpers"],
    "emotional": ["dramatic roles", "emotional scenes", "tragic characters"],
    "gentle": ["kind characters", "healers", "wise elders"],
    "Australian": ["adventurers", "outdoorsy characters", "friendly rogues"],
    "friendly": ["sidekicks", "companions", "helpful characters"],
    "shouty": ["action heroes", "military characters", "angry roles"],
    "anxious": ["nervous characters", "comic relief", "tension roles"],
    "calm": ["stoic characters", "wise figures", "peaceful roles"],
    "conversational": ["everyday characters", "relatable roles"],
    "upbeat": ["energetic characters", "optimists", "cheerful roles"],
    "articulate": ["intelligent characters", "scholars", "professionals"],
    "British": ["nobility", "wizards", "cultured characters"],
}


def suitability_hints(style: str, category: str) -> List[str]:
    """Free-text casting hints derived from a voice's category and style."""
    return CATEGORY_HINTS.get(category, []) + STYLE_HINTS.get(style, [])


def build_voice_library(voices: Dict[str, List[Dict]] = None) -> List[Voice]:
    """Flatten the categorized voice table into Voice records."""
    voices = AVAILABLE_VOICES if voices is None else voices
    library = []
    for category, entries in voices.items():
        for entry in entries:
            library.append(Voice(
                id=entry["id"],
                name=entry["name"],
                gender=entry.get("gender", "neutral"),
                style=entry.get("style", ""),
                category=category,
                description=entry.get("description", ""),
                suitable_for=tuple(suitability_hints(entry.get("style", ""), category)),
                age_group=entry.get("age_group", "adult"),
                suitable_ages=tuple(entry.get("suitable_ages", ())),
                can_be_child=entry.get("can_be_child", False),
            ))
    return library


class VoiceCatalog:
    """Read-only lookup over the voice library."""

    def __init__(self, voices: Iterable[Voice]):
        self.voices: List[Voice] = list(voices)
        self.by_id: Dict[str, Voice] = {v.id: v for v in self.voices}
        # First voice with a given display name wins
        self.by_name: Dict[str, Voice] = {}
        for voice in self.voices:
            self.by_name.setdefault(voice.name.strip().lower(), voice)

    @classmethod
    def default(cls) -> "VoiceCatalog":
        return cls(build_voice_library())

    def __contains__(self, voice_id) -> bool:
        return voice_id in self.by_id

    def __iter__(self) -> Iterator[Voice]:
        return iter(self.voices)

    def __len__(self) -> int:
        return len(self.voices)

    def get(self, voice_id: Optional[str]) -> Optional[Voice]:
        return self.by_id.get(voice_id) if voice_id else None

    def find_by_name(self, name: str) -> Optional[Voice]:
        return self.by_name.get((name or "").strip().lower())

    def voice_name(self, voice_id: str) -> str:
        voice = self.get(voice_id)
        return voice.name if voice else "Unknown Voice"

    def available(self, excluded: Iterable[str] = ()) -> List[Voice]:
        """Voices not in ``excluded``, in catalog order."""
        excluded = set(excluded)
        return [v for v in self.voices if v.id not in excluded]

    def by_gender(self, gender: str, excluded: Iterable[str] = ()) -> List[Voice]:
        return [v for v in self.available(excluded) if v.gender == gender]

    def to_list(self) -> List[Dict]:
        return [v.to_dict() for v in self.voices]
