"""
Casting prompts.

Only the response shape matters to the engine; the wording can change freely.
"""

import json

from adapters.base import CastingRequest

SYSTEM_PROMPT = """You are a voice casting director for audiobook productions.
Assign one voice to each character based on their traits, the story context and the voice list.

RULES:
1. Every character gets a different voice.
2. The narrator voice must not be assigned to any character.
3. Male characters get male voices, female characters get female voices.
4. voice_id must be the alphanumeric id shown in parentheses, not the voice name.

Return ONLY JSON:
{
  "assignments": [
    {"character_name": "exact character name", "voice_id": "id", "voice_name": "name", "reasoning": "why"}
  ],
  "validation": {"all_unique": true, "gender_matched": true, "narrator_excluded": true}
}

If no valid assignment is possible, return:
{"error": "description of the problem", "assignments": []}"""


def _voice_line(voice) -> str:
    hints = ", ".join(voice.suitable_for) or "general roles"
    return f"- {voice.name} ({voice.id}): {voice.style} - {voice.description}. Good for: {hints}"


def build_user_prompt(request: CastingRequest) -> str:
    ctx = request.story_context
    narrator = request.narrator_voice
    descriptors = [
        {
            "name": c.name,
            "role": c.role or "supporting character",
            "gender": c.gender,
            "description": c.description,
            "personality": c.personality,
            "age": c.age
        }
        for c in request.characters
    ]

    sections = [
        "STORY CONTEXT:",
        f"- Genre: {ctx.genre or 'general fiction'}",
        f"- Mood/Tone: {ctx.mood or 'neutral'}",
        f"- Target Audience: {ctx.audience or 'general'}",
        f"- Setting: {ctx.setting or 'Not specified'}",
        f"- Themes: {', '.join(ctx.themes) if ctx.themes else 'Not specified'}",
        "",
        "SYNOPSIS:",
        ctx.synopsis or "No synopsis provided",
        "",
        "NARRATOR VOICE (DO NOT ASSIGN TO ANY CHARACTER):",
        f"- ID: {request.narrator_voice_id}",
        f"- Name: {narrator.name if narrator else 'Unknown'}",
        "",
        f"CHARACTERS TO CAST ({len(descriptors)} total):",
        json.dumps(descriptors, indent=2),
        "",
        f"AVAILABLE MALE VOICES ({len(request.male_voices)}):",
        *[_voice_line(v) for v in request.male_voices],
        "",
        f"AVAILABLE FEMALE VOICES ({len(request.female_voices)}):",
        *[_voice_line(v) for v in request.female_voices],
    ]
    if request.neutral_voices:
        sections += [
            "",
            f"AVAILABLE NEUTRAL VOICES ({len(request.neutral_voices)}):",
            *[_voice_line(v) for v in request.neutral_voices],
        ]
    return "\n".join(sections)
