"""Prompt templates for blueprint synthesis, triage and line transcreation."""

from __future__ import annotations

import json

from subsmith.core.models import (
    GroundedKeyword,
    Keyword,
    SubtitleLine,
    TranslationBlueprint,
    UserGlossaryItem,
)

KEYWORDS_PROMPT = """\
Analyze the subtitle text. Extract technical terms, named entities, and idioms. \
For each, give a concise definition.

Respond with a single JSON object:
{{"keywords": [{{"term": string, "definition": string}}]}}
If there are none, return an empty array.

Text:
\"\"\"{script}\"\"\"
"""

GROUNDING_PROMPT = """\
For each term below, find exactly 3 common {target_lang} translations.

Respond with a single JSON object:
{{"grounded_keywords": [{{"term": string, "translations": [string, string, string]}}]}}

Terms: {keywords}
"""

BLUEPRINT_PROMPT = """\
Generate a "Translation Blueprint" for translating this script into {target_lang}. \
Analyze the script for summary, keyPoints, characterProfiles and culturalNuances.

Glossary rules (CRITICAL):
1. The User-Provided Glossary is SACROSANCT. For every term in it, its translation \
MUST be used verbatim as the "proposedTranslation".
2. For the remaining AI-Generated Keywords, select the best "proposedTranslation" \
from its "translations" array based on the '{tone}' tone and the script context.
3. Justify each choice with evidence from the script.

Respond with a single JSON object:
{{"summary": string,
 "keyPoints": [string],
 "characterProfiles": [{{"personaName": string, "speakingStyle": string, \
"voiceConsistencyRule": string}}],
 "culturalNuances": [string],
 "glossary": [{{"term": string, "definition": string, "proposedTranslation": string,
   "translationType": "Transliteration" | "Direct Translation" | "Hybrid" | \
"Common Usage" | "Adaptation",
   "justification": string, "alternatives": [string]}}]}}

User-Provided Glossary: {user_glossary}
AI-Generated Keywords: {grounded_keywords}

Script:
\"\"\"{script}\"\"\"
"""

TRIAGE_PROMPT = """\
You are a linguistic triage agent. Classify each subtitle line's complexity.
- Use "deep" for lines with idioms, complex grammar, slang, or deep emotional/cultural nuance.
- Use "fast" for simple, direct, or declarative sentences.

Respond with a single JSON object:
{{"classifications": [{{"id": number, "tier": "fast" | "deep"}}]}}

Input for classification (id | text):
---
{numbered_lines}
---
"""

TRANSCREATE_PROMPT = """\
You are a master transcreator. Transcreate ONLY the "Current Line" into fluent \
{target_lang}, following the Project Brief and a '{tone}' tone. Use the Long-Term \
Memory for context.

Project Brief:
---
{brief}
---
Long-Term Memory (context from the script):
---
{context}
---
Current Line: "{line}"
---
Reply with ONLY the single line of {target_lang} transcreation.
"""


def format_script(lines: list[SubtitleLine]) -> str:
    """Join line texts into the plain script sent to blueprint prompts."""
    return "\n".join(line.text for line in lines)


def format_triage_lines(lines: list[SubtitleLine]) -> str:
    return "\n".join(f"{line.sequence} | {line.text}" for line in lines)


def format_keywords(keywords: list[Keyword]) -> str:
    return json.dumps([k.model_dump() for k in keywords], ensure_ascii=False)


def format_grounded(grounded: list[GroundedKeyword]) -> str:
    return json.dumps([g.model_dump() for g in grounded], ensure_ascii=False)


def format_user_glossary(items: list[UserGlossaryItem]) -> str:
    return json.dumps([i.model_dump() for i in items], ensure_ascii=False)


def format_brief(blueprint: TranslationBlueprint, target_lang: str) -> str:
    """Serialize a blueprint into the brief passed to every line prompt.

    Sections always appear in the same order; cultural nuances are left out
    when there are none.
    """
    parts = [
        "**1. Plot & Theme Synthesis:**",
        f"- Summary: {blueprint.summary}",
        f"- Key Themes: {', '.join(blueprint.key_points)}",
        "",
        "**2. Character Persona Profiles:**",
    ]
    for profile in blueprint.character_profiles:
        parts.append(f"- Persona: {profile.persona_name}")
        parts.append(f"  - Style: {profile.speaking_style}")
        parts.append(f"  - Rule: {profile.voice_consistency_rule}")
    parts.append("")
    parts.append('**3. "World Anvil" Glossary (Sacrosanct):**')
    for term in blueprint.glossary:
        parts.append(f'- Term: "{term.term}"')
        parts.append(f'  - Approved {target_lang}: "{term.proposed_translation}"')
    if blueprint.cultural_nuances:
        parts.append("")
        parts.append("**4. Cultural Nuances:**")
        parts.extend(f"- {nuance}" for nuance in blueprint.cultural_nuances)
    return "\n".join(parts) + "\n"
