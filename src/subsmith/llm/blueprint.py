"""Blueprint synthesis — keywords, grounding, assembly.

Three sequential calls, each feeding the next:
1. keyword extraction (fast tier)
2. grounding each keyword in 3 candidate translations (fast tier)
3. blueprint assembly from script, tone, grounded keywords and the user
   glossary (deep tier)

The user glossary is enforced after assembly: its translations overwrite
whatever the model proposed, and terms the model dropped are appended.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from subsmith.core.config import AIConfig
from subsmith.core.context import JobContext
from subsmith.core.errors import InvalidBlueprint
from subsmith.core.languages import language_name
from subsmith.core.models import (
    GlossaryTerm,
    GroundedKeyword,
    Keyword,
    Tier,
    TranslationBlueprint,
    TranslationType,
    UserGlossaryItem,
)
from subsmith.llm.prompts import (
    BLUEPRINT_PROMPT,
    GROUNDING_PROMPT,
    KEYWORDS_PROMPT,
    format_grounded,
    format_keywords,
    format_user_glossary,
)
from subsmith.utils.console import console

STAGE_KEYWORDS = "Phase 1a: Extracting keywords for the blueprint..."
STAGE_GROUNDING = "Phase 1b: Grounding blueprint translations..."
STAGE_ASSEMBLY = "Phase 1c: Assembling blueprint..."


def _items(data: Any, key: str) -> list:
    """Pull a list out of a JSON reply shaped either {key: [...]} or [...]."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        value = data.get(key)
        if isinstance(value, list):
            return value
    return []


def _validate_all(model: type, items: list, what: str) -> list:
    valid = []
    for item in items:
        try:
            valid.append(model.model_validate(item))
        except ValidationError:
            console.print(f"[yellow]Ignoring malformed {what}:[/yellow] {item!r}")
    return valid


def extract_keywords(gateway, config: AIConfig, script: str) -> list[Keyword]:
    """Extract terms, named entities and idioms. An empty list is valid."""
    data = gateway.generate_structured(
        config.model_for(Tier.FAST), KEYWORDS_PROMPT.format(script=script)
    )
    return _validate_all(Keyword, _items(data, "keywords"), "keyword")


def ground_keywords(
    gateway, config: AIConfig, keywords: list[Keyword]
) -> list[GroundedKeyword]:
    """Ask for 3 candidate translations per keyword."""
    if not keywords:
        return []
    prompt = GROUNDING_PROMPT.format(
        target_lang=language_name(config.target_language),
        keywords=format_keywords(keywords),
    )
    data = gateway.generate_structured(config.model_for(Tier.FAST), prompt)
    return _validate_all(GroundedKeyword, _items(data, "grounded_keywords"), "grounded keyword")


def assemble_blueprint(
    gateway,
    config: AIConfig,
    script: str,
    tone: str,
    grounded: list[GroundedKeyword],
    user_glossary: list[UserGlossaryItem],
    thinking: bool = False,
) -> TranslationBlueprint:
    """Produce the full blueprint with the deep tier.

    Raises:
        InvalidBlueprint: If the reply has no glossary or does not validate.
    """
    prompt = BLUEPRINT_PROMPT.format(
        target_lang=language_name(config.target_language),
        tone=tone,
        user_glossary=format_user_glossary(user_glossary),
        grounded_keywords=format_grounded(grounded),
        script=script,
    )
    data = gateway.generate_structured(config.model_for(Tier.DEEP), prompt, thinking=thinking)
    if not isinstance(data, dict) or not isinstance(data.get("glossary"), list):
        raise InvalidBlueprint()
    try:
        blueprint = TranslationBlueprint.model_validate(data)
    except ValidationError as e:
        raise InvalidBlueprint(f"AI returned an invalid blueprint: {e.error_count()} errors") from e
    return enforce_user_glossary(blueprint, user_glossary)


def _term_key(term: str) -> str:
    return term.strip().casefold()


def enforce_user_glossary(
    blueprint: TranslationBlueprint,
    user_glossary: list[UserGlossaryItem],
) -> TranslationBlueprint:
    """Return a blueprint whose glossary honours every user-supplied term."""
    if not user_glossary:
        return blueprint

    user_terms = {_term_key(item.term): item for item in user_glossary}
    seen: set[str] = set()
    glossary: list[GlossaryTerm] = []
    for entry in blueprint.glossary:
        key = _term_key(entry.term)
        user = user_terms.get(key)
        if user is not None:
            seen.add(key)
            if entry.proposed_translation != user.translation:
                alternatives = [entry.proposed_translation, *entry.alternatives]
                entry = entry.model_copy(
                    update={
                        "proposed_translation": user.translation,
                        "alternatives": [a for a in alternatives if a != user.translation],
                    }
                )
        glossary.append(entry)

    for key, user in user_terms.items():
        if key not in seen:
            glossary.append(
                GlossaryTerm(
                    term=user.term,
                    proposed_translation=user.translation,
                    translation_type=TranslationType.ADAPTATION,
                    justification="User-provided glossary term.",
                )
            )

    return blueprint.model_copy(update={"glossary": glossary})


def build_blueprint(
    ctx: JobContext,
    gateway,
    config: AIConfig,
    script: str,
    tone: str,
    user_glossary: list[UserGlossaryItem],
    thinking: bool = False,
) -> TranslationBlueprint:
    """Run the three blueprint calls in order, reporting each stage."""
    ctx.report_stage(STAGE_KEYWORDS)
    keywords = extract_keywords(gateway, config, script)

    ctx.check_cancelled()
    ctx.report_stage(STAGE_GROUNDING)
    grounded = ground_keywords(gateway, config, keywords)

    ctx.check_cancelled()
    ctx.report_stage(STAGE_ASSEMBLY)
    return assemble_blueprint(
        gateway, config, script, tone, grounded, user_glossary, thinking=thinking
    )
