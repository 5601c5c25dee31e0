"""Batched line transcreation with per-line model triage.

Lines are processed in fixed-size batches. Each batch is first triaged in
one call that assigns every line a fast or deep tier; then each line is
translated on its own, with the blueprint brief and the closest lines from
long-term memory as context.
"""

from __future__ import annotations

from pydantic import ValidationError

from subsmith.core.config import AIConfig
from subsmith.core.context import JobContext
from subsmith.core.languages import language_name
from subsmith.core.models import SubtitleLine, Tier, TranslatedLine, TriageClassification
from subsmith.llm.prompts import TRANSCREATE_PROMPT, TRIAGE_PROMPT, format_triage_lines
from subsmith.memory.store import ContextMemoryStore
from subsmith.utils.console import console

BATCH_SIZE = 15
_QUOTES = {'"': '"', "'": "'", "“": "”", "«": "»"}


def make_batches(lines: list[SubtitleLine], batch_size: int = BATCH_SIZE) -> list[list[SubtitleLine]]:
    """Split lines into consecutive batches; the last one may be shorter."""
    return [lines[i : i + batch_size] for i in range(0, len(lines), batch_size)]


def triage_batch(gateway, config: AIConfig, batch: list[SubtitleLine]) -> dict[int, Tier]:
    """Classify each line of a batch. Lines missing from the reply are fast."""
    data = gateway.generate_structured(
        config.model_for(Tier.FAST),
        TRIAGE_PROMPT.format(numbered_lines=format_triage_lines(batch)),
    )
    raw = data.get("classifications", []) if isinstance(data, dict) else data
    if not isinstance(raw, list):
        raw = []

    tiers: dict[int, Tier] = {}
    for item in raw:
        try:
            classification = TriageClassification.model_validate(item)
        except ValidationError:
            console.print(f"[yellow]Ignoring malformed triage entry:[/yellow] {item!r}")
            continue
        tiers[classification.line_id] = classification.tier
    return {line.sequence: tiers.get(line.sequence, Tier.FAST) for line in batch}


def clean_translation(text: str) -> str:
    """Strip whitespace and one pair of wrapping quotes the model may echo."""
    text = text.strip()
    if len(text) >= 2 and _QUOTES.get(text[0]) == text[-1]:
        text = text[1:-1].strip()
    return text


def translate_line(
    gateway,
    config: AIConfig,
    memory: ContextMemoryStore,
    job_id: str,
    line: SubtitleLine,
    tier: Tier,
    brief: str,
    tone: str,
    thinking: bool = False,
) -> str:
    """Transcreate one line at the given tier."""
    context = memory.query(job_id, line.text)
    prompt = TRANSCREATE_PROMPT.format(
        target_lang=language_name(config.target_language),
        tone=tone,
        brief=brief,
        context=context,
        line=line.text,
    )
    reply = gateway.generate_text(
        config.model_for(tier), prompt, thinking=thinking and tier == Tier.DEEP
    )
    translated = clean_translation(reply)
    return translated if translated else line.text


def translate_lines(
    ctx: JobContext,
    gateway,
    config: AIConfig,
    memory: ContextMemoryStore,
    lines: list[SubtitleLine],
    brief: str,
    tone: str,
    batch_size: int = BATCH_SIZE,
    thinking: bool = False,
) -> list[TranslatedLine]:
    """Translate every line, batch by batch, in original order.

    Args:
        ctx: Job context for stage reporting and cancellation.
        gateway: AI gateway.
        config: AI configuration (tier models, target language).
        memory: Long-term memory already holding this job's lines.
        lines: Parsed subtitle lines.
        brief: Serialized blueprint.
        tone: Desired tone.
        batch_size: Lines per triage batch.
        thinking: Enable extended reasoning for deep-tier lines.

    Returns:
        One TranslatedLine per input line, same order.
    """
    batches = make_batches(lines, batch_size)
    translated: list[TranslatedLine] = []

    for i, batch in enumerate(batches, 1):
        label = f"Batch {i} of {len(batches)}"
        ctx.check_cancelled()
        ctx.report_stage(f"Triage agent classifying {label}")
        tiers = triage_batch(gateway, config, batch)

        batch_out: list[TranslatedLine] = []
        for line in batch:
            ctx.check_cancelled()
            tier = tiers[line.sequence]
            ctx.report_stage(
                f"Translating line {line.sequence} ({label}) with {tier.value.upper()} model"
            )
            text = translate_line(
                gateway, config, memory, ctx.job_id, line, tier, brief, tone, thinking=thinking
            )
            batch_out.append(TranslatedLine.from_line(line, text))

        translated.extend(batch_out)

    return translated
