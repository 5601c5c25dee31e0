"""Pipeline orchestrator — blueprint, index, translate, clean up, render."""

from __future__ import annotations

from subsmith.core.config import SubsmithConfig
from subsmith.core.context import JobContext
from subsmith.core.events import ProgressEvent
from subsmith.core.languages import language_name
from subsmith.core.models import JobPayload
from subsmith.llm.blueprint import build_blueprint
from subsmith.llm.prompts import format_brief, format_script
from subsmith.llm.translator import translate_lines
from subsmith.memory.store import ContextMemoryStore
from subsmith.subtitles.parser import parse, render

STAGE_BLUEPRINT = "Generating blueprint..."
STAGE_INDEXING = "Indexing script for long-term memory..."
STAGE_TRANSLATING = "Executing translation..."
STAGE_CLEANUP = "Cleaning up long-term memory..."
STAGE_RENDER = "Rendering translated subtitles..."


def run_translation(
    ctx: JobContext,
    payload: JobPayload,
    gateway,
    memory: ContextMemoryStore,
    config: SubsmithConfig,
) -> str:
    """Run one full translation of a job's subtitles.

    Args:
        ctx: Job context carrying the job id, stage reporting and cancellation.
        payload: Subtitle content, tone, thinking mode and user glossary.
        gateway: AI gateway (structured, text and embedding calls).
        memory: Long-term context memory.
        config: Full application config.

    Returns:
        The translated subtitles as SRT text.

    Raises:
        AiCallError, InvalidBlueprint, IndexingError, JobCancelled: the run
            failed; the caller decides whether to retry.
    """
    lines = parse(payload.subtitle_content)
    script = format_script(lines)

    # Phase 1: blueprint
    ctx.report_stage(STAGE_BLUEPRINT)
    blueprint = build_blueprint(
        ctx,
        gateway,
        config.ai,
        script,
        payload.tone,
        payload.user_glossary,
        thinking=payload.thinking_mode,
    )
    brief = format_brief(blueprint, language_name(config.ai.target_language))
    ctx.emit(ProgressEvent.blueprint_ready(blueprint.model_dump(by_alias=True, mode="json")))

    # Phase 2: long-term memory
    ctx.check_cancelled()
    ctx.report_stage(STAGE_INDEXING)
    memory.index(ctx.job_id, lines)

    # Phase 3: batched translation
    try:
        ctx.report_stage(STAGE_TRANSLATING)
        translated = translate_lines(
            ctx,
            gateway,
            config.ai,
            memory,
            lines,
            brief,
            payload.tone,
            batch_size=config.translation.batch_size,
            thinking=payload.thinking_mode,
        )
    except BaseException:
        memory.purge(ctx.job_id)
        raise

    # Phase 4: cleanup (best-effort)
    ctx.report_stage(STAGE_CLEANUP)
    memory.purge(ctx.job_id)

    # Phase 5: finalize
    ctx.report_stage(STAGE_RENDER)
    return render(translated)
