"""End-to-end pipeline tests with a scripted gateway and real SQLite memory."""

import pytest

from subsmith.core.errors import AiCallError, IndexingError, JobCancelled
from subsmith.core.events import BLUEPRINT_READY
from subsmith.core.models import JobPayload, UserGlossaryItem
from subsmith.core.pipeline import (
    STAGE_BLUEPRINT,
    STAGE_CLEANUP,
    STAGE_INDEXING,
    STAGE_RENDER,
    STAGE_TRANSLATING,
    run_translation,
)
from subsmith.llm.blueprint import STAGE_ASSEMBLY, STAGE_GROUNDING, STAGE_KEYWORDS
from subsmith.memory.store import namespace_for
from subsmith.subtitles.parser import parse


def test_three_line_casual_scenario(gateway, memory, config, recorder, sample_srt):
    payload = JobPayload(subtitle_content=sample_srt, tone="Casual")

    result = run_translation(recorder.context(), payload, gateway, memory, config)

    assert recorder.stages == [
        STAGE_BLUEPRINT,
        STAGE_KEYWORDS,
        STAGE_GROUNDING,
        STAGE_ASSEMBLY,
        STAGE_INDEXING,
        STAGE_TRANSLATING,
        "Triage agent classifying Batch 1 of 1",
        "Translating line 1 (Batch 1 of 1) with FAST model",
        "Translating line 2 (Batch 1 of 1) with FAST model",
        "Translating line 3 (Batch 1 of 1) with FAST model",
        STAGE_CLEANUP,
        STAGE_RENDER,
    ]
    assert [event.type for event in recorder.events] == [BLUEPRINT_READY]

    blocks = parse(result)
    assert [line.sequence for line in blocks] == [1, 2, 3]
    assert [line.start for line in blocks] == [line.start for line in parse(sample_srt)]
    assert blocks[1].text == "«FA» The Ironhold gate is sealed."


def test_blueprint_event_uses_wire_names(gateway, memory, config, recorder, sample_srt):
    payload = JobPayload(
        subtitle_content=sample_srt,
        user_glossary=[UserGlossaryItem(term="Ironhold", translation="آیرون‌هولد")],
    )
    run_translation(recorder.context(), payload, gateway, memory, config)

    [event] = recorder.events
    glossary = event.payload["glossary"]
    assert glossary[0]["proposedTranslation"] == "آیرون‌هولد"
    assert glossary[0]["translationType"] == "Direct Translation"
    assert "characterProfiles" in event.payload


def test_memory_is_purged_after_success(gateway, memory, config, recorder, vector_index, sample_srt):
    run_translation(recorder.context(), JobPayload(subtitle_content=sample_srt), gateway, memory, config)
    assert vector_index.count(namespace_for(recorder.job_id)) == 0


def test_memory_is_purged_after_translation_failure(
    make_gateway, memory, config, recorder, vector_index, sample_srt
):
    gateway = make_gateway(fail_text=1)
    memory.gateway = gateway
    with pytest.raises(AiCallError):
        run_translation(recorder.context(), JobPayload(subtitle_content=sample_srt), gateway, memory, config)
    assert vector_index.count(namespace_for(recorder.job_id)) == 0
    assert STAGE_CLEANUP not in recorder.stages


def test_indexing_failure_is_fatal(gateway, memory, config, recorder, monkeypatch, sample_srt):
    def broken(texts):
        raise RuntimeError("embedding quota")

    monkeypatch.setattr(gateway, "embed_batch", broken)
    with pytest.raises(IndexingError):
        run_translation(recorder.context(), JobPayload(subtitle_content=sample_srt), gateway, memory, config)
    assert STAGE_TRANSLATING not in recorder.stages


def test_cancel_during_blueprint(gateway, memory, config, make_recorder, sample_srt):
    recorder = make_recorder(cancel_after=2)
    with pytest.raises(JobCancelled):
        run_translation(recorder.context(), JobPayload(subtitle_content=sample_srt), gateway, memory, config)
    assert recorder.events == []


def test_empty_subtitles_render_empty(gateway, memory, config, recorder):
    result = run_translation(recorder.context(), JobPayload(subtitle_content=""), gateway, memory, config)
    assert result == ""
    assert STAGE_RENDER in recorder.stages
