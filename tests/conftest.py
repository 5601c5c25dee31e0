"""Shared test fixtures."""

from pathlib import Path

import pytest

from subsmith.core.config import SubsmithConfig
from subsmith.core.context import JobContext
from subsmith.core.errors import AiCallError
from subsmith.core.events import EventBroker
from subsmith.memory.index import SqliteVectorIndex
from subsmith.memory.store import ContextMemoryStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"

BLUEPRINT_REPLY = {
    "summary": "A captain leads a crew through a sealed fortress.",
    "keyPoints": ["loyalty", "luck"],
    "characterProfiles": [
        {
            "personaName": "Captain",
            "speakingStyle": "dry, clipped",
            "voiceConsistencyRule": "never uses slang",
        }
    ],
    "culturalNuances": ["'Break a leg' wishes good luck."],
    "glossary": [
        {
            "term": "Ironhold",
            "definition": "A fortress",
            "proposedTranslation": "دژ آهنین",
            "translationType": "Direct Translation",
            "justification": "Descriptive name.",
            "alternatives": ["آیرون‌هولد"],
        }
    ],
}


class FakeGateway:
    """Scripted stand-in for AIGateway.

    Routes structured calls by prompt content. Text calls echo the current
    line with a prefix. Embeddings are small deterministic vectors.
    """

    def __init__(self, blueprint=None, triage=None, fail_text: int = 0):
        self.blueprint = BLUEPRINT_REPLY if blueprint is None else blueprint
        self.triage = triage  # callable(prompt) -> reply, or None for "all fast"
        self.fail_text = fail_text
        self.calls: list[tuple[str, str, bool]] = []
        self.embedded: list[str] = []

    def generate_structured(self, model, prompt, thinking=False):
        self.calls.append(("structured", model, thinking))
        if "Extract technical terms" in prompt:
            return {"keywords": [{"term": "Ironhold", "definition": "A fortress"}]}
        if "find exactly 3 common" in prompt:
            return {"grounded_keywords": [{"term": "Ironhold", "translations": ["a", "b", "c"]}]}
        if "Translation Blueprint" in prompt:
            return self.blueprint
        if "triage agent" in prompt:
            return self.triage(prompt) if self.triage else {"classifications": []}
        raise AssertionError(f"Unexpected prompt: {prompt[:60]}")

    def generate_text(self, model, prompt, thinking=False):
        self.calls.append(("text", model, thinking))
        if self.fail_text:
            self.fail_text -= 1
            raise AiCallError("quota exceeded", model=model)
        line = prompt.split('Current Line: "', 1)[1].split('"\n', 1)[0]
        return f"«FA» {line}"

    def embed_batch(self, texts):
        self.embedded.extend(texts)
        return [[float(len(t)), float(sum(map(ord, t)) % 97), 1.0] for t in texts]


class Recorder:
    """Collects stage labels and events from a JobContext."""

    def __init__(self, job_id: str = "job1", cancel_after: int | None = None):
        self.job_id = job_id
        self.stages: list[str] = []
        self.events: list = []
        self.cancel_after = cancel_after

    def context(self) -> JobContext:
        return JobContext(
            job_id=self.job_id,
            on_stage=self.stages.append,
            on_event=self.events.append,
            is_cancelled=self._is_cancelled,
        )

    def _is_cancelled(self) -> bool:
        return self.cancel_after is not None and len(self.stages) >= self.cancel_after


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def sample_srt(fixtures_dir: Path) -> str:
    return (fixtures_dir / "sample.srt").read_text(encoding="utf-8")


@pytest.fixture
def sample_vtt(fixtures_dir: Path) -> str:
    return (fixtures_dir / "sample.vtt").read_text(encoding="utf-8")


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def config(tmp_path: Path) -> SubsmithConfig:
    return SubsmithConfig(
        ai={"api_key": "test-key", "target_language": "fa"},
        memory={"index_name": "test-index", "db_path": tmp_path / "memory.db"},
        queue={"db_path": tmp_path / "jobs.db", "poll_interval": 0.01},
    )


@pytest.fixture
def vector_index(tmp_path: Path) -> SqliteVectorIndex:
    return SqliteVectorIndex(tmp_path / "memory.db", "test-index")


@pytest.fixture
def memory(gateway: FakeGateway, vector_index: SqliteVectorIndex) -> ContextMemoryStore:
    return ContextMemoryStore(gateway, vector_index)


@pytest.fixture
def broker() -> EventBroker:
    return EventBroker()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_gateway():
    return FakeGateway


@pytest.fixture
def make_recorder():
    return Recorder
