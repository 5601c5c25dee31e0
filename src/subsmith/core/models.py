"""Shared data models for Subsmith.

Plain dataclasses describe subtitle lines and jobs. Structures that come back
from the AI provider (keywords, blueprints, triage) are pydantic models so
their JSON can be validated on the way in; they use camelCase aliases on the
wire.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


@dataclass(frozen=True)
class SubtitleLine:
    """A single parsed subtitle cue."""

    sequence: int
    start: timedelta
    end: timedelta
    duration: float  # seconds, never negative
    text: str


@dataclass(frozen=True)
class TranslatedLine:
    """A subtitle cue paired with its translation."""

    sequence: int
    start: timedelta
    end: timedelta
    duration: float
    text: str
    translated_text: str

    @classmethod
    def from_line(cls, line: SubtitleLine, translated_text: str) -> TranslatedLine:
        return cls(
            sequence=line.sequence,
            start=line.start,
            end=line.end,
            duration=line.duration,
            text=line.text,
            translated_text=translated_text,
        )


class JobStatus(str, Enum):
    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserGlossaryItem(_WireModel):
    """A user-supplied term whose translation is authoritative."""

    term: str
    translation: str


@dataclass
class JobPayload:
    """Everything a worker needs to run one translation job."""

    subtitle_content: str
    tone: str = "Neutral"
    thinking_mode: bool = False
    user_glossary: list[UserGlossaryItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "subtitle_content": self.subtitle_content,
            "tone": self.tone,
            "thinking_mode": self.thinking_mode,
            "user_glossary": [item.model_dump() for item in self.user_glossary],
        }

    @classmethod
    def from_dict(cls, data: dict) -> JobPayload:
        return cls(
            subtitle_content=data.get("subtitle_content", ""),
            tone=data.get("tone", "Neutral"),
            thinking_mode=bool(data.get("thinking_mode", False)),
            user_glossary=[UserGlossaryItem.model_validate(g) for g in data.get("user_glossary", [])],
        )


@dataclass
class Job:
    """Persisted state of a translation job."""

    id: str
    payload: JobPayload
    status: JobStatus
    attempts: int = 0
    last_error: str | None = None
    progress: str = "Queued"
    result: str | None = None
    cancel_requested: bool = False
    claim_token: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    available_at: datetime | None = None


# --- AI-produced structures -------------------------------------------------


class Keyword(_WireModel):
    term: str
    definition: str = ""


class GroundedKeyword(_WireModel):
    term: str
    translations: list[str] = Field(default_factory=list)


class TranslationType(str, Enum):
    TRANSLITERATION = "Transliteration"
    DIRECT_TRANSLATION = "Direct Translation"
    HYBRID = "Hybrid"
    COMMON_USAGE = "Common Usage"
    ADAPTATION = "Adaptation"


_TRANSLATION_TYPE_LOOKUP = {
    t.value.replace(" ", "").lower(): t for t in TranslationType
}


class GlossaryTerm(_WireModel):
    term: str
    definition: str = ""
    proposed_translation: str
    translation_type: TranslationType = TranslationType.ADAPTATION
    justification: str = ""
    alternatives: list[str] = Field(default_factory=list)

    @field_validator("translation_type", mode="before")
    @classmethod
    def _normalize_type(cls, value: object) -> object:
        # Models write "DirectTranslation", "direct translation", etc.
        if isinstance(value, str):
            key = value.replace(" ", "").replace("_", "").lower()
            return _TRANSLATION_TYPE_LOOKUP.get(key, TranslationType.ADAPTATION)
        return value


class CharacterProfile(_WireModel):
    persona_name: str
    speaking_style: str = ""
    voice_consistency_rule: str = ""


class TranslationBlueprint(_WireModel):
    """Per-job brief: summary, voices, cultural notes and the glossary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    summary: str = ""
    key_points: list[str] = Field(default_factory=list)
    character_profiles: list[CharacterProfile] = Field(default_factory=list)
    cultural_nuances: list[str] = Field(default_factory=list)
    glossary: list[GlossaryTerm]


class Tier(str, Enum):
    FAST = "fast"
    DEEP = "deep"


class TriageClassification(_WireModel):
    line_id: int = Field(alias="id")
    tier: Tier = Tier.FAST
