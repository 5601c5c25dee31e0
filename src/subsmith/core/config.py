"""Configuration system for Subsmith.

Layered config loading (lowest to highest priority):
1. config/default.toml (shipped with package)
2. ~/.config/subsmith/config.toml (user-level)
3. ./subsmith.toml (project-level)
4. Environment variables (SUBSMITH_QUEUE__WORKERS, SUBSMITH_AI__API_KEY, etc.)
5. CLI flags
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from subsmith.core.errors import ConfigError
from subsmith.core.models import Tier

_PACKAGE_ROOT = Path(__file__).resolve().parent.parent.parent.parent
_DEFAULT_CONFIG = _PACKAGE_ROOT / "config" / "default.toml"
_USER_CONFIG = Path.home() / ".config" / "subsmith" / "config.toml"
_PROJECT_CONFIG = Path("subsmith.toml")


class AIConfig(BaseModel):
    fast_model: str = "gemini/gemini-2.5-flash"
    deep_model: str = "gemini/gemini-2.5-pro"
    embedding_model: str = "gemini/text-embedding-004"
    api_key: str | None = None
    api_base: str | None = None
    temperature: float = 0.3
    timeout: float = 120.0
    num_retries: int = 2
    target_language: str = "fa"
    thinking_effort: str = "medium"  # reasoning effort for deep calls in thinking mode

    def model_for(self, tier: Tier) -> str:
        """Return the model identifier configured for a quality tier."""
        return self.deep_model if tier == Tier.DEEP else self.fast_model


class MemoryConfig(BaseModel):
    index_name: str | None = "subsmith-memory"
    db_path: Path = Path("./subsmith_data/memory.db")
    upsert_chunk_size: int = Field(default=100, ge=1, le=100)
    top_k: int = 5


class QueueConfig(BaseModel):
    db_path: Path = Path("./subsmith_data/jobs.db")
    workers: int = Field(default=1, ge=1)
    max_attempts: int = Field(default=2, ge=1)
    backoff_base: float = 10.0  # seconds, doubled per attempt
    poll_interval: float = 0.5


class TranslationConfig(BaseModel):
    batch_size: int = Field(default=15, ge=1)


class SubsmithConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SUBSMITH_",
        env_nested_delimiter="__",
    )

    ai: AIConfig = AIConfig()
    memory: MemoryConfig = MemoryConfig()
    queue: QueueConfig = QueueConfig()
    translation: TranslationConfig = TranslationConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Highest priority first: CLI (init) > env > TOML layers
        return (init_settings, env_settings, _TomlLayers(settings_cls))

    def require_credentials(self) -> None:
        """Fail fast when the AI key or the memory index name is missing."""
        if not self.ai.api_key:
            raise ConfigError(
                "Missing AI API key. Set SUBSMITH_AI__API_KEY or ai.api_key in subsmith.toml."
            )
        if not self.memory.index_name:
            raise ConfigError(
                "Missing memory index name. Set SUBSMITH_MEMORY__INDEX_NAME "
                "or memory.index_name in subsmith.toml."
            )


def _load_toml(path: Path) -> dict:
    """Load a TOML file if it exists, return empty dict otherwise."""
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class _TomlLayers(PydanticBaseSettingsSource):
    """Layers 1-3: default, user and project TOML files, later files winning."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        # Whole-document source, see __call__
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        data: dict = {}
        for path in (_DEFAULT_CONFIG, _USER_CONFIG, _PROJECT_CONFIG):
            data = _deep_merge(data, _load_toml(path))
        return data


def load_config(**cli_overrides: object) -> SubsmithConfig:
    """Load configuration from all layers and merge.

    Args:
        **cli_overrides: Direct overrides from CLI flags. Keys can be
            dot-separated (e.g. queue.workers=2).
    """
    overrides: dict = {}
    for key, value in cli_overrides.items():
        if value is None:
            continue
        parts = key.split(".")
        target = overrides
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = value

    # TOML layers and env vars are merged in by the settings sources
    return SubsmithConfig(**overrides)
