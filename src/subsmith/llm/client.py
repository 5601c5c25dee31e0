"""AI capability gateway via LiteLLM.

Three calls, each with the same safety settings, timeout and retry budget:
structured JSON generation, free-text generation and batch embedding. Any
upstream fault surfaces as :class:`AiCallError`; callers never see
provider-specific exceptions.
"""

from __future__ import annotations

import json
import re
from typing import Any

import litellm

from subsmith.core.config import AIConfig
from subsmith.core.errors import AiCallError, ConfigError

# Applied to every generation call
SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _strip_code_fence(text: str) -> str:
    return _CODE_FENCE_RE.sub("", text.strip())


class AIGateway:
    """Thin wrapper around litellm with uniform error wrapping."""

    def __init__(self, config: AIConfig) -> None:
        if not config.api_key:
            raise ConfigError("AI gateway requires an API key (ai.api_key).")
        self.config = config
        # Drop params a provider does not support (safety_settings, reasoning_effort)
        litellm.drop_params = True

    def _common_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "api_key": self.config.api_key,
            "timeout": self.config.timeout,
            "num_retries": self.config.num_retries,
        }
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base
        return kwargs

    def _complete(self, model: str, prompt: str, thinking: bool, **kwargs: Any) -> str:
        if thinking:
            kwargs["reasoning_effort"] = self.config.thinking_effort
        try:
            response = litellm.completion(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.config.temperature,
                safety_settings=SAFETY_SETTINGS,
                **self._common_kwargs(),
                **kwargs,
            )
        except Exception as e:
            raise AiCallError(f"AI call to {model} failed: {e}", model=model) from e

        choice = response.choices[0]
        content = choice.message.content
        if not content:
            reason = getattr(choice, "finish_reason", None) or "empty response"
            raise AiCallError(f"AI call to {model} returned no content ({reason})", model=model)
        return content

    def generate_structured(self, model: str, prompt: str, thinking: bool = False) -> Any:
        """Generate a JSON value from a prompt."""
        content = self._complete(
            model, prompt, thinking, response_format={"type": "json_object"}
        )
        try:
            return json.loads(_strip_code_fence(content))
        except json.JSONDecodeError as e:
            raise AiCallError(f"AI call to {model} returned malformed JSON: {e}", model=model) from e

    def generate_text(self, model: str, prompt: str, thinking: bool = False) -> str:
        """Generate free text from a prompt."""
        return self._complete(model, prompt, thinking).strip()

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts, returning one vector per input in input order."""
        if not texts:
            return []
        model = self.config.embedding_model
        try:
            response = litellm.embedding(model=model, input=texts, **self._common_kwargs())
        except Exception as e:
            raise AiCallError(f"Embedding call to {model} failed: {e}", model=model) from e

        items = sorted(response.data, key=lambda item: _get(item, "index", 0))
        vectors = [list(_get(item, "embedding", [])) for item in items]
        if len(vectors) != len(texts):
            raise AiCallError(
                f"Embedding call to {model} returned {len(vectors)} vectors "
                f"for {len(texts)} inputs",
                model=model,
            )
        return vectors


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Get attribute or dict key — LiteLLM returns both shapes."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)
