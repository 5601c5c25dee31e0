"""Target languages the transcreation prompts can name.

Codes follow ISO 639-1; the name is what gets written into prompts.
"""

from __future__ import annotations

# fmt: off
TARGET_LANGUAGES: dict[str, str] = {
    "ar": "Arabic",      "de": "German",      "en": "English",
    "es": "Spanish",     "fa": "Persian",     "fr": "French",
    "he": "Hebrew",      "hi": "Hindi",       "id": "Indonesian",
    "it": "Italian",     "ja": "Japanese",    "ko": "Korean",
    "nl": "Dutch",       "pl": "Polish",      "pt": "Portuguese",
    "ru": "Russian",     "sv": "Swedish",     "th": "Thai",
    "tr": "Turkish",     "uk": "Ukrainian",   "ur": "Urdu",
    "vi": "Vietnamese",  "zh": "Chinese",
}
# fmt: on


def language_name(code: str) -> str:
    """Get the full language name for a code, or the code itself if unknown."""
    return TARGET_LANGUAGES.get(code, code)


def validate_language(code: str) -> str:
    """Validate a language code and return it, raising ValueError if invalid."""
    if code not in TARGET_LANGUAGES:
        raise ValueError(
            f"Unsupported target language: '{code}'. "
            f"Supported: {', '.join(sorted(TARGET_LANGUAGES))}."
        )
    return code
