"""
String lookup by key and language.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{(\w+)\}")


class Localizer:
    """
    Resolves text keys to strings.

    Lookup order: current language, fallback language, then "[key]".
    `{name}` placeholders are replaced from keyword arguments; unknown
    placeholders are left as they are.
    """

    def __init__(
        self,
        strings: dict[str, dict[str, str]] | None = None,
        language: str = "en",
        fallback_language: str = "en",
    ):
        self.strings = strings or {}
        self.fallback_language = fallback_language
        self.language = fallback_language
        self.set_language(language)

    @classmethod
    def from_directory(cls, path: str | Path, language: str = "en", fallback_language: str = "en") -> Localizer:
        """Load every `<lang>.json` file in a directory."""
        strings: dict[str, dict[str, str]] = {}
        directory = Path(path)
        if not directory.exists():
            logger.warning(f"Locale directory not found: {directory}")
        else:
            for file_path in sorted(directory.glob("*.json")):
                try:
                    with open(file_path, 'r', encoding='utf-8') as f:
                        strings[file_path.stem] = json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    logger.error(f"Failed to load locale {file_path}: {e}")
        return cls(strings, language=language, fallback_language=fallback_language)

    @property
    def languages(self) -> list[str]:
        return list(self.strings)

    def set_language(self, language: str) -> str:
        """Switch language. Unknown languages fall back. Returns the language in use."""
        if language in self.strings or not self.strings:
            self.language = language
        else:
            logger.warning(f"Language '{language}' not available, using '{self.fallback_language}'")
            self.language = self.fallback_language
        return self.language

    def has(self, key: str) -> bool:
        return any(key in self.strings.get(lang, {}) for lang in (self.language, self.fallback_language))

    def get(self, key: str, **variables: Any) -> str:
        text = self.strings.get(self.language, {}).get(key)
        if text is None:
            text = self.strings.get(self.fallback_language, {}).get(key)
        if text is None:
            logger.warning(f"Missing localization key '{key}' ({self.language})")
            return f"[{key}]"
        if variables:
            text = PLACEHOLDER.sub(
                lambda m: str(variables[m.group(1)]) if m.group(1) in variables else m.group(0),
                text,
            )
        return text

    __call__ = get
