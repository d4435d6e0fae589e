"""Language name → structural extractor lookup."""

from __future__ import annotations

from codevault.ingest.base import BaseExtractor
from codevault.ingest.go_extractor import GoExtractor

_EXTRACTORS: dict[str, type[BaseExtractor]] = {
    "go": GoExtractor,
    "golang": GoExtractor,
}


def get_extractor(language: str) -> BaseExtractor:
    """Return a fresh extractor for *language* (case-insensitive).

    Raises:
        ValueError: If no extractor is registered for the language.
    """
    cls = _EXTRACTORS.get(language.lower())
    if cls is None:
        supported = ", ".join(sorted(_EXTRACTORS))
        raise ValueError(f"Unsupported language '{language}'. Supported: {supported}")
    return cls()


def supported_languages() -> list[str]:
    return sorted({cls.language for cls in _EXTRACTORS.values()})
