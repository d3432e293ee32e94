"""Localized field resolution.

Every place that displays or exports bilingual text goes through
``resolve_localized`` so the fallback order is the same everywhere:

    1. the requested language (local text, or the English overlay)
    2. the local-language canonical text
    3. the legacy single-language column
    4. empty string

A stored empty string counts as a value ("translated to empty"); only
``None`` ("not translated yet") falls through to the next step.
"""

from __future__ import annotations

from opex.services.records import LocalizedText

ENGLISH = "en"


def normalize_language(language: str | None, local_language: str) -> str:
    """Reduce a locale tag (``en-US``, ``pt_BR``, ``en;q=0.9,pt``) to its language."""
    if not language:
        return local_language
    tag = language.split(",", 1)[0].split(";", 1)[0].strip()
    return tag.replace("_", "-").split("-", 1)[0].lower() or local_language


def resolve_localized(text: LocalizedText | None, language: str, local_language: str) -> str:
    if text is None:
        return ""
    for candidate in (
        text.for_language(language, local_language),
        text.local,
        text.legacy,
    ):
        if candidate is not None:
            return candidate
    return ""
