"""Explicit per-call context for the aggregation core.

Aggregators and mutators receive an ``AggregationContext`` instead of
reading a shared session/client singleton, so every function is pure given
its inputs and can be exercised against any ``StoreAdapter``.
"""

from __future__ import annotations

from dataclasses import dataclass

from opex.services.localization import normalize_language, resolve_localized
from opex.services.records import LocalizedText
from opex.services.store import StoreAdapter


@dataclass(frozen=True)
class AggregationContext:
    store: StoreAdapter
    language: str = "pt"
    local_language: str = "pt"

    @classmethod
    def create(cls, store: StoreAdapter, language: str | None = None, local_language: str = "pt"):
        return cls(
            store=store,
            language=normalize_language(language, local_language),
            local_language=local_language,
        )

    def localize(self, text: LocalizedText | None) -> str:
        return resolve_localized(text, self.language, self.local_language)
