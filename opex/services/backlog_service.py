"""Backlog resolver — gaps for a country at a maturity level.

A gap is an (element, country) pair whose score at the level is below 100.
The resolver joins score rows, elements (with their pillar) and action plans
client-side and applies the active-flag filter as the very last step, so a
deactivated pillar or element disappears from every backlog immediately
while its score rows stay untouched.
"""

import logging
from collections import defaultdict

from opex.models.framework import COMPLETE_SCORE, GLOBAL_COUNTRY
from opex.services.records import BacklogEntry

logger = logging.getLogger(__name__)


def is_global(country):
    return country == GLOBAL_COUNTRY


def country_filter(country):
    """Store-level country filter: None for the synthetic Global country."""
    return None if is_global(country) else country


def join_entries(scores, elements, plans, level):
    """Combine score rows with their element and same-country action plans.

    Emits one entry per score row; plans are matched on (element, country)
    so a Global query keeps one row per country × element. Rows whose
    element is missing, inactive, or under an inactive pillar are dropped.
    """
    elements_by_id = {e.id: e for e in elements}
    plans_by_key = defaultdict(list)
    for plan in plans:
        plans_by_key[(plan.element_id, plan.country)].append(plan)

    entries = []
    seen = set()
    for score in scores:
        key = (score.element_id, score.country)
        if key in seen:
            continue
        seen.add(key)
        entries.append(BacklogEntry(
            element=elements_by_id.get(score.element_id),
            country=score.country,
            level=level,
            score=score.score,
            notes=score.notes,
            action_plans=tuple(plans_by_key.get(key, ())),
        ))

    # Active filter last: missing, inactive, or orphaned elements drop out here
    return [e for e in entries if e.element is not None and e.element.is_countable]


def resolve_backlog(ctx, country, level):
    """Return every gap for ``country`` (or all countries for Global) at ``level``.

    Ordering is unspecified.
    """
    store = ctx.store
    scores = store.query_level_scores(
        level, country=country_filter(country), score_less_than=COMPLETE_SCORE,
    )
    if not scores:
        return []

    element_ids = {s.element_id for s in scores}
    elements = store.query_elements_by_ids(element_ids)
    plans = store.query_action_plans_by_element_ids(element_ids, level=level)

    entries = join_entries(scores, elements, plans, level)
    logger.debug(
        "Backlog resolved country=%s level=%s scores=%d entries=%d",
        country, level, len(scores), len(entries),
    )
    return entries


def resolve_backlog_view(ctx, country, level, pillar_id=None, only_without_plan=False):
    """Backlog page listing: optional pillar / "without plan" filters, lowest score first."""
    entries = resolve_backlog(ctx, country, level)
    if pillar_id is not None:
        entries = [e for e in entries if e.element.pillar_id == pillar_id]
    if only_without_plan:
        entries = [e for e in entries if not e.has_plan]
    return sorted(entries, key=lambda e: (e.score, e.country, e.element.code or "", e.element.id))
