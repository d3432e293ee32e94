"""
Maturity statistics service.

Aggregates the backlog and score tables into the view models of the
dashboard widgets:
  - Country dashboard (catalogue size, gaps, gaps without plan, completions per level)
  - Per-pillar gap coverage at FOUNDATION
  - Per-level progress with level locking
  - Supervisor view across every country

Counting rules shared by every function:
  - only elements that are active and under an active pillar are counted
  - "Global" means every real country; per-country rows are never merged
  - averages keep exact integer sums and are rounded half away from zero
    only when the display percentage is produced
"""

import logging
from collections import defaultdict

from opex.models.framework import (
    COMPLETE_SCORE,
    DEFAULT_LEVEL,
    MATURITY_LEVELS,
    STATUS_DONE,
)
from opex.services.backlog_service import country_filter, join_entries, resolve_backlog
from opex.services.records import (
    DashboardStats,
    GlobalCountryStats,
    LevelStats,
    PillarStats,
    PillarSummary,
)
from opex.utils.helpers import round_percentage

logger = logging.getLogger(__name__)

UNKNOWN_PILLAR_ID = "unknown"
UNKNOWN_PILLAR_CODE = "-"
UNKNOWN_PILLAR_NAME = "No pillar"


def _countable_ids(ctx, element_ids):
    """Subset of ``element_ids`` that are active under an active pillar."""
    if not element_ids:
        return set()
    return {e.id for e in ctx.store.query_elements_by_ids(element_ids) if e.is_countable}


def _unique_pairs(scores):
    """Collapse score rows to one per (element, country) pair."""
    pairs = {}
    for s in scores:
        pairs.setdefault((s.element_id, s.country), s)
    return list(pairs.values())


def _pillar_key(entry):
    pillar = entry.element.pillar
    return pillar.id if pillar else UNKNOWN_PILLAR_ID


def _scores_by_level(ctx, country):
    return {
        level: _unique_pairs(ctx.store.query_level_scores(level, country=country_filter(country)))
        for level in MATURITY_LEVELS
    }


# ── Country dashboard ────────────────────────────────────────────────────


def compute_dashboard_stats(ctx, country, level):
    """Dashboard summary for one country (or Global) at ``level``.

    ``total_elements`` is the catalogue size and is not filtered by country.
    ``maturity_counts`` always spans the five levels regardless of ``level``.
    """
    total_elements = ctx.store.query_active_element_count()
    backlog = resolve_backlog(ctx, country, level)
    without_plan = sum(1 for e in backlog if not e.has_plan)

    scores_by_level = _scores_by_level(ctx, country)
    complete_ids = {
        s.element_id
        for scores in scores_by_level.values()
        for s in scores
        if s.score == COMPLETE_SCORE
    }
    countable = _countable_ids(ctx, complete_ids)
    maturity_counts = {
        lvl: sum(1 for s in scores if s.score == COMPLETE_SCORE and s.element_id in countable)
        for lvl, scores in scores_by_level.items()
    }

    return DashboardStats(
        total_elements=total_elements,
        gap_elements=len(backlog),
        elements_without_plan=without_plan,
        maturity_counts=maturity_counts,
    )


def compute_maturity_level_stats(ctx, country):
    """Progress per maturity level for the level cards.

    A level is locked until the previous level averages 100; FOUNDATION is
    never locked. For Global, ``total`` scales the catalogue by the number
    of countries holding scores at that level.
    """
    catalogue = ctx.store.query_active_element_count()
    scores_by_level = _scores_by_level(ctx, country)
    all_ids = {s.element_id for scores in scores_by_level.values() for s in scores}
    countable = _countable_ids(ctx, all_ids)

    result = []
    previous_avg = None
    for level in MATURITY_LEVELS:
        scores = [s for s in scores_by_level[level] if s.element_id in countable]
        countries = {s.country for s in scores} or {country}
        total = catalogue * len(countries)
        completed = sum(1 for s in scores if s.score == COMPLETE_SCORE)
        avg_score = round_percentage(sum(s.score for s in scores), len(scores))
        result.append(LevelStats(
            level=level,
            total=total,
            completed=completed,
            avg_score=avg_score,
            completion_percentage=round_percentage(completed * 100, total),
            is_locked=previous_avg is not None and previous_avg < COMPLETE_SCORE,
        ))
        previous_avg = avg_score
    return result


# ── Per-pillar coverage ──────────────────────────────────────────────────


def compute_pillar_stats(ctx, country):
    """FOUNDATION gaps grouped by pillar, sorted by pillar code."""
    by_pillar = {}
    for entry in resolve_backlog(ctx, country, DEFAULT_LEVEL):
        pillar = entry.element.pillar
        key = _pillar_key(entry)
        stats = by_pillar.get(key)
        if stats is None:
            stats = PillarStats(
                pillar_id=key,
                code=pillar.code if pillar else UNKNOWN_PILLAR_CODE,
                name=ctx.localize(pillar.name) if pillar else UNKNOWN_PILLAR_NAME,
            )
            by_pillar[key] = stats

        stats.gap_elements += 1
        if entry.has_plan:
            stats.elements_with_plan += 1
        else:
            stats.elements_without_plan += 1

    return sorted(by_pillar.values(), key=lambda p: p.code)


# ── Supervisor view ──────────────────────────────────────────────────────


def _pillar_summary(ctx, entries):
    grouped = defaultdict(list)
    for entry in entries:
        grouped[_pillar_key(entry)].append(entry)

    summary = []
    for key, pillar_entries in grouped.items():
        pillar = pillar_entries[0].element.pillar
        summary.append(PillarSummary(
            pillar_id=key,
            pillar_code=pillar.code if pillar else UNKNOWN_PILLAR_CODE,
            pillar_name=ctx.localize(pillar.name) if pillar else UNKNOWN_PILLAR_NAME,
            gap_count=sum(1 for e in pillar_entries if e.score < COMPLETE_SCORE),
            avg_score=round_percentage(sum(e.score for e in pillar_entries), len(pillar_entries)),
        ))
    return sorted(summary, key=lambda p: p.pillar_code)


def compute_global_country_stats(ctx):
    """One row per country holding at least one FOUNDATION score, sorted by name.

    Gap counts are scoped to FOUNDATION gaps; action plan totals cover every
    FOUNDATION plan the country has on a counted element, gap or not.
    """
    store = ctx.store
    scores = _unique_pairs(store.query_level_scores(DEFAULT_LEVEL))
    if not scores:
        return []

    total_elements = store.query_active_element_count()
    plans = store.query_action_plans(level=DEFAULT_LEVEL)
    element_ids = {s.element_id for s in scores} | {p.element_id for p in plans}
    elements = store.query_elements_by_ids(element_ids)
    countable = {e.id for e in elements if e.is_countable}

    entries_by_country = defaultdict(list)
    for entry in join_entries(scores, elements, plans, DEFAULT_LEVEL):
        entries_by_country[entry.country].append(entry)

    plans_by_country = defaultdict(list)
    for plan in plans:
        if plan.element_id in countable:
            plans_by_country[plan.country].append(plan)

    result = []
    for country in sorted({s.country for s in scores}):
        entries = entries_by_country.get(country, [])
        gaps = [e for e in entries if e.score < COMPLETE_SCORE]
        with_plan = sum(1 for e in gaps if e.has_plan)
        country_plans = plans_by_country.get(country, [])

        result.append(GlobalCountryStats(
            country=country,
            total_elements=total_elements,
            gap_elements=len(gaps),
            elements_with_plan=with_plan,
            elements_without_plan=len(gaps) - with_plan,
            total_action_plans=len(country_plans),
            completed_action_plans=sum(1 for p in country_plans if p.status == STATUS_DONE),
            foundation_avg_score=round_percentage(sum(e.score for e in entries), len(entries)),
            foundation_complete_count=sum(1 for e in entries if e.score == COMPLETE_SCORE),
            pillar_summary=_pillar_summary(ctx, entries),
        ))

    logger.debug("Global stats computed for %d countries", len(result))
    return result
