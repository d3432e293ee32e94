"""
Tests — Backlog resolver.

Covers:
    - Gap selection (score < 100) for one country
    - Active filter: inactive element / inactive pillar removed, score rows kept
    - Global: one entry per country × element, never merged
    - Plans matched on (element, country) at the requested level
    - Early return without further store calls when there are no scores
    - Score rows pointing at a missing element are silently dropped
    - Backlog view ordering and filters
"""

from unittest.mock import MagicMock

from opex.models import db as _db
from opex.models.framework import LevelScore
from opex.services.action_plan_service import create_action_plan
from opex.services.backlog_service import resolve_backlog, resolve_backlog_view
from opex.services.context import AggregationContext
from opex.services.records import ElementRecord, LevelScoreRecord, LocalizedText, PillarRecord
from conftest import add_element, add_pillar, add_score


def _ids(entries):
    return sorted((e.element.id, e.country) for e in entries)


def _plan(ctx, element, country, level="FOUNDATION"):
    return create_action_plan(ctx, {
        "element_id": element.id,
        "country": country,
        "maturity_level": level,
        "problem": "Procedimento desatualizado",
        "action": "Revisar procedimento",
        "owner_name": "Ana Souza",
    })


# ═════════════════════════════════════════════════════════════════════════════
# GAP SELECTION
# ═════════════════════════════════════════════════════════════════════════════

def test_brazil_gaps_exclude_completed_elements(ctx, brazil_scores):
    entries = resolve_backlog(ctx, "Brazil", "FOUNDATION")

    assert _ids(entries) == sorted([
        (brazil_scores["E2"].id, "Brazil"),
        (brazil_scores["E3"].id, "Brazil"),
    ])
    assert all(e.score < 100 for e in entries)
    assert all(not e.has_plan for e in entries)


def test_other_levels_and_countries_are_ignored(ctx, brazil_scores):
    add_score(brazil_scores["E1"], "Brazil", 10, level="BRONZE")
    add_score(brazil_scores["E1"], "France", 10)

    entries = resolve_backlog(ctx, "Brazil", "FOUNDATION")

    assert {e.country for e in entries} == {"Brazil"}
    assert {e.level for e in entries} == {"FOUNDATION"}
    assert len(entries) == 2


def test_no_scores_returns_empty_list(ctx, catalogue):
    assert resolve_backlog(ctx, "Argentina", "FOUNDATION") == []


def test_resolve_is_idempotent(ctx, brazil_scores):
    first = resolve_backlog(ctx, "Brazil", "FOUNDATION")
    second = resolve_backlog(ctx, "Brazil", "FOUNDATION")
    assert set(first) == set(second)


# ═════════════════════════════════════════════════════════════════════════════
# ACTIVE FILTER
# ═════════════════════════════════════════════════════════════════════════════

def test_deactivated_pillar_removes_its_elements(ctx, brazil_scores):
    brazil_scores["QUA"].is_active = False
    _db.session.flush()

    entries = resolve_backlog(ctx, "Brazil", "FOUNDATION")

    assert _ids(entries) == [(brazil_scores["E2"].id, "Brazil")]
    # Score row untouched
    row = LevelScore.query.filter_by(element_id=brazil_scores["E3"].id, country="Brazil").one()
    assert row.score == 0


def test_deactivated_element_is_removed(ctx, brazil_scores):
    brazil_scores["E2"].is_active = False
    _db.session.flush()

    entries = resolve_backlog(ctx, "Brazil", "FOUNDATION")

    assert _ids(entries) == [(brazil_scores["E3"].id, "Brazil")]


def test_no_entry_has_inactive_flags(ctx, catalogue):
    dormant = add_pillar("ENV", "Meio ambiente", is_active=False)
    e4 = add_element(dormant, "ENV-01")
    e5 = add_element(catalogue["SAF"], "SAF-03", is_active=False)
    for element in (catalogue["E1"], catalogue["E2"], e4, e5):
        add_score(element, "Brazil", 40)

    entries = resolve_backlog(ctx, "Brazil", "FOUNDATION")

    assert len(entries) == 2
    for entry in entries:
        assert entry.element.is_active
        assert entry.element.pillar.is_active


# ═════════════════════════════════════════════════════════════════════════════
# GLOBAL
# ═════════════════════════════════════════════════════════════════════════════

def test_global_keeps_one_entry_per_country(ctx, catalogue):
    e1 = catalogue["E1"]
    add_score(e1, "Brazil", 50)
    add_score(e1, "France", 80)

    entries = resolve_backlog(ctx, "Global", "FOUNDATION")

    assert _ids(entries) == [(e1.id, "Brazil"), (e1.id, "France")]
    assert sorted(e.score for e in entries) == [50, 80]


def test_plans_attach_to_their_own_country_only(ctx, catalogue):
    e1 = catalogue["E1"]
    add_score(e1, "Brazil", 50)
    add_score(e1, "France", 80)
    _plan(ctx, e1, "Brazil")

    entries = {e.country: e for e in resolve_backlog(ctx, "Global", "FOUNDATION")}

    assert entries["Brazil"].has_plan
    assert len(entries["Brazil"].action_plans) == 1
    assert not entries["France"].has_plan


def test_plans_at_other_levels_do_not_count(ctx, brazil_scores):
    _plan(ctx, brazil_scores["E2"], "Brazil", level="BRONZE")

    entries = resolve_backlog(ctx, "Brazil", "FOUNDATION")

    assert not any(e.has_plan for e in entries)


# ═════════════════════════════════════════════════════════════════════════════
# STORE INTERACTION
# ═════════════════════════════════════════════════════════════════════════════

def _mock_ctx():
    store = MagicMock()
    return AggregationContext.create(store, language="pt"), store


def test_empty_scores_skip_element_and_plan_queries():
    ctx, store = _mock_ctx()
    store.query_level_scores.return_value = []

    assert resolve_backlog(ctx, "Brazil", "FOUNDATION") == []

    store.query_level_scores.assert_called_once_with("FOUNDATION", country="Brazil", score_less_than=100)
    store.query_elements_by_ids.assert_not_called()
    store.query_action_plans_by_element_ids.assert_not_called()


def test_global_query_has_no_country_filter():
    ctx, store = _mock_ctx()
    store.query_level_scores.return_value = []

    resolve_backlog(ctx, "Global", "SILVER")

    store.query_level_scores.assert_called_once_with("SILVER", country=None, score_less_than=100)


def test_missing_element_is_silently_dropped():
    ctx, store = _mock_ctx()
    pillar = PillarRecord(1, "SAF", LocalizedText("Segurança"), LocalizedText(), True)
    known = ElementRecord(10, "SAF-01", LocalizedText("Permissão"), True, 1, pillar)
    store.query_level_scores.return_value = [
        LevelScoreRecord(10, "Brazil", "FOUNDATION", 40),
        LevelScoreRecord(99, "Brazil", "FOUNDATION", 20),
    ]
    store.query_elements_by_ids.return_value = [known]
    store.query_action_plans_by_element_ids.return_value = []

    entries = resolve_backlog(ctx, "Brazil", "FOUNDATION")

    assert [e.element.id for e in entries] == [10]


def test_duplicate_score_rows_collapse_to_one_entry():
    ctx, store = _mock_ctx()
    element = ElementRecord(10, "SAF-01", LocalizedText("Permissão"), True, None, None)
    store.query_level_scores.return_value = [
        LevelScoreRecord(10, "Brazil", "FOUNDATION", 40),
        LevelScoreRecord(10, "Brazil", "FOUNDATION", 40),
    ]
    store.query_elements_by_ids.return_value = [element]
    store.query_action_plans_by_element_ids.return_value = []

    assert len(resolve_backlog(ctx, "Brazil", "FOUNDATION")) == 1


# ═════════════════════════════════════════════════════════════════════════════
# BACKLOG VIEW
# ═════════════════════════════════════════════════════════════════════════════

def test_view_sorted_lowest_score_first(ctx, brazil_scores):
    entries = resolve_backlog_view(ctx, "Brazil", "FOUNDATION")
    assert [e.score for e in entries] == [0, 60]


def test_view_filters_by_pillar(ctx, brazil_scores):
    entries = resolve_backlog_view(ctx, "Brazil", "FOUNDATION", pillar_id=brazil_scores["SAF"].id)
    assert [e.element.code for e in entries] == ["SAF-02"]


def test_view_only_without_plan(ctx, brazil_scores):
    _plan(ctx, brazil_scores["E2"], "Brazil")

    entries = resolve_backlog_view(ctx, "Brazil", "FOUNDATION", only_without_plan=True)

    assert [e.element.code for e in entries] == ["QUA-01"]
