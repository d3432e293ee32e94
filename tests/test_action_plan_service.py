"""
Tests — Action plan service.

Covers:
    - Create with local-language text only; English overlay absent, English view falls back
    - Validation happens before any store call
    - Global is never persisted
    - Partial update semantics (omitted / None / empty string)
    - Status changes from any status to any status
    - Store errors propagate unchanged
    - Writes against an inactive element or pillar are rejected before the write
    - Listing: filters, Global, plans on inactive elements excluded
"""

from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from opex.core.exceptions import NotFoundError, ValidationError
from opex.models import db as _db
from opex.models.framework import ActionPlan
from opex.services import action_plan_service as svc
from opex.services.context import AggregationContext
from opex.services.records import ElementRecord, LocalizedText, PillarRecord


def _payload(element, **kw):
    payload = {
        "element_id": element.id,
        "country": "Brazil",
        "maturity_level": "FOUNDATION",
        "problem": "Checklist não aplicado",
        "action": "Treinar supervisores no checklist",
        "owner_name": "Maria Oliveira",
    }
    payload.update(kw)
    return payload


def _mock_ctx():
    store = MagicMock()
    return AggregationContext.create(store), store


# ═════════════════════════════════════════════════════════════════════════════
# CREATE
# ═════════════════════════════════════════════════════════════════════════════

def test_create_local_only_leaves_english_absent(ctx, en_ctx, brazil_scores):
    plan_id = svc.create_action_plan(ctx, _payload(brazil_scores["E2"]))

    row = _db.session.get(ActionPlan, plan_id)
    assert row.problem_en is None
    assert row.action_en is None
    assert row.problem_local == "Checklist não aplicado"
    assert row.problem == "Checklist não aplicado"
    assert row.solution == "Treinar supervisores no checklist"
    assert row.status == "PLANNED"

    view = svc.get_action_plan_view(en_ctx, plan_id)
    assert view.problem == "Checklist não aplicado"
    assert view.action == "Treinar supervisores no checklist"


def test_create_with_english_overlay(ctx, en_ctx, catalogue):
    plan_id = svc.create_action_plan(ctx, _payload(
        catalogue["E1"], problem_en="Checklist not applied", action_en="  ",
    ))

    row = _db.session.get(ActionPlan, plan_id)
    assert row.problem_en == "Checklist not applied"
    assert row.action_en is None

    view = svc.get_action_plan_view(en_ctx, plan_id)
    assert view.problem == "Checklist not applied"
    assert view.action == "Treinar supervisores no checklist"


def test_create_defaults_level_and_parses_due_date(ctx, catalogue):
    data = _payload(catalogue["E1"], due_date="2026-12-31")
    data.pop("maturity_level")

    plan_id = svc.create_action_plan(ctx, data)

    row = _db.session.get(ActionPlan, plan_id)
    assert row.maturity_level == "FOUNDATION"
    assert row.due_date == date(2026, 12, 31)


@pytest.mark.parametrize("field, value", [
    ("problem", ""),
    ("problem", "   "),
    ("action", None),
    ("owner_name", ""),
    ("country", ""),
    ("country", "Global"),
    ("maturity_level", "DIAMOND"),
    ("element_id", "3"),
    ("element_id", True),
    ("due_date", "31/31/2026"),
])
def test_create_validation_makes_no_store_call(field, value):
    ctx, store = _mock_ctx()
    data = {
        "element_id": 1,
        "country": "Brazil",
        "problem": "p",
        "action": "a",
        "owner_name": "o",
        field: value,
    }

    with pytest.raises(ValidationError) as exc:
        svc.create_action_plan(ctx, data)

    assert field in exc.value.details
    assert store.method_calls == []


def test_create_missing_owner_is_required():
    ctx, store = _mock_ctx()
    with pytest.raises(ValidationError) as exc:
        svc.create_action_plan(ctx, {"element_id": 1, "country": "Brazil", "problem": "p", "action": "a"})
    assert exc.value.details == {"owner_name": "required"}
    store.insert_action_plan.assert_not_called()


def test_create_unknown_element_raises_not_found(ctx, catalogue):
    with pytest.raises(NotFoundError):
        svc.create_action_plan(ctx, _payload(catalogue["E1"], element_id=9999))


def test_store_errors_propagate_unchanged():
    ctx, store = _mock_ctx()
    store.query_elements_by_ids.return_value = [
        ElementRecord(1, "SAF-01", LocalizedText("Permissão"), True, None, None),
    ]
    boom = OperationalError("INSERT", {}, Exception("connection lost"))
    store.insert_action_plan.side_effect = boom

    with pytest.raises(OperationalError) as exc:
        svc.create_action_plan(ctx, {
            "element_id": 1, "country": "Brazil", "problem": "p", "action": "a", "owner_name": "o",
        })

    assert exc.value is boom
    assert store.insert_action_plan.call_count == 1


@pytest.mark.parametrize("deactivate", ["E3", "QUA"])
def test_create_on_inactive_element_or_pillar_writes_nothing(ctx, catalogue, deactivate):
    catalogue[deactivate].is_active = False
    _db.session.flush()

    with pytest.raises(ValidationError) as exc:
        svc.create_action_plan(ctx, _payload(catalogue["E3"]))

    assert exc.value.details == {"element_id": "inactive"}
    assert _db.session.query(ActionPlan).count() == 0


def test_create_under_inactive_pillar_skips_insert():
    ctx, store = _mock_ctx()
    pillar = PillarRecord(7, "SAF", LocalizedText("Segurança"), LocalizedText(), False)
    store.query_elements_by_ids.return_value = [
        ElementRecord(1, "SAF-01", LocalizedText("Permissão"), True, 7, pillar),
    ]

    with pytest.raises(ValidationError):
        svc.create_action_plan(ctx, {
            "element_id": 1, "country": "Brazil", "problem": "p", "action": "a", "owner_name": "o",
        })

    store.insert_action_plan.assert_not_called()


# ═════════════════════════════════════════════════════════════════════════════
# UPDATE
# ═════════════════════════════════════════════════════════════════════════════

def test_update_omitted_fields_unchanged(ctx, catalogue):
    plan_id = svc.create_action_plan(ctx, _payload(
        catalogue["E1"], due_date="2026-06-30", problem_en="No checklist",
    ))

    svc.update_action_plan(ctx, plan_id, {"owner_name": "João Pereira"})

    row = _db.session.get(ActionPlan, plan_id)
    assert row.owner_name == "João Pereira"
    assert row.due_date == date(2026, 6, 30)
    assert row.problem_en == "No checklist"
    assert row.problem_local == "Checklist não aplicado"


def test_update_none_due_date_clears_it(ctx, catalogue):
    plan_id = svc.create_action_plan(ctx, _payload(catalogue["E1"], due_date="2026-06-30"))

    svc.update_action_plan(ctx, plan_id, {"due_date": None})

    assert _db.session.get(ActionPlan, plan_id).due_date is None


def test_update_empty_english_clears_overlay(ctx, catalogue):
    plan_id = svc.create_action_plan(ctx, _payload(catalogue["E1"], problem_en="No checklist"))

    written = svc.update_action_plan(ctx, plan_id, {"problem_en": ""})

    assert written == {"problem_en": None}
    assert _db.session.get(ActionPlan, plan_id).problem_en is None


def test_update_local_text_rewrites_legacy_columns(ctx, catalogue):
    plan_id = svc.create_action_plan(ctx, _payload(catalogue["E1"]))

    svc.update_action_plan(ctx, plan_id, {"problem": "Novo problema", "action": "Nova ação"})

    row = _db.session.get(ActionPlan, plan_id)
    assert (row.problem, row.problem_local) == ("Novo problema", "Novo problema")
    assert (row.solution, row.action_local) == ("Nova ação", "Nova ação")


def test_update_rejects_empty_payload_and_blank_problem():
    ctx, store = _mock_ctx()
    with pytest.raises(ValidationError):
        svc.update_action_plan(ctx, 1, {})
    with pytest.raises(ValidationError):
        svc.update_action_plan(ctx, 1, {"problem": "  "})
    store.update_action_plan.assert_not_called()


def test_update_missing_plan_raises_not_found(ctx):
    with pytest.raises(NotFoundError):
        svc.update_action_plan(ctx, 424242, {"owner_name": "x"})


def test_update_on_deactivated_element_leaves_row_unchanged(ctx, catalogue):
    plan_id = svc.create_action_plan(ctx, _payload(catalogue["E1"]))
    catalogue["E1"].is_active = False
    _db.session.flush()

    with pytest.raises(ValidationError) as exc:
        svc.update_action_plan(ctx, plan_id, {"owner_name": "João Pereira"})

    assert exc.value.details == {"element_id": "inactive"}
    assert _db.session.get(ActionPlan, plan_id).owner_name == "Maria Oliveira"


def test_last_write_wins(ctx, catalogue):
    plan_id = svc.create_action_plan(ctx, _payload(catalogue["E1"]))

    svc.update_action_plan(ctx, plan_id, {"owner_name": "Primeiro"})
    svc.update_action_plan(ctx, plan_id, {"owner_name": "Segundo"})

    assert _db.session.get(ActionPlan, plan_id).owner_name == "Segundo"


# ═════════════════════════════════════════════════════════════════════════════
# STATUS
# ═════════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("path", [
    ("DONE", "PLANNED"),
    ("CANCELLED", "IN_PROGRESS", "DONE"),
    ("PLANNED", "CANCELLED"),
])
def test_status_any_to_any(ctx, catalogue, path):
    plan_id = svc.create_action_plan(ctx, _payload(catalogue["E1"]))

    for status in path:
        assert svc.set_action_plan_status(ctx, plan_id, status) == status
        assert _db.session.get(ActionPlan, plan_id).status == status


def test_status_invalid_value():
    ctx, store = _mock_ctx()
    with pytest.raises(ValidationError):
        svc.set_action_plan_status(ctx, 1, "ARCHIVED")
    store.update_action_plan_status.assert_not_called()


# ═════════════════════════════════════════════════════════════════════════════
# LISTING
# ═════════════════════════════════════════════════════════════════════════════

def test_list_filters_and_global(ctx, catalogue):
    br = svc.create_action_plan(ctx, _payload(catalogue["E1"]))
    fr = svc.create_action_plan(ctx, _payload(catalogue["E2"], country="France"))
    svc.set_action_plan_status(ctx, fr, "IN_PROGRESS")

    assert [v.plan.id for v in svc.list_action_plans(ctx, country="Brazil")] == [br]
    assert [v.plan.id for v in svc.list_action_plans(ctx, status="IN_PROGRESS")] == [fr]
    assert {v.plan.id for v in svc.list_action_plans(ctx, country="Global")} == {br, fr}
    assert svc.list_action_plans(ctx, level="GOLD") == []


def test_list_excludes_plans_on_inactive_pillar(ctx, catalogue):
    svc.create_action_plan(ctx, _payload(catalogue["E1"]))
    keep = svc.create_action_plan(ctx, _payload(catalogue["E3"]))
    catalogue["SAF"].is_active = False
    _db.session.flush()

    views = svc.list_action_plans(ctx)

    assert [v.plan.id for v in views] == [keep]
    assert views[0].element.pillar.code == "QUA"


def test_get_view_for_inactive_element_is_not_found(ctx, catalogue):
    plan_id = svc.create_action_plan(ctx, _payload(catalogue["E1"]))
    catalogue["E1"].is_active = False
    _db.session.flush()

    with pytest.raises(NotFoundError):
        svc.get_action_plan_view(ctx, plan_id)


def test_list_rejects_bad_status_filter(ctx):
    with pytest.raises(ValidationError):
        svc.list_action_plans(ctx, status="OPEN")
