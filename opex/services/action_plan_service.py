"""Action plan service — bilingual remediation records for gaps.

Transaction policy: the store flushes, never commits. Caller (route
handler) is responsible for db.session.commit().

Rules:
- Local-language problem/action text is canonical and required; it is also
  written to the legacy ``problem`` / ``solution`` columns.
- English overlays are stored only when non-empty. On update an empty
  string clears the overlay; an omitted key leaves it unchanged.
- ``due_date``: omitted → unchanged, ``None`` → cleared.
- Status: any of the four values, from any status. No transition graph.
- The synthetic Global country is rejected; it must never be persisted.
- Input validation runs before any store call. Plans are only created or
  edited against an active element under an active pillar, checked before
  the write.
- Store errors propagate unchanged; there is no retry and no
  optimistic-concurrency token (last write wins).
- Cached stats are invalidated by the route handler after the commit.
"""
import logging

from opex.core.exceptions import NotFoundError, ValidationError
from opex.models.framework import (
    ACTION_PLAN_STATUSES,
    DEFAULT_LEVEL,
    DEFAULT_STATUS,
    GLOBAL_COUNTRY,
    MATURITY_LEVELS,
)
from opex.services.records import ActionPlanView
from opex.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

VALID_STATUSES = ACTION_PLAN_STATUSES
VALID_LEVELS = MATURITY_LEVELS


# ── validation helpers ───────────────────────────────────────────────────────

def _required_text(data, field):
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", details={field: "required"})
    return value.strip()


def _optional_overlay(value, field):
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "invalid"})
    return value.strip() or None


def validate_country(country):
    if not isinstance(country, str) or not country.strip():
        raise ValidationError("country is required", details={"country": "required"})
    country = country.strip()
    if country == GLOBAL_COUNTRY:
        raise ValidationError(
            f"'{GLOBAL_COUNTRY}' is an aggregate view, not a country",
            details={"country": "invalid"},
        )
    return country


def validate_level(level):
    if level not in VALID_LEVELS:
        raise ValidationError(
            f"maturity_level must be one of: {', '.join(VALID_LEVELS)}",
            details={"maturity_level": "invalid"},
        )
    return level


def validate_status(status):
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(VALID_STATUSES)}",
            details={"status": "invalid"},
        )
    return status


def _due_date(value):
    try:
        return parse_date_input(value)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"due_date": "invalid"}) from exc


def _element_id(value):
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError("element_id must be a positive integer", details={"element_id": "invalid"})
    return value


def _require_countable_element(ctx, element_id):
    """Plans may only be written against an active element under an active pillar."""
    elements = ctx.store.query_elements_by_ids([element_id])
    if not elements:
        raise NotFoundError(resource="Element", resource_id=element_id)
    if not elements[0].is_countable:
        raise ValidationError(
            "element or its pillar is inactive",
            details={"element_id": "inactive"},
        )
    return elements[0]


# ── mutations ────────────────────────────────────────────────────────────────

def create_action_plan(ctx, data):
    """Create an action plan and return its id.

    Args:
        ctx: AggregationContext carrying the store.
        data: Dict with element_id, country, problem, action, owner_name and
              optional maturity_level, due_date, problem_en, action_en.

    Raises:
        ValidationError: before any store call when input is invalid.
    """
    element_id = _element_id(data.get("element_id"))
    country = validate_country(data.get("country"))
    problem = _required_text(data, "problem")
    action = _required_text(data, "action")
    owner_name = _required_text(data, "owner_name")
    level = validate_level(data.get("maturity_level") or DEFAULT_LEVEL)
    due_date = _due_date(data.get("due_date"))

    record = {
        "element_id": element_id,
        "country": country,
        "maturity_level": level,
        "problem": problem,
        "solution": action,
        "problem_local": problem,
        "action_local": action,
        "owner_name": owner_name,
        "status": DEFAULT_STATUS,
    }
    if due_date is not None:
        record["due_date"] = due_date

    problem_en = _optional_overlay(data.get("problem_en"), "problem_en")
    if problem_en is not None:
        record["problem_en"] = problem_en
    action_en = _optional_overlay(data.get("action_en"), "action_en")
    if action_en is not None:
        record["action_en"] = action_en

    _require_countable_element(ctx, element_id)
    plan_id = ctx.store.insert_action_plan(record)
    logger.info(
        "Action plan created id=%s element=%s country=%s level=%s",
        plan_id, element_id, country, level,
    )
    return plan_id


def update_action_plan(ctx, plan_id, data):
    """Apply the keys present in ``data`` to an existing action plan.

    Returns the dict of columns that were written.
    """
    partial = {}

    if "problem" in data:
        problem = _required_text(data, "problem")
        partial["problem"] = problem
        partial["problem_local"] = problem
    if "action" in data:
        action = _required_text(data, "action")
        partial["solution"] = action
        partial["action_local"] = action
    if "problem_en" in data:
        partial["problem_en"] = _optional_overlay(data["problem_en"], "problem_en")
    if "action_en" in data:
        partial["action_en"] = _optional_overlay(data["action_en"], "action_en")
    if "owner_name" in data:
        partial["owner_name"] = _required_text(data, "owner_name")
    if "due_date" in data:
        partial["due_date"] = _due_date(data["due_date"])

    if not partial:
        raise ValidationError("No updatable fields provided")

    plan = ctx.store.get_action_plan(plan_id)
    if plan is None:
        raise NotFoundError(resource="ActionPlan", resource_id=plan_id)
    _require_countable_element(ctx, plan.element_id)
    ctx.store.update_action_plan(plan_id, partial)
    logger.info("Action plan updated id=%s fields=%s", plan_id, sorted(partial))
    return partial


def set_action_plan_status(ctx, plan_id, status):
    """Move an action plan to any of the four statuses."""
    status = validate_status(status)
    ctx.store.update_action_plan_status(plan_id, status)
    logger.info("Action plan status changed id=%s status=%s", plan_id, status)
    return status


# ── reads ────────────────────────────────────────────────────────────────────

def _views(ctx, plans):
    elements = {
        e.id: e for e in ctx.store.query_elements_by_ids({p.element_id for p in plans})
    }
    views = []
    for plan in plans:
        element = elements.get(plan.element_id)
        # Plans pointing at a missing or deactivated element drop out of listings
        if element is None or not element.is_countable:
            continue
        views.append(ActionPlanView(
            plan=plan,
            element=element,
            problem=ctx.localize(plan.problem),
            action=ctx.localize(plan.action),
        ))
    return views


def list_action_plans(ctx, country=None, status=None, level=None):
    """Action plans joined with element + pillar, oldest first.

    ``country`` of None or Global lists every country.
    """
    if status is not None:
        validate_status(status)
    if level is not None:
        validate_level(level)
    if country == GLOBAL_COUNTRY:
        country = None
    plans = ctx.store.query_action_plans(country=country, status=status, level=level)
    return _views(ctx, plans)


def get_action_plan_view(ctx, plan_id):
    plan = ctx.store.get_action_plan(plan_id)
    views = _views(ctx, [plan]) if plan else []
    if not views:
        raise NotFoundError(resource="ActionPlan", resource_id=plan_id)
    return views[0]
