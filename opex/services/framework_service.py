"""Framework catalogue service — pillars, elements and level scores.

Pillars and elements are soft-deleted through ``is_active``; nothing here
hard-deletes a row, so history (scores, action plans) stays intact and
reappears if a pillar or element is reactivated.

Transaction policy: the store flushes, never commits. Caller (route
handler) is responsible for db.session.commit().
"""
import logging
from collections import defaultdict

from opex.core.exceptions import ValidationError
from opex.models.framework import MATURITY_LEVELS
from opex.services.action_plan_service import validate_country, validate_level
from opex.services.backlog_service import country_filter, is_global
from opex.services.records import ElementScores

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100


def _text(data, field, required=False):
    value = data.get(field)
    if value is None:
        if required:
            raise ValidationError(f"{field} is required", details={field: "required"})
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "invalid"})
    value = value.strip()
    if required and not value:
        raise ValidationError(f"{field} is required", details={field: "required"})
    return value or None


def _flag(value, field="is_active"):
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be a boolean", details={field: "invalid"})
    return value


def _collect(data, fields, required=()):
    partial = {}
    for field in fields:
        if field in data:
            partial[field] = _text(data, field, required=field in required)
    return partial


# ═════════════════════════════════════════════════════════════════════════════
# PILLARS
# ═════════════════════════════════════════════════════════════════════════════

_PILLAR_FIELDS = ("code", "name", "name_en", "description", "description_en")


def list_pillars(ctx, include_inactive=False):
    return ctx.store.query_pillars(include_inactive=include_inactive)


def create_pillar(ctx, data):
    record = {
        "code": _text(data, "code", required=True),
        "name": _text(data, "name", required=True),
        "name_en": _text(data, "name_en"),
        "description": _text(data, "description"),
        "description_en": _text(data, "description_en"),
        "is_active": True,
    }
    pillar_id = ctx.store.insert_pillar(record)
    logger.info("Pillar created id=%s code=%s", pillar_id, record["code"])
    return pillar_id


def update_pillar(ctx, pillar_id, data):
    partial = _collect(data, _PILLAR_FIELDS, required=("code", "name"))
    if not partial:
        raise ValidationError("No updatable fields provided")
    ctx.store.update_pillar(pillar_id, partial)
    return partial


def set_pillar_active(ctx, pillar_id, is_active):
    """Soft-delete (False) or restore (True) a pillar.

    Its elements drop out of every backlog and count on the next read; their
    score rows are not touched.
    """
    is_active = _flag(is_active)
    ctx.store.update_pillar(pillar_id, {"is_active": is_active})
    logger.info("Pillar id=%s is_active=%s", pillar_id, is_active)
    return is_active


# ═════════════════════════════════════════════════════════════════════════════
# ELEMENTS
# ═════════════════════════════════════════════════════════════════════════════

_ELEMENT_FIELDS = ("code", "name", "name_en")


def list_elements(ctx, pillar_id=None, include_inactive=False):
    return ctx.store.query_elements(pillar_id=pillar_id, include_inactive=include_inactive)


def create_element(ctx, pillar_id, data):
    record = {
        "pillar_id": pillar_id,
        "code": _text(data, "code"),
        "name": _text(data, "name", required=True),
        "name_en": _text(data, "name_en"),
        "is_active": True,
    }
    element_id = ctx.store.insert_element(record)
    logger.info("Element created id=%s pillar=%s", element_id, pillar_id)
    return element_id


def update_element(ctx, element_id, data):
    partial = _collect(data, _ELEMENT_FIELDS, required=("name",))
    if "pillar_id" in data:
        pillar_id = data["pillar_id"]
        if isinstance(pillar_id, bool) or not isinstance(pillar_id, int):
            raise ValidationError("pillar_id must be an integer", details={"pillar_id": "invalid"})
        partial["pillar_id"] = pillar_id
    if not partial:
        raise ValidationError("No updatable fields provided")
    ctx.store.update_element(element_id, partial)
    return partial


def set_element_active(ctx, element_id, is_active):
    is_active = _flag(is_active)
    ctx.store.update_element(element_id, {"is_active": is_active})
    logger.info("Element id=%s is_active=%s", element_id, is_active)
    return is_active


# ═════════════════════════════════════════════════════════════════════════════
# LEVEL SCORES
# ═════════════════════════════════════════════════════════════════════════════

def record_level_score(ctx, data):
    """Insert or replace the score for (element, country, level)."""
    element_id = data.get("element_id")
    if isinstance(element_id, bool) or not isinstance(element_id, int):
        raise ValidationError("element_id must be an integer", details={"element_id": "invalid"})
    country = validate_country(data.get("country"))
    level = validate_level(data.get("level"))
    score = data.get("score")
    if isinstance(score, bool) or not isinstance(score, int) or not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(
            f"score must be an integer between {MIN_SCORE} and {MAX_SCORE}",
            details={"score": "invalid"},
        )
    notes = _text(data, "notes")

    record = ctx.store.upsert_level_score(element_id, country, level, score, notes)
    logger.info("Score recorded element=%s country=%s level=%s score=%s", element_id, country, level, score)
    return record


def list_element_scores(ctx, country, pillar_id=None):
    """Maturity grid: every active element with its score at each level.

    For a real country each active element yields one row, unscored levels
    as ``None``. For Global there is one row per country × element that has
    at least one score, never merged across countries.
    """
    elements = [
        e for e in ctx.store.query_elements(pillar_id=pillar_id)
        if e.is_countable
    ]
    if not elements:
        return []
    element_ids = {e.id for e in elements}

    scores = defaultdict(dict)
    for level in MATURITY_LEVELS:
        for s in ctx.store.query_level_scores(level, country=country_filter(country)):
            if s.element_id in element_ids:
                scores[(s.element_id, s.country)].setdefault(level, s)

    rows = []
    for element in elements:
        if is_global(country):
            countries = sorted(c for (eid, c) in scores if eid == element.id)
        else:
            countries = [country]
        for c in countries:
            by_level = scores.get((element.id, c), {})
            rows.append(ElementScores(
                element=element,
                country=c,
                scores={level: by_level.get(level) for level in MATURITY_LEVELS},
            ))

    return sorted(rows, key=lambda r: (
        r.element.pillar.code if r.element.pillar else "",
        r.element.code or "",
        r.element.id,
        r.country,
    ))
