"""
Framework Blueprint — pillar / element catalogue and level scores.

Endpoints:
    GET    /api/v1/pillars                     — List (?include_inactive=1)
    POST   /api/v1/pillars                     — Create pillar
    PUT    /api/v1/pillars/<id>                — Update pillar
    PATCH  /api/v1/pillars/<id>/status         — Activate / deactivate (soft delete)
    GET    /api/v1/pillars/<id>/elements       — List elements of a pillar
    POST   /api/v1/pillars/<id>/elements       — Create element
    PUT    /api/v1/elements/<id>               — Update element
    PATCH  /api/v1/elements/<id>/status        — Activate / deactivate (soft delete)
    GET    /api/v1/scores                      — Scores per element and level for ?country= (+ pillar_id)
    PUT    /api/v1/scores                      — Record score for element × country × level
    GET    /api/v1/countries                   — Configured countries + the Global aggregate
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from opex.blueprints import (
    bool_arg,
    build_context,
    country_arg,
    json_body,
    register_error_handlers,
)
from opex.models.framework import GLOBAL_COUNTRY
from opex.services import framework_service as svc
from opex.services import stats_cache
from opex.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

framework_bp = Blueprint("framework", __name__, url_prefix="/api/v1")
register_error_handlers(framework_bp)


# ═════════════════════════════════════════════════════════════════════════════
# PILLARS
# ═════════════════════════════════════════════════════════════════════════════

@framework_bp.route("/pillars", methods=["GET"])
def list_pillars():
    ctx = build_context()
    pillars = svc.list_pillars(ctx, include_inactive=bool_arg("include_inactive"))
    return jsonify([p.to_dict(ctx) for p in pillars]), 200


@framework_bp.route("/pillars", methods=["POST"])
def create_pillar():
    ctx = build_context()
    pillar_id = svc.create_pillar(ctx, json_body())
    err = db_commit_or_error()
    if err:
        return err
    stats_cache.invalidate_all()
    return jsonify({"id": pillar_id}), 201


@framework_bp.route("/pillars/<int:pillar_id>", methods=["PUT"])
def update_pillar(pillar_id):
    ctx = build_context()
    updated = svc.update_pillar(ctx, pillar_id, json_body())
    err = db_commit_or_error()
    if err:
        return err
    stats_cache.invalidate_all()
    return jsonify({"id": pillar_id, **updated}), 200


@framework_bp.route("/pillars/<int:pillar_id>/status", methods=["PATCH"])
def set_pillar_status(pillar_id):
    ctx = build_context()
    is_active = svc.set_pillar_active(ctx, pillar_id, json_body().get("is_active"))
    err = db_commit_or_error()
    if err:
        return err
    stats_cache.invalidate_all()
    return jsonify({"id": pillar_id, "is_active": is_active}), 200


# ═════════════════════════════════════════════════════════════════════════════
# ELEMENTS
# ═════════════════════════════════════════════════════════════════════════════

@framework_bp.route("/pillars/<int:pillar_id>/elements", methods=["GET"])
def list_elements(pillar_id):
    ctx = build_context()
    elements = svc.list_elements(ctx, pillar_id=pillar_id, include_inactive=bool_arg("include_inactive"))
    return jsonify([e.to_dict(ctx) for e in elements]), 200


@framework_bp.route("/pillars/<int:pillar_id>/elements", methods=["POST"])
def create_element(pillar_id):
    ctx = build_context()
    element_id = svc.create_element(ctx, pillar_id, json_body())
    err = db_commit_or_error()
    if err:
        return err
    stats_cache.invalidate_all()
    return jsonify({"id": element_id, "pillar_id": pillar_id}), 201


@framework_bp.route("/elements/<int:element_id>", methods=["PUT"])
def update_element(element_id):
    ctx = build_context()
    updated = svc.update_element(ctx, element_id, json_body())
    err = db_commit_or_error()
    if err:
        return err
    stats_cache.invalidate_all()
    return jsonify({"id": element_id, **updated}), 200


@framework_bp.route("/elements/<int:element_id>/status", methods=["PATCH"])
def set_element_status(element_id):
    ctx = build_context()
    is_active = svc.set_element_active(ctx, element_id, json_body().get("is_active"))
    err = db_commit_or_error()
    if err:
        return err
    stats_cache.invalidate_all()
    return jsonify({"id": element_id, "is_active": is_active}), 200


# ═════════════════════════════════════════════════════════════════════════════
# LEVEL SCORES
# ═════════════════════════════════════════════════════════════════════════════

@framework_bp.route("/scores", methods=["GET"])
def list_scores():
    """Maturity grid for ?country= (Global lists one row per country), optional ?pillar_id=."""
    ctx = build_context()
    rows = svc.list_element_scores(
        ctx, country_arg(), pillar_id=request.args.get("pillar_id", type=int),
    )
    return jsonify([r.to_dict(ctx) for r in rows]), 200


@framework_bp.route("/scores", methods=["PUT"])
def record_score():
    ctx = build_context()
    record = svc.record_level_score(ctx, json_body())
    err = db_commit_or_error()
    if err:
        return err
    stats_cache.invalidate_country(record.country)
    return jsonify(record.to_dict()), 200


@framework_bp.route("/countries", methods=["GET"])
def list_countries():
    """Country selector: configured countries, then the Global aggregate."""
    countries = list(current_app.config["OPEX_COUNTRIES"])
    return jsonify({"countries": countries, "aggregate": GLOBAL_COUNTRY}), 200
