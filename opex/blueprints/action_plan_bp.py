"""
Action Plan Blueprint — bilingual remediation plans for gaps.

Endpoints:
    GET    /api/v1/action-plans               — List (?country=&status=&level=&lang=)
    POST   /api/v1/action-plans               — Create
    GET    /api/v1/action-plans/<id>          — Detail
    PUT    /api/v1/action-plans/<id>          — Partial update (omitted keys unchanged)
    PATCH  /api/v1/action-plans/<id>/status   — Change status
"""

import logging

from flask import Blueprint, jsonify, request

from opex.blueprints import (
    build_context,
    json_body,
    paginate_list,
    register_error_handlers,
)
from opex.services import action_plan_service as svc
from opex.services import stats_cache
from opex.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

action_plan_bp = Blueprint("action_plans", __name__, url_prefix="/api/v1")
register_error_handlers(action_plan_bp)


@action_plan_bp.route("/action-plans", methods=["GET"])
def list_action_plans():
    """List action plans joined with element and pillar.

    Query params:
        country — country name (Global or omitted lists every country)
        status  — PLANNED | IN_PROGRESS | DONE | CANCELLED
        level   — maturity level
        limit / offset — pagination
    """
    ctx = build_context()
    views = svc.list_action_plans(
        ctx,
        country=request.args.get("country") or None,
        status=request.args.get("status") or None,
        level=request.args.get("level") or None,
    )
    page, total = paginate_list(views)
    return jsonify({"total": total, "items": [v.to_dict(ctx) for v in page]}), 200


@action_plan_bp.route("/action-plans", methods=["POST"])
def create_action_plan():
    ctx = build_context()
    data = json_body()
    plan_id = svc.create_action_plan(ctx, data)
    err = db_commit_or_error()
    if err:
        return err
    stats_cache.invalidate_country(svc.validate_country(data["country"]))
    return jsonify(svc.get_action_plan_view(ctx, plan_id).to_dict(ctx)), 201


@action_plan_bp.route("/action-plans/<int:plan_id>", methods=["GET"])
def get_action_plan(plan_id):
    ctx = build_context()
    return jsonify(svc.get_action_plan_view(ctx, plan_id).to_dict(ctx)), 200


@action_plan_bp.route("/action-plans/<int:plan_id>", methods=["PUT"])
def update_action_plan(plan_id):
    ctx = build_context()
    svc.update_action_plan(ctx, plan_id, json_body())
    err = db_commit_or_error()
    if err:
        return err
    stats_cache.invalidate_all()
    return jsonify(svc.get_action_plan_view(ctx, plan_id).to_dict(ctx)), 200


@action_plan_bp.route("/action-plans/<int:plan_id>/status", methods=["PATCH"])
def set_action_plan_status(plan_id):
    ctx = build_context()
    status = svc.set_action_plan_status(ctx, plan_id, json_body().get("status"))
    err = db_commit_or_error()
    if err:
        return err
    stats_cache.invalidate_all()
    return jsonify({"id": plan_id, "status": status}), 200
