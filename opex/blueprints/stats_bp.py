"""
Stats Blueprint — backlog and dashboard aggregations.

Endpoints:
    GET /api/v1/backlog                 — Gaps for ?country=&level= (+ pillar_id, without_plan)
    GET /api/v1/dashboard               — Dashboard summary for ?country=&level=
    GET /api/v1/dashboard/pillars       — FOUNDATION gaps per pillar for ?country=
    GET /api/v1/dashboard/levels        — Progress per maturity level for ?country=
    GET /api/v1/dashboard/global        — Supervisor view across all countries

``country=Global`` aggregates every real country. ``lang`` selects the
display language of names and action plan text.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from opex.blueprints import (
    bool_arg,
    build_context,
    country_arg,
    level_arg,
    register_error_handlers,
)
from opex.models.framework import DEFAULT_LEVEL
from opex.services import backlog_service, stats_cache, stats_service

logger = logging.getLogger(__name__)

stats_bp = Blueprint("stats", __name__, url_prefix="/api/v1")
register_error_handlers(stats_bp)


def _cached(kind, country, level, ctx, compute):
    key = (kind, country, level, ctx.language)
    ttl = current_app.config.get("OPEX_STATS_CACHE_TTL", 0)
    return stats_cache.get_or_compute(key, ttl, compute)


@stats_bp.route("/backlog", methods=["GET"])
def get_backlog():
    """List gaps.

    Query params:
        country      — country name or Global (required)
        level        — maturity level (default FOUNDATION)
        pillar_id    — restrict to one pillar
        without_plan — only gaps without any action plan
    """
    ctx = build_context()
    country = country_arg()
    level = level_arg(DEFAULT_LEVEL)
    pillar_id = request.args.get("pillar_id", type=int)

    entries = backlog_service.resolve_backlog_view(
        ctx, country, level,
        pillar_id=pillar_id,
        only_without_plan=bool_arg("without_plan"),
    )
    logger.debug("Backlog served", extra={"country": country, "maturity_level": level})
    return jsonify({
        "country": country,
        "level": level,
        "total": len(entries),
        "items": [e.to_dict(ctx) for e in entries],
    }), 200


@stats_bp.route("/dashboard", methods=["GET"])
def get_dashboard():
    ctx = build_context()
    country = country_arg()
    level = level_arg(DEFAULT_LEVEL)
    stats = _cached(
        "dashboard", country, level, ctx,
        lambda: stats_service.compute_dashboard_stats(ctx, country, level),
    )
    return jsonify(stats.to_dict()), 200


@stats_bp.route("/dashboard/pillars", methods=["GET"])
def get_pillar_stats():
    ctx = build_context()
    country = country_arg()
    stats = _cached(
        "pillars", country, DEFAULT_LEVEL, ctx,
        lambda: stats_service.compute_pillar_stats(ctx, country),
    )
    return jsonify([p.to_dict() for p in stats]), 200


@stats_bp.route("/dashboard/levels", methods=["GET"])
def get_level_stats():
    ctx = build_context()
    country = country_arg()
    stats = _cached(
        "levels", country, None, ctx,
        lambda: stats_service.compute_maturity_level_stats(ctx, country),
    )
    return jsonify([s.to_dict() for s in stats]), 200


@stats_bp.route("/dashboard/global", methods=["GET"])
def get_global_stats():
    """Supervisor view: one row per country with FOUNDATION scores."""
    ctx = build_context()
    stats = _cached(
        "global", None, DEFAULT_LEVEL, ctx,
        lambda: stats_service.compute_global_country_stats(ctx),
    )
    return jsonify([s.to_dict() for s in stats]), 200
