"""
OPEX Framework
Blueprint registry and shared request helpers.
"""

import logging

from flask import current_app, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from opex.core.exceptions import NotFoundError, ValidationError
from opex.models import db
from opex.models.framework import MATURITY_LEVELS
from opex.services.context import AggregationContext
from opex.services.store import SqlAlchemyStore
from opex.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def build_context():
    """Per-request AggregationContext: SQLAlchemy store + ``?lang=`` language."""
    return AggregationContext.create(
        SqlAlchemyStore(db.session),
        language=request.args.get("lang") or request.headers.get("Accept-Language"),
        local_language=current_app.config["OPEX_LOCAL_LANGUAGE"],
    )


def country_arg(required=True):
    country = (request.args.get("country") or "").strip()
    if required and not country:
        raise ValidationError("country query parameter is required", details={"country": "required"})
    return country or None


def level_arg(default=None):
    level = request.args.get("level", default)
    if level not in MATURITY_LEVELS:
        raise ValidationError(
            f"level must be one of: {', '.join(MATURITY_LEVELS)}",
            details={"level": "invalid"},
        )
    return level


def bool_arg(name):
    return (request.args.get(name) or "").lower() in ("1", "true", "yes")


def paginate_list(items, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to an already materialized list.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_page, total_count)
    """
    total = len(items)
    try:
        limit = max(min(int(request.args.get("limit", default_limit)), max_limit), 0)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return items[offset:offset + limit], total


def register_error_handlers(bp):
    """Map service exceptions to the standard JSON error body for ``bp``."""

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        code = E.VALIDATION_REQUIRED if "required" in error.details.values() else E.VALIDATION_INVALID
        return api_error(code, str(error), details=error.details)

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(IntegrityError)
    def _handle_integrity(error: IntegrityError):
        db.session.rollback()
        logger.warning("Integrity error in %s: %s", request.endpoint, error.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")

    @bp.errorhandler(SQLAlchemyError)
    def _handle_database(error: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Database error in %s", request.endpoint)
        return api_error(E.DATABASE, "Database error")


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
