# Overview: JSON response envelope shared by every blueprint.

"""
Every API response uses the same envelope:

    {"success": bool, "message": str, "data": ..., "error": ..., "pagination": ...}

`data`, `error` and `pagination` are omitted when not applicable.
"""

from __future__ import annotations

from flask import current_app, jsonify, request

from .errors import PosError


def success(data=None, message: str = "OK", status: int = 200, pagination: dict | None = None):
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination
    return jsonify(body), status


def failure(message: str, status: int, error_code: str = "error", details: dict | None = None):
    body = {
        "success": False,
        "message": message,
        "error": {"code": error_code, "details": details or {}},
    }
    return jsonify(body), status


def from_error(exc: PosError):
    """Map a domain error onto the envelope using its HTTP status."""
    if exc.status_code >= 500:
        current_app.logger.error("%s %s failed: %s", request.method, request.path, exc.message)
    return failure(exc.message, exc.status_code, exc.error_code, exc.details)


def internal_error(log_message: str):
    """Log the active exception with its stack trace and answer 500."""
    current_app.logger.exception(log_message)
    return failure("Internal server error", 500, "internal_error")


def paginate_query(query, page: int, per_page: int) -> tuple[list, dict]:
    """
    Apply LIMIT/OFFSET and return (items, pagination).

    page is 1-based; per_page is clamped to [1, 100].
    """
    page = max(1, page)
    per_page = max(1, min(per_page, 100))

    total = query.order_by(None).count()
    items = query.limit(per_page).offset((page - 1) * per_page).all()
    total_pages = (total + per_page - 1) // per_page if total else 0

    return items, {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def pagination_args(default_per_page: int = 20) -> tuple[int, int]:
    """Read ?page= and ?per_page= from the current request."""
    page = request.args.get("page", 1, type=int) or 1
    per_page = request.args.get("per_page", default_per_page, type=int) or default_per_page
    return page, per_page


def flag_arg(name: str) -> bool:
    return str(request.args.get(name, "")).strip().lower() in {"1", "true", "yes"}
