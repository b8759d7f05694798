# Overview: Flask API routes for dashboard aggregates.

# backend/pos_api/routes/dashboard.py
from flask import Blueprint, request

from ..decorators import require_auth, require_capability, resolve_branch_scope
from ..errors import PosError
from ..responses import from_error, internal_error, success
from ..services import reporting_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


def _branch_filter():
    return resolve_branch_scope(request.args.get("branch_id", type=int))


def _limit(default: int) -> int:
    return request.args.get("limit", default, type=int) or default


@dashboard_bp.get("/stats")
@require_auth
@require_capability("VIEW_DASHBOARD")
def stats():
    try:
        return success(reporting_service.get_stats(branch_id=_branch_filter()))
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to compute dashboard stats")


@dashboard_bp.get("/recent-sales")
@require_auth
@require_capability("VIEW_DASHBOARD")
def recent_sales():
    try:
        return success(reporting_service.recent_sales(branch_id=_branch_filter(), limit=_limit(10)))
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to list recent sales")


@dashboard_bp.get("/top-products")
@require_auth
@require_capability("VIEW_DASHBOARD")
def top_products():
    try:
        return success(reporting_service.top_products(branch_id=_branch_filter(), limit=_limit(10)))
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to list top products")


@dashboard_bp.get("/low-stock")
@require_auth
@require_capability("VIEW_DASHBOARD")
def low_stock():
    try:
        return success(reporting_service.low_stock(branch_id=_branch_filter(), limit=_limit(50)))
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to list low stock")
