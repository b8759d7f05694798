# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/pos_api/routes/sales.py
"""
Sales API routes.

DELETE /api/sales/<id> cancels the sale (restoring stock); sales are never
removed. Branch-scoped roles (manager, cashier) only see and act on their
own branch's sales.
"""

from flask import Blueprint, g, request

from ..config import current_settings
from ..decorators import require_auth, require_capability, resolve_branch_scope
from ..errors import PermissionDeniedError, PosError, ValidationError
from ..permissions import role_has_capability
from ..responses import from_error, internal_error, pagination_args, success
from ..services import sales_service
from pos_api.time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _scoped_sale(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    resolve_branch_scope(sale.branch_id)
    return sale


def _date_arg(name: str, *, end_of_day: bool = False):
    raw = request.args.get(name)
    try:
        return parse_iso_datetime(raw, end_of_day=end_of_day)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")


@sales_bp.get("")
@require_auth
@require_capability("VIEW_SALES")
def list_sales_route():
    """
    Query params: branch_id, user_id, customer_id, status, date_from,
    date_to, search (transaction number), page, per_page.
    """
    page, per_page = pagination_args()
    try:
        sales, pagination = sales_service.list_sales(
            branch_id=resolve_branch_scope(request.args.get("branch_id", type=int)),
            user_id=request.args.get("user_id", type=int),
            customer_id=request.args.get("customer_id", type=int),
            status=request.args.get("status"),
            date_from=_date_arg("date_from"),
            date_to=_date_arg("date_to", end_of_day=True),
            search=request.args.get("search"),
            page=page,
            per_page=per_page,
        )
        return success([s.to_dict(include_items=False) for s in sales], pagination=pagination)
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to list sales")


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_capability("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        return success(_scoped_sale(sale_id).to_dict())
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to get sale")


@sales_bp.post("")
@require_auth
@require_capability("CREATE_SALE")
def create_sale_route():
    """
    Body:
        {
          "branch_id": 1, "customer_id": 7, "payment_method": "cash",
          "discount_rate": "0.05", "notes": "...", "status": "completed",
          "items": [{"product_id": 3, "quantity": 2, "unit_price": "10.00",
                     "discount_percentage": 0}]
        }

    The cashier is the authenticated user. branch_id defaults to the
    user's branch.
    """
    payload = dict(request.get_json(silent=True) or {})
    try:
        payload.pop("user_id", None)
        if payload.get("branch_id") is None:
            payload["branch_id"] = g.current_user.branch_id
        resolve_branch_scope(payload.get("branch_id"))

        sale = sales_service.create_sale(
            payload,
            settings=current_settings(),
            user_id=g.current_user.id,
        )
        return success(sale.to_dict(), "Sale created", 201)
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to create sale")


@sales_bp.put("/<int:sale_id>")
@require_auth
@require_capability("UPDATE_SALE")
def update_sale_route(sale_id: int):
    """Edit customer_id, payment_method, notes; status goes through the workflows."""
    payload = request.get_json(silent=True) or {}
    try:
        _scoped_sale(sale_id)
        if payload.get("status") == "cancelled" and not role_has_capability(g.current_user.role, "CANCEL_SALE"):
            raise PermissionDeniedError(
                "Permission denied",
                {"required_capability": "CANCEL_SALE", "role": g.current_user.role},
            )
        sale = sales_service.update_sale(sale_id, payload, user_id=g.current_user.id)
        return success(sale.to_dict(), "Sale updated")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to update sale")


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_capability("CANCEL_SALE")
def cancel_sale_route(sale_id: int):
    """Cancel a sale. Optional body or query: {"reason": "..."}"""
    data = request.get_json(silent=True) or {}
    try:
        _scoped_sale(sale_id)
        sale = sales_service.cancel_sale(
            sale_id,
            reason=data.get("reason") or request.args.get("reason"),
            user_id=g.current_user.id,
        )
        return success(sale.to_dict(), "Sale cancelled")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to cancel sale")


@sales_bp.post("/<int:sale_id>/complete")
@require_auth
@require_capability("UPDATE_SALE")
def complete_sale_route(sale_id: int):
    try:
        _scoped_sale(sale_id)
        sale = sales_service.complete_sale(sale_id, user_id=g.current_user.id)
        return success(sale.to_dict(), "Sale completed")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to complete sale")


@sales_bp.post("/<int:sale_id>/refund")
@require_auth
@require_capability("REFUND_SALE")
def refund_sale_route(sale_id: int):
    """Body: {"reason": "...", "restock": true}"""
    data = request.get_json(silent=True) or {}
    try:
        restock = data.get("restock", True)
        if not isinstance(restock, bool):
            raise ValidationError("restock must be a boolean")
        _scoped_sale(sale_id)
        sale = sales_service.refund_sale(
            sale_id,
            reason=data.get("reason"),
            restock=restock,
            user_id=g.current_user.id,
        )
        return success(sale.to_dict(), "Sale refunded")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to refund sale")
