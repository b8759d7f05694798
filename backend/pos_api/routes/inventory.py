# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/pos_api/routes/inventory.py
"""
Per-branch inventory routes.

Stock levels change only through the ledger endpoints (adjust, restock,
count) and the sales workflows; PUT edits thresholds and metadata.

Branch-scoped roles only see and touch their own branch's records.
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_capability, resolve_branch_scope
from ..errors import PosError, ValidationError
from ..models import Inventory
from ..money import parse_amount
from ..responses import flag_arg, from_error, internal_error, pagination_args, success
from ..services import inventory_service
from ..validation import ModelValidationPolicy, validate_payload

INVENTORY_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id", "branch_id", "current_stock", "average_cost",
        "min_stock", "max_stock", "location", "notes",
    },
    required_on_create={"product_id", "branch_id"},
)

INVENTORY_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"min_stock", "max_stock", "location", "notes", "is_active"},
)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _scoped_record(inventory_id: int) -> Inventory:
    inv = inventory_service.get_inventory(inventory_id)
    resolve_branch_scope(inv.branch_id)
    return inv


def _int_field(data: dict, field: str) -> int:
    value = data.get(field)
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    return value


@inventory_bp.get("")
@require_auth
@require_capability("VIEW_INVENTORY")
def list_inventory():
    """
    Query params:
    - branch_id, product_id
    - low_stock: true to list only records at or below min_stock
    - include_inactive
    - page, per_page
    """
    page, per_page = pagination_args()
    try:
        branch_id = resolve_branch_scope(request.args.get("branch_id", type=int))
        records, pagination = inventory_service.list_inventory(
            branch_id=branch_id,
            product_id=request.args.get("product_id", type=int),
            low_stock=flag_arg("low_stock"),
            include_inactive=flag_arg("include_inactive"),
            page=page,
            per_page=per_page,
        )
        return success([r.to_dict() for r in records], pagination=pagination)
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to list inventory")


@inventory_bp.get("/<int:inventory_id>")
@require_auth
@require_capability("VIEW_INVENTORY")
def get_inventory(inventory_id: int):
    try:
        return success(_scoped_record(inventory_id).to_dict())
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to get inventory")


@inventory_bp.post("")
@require_auth
@require_capability("MANAGE_INVENTORY")
def create_inventory_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Inventory, payload=payload, policy=INVENTORY_CREATE_POLICY, partial=False)
        resolve_branch_scope(patch["branch_id"])
        inv = inventory_service.create_inventory(patch=patch, user_id=g.current_user.id)
        return success(inv.to_dict(), "Inventory created", 201)
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to create inventory")


@inventory_bp.put("/<int:inventory_id>")
@require_auth
@require_capability("MANAGE_INVENTORY")
def update_inventory_route(inventory_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Inventory, payload=payload, policy=INVENTORY_UPDATE_POLICY, partial=True)
        _scoped_record(inventory_id)
        inv = inventory_service.update_inventory(inventory_id=inventory_id, patch=patch)
        return success(inv.to_dict(), "Inventory updated")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to update inventory")


@inventory_bp.delete("/<int:inventory_id>")
@require_auth
@require_capability("MANAGE_INVENTORY")
def delete_inventory_route(inventory_id: int):
    try:
        _scoped_record(inventory_id)
        inv = inventory_service.delete_inventory(inventory_id=inventory_id)
        return success(inv.to_dict(), "Inventory deactivated")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to delete inventory")


@inventory_bp.post("/<int:inventory_id>/adjust")
@require_auth
@require_capability("ADJUST_INVENTORY")
def adjust_inventory_route(inventory_id: int):
    """Body: {"delta": -3, "reason": "Damaged in transit"}"""
    data = request.get_json(silent=True) or {}
    try:
        delta = _int_field(data, "delta")
        _scoped_record(inventory_id)
        inv = inventory_service.adjust_inventory(
            inventory_id=inventory_id,
            delta=delta,
            reason=data.get("reason"),
            user_id=g.current_user.id,
        )
        return success(inv.to_dict(), "Stock adjusted")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to adjust inventory")


@inventory_bp.post("/<int:inventory_id>/restock")
@require_auth
@require_capability("ADJUST_INVENTORY")
def restock_inventory_route(inventory_id: int):
    """Body: {"quantity": 20, "unit_cost": "12.50", "reason": "PO 1042"}"""
    data = request.get_json(silent=True) or {}
    try:
        quantity = _int_field(data, "quantity")
        if data.get("unit_cost") is None:
            raise ValidationError("unit_cost is required")
        unit_cost = parse_amount(data["unit_cost"], "unit_cost")
        _scoped_record(inventory_id)
        inv = inventory_service.restock_inventory(
            inventory_id=inventory_id,
            quantity=quantity,
            unit_cost=unit_cost,
            reason=data.get("reason"),
            user_id=g.current_user.id,
        )
        return success(inv.to_dict(), "Stock received")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to restock inventory")


@inventory_bp.post("/<int:inventory_id>/count")
@require_auth
@require_capability("ADJUST_INVENTORY")
def count_inventory_route(inventory_id: int):
    """Body: {"counted_quantity": 42}"""
    data = request.get_json(silent=True) or {}
    try:
        counted = _int_field(data, "counted_quantity")
        _scoped_record(inventory_id)
        inv = inventory_service.count_inventory(
            inventory_id=inventory_id,
            counted_quantity=counted,
            reason=data.get("reason"),
            user_id=g.current_user.id,
        )
        return success(inv.to_dict(), "Count recorded")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to record count")


@inventory_bp.get("/<int:inventory_id>/movements")
@require_auth
@require_capability("VIEW_INVENTORY")
def list_movements(inventory_id: int):
    page, per_page = pagination_args(default_per_page=50)
    try:
        _scoped_record(inventory_id)
        movements, pagination = inventory_service.list_movements(
            inventory_id=inventory_id, page=page, per_page=per_page,
        )
        return success([m.to_dict() for m in movements], pagination=pagination)
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to list inventory movements")
