# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/pos_api/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS
- Write operations require MANAGE_PRODUCTS
"""
from flask import Blueprint, request

from ..decorators import require_auth, require_capability
from ..errors import PosError
from ..models import Product
from ..responses import flag_arg, from_error, internal_error, pagination_args, success
from ..services import products_service
from ..validation import ModelValidationPolicy, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "barcode", "name", "description", "category",
        "unit_price", "cost_price", "tax_rate", "min_stock", "max_stock", "is_active",
    },
    required_on_create={"sku", "name", "unit_price"},
    rate_fields={"tax_rate"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_capability("VIEW_PRODUCTS")
def list_products():
    """
    Query params:
    - search: matches name, SKU or barcode
    - category: exact category
    - include_inactive: true to include soft-deleted products
    - page, per_page
    """
    page, per_page = pagination_args()
    try:
        products, pagination = products_service.list_products(
            search=request.args.get("search"),
            category=request.args.get("category"),
            include_inactive=flag_arg("include_inactive"),
            page=page,
            per_page=per_page,
        )
        return success([p.to_dict() for p in products], pagination=pagination)
    except Exception:
        return internal_error("Failed to list products")


@products_bp.get("/<int:product_id>")
@require_auth
@require_capability("VIEW_PRODUCTS")
def get_product(product_id: int):
    try:
        return success(products_service.get_product(product_id).to_dict())
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to get product")


@products_bp.post("")
@require_auth
@require_capability("MANAGE_PRODUCTS")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        created = products_service.create_product(patch=patch)
        return success(created.to_dict(), "Product created", 201)
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to create product")


@products_bp.put("/<int:product_id>")
@require_auth
@require_capability("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        updated = products_service.update_product(product_id=product_id, patch=patch)
        return success(updated.to_dict(), "Product updated")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to update product")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_capability("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    try:
        deleted = products_service.delete_product(product_id=product_id)
        return success(deleted.to_dict(), "Product deactivated")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to delete product")
