# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_capability
from ..errors import PosError
from ..models import Customer
from ..responses import flag_arg, from_error, internal_error, pagination_args, success
from ..services import customer_service
from ..validation import ModelValidationPolicy, validate_payload

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"first_name", "last_name", "email", "phone", "address", "company_name", "tax_id", "is_active"},
    required_on_create={"first_name", "last_name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _split_payload(payload: dict) -> tuple[dict, list | None]:
    payload = dict(payload)
    return payload, payload.pop("branch_ids", None)


@customers_bp.get("")
@require_auth
@require_capability("VIEW_CUSTOMERS")
def list_customers():
    page, per_page = pagination_args()
    try:
        customers, pagination = customer_service.list_customers(
            search=request.args.get("search"),
            branch_id=request.args.get("branch_id", type=int),
            include_inactive=flag_arg("include_inactive"),
            page=page,
            per_page=per_page,
        )
        return success([c.to_dict() for c in customers], pagination=pagination)
    except Exception:
        return internal_error("Failed to list customers")


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_capability("VIEW_CUSTOMERS")
def get_customer(customer_id: int):
    try:
        return success(customer_service.get_customer(customer_id).to_dict())
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to get customer")


@customers_bp.post("")
@require_auth
@require_capability("CREATE_CUSTOMER")
def create_customer_route():
    payload, branch_ids = _split_payload(request.get_json(silent=True) or {})
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        customer = customer_service.create_customer(patch=patch, branch_ids=branch_ids)
        return success(customer.to_dict(), "Customer created", 201)
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to create customer")


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_capability("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: int):
    payload, branch_ids = _split_payload(request.get_json(silent=True) or {})
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        customer = customer_service.update_customer(customer_id=customer_id, patch=patch, branch_ids=branch_ids)
        return success(customer.to_dict(), "Customer updated")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to update customer")


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_capability("MANAGE_CUSTOMERS")
def delete_customer_route(customer_id: int):
    try:
        customer = customer_service.delete_customer(customer_id=customer_id)
        return success(customer.to_dict(), "Customer deactivated")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to delete customer")
