# Overview: Flask API routes for branch operations; parses input and returns JSON responses.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_capability, resolve_branch_scope
from ..errors import PosError
from ..models import Branch
from ..permissions import role_has_capability
from ..responses import flag_arg, from_error, internal_error, pagination_args, success
from ..services import branch_service
from ..validation import ModelValidationPolicy, validate_payload

BRANCH_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "address", "city", "state", "postal_code", "phone", "email", "is_active"},
    required_on_create={"name", "code"},
)

branches_bp = Blueprint("branches", __name__, url_prefix="/api/branches")


@branches_bp.get("")
@require_auth
@require_capability("VIEW_BRANCHES")
def list_branches():
    """Branch-scoped roles only see their own branch."""
    page, per_page = pagination_args()
    user = g.current_user
    only_ids = None
    if not role_has_capability(user.role, "VIEW_ALL_BRANCHES"):
        only_ids = {user.branch_id} if user.branch_id is not None else set()

    try:
        branches, pagination = branch_service.list_branches(
            search=request.args.get("search"),
            include_inactive=flag_arg("include_inactive"),
            only_ids=only_ids,
            page=page,
            per_page=per_page,
        )
        return success([b.to_dict() for b in branches], pagination=pagination)
    except Exception:
        return internal_error("Failed to list branches")


@branches_bp.get("/<int:branch_id>")
@require_auth
@require_capability("VIEW_BRANCHES")
def get_branch(branch_id: int):
    try:
        resolve_branch_scope(branch_id)
        return success(branch_service.get_branch(branch_id).to_dict())
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to get branch")


@branches_bp.post("")
@require_auth
@require_capability("MANAGE_BRANCHES")
def create_branch_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Branch, payload=payload, policy=BRANCH_POLICY, partial=False)
        branch = branch_service.create_branch(patch=patch)
        return success(branch.to_dict(), "Branch created", 201)
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to create branch")


@branches_bp.put("/<int:branch_id>")
@require_auth
@require_capability("MANAGE_BRANCHES")
def update_branch_route(branch_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Branch, payload=payload, policy=BRANCH_POLICY, partial=True)
        branch = branch_service.update_branch(branch_id=branch_id, patch=patch)
        return success(branch.to_dict(), "Branch updated")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to update branch")


@branches_bp.delete("/<int:branch_id>")
@require_auth
@require_capability("MANAGE_BRANCHES")
def delete_branch_route(branch_id: int):
    try:
        branch = branch_service.delete_branch(branch_id=branch_id)
        return success(branch.to_dict(), "Branch deactivated")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to delete branch")


@branches_bp.post("/<int:branch_id>/users")
@require_auth
@require_capability("MANAGE_BRANCHES")
def assign_branch_users_route(branch_id: int):
    """Body: {"user_ids": [1, 2, 3]}"""
    data = request.get_json(silent=True) or {}
    try:
        users = branch_service.assign_users(branch_id=branch_id, user_ids=data.get("user_ids"))
        return success([u.to_dict() for u in users], "Users assigned")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to assign users to branch")
