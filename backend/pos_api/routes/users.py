# Overview: Flask API routes for staff accounts; parses input and returns JSON responses.

"""
Staff account routes.

Branch-scoped managers may only manage cashier and manager accounts of
their own branch.
"""

from flask import Blueprint, g, request

from ..config import current_settings
from ..decorators import require_auth, require_capability
from ..errors import PermissionDeniedError, PosError, ValidationError
from ..models import User
from ..permissions import BRANCH_SCOPED_ROLES, is_branch_scoped, parse_role, role_has_capability
from ..responses import flag_arg, from_error, internal_error, pagination_args, success
from ..services import user_service
from ..validation import ModelValidationPolicy, validate_payload

USER_POLICY = ModelValidationPolicy(
    writable_fields={"email", "first_name", "last_name", "phone", "employee_id", "role", "branch_id", "is_active"},
    required_on_create={"email", "first_name", "last_name"},
)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _check_scope(*, role: str | None, branch_id: int | None, target: User | None = None) -> None:
    actor = g.current_user
    if role_has_capability(actor.role, "VIEW_ALL_BRANCHES"):
        return

    if target is not None and (target.branch_id != actor.branch_id or not is_branch_scoped(target.role)):
        raise PermissionDeniedError("You can only manage staff of your own branch")

    parsed = parse_role(role) if role is not None else None
    if role is not None and parsed not in BRANCH_SCOPED_ROLES:
        raise PermissionDeniedError("You cannot assign this role", {"role": role})
    if branch_id is not None and branch_id != actor.branch_id:
        raise PermissionDeniedError("You can only assign staff to your own branch", {"branch_id": branch_id})


def _split_password(payload: dict) -> tuple[dict, str | None]:
    payload = dict(payload)
    password = payload.pop("password", None)
    if password is not None and not isinstance(password, str):
        raise ValidationError("password must be a string")
    return payload, password


@users_bp.get("")
@require_auth
@require_capability("VIEW_USERS")
def list_users():
    page, per_page = pagination_args()
    branch_id = request.args.get("branch_id", type=int)
    actor = g.current_user
    if not role_has_capability(actor.role, "VIEW_ALL_BRANCHES"):
        branch_id = actor.branch_id

    try:
        users, pagination = user_service.list_users(
            search=request.args.get("search"),
            role=request.args.get("role"),
            branch_id=branch_id,
            include_inactive=flag_arg("include_inactive"),
            page=page,
            per_page=per_page,
        )
        return success([u.to_dict() for u in users], pagination=pagination)
    except Exception:
        return internal_error("Failed to list users")


@users_bp.get("/<int:user_id>")
@require_auth
@require_capability("VIEW_USERS")
def get_user(user_id: int):
    try:
        user = user_service.get_user(user_id)
        actor = g.current_user
        if not role_has_capability(actor.role, "VIEW_ALL_BRANCHES") and user.branch_id != actor.branch_id:
            raise PermissionDeniedError("You can only view staff of your own branch")
        return success(user.to_dict())
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to get user")


@users_bp.post("")
@require_auth
@require_capability("MANAGE_USERS")
def create_user_route():
    try:
        payload, password = _split_password(request.get_json(silent=True) or {})
        if not password:
            raise ValidationError("password is required")
        patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=False)
        _check_scope(role=patch.get("role", "cashier"), branch_id=patch.get("branch_id"))

        user = user_service.create_user(
            patch=patch,
            password=password,
            bcrypt_rounds=current_settings().bcrypt_rounds,
        )
        return success(user.to_dict(), "User created", 201)
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to create user")


@users_bp.put("/<int:user_id>")
@require_auth
@require_capability("MANAGE_USERS")
def update_user_route(user_id: int):
    try:
        payload, password = _split_password(request.get_json(silent=True) or {})
        patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)
        _check_scope(role=patch.get("role"), branch_id=patch.get("branch_id"), target=user_service.get_user(user_id))

        user = user_service.update_user(
            user_id=user_id,
            patch=patch,
            password=password,
            bcrypt_rounds=current_settings().bcrypt_rounds,
        )
        return success(user.to_dict(), "User updated")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to update user")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_capability("MANAGE_USERS")
def delete_user_route(user_id: int):
    try:
        _check_scope(role=None, branch_id=None, target=user_service.get_user(user_id))
        user = user_service.delete_user(user_id=user_id, acting_user_id=g.current_user.id)
        return success(user.to_dict(), "User deactivated")
    except PosError as e:
        return from_error(e)
    except Exception:
        return internal_error("Failed to delete user")
