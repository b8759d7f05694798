"""
Staff account management.

Rules:
- email is unique (case-insensitive, soft-deleted users included)
- employee_id is unique; generated as EMP<initials><4 digits> when absent
- only one active owner may exist
- manager and cashier accounts must be bound to an active branch
- passwords must pass auth_service.validate_password_strength
"""

from __future__ import annotations

import logging
import secrets

from pos_api.errors import ConflictError, InvalidReferenceError, NotFoundError, ValidationError
from pos_api.extensions import db
from pos_api.models import Branch, User
from pos_api.permissions import Role, is_branch_scoped, parse_role
from pos_api.responses import paginate_query
from pos_api.services import auth_service, session_service
from pos_api.time_utils import utcnow
from pos_api.validation import enforce_rules_email


logger = logging.getLogger(__name__)

USER_MUTABLE_FIELDS = {
    "email", "first_name", "last_name", "phone", "employee_id", "role", "branch_id", "is_active",
}


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", {"user_id": user_id})
    return user


def list_users(
    *,
    search: str | None = None,
    role: str | None = None,
    branch_id: int | None = None,
    include_inactive: bool = False,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[User], dict]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True), User.deleted_at.is_(None))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                User.first_name.ilike(like),
                User.last_name.ilike(like),
                User.email.ilike(like),
                User.employee_id.ilike(like),
            )
        )
    if role:
        query = query.filter(User.role == role)
    if branch_id is not None:
        query = query.filter(User.branch_id == branch_id)
    return paginate_query(query.order_by(User.last_name.asc(), User.first_name.asc(), User.id.asc()), page, per_page)


def generate_employee_id(first_name: str, last_name: str) -> str:
    initials = f"{(first_name or 'X')[:1]}{(last_name or 'X')[:1]}".upper()
    for _ in range(20):
        candidate = f"EMP{initials}{secrets.randbelow(10000):04d}"
        if not db.session.query(User.id).filter(User.employee_id == candidate).first():
            return candidate
    raise ConflictError("Could not generate a unique employee_id; provide one explicitly")


def _check_role_and_branch(*, role: str, branch_id: int | None, exclude_user_id: int | None = None) -> None:
    parsed = parse_role(role)
    if parsed is None:
        raise ValidationError(
            f"role must be one of: {', '.join(Role.values())}",
            {"role": role},
        )

    if parsed is Role.OWNER:
        q = db.session.query(User.id).filter(
            User.role == Role.OWNER.value,
            User.deleted_at.is_(None),
        )
        if exclude_user_id is not None:
            q = q.filter(User.id != exclude_user_id)
        if q.first():
            raise ConflictError("An owner account already exists")

    if is_branch_scoped(parsed) and branch_id is None:
        raise ValidationError(f"branch_id is required for role {parsed.value}")

    if branch_id is not None:
        branch = db.session.get(Branch, branch_id)
        if branch is None or not branch.is_active:
            raise InvalidReferenceError("Branch not found or inactive", {"branch_id": branch_id})


def _check_unique(*, email: str | None, employee_id: str | None, exclude_id: int | None = None) -> None:
    if email is not None:
        q = db.session.query(User.id).filter(User.email == email)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise ConflictError("Email already exists.", {"email": email})

    if employee_id is not None:
        q = db.session.query(User.id).filter(User.employee_id == employee_id)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise ConflictError("Employee ID already exists.", {"employee_id": employee_id})


def create_user(*, patch: dict, password: str, bcrypt_rounds: int = 12) -> User:
    """
    Create a staff account.

    Raises:
        ValidationError / PasswordValidationError: bad role, missing branch, weak password
        InvalidReferenceError: branch does not exist or is inactive
        ConflictError: duplicate email / employee_id, or a second owner
    """
    email = auth_service.normalize_email(patch.get("email"))
    if not email:
        raise ValidationError("email is required")
    enforce_rules_email(email)
    patch["email"] = email

    role = patch.get("role") or Role.CASHIER.value
    patch["role"] = role
    _check_role_and_branch(role=role, branch_id=patch.get("branch_id"))
    _check_unique(email=email, employee_id=patch.get("employee_id"))

    password_hash = auth_service.hash_password(password, rounds=bcrypt_rounds)

    user = User(password_hash=password_hash)
    for k, v in patch.items():
        if k in USER_MUTABLE_FIELDS:
            setattr(user, k, v)
    if not user.employee_id:
        user.employee_id = generate_employee_id(user.first_name, user.last_name)

    db.session.add(user)
    db.session.commit()

    logger.info("Created user id=%s role=%s", user.id, user.role)
    return user


def update_user(*, user_id: int, patch: dict, password: str | None = None, bcrypt_rounds: int = 12) -> User:
    """
    Update a staff account. A password change revokes every open session.
    """
    user = get_user(user_id)

    if "email" in patch:
        patch["email"] = auth_service.normalize_email(patch["email"])
        enforce_rules_email(patch["email"])

    new_role = patch.get("role", user.role)
    new_branch = patch["branch_id"] if "branch_id" in patch else user.branch_id
    if "role" in patch or "branch_id" in patch:
        _check_role_and_branch(
            role=new_role,
            branch_id=new_branch,
            exclude_user_id=user.id,
        )

    _check_unique(
        email=patch.get("email") if patch.get("email") != user.email else None,
        employee_id=patch.get("employee_id") if patch.get("employee_id") != user.employee_id else None,
        exclude_id=user.id,
    )

    for k, v in patch.items():
        if k in USER_MUTABLE_FIELDS:
            setattr(user, k, v)
    if patch.get("is_active") is True:
        user.deleted_at = None
    if patch.get("is_active") is False:
        session_service.revoke_all_user_sessions(user.id, reason="User deactivated")

    if password is not None:
        user.password_hash = auth_service.hash_password(password, rounds=bcrypt_rounds)
        session_service.revoke_all_user_sessions(user.id, reason="Password changed")

    db.session.commit()
    return user


def delete_user(*, user_id: int, acting_user_id: int | None = None) -> User:
    """Soft-delete a staff account and revoke its sessions."""
    user = get_user(user_id)
    if acting_user_id is not None and acting_user_id == user.id:
        raise ValidationError("You cannot delete your own account")

    if user.is_active or user.deleted_at is None:
        user.is_active = False
        user.deleted_at = utcnow()
        session_service.revoke_all_user_sessions(user.id, reason="User deleted")
        logger.info("Soft-deleted user id=%s", user.id)

    db.session.commit()
    return user
