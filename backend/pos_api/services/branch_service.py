from __future__ import annotations

import logging

from pos_api.errors import ConflictError, InvalidReferenceError, NotFoundError, ValidationError
from pos_api.extensions import db
from pos_api.models import Branch, User
from pos_api.responses import paginate_query
from pos_api.services.concurrency import atomic, lock_for_update
from pos_api.time_utils import utcnow
from pos_api.validation import enforce_rules_email


logger = logging.getLogger(__name__)

BRANCH_MUTABLE_FIELDS = {
    "name", "code", "address", "city", "state", "postal_code", "phone", "email", "is_active",
}


def _ensure_code_available(code: str | None, exclude_id: int | None = None) -> None:
    if code is None:
        return
    q = db.session.query(Branch.id).filter(Branch.code == code)
    if exclude_id is not None:
        q = q.filter(Branch.id != exclude_id)
    if q.first():
        raise ConflictError("Branch code already exists.", {"code": code})


def get_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError("Branch not found", {"branch_id": branch_id})
    return branch


def list_branches(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    only_ids: set[int] | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Branch], dict]:
    query = db.session.query(Branch)
    if not include_inactive:
        query = query.filter(Branch.is_active.is_(True), Branch.deleted_at.is_(None))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Branch.name.ilike(like), Branch.code.ilike(like), Branch.city.ilike(like)))
    if only_ids is not None:
        query = query.filter(Branch.id.in_(only_ids))
    return paginate_query(query.order_by(Branch.name.asc(), Branch.id.asc()), page, per_page)


def create_branch(*, patch: dict) -> Branch:
    enforce_rules_email(patch.get("email"))
    _ensure_code_available(patch.get("code"))

    branch = Branch()
    for k, v in patch.items():
        if k in BRANCH_MUTABLE_FIELDS:
            setattr(branch, k, v)

    db.session.add(branch)
    db.session.commit()
    logger.info("Created branch id=%s code=%s", branch.id, branch.code)
    return branch


def update_branch(*, branch_id: int, patch: dict) -> Branch:
    with atomic("update_branch"):
        branch = lock_for_update(db.session.query(Branch).filter_by(id=branch_id)).first()
        if branch is None:
            raise NotFoundError("Branch not found", {"branch_id": branch_id})

        if "email" in patch:
            enforce_rules_email(patch["email"])
        if "code" in patch and patch["code"] != branch.code:
            _ensure_code_available(patch["code"], exclude_id=branch.id)

        for k, v in patch.items():
            if k in BRANCH_MUTABLE_FIELDS:
                setattr(branch, k, v)
        if patch.get("is_active") is True:
            branch.deleted_at = None

    return branch


def delete_branch(*, branch_id: int) -> Branch:
    """Soft-delete a branch; sales and inventory keep referencing it."""
    branch = get_branch(branch_id)
    if branch.is_active or branch.deleted_at is None:
        branch.is_active = False
        branch.deleted_at = utcnow()
        logger.info("Soft-deleted branch id=%s code=%s", branch.id, branch.code)
    db.session.commit()
    return branch


def assign_users(*, branch_id: int, user_ids: list) -> list[User]:
    """
    Assign existing, active users to a branch.

    All ids are checked before any assignment is written.
    """
    if not isinstance(user_ids, list) or not user_ids:
        raise ValidationError("user_ids must be a non-empty list")
    if any(isinstance(u, bool) or not isinstance(u, int) for u in user_ids):
        raise ValidationError("user_ids must contain integers")

    with atomic("assign_branch_users"):
        branch = get_branch(branch_id)
        if not branch.is_active:
            raise InvalidReferenceError("Branch is inactive", {"branch_id": branch_id})

        users = db.session.query(User).filter(User.id.in_(set(user_ids))).all()
        found = {u.id for u in users}
        missing = sorted(set(user_ids) - found)
        if missing:
            raise InvalidReferenceError("Users not found", {"user_ids": missing})

        inactive = sorted(u.id for u in users if not u.is_active)
        if inactive:
            raise InvalidReferenceError("Users are inactive", {"user_ids": inactive})

        for user in users:
            user.branch_id = branch.id

    logger.info("Assigned users %s to branch id=%s", sorted(found), branch_id)
    return sorted(users, key=lambda u: u.id)
