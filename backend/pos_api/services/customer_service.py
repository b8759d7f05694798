from __future__ import annotations

import logging

from pos_api.errors import ConflictError, InvalidReferenceError, NotFoundError, ValidationError
from pos_api.extensions import db
from pos_api.models import Branch, Customer, customer_branches
from pos_api.responses import paginate_query
from pos_api.time_utils import utcnow
from pos_api.validation import enforce_rules_email


logger = logging.getLogger(__name__)

CUSTOMER_MUTABLE_FIELDS = {
    "first_name", "last_name", "email", "phone", "address", "company_name", "tax_id", "is_active",
}


def _normalize_email(patch: dict) -> None:
    if patch.get("email") is not None:
        patch["email"] = patch["email"].lower()
        enforce_rules_email(patch["email"])


def _ensure_email_available(email: str | None, exclude_id: int | None = None) -> None:
    if email is None:
        return
    q = db.session.query(Customer.id).filter(Customer.email == email)
    if exclude_id is not None:
        q = q.filter(Customer.id != exclude_id)
    if q.first():
        raise ConflictError("Customer email already exists.", {"email": email})


def _resolve_branches(branch_ids) -> list[Branch]:
    if not isinstance(branch_ids, list):
        raise ValidationError("branch_ids must be a list")
    if any(isinstance(b, bool) or not isinstance(b, int) for b in branch_ids):
        raise ValidationError("branch_ids must contain integers")
    if not branch_ids:
        return []

    branches = db.session.query(Branch).filter(
        Branch.id.in_(set(branch_ids)),
        Branch.is_active.is_(True),
    ).all()
    missing = sorted(set(branch_ids) - {b.id for b in branches})
    if missing:
        raise InvalidReferenceError("Branches not found or inactive", {"branch_ids": missing})
    return branches


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found", {"customer_id": customer_id})
    return customer


def list_customers(
    *,
    search: str | None = None,
    branch_id: int | None = None,
    include_inactive: bool = False,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Customer], dict]:
    """
    Search by first name, last name or email.

    When branch_id is given, returns customers linked to that branch plus
    customers with no branch association (shared customers).
    """
    query = db.session.query(Customer)
    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True), Customer.deleted_at.is_(None))

    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Customer.first_name.ilike(like),
                Customer.last_name.ilike(like),
                Customer.email.ilike(like),
            )
        )

    if branch_id is not None:
        linked = db.session.query(customer_branches.c.customer_id).filter(
            customer_branches.c.branch_id == branch_id
        )
        any_link = db.session.query(customer_branches.c.customer_id)
        query = query.filter(db.or_(Customer.id.in_(linked), ~Customer.id.in_(any_link)))

    query = query.order_by(Customer.last_name.asc(), Customer.first_name.asc(), Customer.id.asc())
    return paginate_query(query, page, per_page)


def create_customer(*, patch: dict, branch_ids: list | None = None) -> Customer:
    _normalize_email(patch)
    _ensure_email_available(patch.get("email"))

    customer = Customer()
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)

    if branch_ids is not None:
        customer.branches = _resolve_branches(branch_ids)

    db.session.add(customer)
    db.session.commit()
    logger.info("Created customer id=%s", customer.id)
    return customer


def update_customer(*, customer_id: int, patch: dict, branch_ids: list | None = None) -> Customer:
    customer = get_customer(customer_id)

    _normalize_email(patch)
    if "email" in patch and patch["email"] != customer.email:
        _ensure_email_available(patch["email"], exclude_id=customer.id)

    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    if patch.get("is_active") is True:
        customer.deleted_at = None

    if branch_ids is not None:
        customer.branches = _resolve_branches(branch_ids)

    db.session.commit()
    return customer


def delete_customer(*, customer_id: int) -> Customer:
    """Soft-delete; past sales keep their customer reference."""
    customer = get_customer(customer_id)
    if customer.is_active or customer.deleted_at is None:
        customer.is_active = False
        customer.deleted_at = utcnow()
        logger.info("Soft-deleted customer id=%s", customer.id)
    db.session.commit()
    return customer
