"""
Sales Service: sale transactions and their effect on branch inventory.

WHY: A sale is the only place where the catalog, the cashier, the branch
stock and the money meet. Every workflow here is all-or-nothing: the sale
header, its line items and every inventory movement commit together or not
at all.

Precondition order for create_sale (first failure aborts, nothing written):
1. structure: required fields, non-empty items, payment method, rates
2. references: user, branch, customer exist and are active
3. per item: product exists and is active, quantity is a positive
   integer, cumulative quantity per product fits the available stock
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pos_api.config import PosSettings
from pos_api.errors import (
    InsufficientStockError,
    InternalError,
    InvalidReferenceError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from pos_api.extensions import db
from pos_api.models import PAYMENT_METHODS, Branch, Customer, Product, Sale, SaleItem, User
from pos_api.money import ZERO, parse_amount, parse_percentage, parse_rate, to_money
from pos_api.responses import paginate_query
from pos_api.services import inventory_service, sale_state
from pos_api.services.concurrency import atomic, lock_for_update
from pos_api.time_utils import utcnow


logger = logging.getLogger(__name__)

SALE_UPDATABLE_FIELDS = {"customer_id", "payment_method", "notes", "status"}


@dataclass(frozen=True)
class LineRequest:
    product_id: int
    quantity: int
    unit_price: Decimal | None
    discount_percentage: Decimal


@dataclass(frozen=True)
class SaleRequest:
    user_id: int
    branch_id: int
    customer_id: int | None
    payment_method: str
    discount_rate: Decimal
    notes: str | None
    status: str
    items: tuple[LineRequest, ...]


@dataclass(frozen=True)
class LineTotals:
    unit_price: Decimal
    gross: Decimal
    discount_amount: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class SaleTotals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def generate_transaction_number(now: datetime | None = None) -> str:
    """TXN-YYYYMMDD-XXXXXXXX (8 uppercase hex chars)."""
    now = now or utcnow()
    return f"TXN-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"


def _unique_transaction_number() -> str:
    for _ in range(10):
        candidate = generate_transaction_number()
        if not db.session.query(Sale.id).filter(Sale.transaction_number == candidate).first():
            return candidate
    raise InternalError("Could not allocate a unique transaction number")


def _require_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", {field: value})
    return value


# -- Step 1: structural validation --

def parse_sale_request(payload: dict, *, settings: PosSettings, user_id: int | None = None) -> SaleRequest:
    """
    Validate the request shape and normalize it.

    Quantities are only type-checked later (step 3), after the product on
    the same line has been resolved.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    user_id = payload.get("user_id", user_id)
    required = {"branch_id": payload.get("branch_id"), "user_id": user_id,
                "payment_method": payload.get("payment_method"), "items": payload.get("items")}
    missing = sorted(k for k, v in required.items() if v in (None, ""))
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", {"missing": missing})

    branch_id = _require_int(payload["branch_id"], "branch_id")
    user_id = _require_int(user_id, "user_id")
    customer_id = payload.get("customer_id")
    if customer_id is not None:
        customer_id = _require_int(customer_id, "customer_id")

    payment_method = payload["payment_method"]
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
            {"payment_method": payment_method},
        )

    raw_discount = payload.get("discount_rate")
    discount_rate = (
        parse_rate(raw_discount, "discount_rate") if raw_discount is not None else settings.default_discount_rate
    )

    status = payload.get("status") or sale_state.COMPLETED
    if status not in sale_state.INITIAL_STATUSES:
        raise ValidationError(
            "status must be 'completed' or 'pending' when creating a sale",
            {"status": status},
        )

    notes = payload.get("notes")
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("notes must be a string")

    items = payload["items"]
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if item.get("product_id") is None or item.get("quantity") is None:
            raise ValidationError(
                f"items[{index}] requires product_id and quantity",
                {"index": index},
            )
        product_id = _require_int(item["product_id"], f"items[{index}].product_id")

        unit_price = item.get("unit_price")
        if unit_price is not None:
            unit_price = parse_amount(unit_price, f"items[{index}].unit_price", allow_zero=False)

        pct = item.get("discount_percentage")
        pct = parse_percentage(pct, f"items[{index}].discount_percentage") if pct is not None else Decimal("0")

        lines.append(LineRequest(
            product_id=product_id,
            quantity=item["quantity"],
            unit_price=unit_price,
            discount_percentage=pct,
        ))

    return SaleRequest(
        user_id=user_id,
        branch_id=branch_id,
        customer_id=customer_id,
        payment_method=payment_method,
        discount_rate=discount_rate,
        notes=notes.strip() if isinstance(notes, str) and notes.strip() else None,
        status=status,
        items=tuple(lines),
    )


# -- Step 2: references --

def _resolve_references(req: SaleRequest) -> tuple[User, Branch, Customer | None]:
    user = db.session.get(User, req.user_id)
    if user is None or not user.is_active or user.deleted_at is not None:
        raise InvalidReferenceError("User not found or inactive", {"user_id": req.user_id})

    branch = db.session.get(Branch, req.branch_id)
    if branch is None or not branch.is_active:
        raise InvalidReferenceError("Branch not found or inactive", {"branch_id": req.branch_id})

    customer = None
    if req.customer_id is not None:
        customer = db.session.get(Customer, req.customer_id)
        if customer is None or not customer.is_active:
            raise InvalidReferenceError("Customer not found or inactive", {"customer_id": req.customer_id})

    return user, branch, customer


# -- Step 3: per-item checks --

def _resolve_lines(req: SaleRequest) -> list[tuple[LineRequest, Product]]:
    resolved = []
    requested: dict[int, int] = {}

    for index, line in enumerate(req.items):
        product = db.session.get(Product, line.product_id)
        if product is None or not product.is_active:
            raise InvalidReferenceError(
                "Product not found or inactive",
                {"index": index, "product_id": line.product_id},
            )

        qty = line.quantity
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise ValidationError(
                f"items[{index}].quantity must be a positive integer",
                {"index": index, "quantity": qty},
            )

        requested[product.id] = requested.get(product.id, 0) + qty
        available = inventory_service.get_available_stock(product.id, req.branch_id)
        if requested[product.id] > available:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}",
                {
                    "product_id": product.id,
                    "product_name": product.name,
                    "branch_id": req.branch_id,
                    "requested": requested[product.id],
                    "available": available,
                },
            )

        resolved.append((line, product))

    return resolved


# -- Computation --

def compute_line(unit_price, quantity: int, discount_percentage=Decimal("0")) -> LineTotals:
    price = to_money(unit_price)
    gross = to_money(price * quantity)
    discount = to_money(gross * Decimal(discount_percentage) / Decimal(100))
    return LineTotals(unit_price=price, gross=gross, discount_amount=discount, subtotal=gross - discount)


def compute_totals(line_subtotals, discount_rate, tax_rate) -> SaleTotals:
    """
    subtotal = sum(lines); discount = subtotal * discount_rate;
    tax = (subtotal - discount) * tax_rate; total = subtotal - discount + tax.
    """
    subtotal = to_money(sum(line_subtotals, ZERO))
    discount = to_money(subtotal * Decimal(discount_rate))
    tax = to_money((subtotal - discount) * Decimal(tax_rate))
    return SaleTotals(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        total_amount=subtotal - discount + tax,
    )


# -- Workflows --

def create_sale(payload: dict, *, settings: PosSettings, user_id: int | None = None) -> Sale:
    """
    Validate, price, persist and post a sale in one unit of work.

    completed (default): every line decrements branch stock.
    pending: every line reserves branch stock instead.

    Raises ValidationError, InvalidReferenceError, InsufficientStockError,
    ConflictError (concurrent stock change). Nothing is written on failure.
    """
    req = parse_sale_request(payload, settings=settings, user_id=user_id)

    with atomic("create_sale"):
        user, branch, customer = _resolve_references(req)
        lines = _resolve_lines(req)

        items = []
        for line, product in lines:
            price = line.unit_price if line.unit_price is not None else product.unit_price
            totals = compute_line(price, line.quantity, line.discount_percentage)
            items.append(SaleItem(
                product_id=product.id,
                product_name=product.name,
                quantity=line.quantity,
                unit_price=totals.unit_price,
                discount_percentage=line.discount_percentage,
                discount_amount=totals.discount_amount,
                subtotal=totals.subtotal,
            ))

        totals = compute_totals([i.subtotal for i in items], req.discount_rate, settings.tax_rate)

        now = utcnow()
        sale = Sale(
            transaction_number=_unique_transaction_number(),
            customer_id=customer.id if customer else None,
            branch_id=branch.id,
            user_id=user.id,
            subtotal=totals.subtotal,
            discount_rate=req.discount_rate,
            discount_amount=totals.discount_amount,
            tax_rate=settings.tax_rate,
            tax_amount=totals.tax_amount,
            total_amount=totals.total_amount,
            payment_method=req.payment_method,
            status=req.status,
            notes=req.notes,
            completed_at=now if req.status == sale_state.COMPLETED else None,
            created_at=now,
            items=items,
        )
        db.session.add(sale)
        db.session.flush()

        for item, (_line, product) in zip(items, lines):
            if req.status == sale_state.PENDING:
                inventory_service.reserve(
                    product.id, branch.id, item.quantity,
                    sale_id=sale.id, user_id=user.id, product_name=product.name,
                )
            else:
                inventory_service.decrement(
                    product.id, branch.id, item.quantity,
                    reason=f"Sale {sale.transaction_number}",
                    sale_id=sale.id, user_id=user.id, product_name=product.name,
                )

    logger.info(
        "Created sale id=%s txn=%s status=%s total=%s branch_id=%s",
        sale.id, sale.transaction_number, sale.status, sale.total_amount, sale.branch_id,
    )
    return sale


def _lock_sale(sale_id: int) -> Sale:
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
    if sale is None:
        raise NotFoundError("Sale not found", {"sale_id": sale_id})
    return sale


def _cancel_locked(sale: Sale, *, reason: str | None, user_id: int | None) -> Sale:
    sale_state.require_transition(sale.status, sale_state.CANCELLED)

    for item in sale.items:
        if sale.status == sale_state.PENDING:
            inventory_service.release(
                item.product_id, sale.branch_id, item.quantity,
                sale_id=sale.id, user_id=user_id, reason=f"Cancel {sale.transaction_number}",
            )
        else:
            inventory_service.increment(
                item.product_id, sale.branch_id, item.quantity,
                movement_type="sale_cancel",
                reason=f"Cancel {sale.transaction_number}",
                sale_id=sale.id, user_id=user_id,
            )

    sale.status = sale_state.CANCELLED
    sale.cancelled_at = utcnow()
    sale.cancel_reason = reason
    return sale


def cancel_sale(sale_id: int, *, reason: str | None = None, user_id: int | None = None) -> Sale:
    """
    Cancel a pending or completed sale.

    Completed: every line's quantity goes back to branch stock.
    Pending: the reservations are released.
    Restoration and status change commit atomically.
    """
    with atomic("cancel_sale"):
        sale = _lock_sale(sale_id)
        _cancel_locked(sale, reason=reason, user_id=user_id)

    logger.info("Cancelled sale id=%s txn=%s", sale.id, sale.transaction_number)
    return sale


def _complete_locked(sale: Sale, *, user_id: int | None) -> Sale:
    sale_state.require_transition(sale.status, sale_state.COMPLETED)
    for item in sale.items:
        inventory_service.commit_reservation(
            item.product_id, sale.branch_id, item.quantity,
            sale_id=sale.id, user_id=user_id,
        )
    sale.status = sale_state.COMPLETED
    sale.completed_at = utcnow()
    return sale


def complete_sale(sale_id: int, *, user_id: int | None = None) -> Sale:
    """pending -> completed: turn each reservation into a decrement."""
    with atomic("complete_sale"):
        sale = _lock_sale(sale_id)
        _complete_locked(sale, user_id=user_id)

    logger.info("Completed sale id=%s txn=%s", sale.id, sale.transaction_number)
    return sale


def refund_sale(
    sale_id: int,
    *,
    reason: str | None = None,
    restock: bool = True,
    user_id: int | None = None,
) -> Sale:
    """completed -> refunded; optionally return the goods to branch stock."""
    with atomic("refund_sale"):
        sale = _lock_sale(sale_id)
        sale_state.require_transition(sale.status, sale_state.REFUNDED)

        if restock:
            for item in sale.items:
                inventory_service.increment(
                    item.product_id, sale.branch_id, item.quantity,
                    movement_type="sale_refund",
                    reason=f"Refund {sale.transaction_number}",
                    sale_id=sale.id, user_id=user_id,
                )

        sale.status = sale_state.REFUNDED
        sale.refunded_at = utcnow()
        sale.refund_reason = reason

    logger.info("Refunded sale id=%s txn=%s restock=%s", sale.id, sale.transaction_number, restock)
    return sale


def update_sale(sale_id: int, patch: dict, *, user_id: int | None = None) -> Sale:
    """
    Edit customer, payment method or notes.

    A status in the patch is routed through the matching workflow so the
    inventory side effects always accompany the transition.
    """
    if not isinstance(patch, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(patch) - SALE_UPDATABLE_FIELDS - {"reason"})
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}", {"fields": unknown})

    if "payment_method" in patch and patch["payment_method"] not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
            {"payment_method": patch["payment_method"]},
        )
    if "notes" in patch and patch["notes"] is not None and not isinstance(patch["notes"], str):
        raise ValidationError("notes must be a string")
    if "status" in patch:
        sale_state.validate_status(patch["status"])

    with atomic("update_sale"):
        sale = _lock_sale(sale_id)

        if sale.status in sale_state.TERMINAL_STATUSES and set(patch) - {"notes"}:
            raise InvalidStateTransitionError(
                f"Cannot edit a {sale.status} sale",
                {"status": sale.status},
            )

        if "customer_id" in patch:
            customer_id = patch["customer_id"]
            if customer_id is not None:
                customer_id = _require_int(customer_id, "customer_id")
                customer = db.session.get(Customer, customer_id)
                if customer is None or not customer.is_active:
                    raise InvalidReferenceError("Customer not found or inactive", {"customer_id": customer_id})
            sale.customer_id = customer_id

        if "payment_method" in patch:
            sale.payment_method = patch["payment_method"]
        if "notes" in patch:
            sale.notes = patch["notes"]

        target = patch.get("status")
        if target is not None and target != sale.status:
            if target == sale_state.CANCELLED:
                _cancel_locked(sale, reason=patch.get("reason"), user_id=user_id)
            elif target == sale_state.COMPLETED:
                _complete_locked(sale, user_id=user_id)
            elif target == sale_state.REFUNDED:
                raise ValidationError("Use the refund endpoint to refund a sale")
            else:
                sale_state.require_transition(sale.status, target)

    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found", {"sale_id": sale_id})
    return sale


def list_sales(
    *,
    branch_id: int | None = None,
    user_id: int | None = None,
    customer_id: int | None = None,
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Sale], dict]:
    query = db.session.query(Sale)
    if branch_id is not None:
        query = query.filter(Sale.branch_id == branch_id)
    if user_id is not None:
        query = query.filter(Sale.user_id == user_id)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if status:
        sale_state.validate_status(status)
        query = query.filter(Sale.status == status)
    if date_from is not None:
        query = query.filter(Sale.created_at >= date_from)
    if date_to is not None:
        query = query.filter(Sale.created_at <= date_to)
    if search:
        query = query.filter(Sale.transaction_number.ilike(f"%{search.strip()}%"))

    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    return paginate_query(query, page, per_page)
