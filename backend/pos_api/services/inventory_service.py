# Overview: Service-layer operations for inventory; the per-branch stock ledger.

# backend/pos_api/services/inventory_service.py

"""
Inventory Invariants (authoritative)

Stock model:
- One Inventory row per (product, branch). current_stock is a stored integer
  mutated only by the ledger functions in this module.
- available stock = current_stock - reserved_stock.

Business invariants:
- current_stock never goes negative.
- 0 <= reserved_stock <= current_stock.
- decrement/reserve fail with InsufficientStockError when qty > available.
  A missing or inactive record has 0 available.
- restock updates the weighted average cost:
    (stock * avg + qty * unit_cost) / (stock + qty), half-up to the cent.
- adjust and count do NOT affect average cost.
- total_value = current_stock * average_cost (2 dp) after every mutation.
- A record cannot be deactivated while stock is reserved on it.
- Stock returned by a cancelled or refunded sale lands on its record even
  when that record has since been deactivated.

Audit:
- Every mutation appends an InventoryMovement whose previous_stock is the
  value read (under row lock) before the mutation.
- Movements are append-only.

Transactions:
- Ledger functions flush but never commit. The calling workflow owns the
  unit of work (see services.concurrency.atomic).
- The *_inventory wrappers at the bottom are the single-operation entry
  points used by the HTTP layer; each runs inside its own atomic unit.
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP

from ..errors import (
    ConflictError,
    InsufficientStockError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Branch, Inventory, InventoryMovement, Product
from ..money import CENT, to_money
from ..responses import paginate_query
from ..validation import enforce_rules_stock_thresholds
from .concurrency import atomic, lock_for_update
from pos_api.time_utils import utcnow


logger = logging.getLogger(__name__)

MOVEMENT_TYPES = ("restock", "sale", "sale_cancel", "sale_refund", "reserve", "release", "adjust", "count")

INVENTORY_MUTABLE_FIELDS = {"min_stock", "max_stock", "location", "notes", "is_active"}


def _require_positive_int(qty, field: str = "quantity") -> int:
    if isinstance(qty, bool) or not isinstance(qty, int):
        raise ValidationError(f"{field} must be an integer", {field: qty})
    if qty <= 0:
        raise ValidationError(f"{field} must be > 0", {field: qty})
    return qty


def _find(product_id: int, branch_id: int, *, lock: bool = True, include_inactive: bool = False) -> Inventory | None:
    query = db.session.query(Inventory).filter(
        Inventory.product_id == product_id,
        Inventory.branch_id == branch_id,
    )
    if not include_inactive:
        query = query.filter(Inventory.is_active.is_(True))
    if lock:
        query = lock_for_update(query)
    return query.first()


def _require(product_id: int, branch_id: int, *, include_inactive: bool = False) -> Inventory:
    """
    Locked record for a mutation.

    Sale workflows (cancel, refund, release, complete) pass
    include_inactive=True and also reach a deactivated record.
    """
    inv = _find(product_id, branch_id, include_inactive=include_inactive)
    if inv is None:
        raise NotFoundError(
            "Inventory record not found",
            {"product_id": product_id, "branch_id": branch_id},
        )
    return inv


def get_available_stock(product_id: int, branch_id: int) -> int:
    """Available quantity for sale; 0 when the product is not stocked at the branch."""
    inv = _find(product_id, branch_id, lock=False)
    return inv.available_stock if inv is not None else 0


def _apply(
    inv: Inventory,
    *,
    stock_delta: int = 0,
    reserved_delta: int = 0,
    movement_type: str,
    reason: str | None = None,
    sale_id: int | None = None,
    user_id: int | None = None,
    unit_cost: Decimal | None = None,
) -> InventoryMovement:
    """Apply a stock change, keep the invariants, and append the movement row."""
    previous_stock = inv.current_stock or 0
    previous_reserved = inv.reserved_stock or 0

    new_stock = previous_stock + stock_delta
    new_reserved = previous_reserved + reserved_delta

    if new_stock < 0:
        raise ValidationError(
            "Stock cannot go negative",
            {"inventory_id": inv.id, "current_stock": previous_stock, "delta": stock_delta},
        )
    if new_reserved < 0:
        raise ValidationError(
            "Reserved stock cannot go negative",
            {"inventory_id": inv.id, "reserved_stock": previous_reserved, "delta": reserved_delta},
        )
    if new_reserved > new_stock:
        raise ValidationError(
            "Stock cannot drop below the reserved quantity",
            {"inventory_id": inv.id, "reserved_stock": new_reserved, "new_stock": new_stock},
        )

    inv.current_stock = new_stock
    inv.reserved_stock = new_reserved
    inv.total_value = to_money(Decimal(new_stock) * to_money(inv.average_cost))

    movement = InventoryMovement(
        inventory_id=inv.id,
        product_id=inv.product_id,
        branch_id=inv.branch_id,
        movement_type=movement_type,
        quantity_delta=stock_delta if stock_delta else reserved_delta,
        previous_stock=previous_stock,
        new_stock=new_stock,
        previous_reserved=previous_reserved,
        new_reserved=new_reserved,
        unit_cost=unit_cost,
        reason=reason,
        sale_id=sale_id,
        user_id=user_id,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()

    if new_stock <= (inv.min_stock or 0):
        logger.warning(
            "Low stock: product_id=%s branch_id=%s stock=%s min_stock=%s",
            inv.product_id, inv.branch_id, new_stock, inv.min_stock,
        )

    return movement


# -- Ledger primitives (flush only) --

def increment(
    product_id: int,
    branch_id: int,
    qty: int,
    *,
    movement_type: str = "adjust",
    reason: str | None = None,
    sale_id: int | None = None,
    user_id: int | None = None,
) -> Inventory:
    """Add qty to current stock. NotFoundError when the record does not exist."""
    _require_positive_int(qty)
    inv = _require(product_id, branch_id, include_inactive=True)
    _apply(inv, stock_delta=qty, movement_type=movement_type, reason=reason, sale_id=sale_id, user_id=user_id)
    return inv


def decrement(
    product_id: int,
    branch_id: int,
    qty: int,
    *,
    movement_type: str = "sale",
    reason: str | None = None,
    sale_id: int | None = None,
    user_id: int | None = None,
    product_name: str | None = None,
) -> Inventory:
    """
    Remove qty from current stock.

    Raises InsufficientStockError when qty exceeds available stock (a
    missing record counts as 0 available). Stock is untouched on failure.
    """
    _require_positive_int(qty)
    inv = _find(product_id, branch_id)
    available = inv.available_stock if inv is not None else 0
    if inv is None or qty > available:
        raise InsufficientStockError(
            f"Insufficient stock for {product_name or f'product {product_id}'}",
            {"product_id": product_id, "branch_id": branch_id, "requested": qty, "available": available},
        )

    _apply(inv, stock_delta=-qty, movement_type=movement_type, reason=reason, sale_id=sale_id, user_id=user_id)
    if movement_type == "sale":
        inv.last_sale_at = utcnow()
    return inv


def adjust(
    product_id: int,
    branch_id: int,
    delta: int,
    reason: str,
    *,
    user_id: int | None = None,
) -> Inventory:
    """
    Manual signed correction (damage, shrink, found stock).

    ValidationError when delta is zero or the result would be negative or
    below the reserved quantity. Average cost is unchanged.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer", {"delta": delta})
    if delta == 0:
        raise ValidationError("delta must be non-zero")
    if not reason or not str(reason).strip():
        raise ValidationError("reason is required for adjustments")

    inv = _require(product_id, branch_id)
    _apply(inv, stock_delta=delta, movement_type="adjust", reason=str(reason).strip(), user_id=user_id)
    return inv


def restock(
    product_id: int,
    branch_id: int,
    qty: int,
    unit_cost,
    *,
    reason: str | None = None,
    user_id: int | None = None,
) -> Inventory:
    """Receive qty units at unit_cost and fold them into the weighted average cost."""
    _require_positive_int(qty)
    cost = to_money(unit_cost)
    if cost < 0:
        raise ValidationError("unit_cost must be >= 0")

    inv = _require(product_id, branch_id)

    stock = inv.current_stock or 0
    avg = to_money(inv.average_cost)
    inv.average_cost = (
        (Decimal(stock) * avg + Decimal(qty) * cost) / Decimal(stock + qty)
    ).quantize(CENT, rounding=ROUND_HALF_UP)
    inv.last_restock_at = utcnow()

    _apply(inv, stock_delta=qty, movement_type="restock", reason=reason, user_id=user_id, unit_cost=cost)
    return inv


def reserve(
    product_id: int,
    branch_id: int,
    qty: int,
    *,
    sale_id: int | None = None,
    user_id: int | None = None,
    product_name: str | None = None,
) -> Inventory:
    """Hold qty for a pending sale. Same availability rule as decrement."""
    _require_positive_int(qty)
    inv = _find(product_id, branch_id)
    available = inv.available_stock if inv is not None else 0
    if inv is None or qty > available:
        raise InsufficientStockError(
            f"Insufficient stock for {product_name or f'product {product_id}'}",
            {"product_id": product_id, "branch_id": branch_id, "requested": qty, "available": available},
        )
    _apply(inv, reserved_delta=qty, movement_type="reserve", sale_id=sale_id, user_id=user_id)
    return inv


def release(
    product_id: int,
    branch_id: int,
    qty: int,
    *,
    sale_id: int | None = None,
    user_id: int | None = None,
    reason: str | None = None,
) -> Inventory:
    """Drop a reservation without touching current stock."""
    _require_positive_int(qty)
    inv = _require(product_id, branch_id, include_inactive=True)
    _apply(inv, reserved_delta=-qty, movement_type="release", reason=reason, sale_id=sale_id, user_id=user_id)
    return inv


def commit_reservation(
    product_id: int,
    branch_id: int,
    qty: int,
    *,
    sale_id: int | None = None,
    user_id: int | None = None,
) -> Inventory:
    """Turn a reservation into a sale decrement (pending -> completed)."""
    _require_positive_int(qty)
    inv = _require(product_id, branch_id, include_inactive=True)
    _apply(
        inv,
        stock_delta=-qty,
        reserved_delta=-qty,
        movement_type="sale",
        sale_id=sale_id,
        user_id=user_id,
    )
    inv.last_sale_at = utcnow()
    return inv


def record_count(
    inv: Inventory,
    counted_qty: int,
    *,
    user_id: int | None = None,
    reason: str | None = None,
) -> Inventory:
    """Set stock to a physical count and stamp the count audit fields."""
    if isinstance(counted_qty, bool) or not isinstance(counted_qty, int):
        raise ValidationError("counted_quantity must be an integer")
    if counted_qty < 0:
        raise ValidationError("counted_quantity must be >= 0")

    delta = counted_qty - (inv.current_stock or 0)
    _apply(
        inv,
        stock_delta=delta,
        movement_type="count",
        reason=reason or "Physical count",
        user_id=user_id,
    )
    inv.last_counted_at = utcnow()
    inv.last_counted_by_user_id = user_id
    return inv


# -- Inventory records (CRUD) --

def get_inventory(inventory_id: int) -> Inventory:
    inv = db.session.get(Inventory, inventory_id)
    if inv is None:
        raise NotFoundError("Inventory record not found", {"inventory_id": inventory_id})
    return inv


def _get_active_for_update(inventory_id: int) -> Inventory:
    inv = lock_for_update(db.session.query(Inventory).filter_by(id=inventory_id)).first()
    if inv is None:
        raise NotFoundError("Inventory record not found", {"inventory_id": inventory_id})
    if not inv.is_active:
        raise ValidationError("Inventory record is inactive", {"inventory_id": inventory_id})
    return inv


def list_inventory(
    *,
    branch_id: int | None = None,
    product_id: int | None = None,
    low_stock: bool = False,
    include_inactive: bool = False,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Inventory], dict]:
    query = db.session.query(Inventory)
    if not include_inactive:
        query = query.filter(Inventory.is_active.is_(True))
    if branch_id is not None:
        query = query.filter(Inventory.branch_id == branch_id)
    if product_id is not None:
        query = query.filter(Inventory.product_id == product_id)
    if low_stock:
        query = query.filter(Inventory.current_stock <= Inventory.min_stock)
    query = query.order_by(Inventory.branch_id.asc(), Inventory.product_id.asc(), Inventory.id.asc())
    return paginate_query(query, page, per_page)


def create_inventory(*, patch: dict, user_id: int | None = None) -> Inventory:
    """
    Start stocking a product at a branch.

    Optional current_stock / average_cost seed the record; the opening
    quantity is logged as a restock movement.
    """
    product_id = patch.get("product_id")
    branch_id = patch.get("branch_id")
    opening_stock = patch.get("current_stock") or 0
    opening_cost = to_money(patch.get("average_cost"))

    if opening_stock < 0:
        raise ValidationError("current_stock must be >= 0")
    enforce_rules_stock_thresholds(patch)

    with atomic("create_inventory"):
        product = db.session.get(Product, product_id)
        if product is None or not product.is_active:
            raise InvalidReferenceError("Product not found or inactive", {"product_id": product_id})
        branch = db.session.get(Branch, branch_id)
        if branch is None or not branch.is_active:
            raise InvalidReferenceError("Branch not found or inactive", {"branch_id": branch_id})

        existing = db.session.query(Inventory.id).filter_by(product_id=product_id, branch_id=branch_id).first()
        if existing:
            raise ConflictError(
                "Inventory already exists for this product and branch",
                {"product_id": product_id, "branch_id": branch_id, "inventory_id": existing.id},
            )

        inv = Inventory(
            product_id=product_id,
            branch_id=branch_id,
            current_stock=0,
            reserved_stock=0,
            min_stock=patch.get("min_stock") if patch.get("min_stock") is not None else product.min_stock,
            max_stock=patch.get("max_stock") if patch.get("max_stock") is not None else product.max_stock,
            average_cost=opening_cost,
            total_value=Decimal("0.00"),
            location=patch.get("location"),
            notes=patch.get("notes"),
        )
        enforce_rules_stock_thresholds({"min_stock": inv.min_stock, "max_stock": inv.max_stock})
        db.session.add(inv)
        db.session.flush()

        if opening_stock:
            inv.last_restock_at = utcnow()
            _apply(
                inv,
                stock_delta=opening_stock,
                movement_type="restock",
                reason="Opening stock",
                user_id=user_id,
                unit_cost=opening_cost,
            )

    logger.info("Created inventory id=%s product_id=%s branch_id=%s", inv.id, product_id, branch_id)
    return inv


def _refuse_if_reserved(inv: Inventory) -> None:
    if inv.reserved_stock:
        raise ConflictError(
            "Inventory has stock reserved by pending sales",
            {"inventory_id": inv.id, "reserved_stock": inv.reserved_stock},
        )


def update_inventory(*, inventory_id: int, patch: dict) -> Inventory:
    """Update thresholds, location, notes or active flag. Stock fields are ledger-only."""
    with atomic("update_inventory"):
        inv = lock_for_update(db.session.query(Inventory).filter_by(id=inventory_id)).first()
        if inv is None:
            raise NotFoundError("Inventory record not found", {"inventory_id": inventory_id})

        merged = {"min_stock": inv.min_stock, "max_stock": inv.max_stock}
        merged.update({k: v for k, v in patch.items() if k in ("min_stock", "max_stock")})
        enforce_rules_stock_thresholds(merged)
        if patch.get("is_active") is False and inv.is_active:
            _refuse_if_reserved(inv)

        for k, v in patch.items():
            if k in INVENTORY_MUTABLE_FIELDS:
                setattr(inv, k, v)
        if patch.get("is_active") is True:
            inv.deleted_at = None
        if patch.get("is_active") is False and inv.deleted_at is None:
            inv.deleted_at = utcnow()

    return inv


def delete_inventory(*, inventory_id: int) -> Inventory:
    """Soft-delete; refused while stock is reserved for pending sales."""
    with atomic("delete_inventory"):
        inv = lock_for_update(db.session.query(Inventory).filter_by(id=inventory_id)).first()
        if inv is None:
            raise NotFoundError("Inventory record not found", {"inventory_id": inventory_id})
        _refuse_if_reserved(inv)
        if inv.is_active or inv.deleted_at is None:
            inv.is_active = False
            inv.deleted_at = utcnow()

    logger.info("Soft-deleted inventory id=%s", inventory_id)
    return inv


def list_movements(*, inventory_id: int, page: int = 1, per_page: int = 50) -> tuple[list[InventoryMovement], dict]:
    get_inventory(inventory_id)
    query = (
        db.session.query(InventoryMovement)
        .filter(InventoryMovement.inventory_id == inventory_id)
        .order_by(InventoryMovement.occurred_at.desc(), InventoryMovement.id.desc())
    )
    return paginate_query(query, page, per_page)


# -- Single-operation entry points (own the transaction) --

def adjust_inventory(*, inventory_id: int, delta: int, reason: str, user_id: int | None = None) -> Inventory:
    with atomic("adjust_inventory"):
        inv = _get_active_for_update(inventory_id)
        adjust(inv.product_id, inv.branch_id, delta, reason, user_id=user_id)
    return inv


def restock_inventory(
    *,
    inventory_id: int,
    quantity: int,
    unit_cost,
    reason: str | None = None,
    user_id: int | None = None,
) -> Inventory:
    with atomic("restock_inventory"):
        inv = _get_active_for_update(inventory_id)
        restock(inv.product_id, inv.branch_id, quantity, unit_cost, reason=reason, user_id=user_id)
    return inv


def count_inventory(
    *,
    inventory_id: int,
    counted_quantity: int,
    reason: str | None = None,
    user_id: int | None = None,
) -> Inventory:
    with atomic("count_inventory"):
        inv = _get_active_for_update(inventory_id)
        record_count(inv, counted_quantity, user_id=user_id, reason=reason)
    return inv
