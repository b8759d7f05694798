from __future__ import annotations

from ..extensions import db
from pos_api.money import format_money
from pos_api.time_utils import to_utc_z


class Inventory(db.Model):
    """
    Per (product, branch) stock record.

    INVARIANTS (enforced by inventory_service, the only writer of stock fields):
    - current_stock >= 0
    - 0 <= reserved_stock <= current_stock
    - max_stock, when set, exceeds min_stock
    - total_value == round(current_stock * average_cost, 2) after every mutation

    Rows are never hard-deleted; DELETE sets is_active=False and deleted_at.
    version_id gives optimistic locking so two concurrent decrements of the
    same row cannot both commit.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("product_id", "branch_id", name="uq_inventory_product_branch"),
        db.Index("ix_inventory_branch_stock", "branch_id", "current_stock"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    max_stock = db.Column(db.Integer, nullable=True)
    reserved_stock = db.Column(db.Integer, nullable=False, default=0)

    average_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_value = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    location = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Physical count audit
    last_counted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_counted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    last_restock_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_sale_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("inventories", lazy=True))
    branch = db.relationship("Branch", backref=db.backref("inventories", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def available_stock(self) -> int:
        return (self.current_stock or 0) - (self.reserved_stock or 0)

    @property
    def is_low_stock(self) -> bool:
        return (self.current_stock or 0) <= (self.min_stock or 0)

    def __repr__(self) -> str:
        return (
            f"<Inventory id={self.id} product_id={self.product_id} "
            f"branch_id={self.branch_id} stock={self.current_stock}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "branch_id": self.branch_id,
            "product": self.product.to_summary() if self.product else None,
            "branch": self.branch.to_summary() if self.branch else None,
            "current_stock": self.current_stock,
            "min_stock": self.min_stock,
            "max_stock": self.max_stock,
            "reserved_stock": self.reserved_stock,
            "available_stock": self.available_stock,
            "average_cost": format_money(self.average_cost),
            "total_value": format_money(self.total_value),
            "location": self.location,
            "notes": self.notes,
            "is_low_stock": self.is_low_stock,
            "last_counted_at": to_utc_z(self.last_counted_at) if self.last_counted_at else None,
            "last_counted_by_user_id": self.last_counted_by_user_id,
            "last_restock_at": to_utc_z(self.last_restock_at) if self.last_restock_at else None,
            "last_sale_at": to_utc_z(self.last_sale_at) if self.last_sale_at else None,
            "is_active": self.is_active,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only audit trail of stock mutations.

    One row per increment/decrement/adjust/reserve/release/count. previous_stock
    is the value read before the mutation, new_stock the value after it.
    Rows are never updated or deleted.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_invmov_inventory_occurred", "inventory_id", "occurred_at"),
        db.Index("ix_invmov_sale", "sale_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)

    # restock, sale, sale_cancel, sale_refund, reserve, release, adjust, count
    movement_type = db.Column(db.String(32), nullable=False, index=True)

    quantity_delta = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    previous_reserved = db.Column(db.Integer, nullable=False, default=0)
    new_reserved = db.Column(db.Integer, nullable=False, default=0)

    unit_cost = db.Column(db.Numeric(12, 2), nullable=True)
    reason = db.Column(db.String(255), nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    inventory = db.relationship("Inventory", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "product_id": self.product_id,
            "branch_id": self.branch_id,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "previous_reserved": self.previous_reserved,
            "new_reserved": self.new_reserved,
            "unit_cost": format_money(self.unit_cost),
            "reason": self.reason,
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
