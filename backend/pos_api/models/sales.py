from __future__ import annotations

from ..extensions import db
from pos_api.money import format_money
from pos_api.time_utils import to_utc_z


SALE_STATUSES = ("pending", "completed", "cancelled", "refunded")
PAYMENT_METHODS = ("cash", "card", "transfer", "mixed")


class Sale(db.Model):
    """
    Sale transaction header.

    WHY: A sale ties a cashier, a branch and (optionally) a customer to a set
    of line items and the stock movements they caused.

    INVARIANTS:
    - discount_amount <= subtotal
    - total_amount == subtotal - discount_amount + tax_amount (within 0.01)
    - status changes only through pos_api.services.sale_state

    All amounts are NUMERIC(12, 2) handled as Decimal.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_branch_status_created", "branch_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable reference (e.g., "TXN-20240115-1A2B3C4D")
    transaction_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_rate = db.Column(db.Numeric(5, 4), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(5, 4), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    notes = db.Column(db.Text, nullable=True)

    # Lifecycle audit trail
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refund_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    branch = db.relationship("Branch", backref=db.backref("sales", lazy=True))
    user = db.relationship("User", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "customer_id": self.customer_id,
            "branch_id": self.branch_id,
            "user_id": self.user_id,
            "customer": self.customer.to_summary() if self.customer else None,
            "branch": self.branch.to_summary() if self.branch else None,
            "user": self.user.to_summary() if self.user else None,
            "subtotal": format_money(self.subtotal),
            "discount_rate": str(self.discount_rate) if self.discount_rate is not None else None,
            "discount_amount": format_money(self.discount_amount),
            "tax_rate": str(self.tax_rate) if self.tax_rate is not None else None,
            "tax_amount": format_money(self.tax_amount),
            "total_amount": format_money(self.total_amount),
            "payment_method": self.payment_method,
            "status": self.status,
            "notes": self.notes,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancel_reason": self.cancel_reason,
            "refunded_at": to_utc_z(self.refunded_at) if self.refunded_at else None,
            "refund_reason": self.refund_reason,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Individual line items on a sale. Owned by the sale (cascade delete)."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Snapshot so receipts survive product renames
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": format_money(self.unit_price),
            "discount_percentage": str(self.discount_percentage) if self.discount_percentage is not None else None,
            "discount_amount": format_money(self.discount_amount),
            "subtotal": format_money(self.subtotal),
            "created_at": to_utc_z(self.created_at),
        }
