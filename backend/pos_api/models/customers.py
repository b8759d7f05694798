from __future__ import annotations

from ..extensions import db
from pos_api.time_utils import to_utc_z


customer_branches = db.Table(
    "customer_branches",
    db.Column("customer_id", db.Integer, db.ForeignKey("customers.id"), primary_key=True),
    db.Column("branch_id", db.Integer, db.ForeignKey("branches.id"), primary_key=True),
    db.Column("created_at", db.DateTime(timezone=True), nullable=False, server_default=db.func.now()),
)


class Customer(db.Model):
    """
    Customer master data for tracking purchases.

    A customer may be associated with any number of branches (or none, which
    means the customer is shared by every branch).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_active", "is_active"),
        db.Index("ix_customers_name", "last_name", "first_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    # Business customers
    company_name = db.Column(db.String(255), nullable=True)
    tax_id = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    branches = db.relationship(
        "Branch",
        secondary=customer_branches,
        lazy="subquery",
        backref=db.backref("customers", lazy=True),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "company_name": self.company_name,
            "tax_id": self.tax_id,
            "branch_ids": sorted(b.id for b in self.branches),
            "is_active": self.is_active,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
        }
