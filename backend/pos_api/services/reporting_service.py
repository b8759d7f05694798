# Overview: Read-only dashboard aggregates over sales, inventory and customers.

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func

from pos_api.extensions import db
from pos_api.models import Customer, Inventory, Product, Sale, SaleItem, customer_branches
from pos_api.money import format_money, to_money
from pos_api.services.sale_state import COMPLETED
from pos_api.time_utils import start_of_day, to_utc_z, utcnow


def _month_bounds(now: datetime) -> tuple[datetime, datetime]:
    this_month = start_of_day(now).replace(day=1)
    last_month = (this_month - timedelta(days=1)).replace(day=1)
    return this_month, last_month


def _completed_sales(branch_id: int | None):
    q = db.session.query(Sale).filter(Sale.status == COMPLETED)
    if branch_id is not None:
        q = q.filter(Sale.branch_id == branch_id)
    return q


def _count_and_revenue(branch_id: int | None, start: datetime, end: datetime | None = None) -> tuple[int, Decimal]:
    q = db.session.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_amount), 0),
    ).filter(Sale.status == COMPLETED, Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at < end)
    if branch_id is not None:
        q = q.filter(Sale.branch_id == branch_id)
    count, revenue = q.one()
    return int(count or 0), to_money(revenue)


def growth_percentage(current: Decimal, previous: Decimal) -> Decimal:
    """Month-over-month growth in percent (1 dp); 0 when there is no baseline."""
    if previous <= 0:
        return Decimal("0.0")
    return ((current - previous) / previous * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def get_stats(*, branch_id: int | None = None, now: datetime | None = None) -> dict:
    """
    Headline numbers for the dashboard. Only completed sales count.

    branch_id=None aggregates across every branch.
    """
    now = now or utcnow()
    today = start_of_day(now)
    yesterday = today - timedelta(days=1)
    this_month, last_month = _month_bounds(now)

    sales_today, revenue_today = _count_and_revenue(branch_id, today)
    sales_yesterday, _ = _count_and_revenue(branch_id, yesterday, today)
    sales_month, revenue_month = _count_and_revenue(branch_id, this_month)
    sales_last_month, revenue_last_month = _count_and_revenue(branch_id, last_month, this_month)

    inv = db.session.query(Inventory).filter(Inventory.is_active.is_(True))
    if branch_id is not None:
        inv = inv.filter(Inventory.branch_id == branch_id)

    product_count = (
        inv.with_entities(func.count(func.distinct(Inventory.product_id)))
        .join(Product, Product.id == Inventory.product_id)
        .filter(Product.is_active.is_(True))
        .scalar()
    ) or 0
    low_stock = inv.filter(
        Inventory.current_stock <= Inventory.min_stock,
        Inventory.current_stock > 0,
    ).count()
    out_of_stock = inv.filter(Inventory.current_stock == 0).count()

    customers = db.session.query(Customer).filter(Customer.is_active.is_(True))
    if branch_id is not None:
        customers = customers.join(customer_branches).filter(customer_branches.c.branch_id == branch_id)
    total_customers = customers.count()
    new_customers = customers.filter(Customer.created_at >= this_month).count()

    return {
        "branch_id": branch_id,
        "sales": {
            "today": sales_today,
            "yesterday": sales_yesterday,
            "this_month": sales_month,
            "last_month": sales_last_month,
        },
        "revenue": {
            "today": format_money(revenue_today),
            "this_month": format_money(revenue_month),
            "last_month": format_money(revenue_last_month),
            "growth": str(growth_percentage(revenue_month, revenue_last_month)),
        },
        "products": {
            "total": int(product_count),
            "low_stock": low_stock,
            "out_of_stock": out_of_stock,
        },
        "customers": {
            "total": total_customers,
            "new": new_customers,
        },
    }


def recent_sales(*, branch_id: int | None = None, limit: int = 10) -> list[dict]:
    sales = (
        _completed_sales(branch_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(max(1, min(limit, 50)))
        .all()
    )
    return [
        {
            "id": s.id,
            "transaction_number": s.transaction_number,
            "customer_name": s.customer.full_name if s.customer else None,
            "total_amount": format_money(s.total_amount),
            "total_items": sum(i.quantity for i in s.items),
            "payment_method": s.payment_method,
            "branch_id": s.branch_id,
            "created_at": to_utc_z(s.created_at),
        }
        for s in sales
    ]


def top_products(*, branch_id: int | None = None, limit: int = 10) -> list[dict]:
    """Best sellers by quantity over completed sales."""
    quantity_sold = func.sum(SaleItem.quantity).label("quantity_sold")
    revenue = func.sum(SaleItem.subtotal).label("revenue")

    q = (
        db.session.query(Product.id, Product.name, Product.sku, quantity_sold, revenue)
        .join(SaleItem, SaleItem.product_id == Product.id)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(Sale.status == COMPLETED)
    )
    if branch_id is not None:
        q = q.filter(Sale.branch_id == branch_id)

    rows = (
        q.group_by(Product.id, Product.name, Product.sku)
        .order_by(quantity_sold.desc(), Product.id.asc())
        .limit(max(1, min(limit, 50)))
        .all()
    )
    return [
        {
            "product_id": row.id,
            "name": row.name,
            "sku": row.sku,
            "quantity_sold": int(row.quantity_sold or 0),
            "revenue": format_money(row.revenue or 0),
        }
        for row in rows
    ]


def low_stock(*, branch_id: int | None = None, limit: int = 50) -> list[dict]:
    """Active inventory at or below its minimum, emptiest first."""
    q = db.session.query(Inventory).filter(
        Inventory.is_active.is_(True),
        Inventory.current_stock <= Inventory.min_stock,
    )
    if branch_id is not None:
        q = q.filter(Inventory.branch_id == branch_id)

    rows = q.order_by(Inventory.current_stock.asc(), Inventory.id.asc()).limit(max(1, min(limit, 200))).all()
    return [
        {
            "inventory_id": inv.id,
            "product": inv.product.to_summary() if inv.product else None,
            "branch": inv.branch.to_summary() if inv.branch else None,
            "current_stock": inv.current_stock,
            "min_stock": inv.min_stock,
            "available_stock": inv.available_stock,
        }
        for inv in rows
    ]
