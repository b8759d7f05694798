# backend/pos_api/services/products_service.py
"""
Products Service

Products are shared master data: one catalog for every branch. Stock per
branch lives in Inventory (see inventory_service).

- SKU is globally unique; barcode is unique when present
- unit_price > cost_price and min_stock < max_stock are checked against the
  merged (stored + patch) values on every write
- delete is a soft delete (is_active=False, deleted_at set)
"""
from __future__ import annotations

import logging

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Product
from ..responses import paginate_query
from ..validation import enforce_rules_product
from pos_api.time_utils import utcnow


logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "sku", "barcode", "name", "description", "category",
    "unit_price", "cost_price", "tax_rate", "min_stock", "max_stock", "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _merged(p: Product | None, patch: dict) -> dict:
    current = {}
    if p is not None:
        current = {k: getattr(p, k) for k in PRODUCT_MUTABLE_FIELDS}
    current.update(patch)
    return current


def _ensure_unique(*, sku: str | None, barcode: str | None, exclude_id: int | None = None) -> None:
    if sku is not None:
        q = db.session.query(Product.id).filter(Product.sku == sku)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            raise ConflictError("SKU already exists.", {"sku": sku})

    if barcode is not None:
        q = db.session.query(Product.id).filter(Product.barcode == barcode)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            raise ConflictError("Barcode already exists.", {"barcode": barcode})


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFoundError("Product not found", {"product_id": product_id})
    return p


def list_products(
    *,
    search: str | None = None,
    category: str | None = None,
    include_inactive: bool = False,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Product], dict]:
    """
    Catalog listing with optional text search (name, SKU, barcode) and category filter.

    Returns (products, pagination).
    """
    query = db.session.query(Product)

    if not include_inactive:
        query = query.filter(Product.is_active.is_(True), Product.deleted_at.is_(None))

    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Product.name.ilike(like),
                Product.sku.ilike(like),
                Product.barcode.ilike(like),
            )
        )

    if category:
        query = query.filter(Product.category == category)

    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate_query(query, page, per_page)


def create_product(*, patch: dict) -> Product:
    """
    Create product from a validated patch dict.

    Raises:
        ValidationError: price or stock threshold invariants violated
        ConflictError: SKU or barcode already exists
    """
    enforce_rules_product(_merged(None, patch))
    _ensure_unique(sku=patch.get("sku"), barcode=patch.get("barcode"))

    p = Product()
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()

    logger.info("Created product id=%s sku=%s", p.id, p.sku)
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    """
    Update a product.

    Raises:
        NotFoundError: unknown product id
        ValidationError: merged values violate price or stock invariants
        ConflictError: new SKU or barcode already exists
    """
    p = get_product(product_id)

    enforce_rules_product(_merged(p, patch))

    new_sku = patch.get("sku") if patch.get("sku") != p.sku else None
    new_barcode = patch.get("barcode") if patch.get("barcode") != p.barcode else None
    _ensure_unique(sku=new_sku, barcode=new_barcode, exclude_id=p.id)

    apply_product_patch(p, patch)
    if patch.get("is_active") is True:
        p.deleted_at = None

    db.session.commit()
    return p


def delete_product(*, product_id: int) -> Product:
    """
    Soft-delete a product.

    Preserves IDs and historical references from sales and inventory.
    """
    p = get_product(product_id)

    if p.is_active or p.deleted_at is None:
        p.is_active = False
        p.deleted_at = utcnow()
        logger.info("Soft-deleted product id=%s sku=%s", p.id, p.sku)

    db.session.commit()
    return p
