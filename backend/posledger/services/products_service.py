# backend/posledger/services/products_service.py
"""
Catalog lookups and product creation.

Checkout only ever reads products through pricing_service; this module is
the thin CRUD surface used by the API, the CLI and test fixtures.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    enforce_rules_product,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "brand", "description", "category_id", "supplier_id",
        "price_cents", "cost_cents", "tax_rate_bps",
        "quantity_on_hand", "reorder_level", "unit", "warehouse",
    },
    required_on_create={"sku", "name", "price_cents"},
)


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def get_product_by_sku(sku: str) -> Product | None:
    return db.session.query(Product).filter_by(sku=sku.strip()).first()


def list_products(
    *,
    low_stock_only: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional pagination.

    low_stock_only keeps products at or below their reorder level.
    """
    base_query = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc())
    if low_stock_only:
        base_query = base_query.filter(Product.quantity_on_hand <= Product.reorder_level)

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_product(payload: dict) -> Product:
    """
    Validate and insert a product.

    Raises ValidationError for bad input and ConflictError for a duplicate SKU.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    if get_product_by_sku(patch["sku"]) is not None:
        raise ConflictError(f"SKU {patch['sku']!r} already exists")

    product = Product(**patch)
    db.session.add(product)
    db.session.commit()
    return product
