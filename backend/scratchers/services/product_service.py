# Overview: Scratcher product catalog (global, keyed by price).

"""
PRICE -> PACK SIZE is fixed (see tickets.PACK_SIZE_BY_PRICE_CENTS). The
catalog keeps one product row for every standard price and at most one
ACTIVE product per price; normalize_catalog() restores both properties.

Any change to the catalog re-runs calculations that were flagged because a
slot's product could not be resolved.
"""
from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import ScratcherProduct
from ..tickets import STANDARD_PRICES_CENTS
from ..validation import clean_optional_text, parse_price_cents
from .concurrency import run_with_retry


def get_product(product_id: int) -> ScratcherProduct:
    product = db.session.get(ScratcherProduct, product_id)
    if not product:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def normalize_catalog() -> list[ScratcherProduct]:
    """
    Ensure a product exists for each standard price and deactivate duplicate
    active products at the same price (the lowest id wins).

    Returns the products that were created or changed.
    """
    def _op():
        changed: list[ScratcherProduct] = []
        rows = db.session.query(ScratcherProduct).order_by(ScratcherProduct.id.asc()).all()

        seen_active: set[int] = set()
        prices_present: set[int] = set()
        for product in rows:
            prices_present.add(product.price_cents)
            if not product.is_active:
                continue
            if product.price_cents in seen_active:
                product.is_active = False
                changed.append(product)
            else:
                seen_active.add(product.price_cents)

        for price_cents in STANDARD_PRICES_CENTS:
            if price_cents in prices_present:
                continue
            product = ScratcherProduct(name=None, price_cents=price_cents, is_active=True)
            db.session.add(product)
            changed.append(product)

        if changed:
            db.session.flush()
        return changed

    return run_with_retry(_op)


def list_products(*, include_inactive: bool = True) -> list[ScratcherProduct]:
    """All products, highest price first. Normalizes the catalog before reading."""
    normalize_catalog()
    query = db.session.query(ScratcherProduct)
    if not include_inactive:
        query = query.filter(ScratcherProduct.is_active.is_(True))
    return query.order_by(ScratcherProduct.price_cents.desc(), ScratcherProduct.id.asc()).all()


def upsert_product(
    *,
    product_id=None,
    name=None,
    price=None,
    is_active=None,
) -> tuple[ScratcherProduct, bool]:
    """
    Create a product (no product_id) or update an existing one.

    price is in dollars (number or numeric string) and must be finite and
    non-negative; it is stored as integer cents. Returns (product, created).

    Afterwards every calculation flagged with missing_product_* is re-run.
    """
    from .reconciliation_service import recalculate_flagged

    def _op():
        cleaned_name = clean_optional_text(name, field="name", max_length=255)
        price_cents = parse_price_cents(price)
        if is_active is not None and not isinstance(is_active, bool):
            raise ValidationError("is_active must be a boolean")

        if product_id is not None:
            product = get_product(product_id)
            product.name = cleaned_name
            product.price_cents = price_cents
            if is_active is not None:
                product.is_active = is_active
            created = False
        else:
            product = ScratcherProduct(
                name=cleaned_name,
                price_cents=price_cents,
                is_active=True if is_active is None else is_active,
            )
            db.session.add(product)
            created = True

        db.session.flush()
        return product, created

    product, created = run_with_retry(_op)

    rerun = recalculate_flagged()
    if rerun:
        current_app.logger.info("Re-ran %d flagged scratcher calculations after product change", len(rerun))
    return product, created
