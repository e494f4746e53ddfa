# backend/scratchers/routes/products.py
"""
Scratcher product catalog API routes.
"""
from flask import Blueprint, g, request, jsonify

from ..decorators import require_actor, require_role
from ..errors import PermissionDeniedError, ScratcherError
from ..extensions import db
from ..services import product_service
from ..services.access_service import PRIVILEGED_ROLES, ROLE_EMPLOYEE, require_store_access
from ..services.notification_service import send_store_message
from .common import internal_error, json_error, optional_int


products_bp = Blueprint("scratcher_products", __name__, url_prefix="/api/scratchers")


@products_bp.get("/products")
@require_actor
@require_role(*PRIVILEGED_ROLES)
def list_products():
    """All scratcher products (catalog normalized first), highest price first."""
    try:
        products = product_service.list_products()
        db.session.commit()
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to list scratcher products")


@products_bp.post("/products/upsert")
@require_actor
def upsert_product():
    """
    Create or update a product.

    Request body:
    {
        "id": int (optional, update when present),
        "name": str (optional),
        "price": number | str (dollars, required),
        "is_active": bool (optional),
        "store_id": int (optional, employees: store to notify)
    }

    Employees may only create products; the store is told when they do.

    Returns:
        200: Product updated
        201: Product created
        400: Invalid price
        403: Employee tried to edit
        404: Unknown product id
    """
    data = request.get_json(silent=True) or {}
    actor = g.actor
    try:
        product_id = optional_int("id", data.get("id"))
        if actor.role == ROLE_EMPLOYEE and product_id is not None:
            raise PermissionDeniedError("Employees cannot edit products.")

        store_id = optional_int("store_id", data.get("store_id"))
        if store_id is not None:
            require_store_access(actor, store_id)

        product, created = product_service.upsert_product(
            product_id=product_id,
            name=data.get("name"),
            price=data.get("price"),
            is_active=data.get("is_active"),
        )

        if actor.role == ROLE_EMPLOYEE and store_id is not None:
            send_store_message(
                store_id,
                f"{actor.display_name} added scratcher product {product.name or 'Scratcher'} (${product.price}).",
                sender_user_id=actor.user_id,
            )

        db.session.commit()
        return jsonify({"product": product.to_dict()}), (201 if created else 200)
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to save scratcher product")
