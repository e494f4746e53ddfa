# backend/scratchers/routes/slots.py
"""
Scratcher slot registry API routes.
"""
from flask import Blueprint, g, request, jsonify

from ..decorators import require_actor, require_role
from ..errors import ScratcherError
from ..extensions import db
from ..services import slot_service
from ..services.access_service import PRIVILEGED_ROLES, require_store_access
from .common import internal_error, json_error, scoped_store_id


slots_bp = Blueprint("scratcher_slots", __name__, url_prefix="/api/scratchers")


@slots_bp.get("/slots")
@require_actor
def list_slots():
    """
    Slot bundle for a store: slots, packs, products and the latest baseline.

    Query:
        store_id (optional for single-store actors)
    """
    try:
        store_id = scoped_store_id(request.args.get("store_id"))
        bundle = slot_service.list_slot_bundle(store_id)
        db.session.commit()
        return jsonify(bundle), 200
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to list scratcher slots")


@slots_bp.post("/slots/init")
@require_actor
@require_role(*PRIVILEGED_ROLES)
def init_slots():
    """
    Create all missing slot numbers (1..SCRATCHER_MAX_SLOTS) for a store.

    Request body:
    {
        "store_id": int
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        store_id = scoped_store_id(data.get("store_id"))
        slots = slot_service.initialize_slots(store_id)
        db.session.commit()
        return jsonify({"slots": [s.to_dict() for s in slots]}), 200
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to initialize scratcher slots")


@slots_bp.post("/slots")
@require_actor
@require_role(*PRIVILEGED_ROLES)
def create_slot():
    """
    Create one slot.

    Request body:
    {
        "store_id": int,
        "slot_number": int (optional, defaults to max + 1),
        "label": str (optional)
    }

    Returns:
        201: Slot created
        400: slot_number out of range
        409: slot_number already used (SLOT_EXISTS)
    """
    data = request.get_json(silent=True) or {}
    try:
        store_id = scoped_store_id(data.get("store_id"))
        slot = slot_service.create_slot(
            store_id,
            slot_number=data.get("slot_number"),
            label=data.get("label"),
        )
        db.session.commit()
        return jsonify({"slot": slot.to_dict()}), 201
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to create scratcher slot")


@slots_bp.patch("/slots/<int:slot_id>")
@require_actor
@require_role(*PRIVILEGED_ROLES)
def update_slot(slot_id: int):
    """
    Patch label / is_active / default_product_id. Omitted keys are untouched.
    """
    data = request.get_json(silent=True)
    try:
        slot = slot_service.get_slot(slot_id)
        require_store_access(g.actor, slot.store_id)
        slot = slot_service.update_slot(slot_id, data)
        db.session.commit()
        return jsonify({"slot": slot.to_dict()}), 200
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to update scratcher slot")
