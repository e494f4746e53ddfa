# backend/scratchers/routes/packs.py
"""
Scratcher pack lifecycle API routes (activation, return, audit events, receipts).
"""
import os

from flask import Blueprint, g, request, jsonify, send_file

from ..decorators import require_actor
from ..errors import NotFoundError, ScratcherError
from ..extensions import db
from ..services import file_service, pack_service
from ..services.access_service import require_store_access
from ..validation import clean_optional_text, coerce_int
from .common import internal_error, json_error, optional_int, required_text, scoped_store_id


packs_bp = Blueprint("scratcher_packs", __name__, url_prefix="/api/scratchers")


@packs_bp.post("/packs/activate")
@require_actor
def activate_pack():
    """
    Activate a new pack in a slot.

    Multipart form:
        store_id, slot_id, product_id, pack_code, start_ticket
        receipt: activation receipt photo (required)

    Returns:
        201: {"pack": {...}, "end_ticket": "000169"}
        400: missing fields, missing receipt, unsupported price, bad start ticket
        403: store not accessible
        404: slot/product not found
        409: slot changed concurrently
    """
    form = request.form
    actor = g.actor
    try:
        slot_id = coerce_int("slot_id", required_text("slot_id", form.get("slot_id")))
        product_id = coerce_int("product_id", required_text("product_id", form.get("product_id")))
        pack_code = required_text("pack_code", form.get("pack_code"))
        start_ticket = required_text("start_ticket", form.get("start_ticket"))
        store_id = scoped_store_id(form.get("store_id"))

        receipt = file_service.store_receipt(request.files.get("receipt"))
        pack, end_ticket = pack_service.activate_pack(
            store_id=store_id,
            slot_id=slot_id,
            product_id=product_id,
            pack_code=pack_code,
            start_ticket=start_ticket,
            receipt=receipt,
            actor_user_id=actor.user_id,
            actor_name=actor.display_name,
        )
        db.session.commit()
        return jsonify({"pack": pack.to_dict(), "end_ticket": end_ticket}), 201
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to activate scratcher pack")


@packs_bp.post("/packs/return")
@require_actor
def return_pack():
    """
    Return a pack to the lottery.

    Multipart form:
        store_id, pack_id, note (optional)
        receipt: return receipt photo (required)
    """
    form = request.form
    actor = g.actor
    try:
        pack_id = coerce_int("pack_id", required_text("pack_id", form.get("pack_id")))
        store_id = scoped_store_id(form.get("store_id"))
        note = clean_optional_text(form.get("note"), field="note", max_length=2000)

        receipt = file_service.store_receipt(request.files.get("receipt"))
        pack = pack_service.return_pack(
            store_id=store_id,
            pack_id=pack_id,
            returned_by_user_id=actor.user_id,
            receipt=receipt,
            note=note,
            actor_name=actor.display_name,
        )
        db.session.commit()
        return jsonify({"pack": pack.to_dict()}), 200
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to return scratcher pack")


@packs_bp.get("/packs/events")
@require_actor
def list_pack_events():
    """
    Pack audit trail for a store, newest first.

    Query:
        store_id (optional for single-store actors), pack_id (optional)
    """
    try:
        store_id = scoped_store_id(request.args.get("store_id"))
        pack_id = optional_int("pack_id", request.args.get("pack_id"))
        events = pack_service.list_pack_events(store_id, pack_id=pack_id)
        return jsonify({"events": [e.to_dict() for e in events]}), 200
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to list scratcher pack events")


@packs_bp.post("/packs/events")
@require_actor
def create_pack_event():
    """
    Append a pack event.

    JSON body:    {"pack_id", "event_type", "note"?, "file_id"?}
    or multipart: pack_id, event_type, note?, receipt (file)

    Employees may only add return_receipt events (with a receipt).
    """
    actor = g.actor
    is_multipart = bool(request.files) or request.mimetype == "multipart/form-data"
    data = request.form if is_multipart else (request.get_json(silent=True) or {})
    try:
        pack_id = coerce_int("pack_id", required_text("pack_id", data.get("pack_id")))
        event_type = required_text("event_type", data.get("event_type"))
        note = clean_optional_text(data.get("note"), field="note", max_length=2000)

        pack = pack_service.get_pack(pack_id)
        require_store_access(actor, pack.store_id)

        file_id = optional_int("file_id", data.get("file_id"))
        receipt = None
        upload = request.files.get("receipt")
        if upload is not None and (upload.filename or "").strip():
            receipt = file_service.store_receipt(upload)

        event = pack_service.create_pack_event(
            pack_id=pack.id,
            event_type=event_type,
            actor=actor,
            note=note,
            file_id=file_id,
            receipt=receipt,
        )
        db.session.commit()
        return jsonify({"event": event.to_dict()}), 201
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to create scratcher pack event")


@packs_bp.get("/files/<int:file_id>")
@require_actor
def get_file(file_id: int):
    """Stream a stored receipt photo (actor must have access to its store)."""
    try:
        row = file_service.get_file(file_id)
        require_store_access(g.actor, row.store_id)
        path = file_service.resolve_file_path(row)
        if not os.path.isfile(path):
            raise NotFoundError("File not found", details={"file_id": file_id})
        return send_file(
            path,
            mimetype=row.content_type or "application/octet-stream",
            download_name=row.original_filename or os.path.basename(row.storage_path),
        )
    except ScratcherError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to load scratcher file")
