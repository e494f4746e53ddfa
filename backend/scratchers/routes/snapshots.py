# backend/scratchers/routes/snapshots.py
"""
Scratcher snapshot API routes (baseline, shift start, shift end).
"""
from flask import Blueprint, g, request, jsonify

from ..decorators import require_actor, require_role
from ..errors import ScratcherError
from ..extensions import db
from ..services import snapshot_service
from ..services.access_service import PRIVILEGED_ROLES
from ..validation import MAX_REPORTED_CENTS, parse_price_cents
from .common import internal_error, json_error, optional_int, scoped_store_id


snapshots_bp = Blueprint("scratcher_snapshots", __name__, url_prefix="/api/scratchers")


def _snapshot_body(snapshot) -> dict:
    return {
        "shift_report_id": snapshot.shift_report_id,
        "snapshot": snapshot.to_dict(),
        "items": [i.to_dict() for i in snapshot.items],
    }


@snapshots_bp.get("/snapshots/baseline")
@require_actor
@require_role(*PRIVILEGED_ROLES)
def get_baseline():
    """Latest baseline start snapshot for a store (null when none recorded)."""
    try:
        store_id = scoped_store_id(request.args.get("store_id"))
        baseline = snapshot_service.get_latest_baseline(store_id)
        if baseline is None:
            return jsonify({"shift_report_id": None, "snapshot": None, "items": []}), 200
        return jsonify(_snapshot_body(baseline)), 200
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to load scratcher baseline")


@snapshots_bp.post("/snapshots/baseline")
@require_actor
@require_role(*PRIVILEGED_ROLES)
def create_baseline():
    """
    Record a store baseline (creates a baseline shift report).

    Request body:
    {
        "store_id": int,
        "items": [{"slot_id": int, "ticket_value": str}, ...]
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        store_id = scoped_store_id(data.get("store_id"))
        snapshot = snapshot_service.create_baseline_snapshot(
            store_id=store_id,
            actor_user_id=g.actor.user_id,
            items=data.get("items"),
        )
        db.session.commit()
        return jsonify(_snapshot_body(snapshot)), 201
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to save scratcher baseline")


@snapshots_bp.post("/snapshots/start")
@require_actor
def create_start_snapshot():
    """
    Record the start reading of a shift.

    Request body:
    {
        "store_id": int,
        "shift_report_id": int (optional),
        "date": "YYYY-MM-DD" (optional, used when shift_report_id is absent),
        "items": [{"slot_id": int, "ticket_value": str}, ...]
    }

    Returns:
        201: Snapshot created
        409: start snapshot already recorded (DUPLICATE_SNAPSHOT)
    """
    data = request.get_json(silent=True) or {}
    try:
        store_id = scoped_store_id(data.get("store_id"))
        snapshot = snapshot_service.submit_start_snapshot(
            store_id=store_id,
            employee_user_id=g.actor.user_id,
            items=data.get("items"),
            shift_report_id=optional_int("shift_report_id", data.get("shift_report_id")),
            shift_date=data.get("date"),
        )
        db.session.commit()
        return jsonify(_snapshot_body(snapshot)), 201
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to save scratcher start snapshot")


@snapshots_bp.post("/snapshots/end")
@require_actor
def create_end_snapshot():
    """
    Record the end reading of a shift and reconcile it.

    Request body:
    {
        "store_id": int,
        "shift_report_id": int (optional),
        "date": "YYYY-MM-DD" (optional),
        "reported_scratcher": number | str (optional, dollars),
        "items": [{"slot_id": int, "ticket_value": str}, ...]
    }

    Returns:
        201: {"shift_report_id", "snapshot", "items", "calculation"}
        409: END_SNAPSHOT_EXISTS, BASELINE_REQUIRED, or ROLLOVER_DETECTED
             (details.rollover_slots lists the slots to activate first)
    """
    data = request.get_json(silent=True) or {}
    try:
        store_id = scoped_store_id(data.get("store_id"))
        reported = data.get("reported_scratcher")
        reported_cents = (
            parse_price_cents(reported, field="reported_scratcher", max_cents=MAX_REPORTED_CENTS)
            if reported not in (None, "")
            else None
        )
        snapshot, calculation = snapshot_service.submit_end_snapshot(
            store_id=store_id,
            employee_user_id=g.actor.user_id,
            items=data.get("items"),
            shift_report_id=optional_int("shift_report_id", data.get("shift_report_id")),
            shift_date=data.get("date"),
            reported_scratcher_cents=reported_cents,
        )
        body = _snapshot_body(snapshot)
        body["calculation"] = calculation.to_dict()
        db.session.commit()
        return jsonify(body), 201
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to save scratcher end snapshot")
