# backend/scratchers/routes/calculations.py
"""
Scratcher reconciliation API routes.
"""
from flask import Blueprint, g, request, jsonify

from ..decorators import require_actor, require_role
from ..errors import ScratcherError
from ..extensions import db
from ..services import reconciliation_service, shift_service
from ..services.access_service import PRIVILEGED_ROLES, ROLE_MANAGER, ROLE_OWNER, require_store_access
from .common import internal_error, json_error, scoped_store_id


calculations_bp = Blueprint("scratcher_calculations", __name__, url_prefix="/api/scratchers")


def _with_report(calc) -> dict:
    body = calc.to_dict()
    body["report"] = calc.shift_report.to_dict() if calc.shift_report else None
    return body


@calculations_bp.post("/shifts/<int:shift_report_id>/recalculate")
@require_actor
@require_role(ROLE_MANAGER, ROLE_OWNER)
def recalculate_shift(shift_report_id: int):
    """Re-run reconciliation for one shift."""
    try:
        report = shift_service.get_shift_report(shift_report_id)
        require_store_access(g.actor, report.store_id)
        calc = reconciliation_service.recalculate(report.id, report.store_id)
        db.session.commit()
        return jsonify({"calculation": calc.to_dict()}), 200
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to recalculate scratcher shift")


@calculations_bp.get("/shifts/<int:shift_report_id>")
@require_actor
def get_shift(shift_report_id: int):
    """
    Shift detail: report, calculation and end readings by slot number.

    Privileged readers re-run a calculation flagged for a missing product.
    """
    try:
        report = shift_service.get_shift_report(shift_report_id)
        require_store_access(g.actor, report.store_id)

        if g.actor.is_privileged:
            calc = reconciliation_service.get_calculation(report.id)
            if calc is not None and reconciliation_service.has_missing_product(calc):
                reconciliation_service.recalculate(report.id, report.store_id)

        detail = reconciliation_service.get_shift_detail(report.id)
        db.session.commit()
        return jsonify(detail), 200
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to load scratcher shift")


@calculations_bp.get("/calculations")
@require_actor
def list_calculations():
    """
    Store calculations, most recently updated first.

    Privileged readers trigger a re-run of calculations flagged for a
    missing product before the list is returned.
    """
    try:
        store_id = scoped_store_id(request.args.get("store_id"))
        calcs = reconciliation_service.list_calculations(
            store_id,
            refresh_flagged=g.actor.role in PRIVILEGED_ROLES,
        )
        body = {"calculations": [_with_report(c) for c in calcs]}
        db.session.commit()
        return jsonify(body), 200
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to list scratcher calculations")


@calculations_bp.get("/discrepancies")
@require_actor
def list_discrepancies():
    """Calculations needing review (flags, non-zero variance, negative totals)."""
    try:
        store_id = scoped_store_id(request.args.get("store_id"))
        calcs = reconciliation_service.list_discrepancies(store_id)
        return jsonify({"discrepancies": [_with_report(c) for c in calcs]}), 200
    except ScratcherError as e:
        db.session.rollback()
        return json_error(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to list scratcher discrepancies")
