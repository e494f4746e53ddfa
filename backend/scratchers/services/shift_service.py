# Overview: Shift report lookups used by snapshot submission and reconciliation.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ..extensions import db
from ..models import ShiftReport
from ..time_utils import baseline_label, parse_shift_date


def get_shift_report(shift_report_id: int, *, store_id: int | None = None) -> ShiftReport:
    report = db.session.get(ShiftReport, shift_report_id)
    if not report or (store_id is not None and report.store_id != store_id):
        raise NotFoundError("Shift report not found", details={"shift_report_id": shift_report_id})
    return report


def ensure_shift_report(store_id: int, employee_user_id: int, shift_date: str | None = None) -> ShiftReport:
    """
    Get or create the employee's draft shift report for a business date.

    shift_date: YYYY-MM-DD, defaults to today (UTC).
    A concurrent create for the same (store, employee, date) loses on the
    unique constraint and surfaces as ConflictError.
    """
    try:
        normalized = parse_shift_date(shift_date)
    except ValueError:
        raise ValidationError("shift_date must be YYYY-MM-DD", details={"shift_date": shift_date})

    existing = (
        db.session.query(ShiftReport)
        .filter_by(store_id=store_id, employee_user_id=employee_user_id, shift_date=normalized)
        .first()
    )
    if existing:
        return existing

    report = ShiftReport(
        store_id=store_id,
        employee_user_id=employee_user_id,
        shift_date=normalized,
        is_baseline=False,
    )
    db.session.add(report)
    try:
        db.session.flush()
    except IntegrityError:
        raise ConflictError(
            "Shift report was created concurrently; retry",
            code="SHIFT_REPORT_EXISTS",
            details={"store_id": store_id, "shift_date": normalized},
        )
    return report


def resolve_submission_report(
    store_id: int,
    employee_user_id: int,
    *,
    shift_report_id: int | None = None,
    shift_date: str | None = None,
) -> ShiftReport:
    """
    The shift report a start or end snapshot is submitted against.

    An explicit shift_report_id must name the submitting employee's own
    shift in store_id; baseline reports are rejected. Without one, the
    employee's draft for shift_date is used (created when missing).
    """
    if shift_report_id is None:
        return ensure_shift_report(store_id, employee_user_id, shift_date)

    report = get_shift_report(shift_report_id, store_id=store_id)
    if report.is_baseline:
        raise ValidationError(
            "Baseline reports do not take shift snapshots",
            code="BASELINE_REPORT",
            details={"shift_report_id": shift_report_id},
        )
    if report.employee_user_id != employee_user_id:
        raise PermissionDeniedError(
            "Shift report belongs to another employee",
            details={"shift_report_id": shift_report_id},
        )
    return report


def create_baseline_shift_report(store_id: int, actor_user_id: int) -> ShiftReport:
    """Baseline reports hold a store-wide start snapshot; one per creation instant."""
    report = ShiftReport(
        store_id=store_id,
        employee_user_id=actor_user_id,
        shift_date=baseline_label(),
        is_baseline=True,
    )
    db.session.add(report)
    db.session.flush()
    return report


def record_reported_scratcher(report: ShiftReport, reported_cents: int | None) -> ShiftReport:
    """Store what the employee reported as scratcher sales (None leaves it unchanged)."""
    if reported_cents is None:
        return report
    if reported_cents < 0:
        raise ValidationError("Reported scratcher amount must be >= 0")
    if report.reported_scratcher_cents != reported_cents:
        report.reported_scratcher_cents = reported_cents
        db.session.flush()
    return report
