# Overview: Start/end/baseline ticket snapshots and mid-shift rollover detection.

"""
SNAPSHOTS:
- one 'start' and one 'end' per shift report (unique constraint)
- items are bound to the slot's active pack at the moment they are written
- immutable once written

START RESOLUTION (explicit, two tiers):
1. the shift's own start snapshot, if it has items
2. otherwise the store's latest baseline (a start snapshot on a baseline
   shift report); it is cloned into the shift as its start snapshot
Neither -> BaselineRequiredError.

ROLLOVER: an end reading lower than the start reading while the slot still
holds the SAME pack means the numbering reset without an activation being
recorded. End submission is rejected until the new pack is activated.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    BaselineRequiredError,
    DuplicateSnapshotError,
    EndSnapshotExistsError,
    RolloverDetectedError,
    ValidationError,
)
from ..extensions import db
from ..models import ScratcherShiftCalculation, ScratcherSlot, ScratcherSnapshot, ScratcherSnapshotItem, ShiftReport
from ..models.snapshots import SNAPSHOT_TYPE_END, SNAPSHOT_TYPE_START, SNAPSHOT_TYPES
from ..tickets import parse_ticket_value
from ..validation import coerce_int
from .concurrency import lock_for_update, run_with_retry
from .shift_service import (
    create_baseline_shift_report,
    get_shift_report,
    record_reported_scratcher,
    resolve_submission_report,
)
from .store_service import get_store


MAX_TICKET_VALUE_LENGTH = 32

START_SOURCE_SHIFT = "shift"
START_SOURCE_BASELINE = "baseline"


def _clean_items(items, slots_by_id: dict[int, ScratcherSlot]) -> dict[int, str]:
    """
    Normalize [{"slot_id", "ticket_value"}, ...] to {slot_id: value}.

    Values are trimmed and blank ones dropped. Duplicate slot ids and slots
    outside the store are rejected. At least one value is required.
    """
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    cleaned: dict[int, str] = {}
    foreign: list[int] = []
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError("Each snapshot item must be an object")
        slot_id = coerce_int("slot_id", raw.get("slot_id"))
        value = raw.get("ticket_value")
        value = "" if value is None else str(value).strip()
        if not value:
            continue
        if len(value) > MAX_TICKET_VALUE_LENGTH:
            raise ValidationError(f"ticket_value exceeds max length {MAX_TICKET_VALUE_LENGTH}", details={"slot_id": slot_id})
        if slot_id in cleaned:
            raise ValidationError("Duplicate slot in snapshot", details={"slot_id": slot_id})
        if slot_id not in slots_by_id:
            foreign.append(slot_id)
            continue
        cleaned[slot_id] = value

    if foreign:
        raise ValidationError("Slots do not belong to this store", details={"slot_ids": sorted(foreign)})
    if not cleaned:
        raise ValidationError("No snapshot items provided.")
    return cleaned


def _store_slots(store_id: int, *, lock: bool = False) -> dict[int, ScratcherSlot]:
    query = db.session.query(ScratcherSlot).filter_by(store_id=store_id).order_by(ScratcherSlot.slot_number.asc())
    if lock:
        query = lock_for_update(query)
    return {slot.id: slot for slot in query.all()}


def _write_snapshot(
    report: ShiftReport,
    *,
    store_id: int,
    employee_user_id: int,
    snapshot_type: str,
    rows: list[tuple[int, str, int | None]],
    cloned_from_snapshot_id: int | None = None,
) -> ScratcherSnapshot:
    """Insert a snapshot and its (slot_id, value, pack_id) rows."""
    existing = (
        db.session.query(ScratcherSnapshot.id)
        .filter_by(shift_report_id=report.id, snapshot_type=snapshot_type)
        .first()
    )
    if existing:
        raise DuplicateSnapshotError(
            f"{snapshot_type.capitalize()} snapshot already exists.",
            details={"shift_report_id": report.id, "snapshot_type": snapshot_type},
        )

    snapshot = ScratcherSnapshot(
        shift_report_id=report.id,
        store_id=store_id,
        employee_user_id=employee_user_id,
        snapshot_type=snapshot_type,
        cloned_from_snapshot_id=cloned_from_snapshot_id,
    )
    for slot_id, value, pack_id in rows:
        snapshot.items.append(ScratcherSnapshotItem(slot_id=slot_id, ticket_value=value, pack_id=pack_id))

    db.session.add(snapshot)
    try:
        db.session.flush()
    except IntegrityError:
        raise DuplicateSnapshotError(
            f"{snapshot_type.capitalize()} snapshot already exists.",
            details={"shift_report_id": report.id, "snapshot_type": snapshot_type},
        )
    return snapshot


def _create_snapshot(report: ShiftReport, *, store_id: int, employee_user_id: int, snapshot_type: str, items) -> ScratcherSnapshot:
    if snapshot_type not in SNAPSHOT_TYPES:
        raise ValidationError("snapshot_type must be 'start' or 'end'", details={"snapshot_type": snapshot_type})
    slots = _store_slots(store_id)
    values = _clean_items(items, slots)
    rows = [
        (slot.id, values[slot.id], slot.active_pack_id)
        for slot in slots.values()
        if slot.id in values
    ]
    return _write_snapshot(
        report,
        store_id=store_id,
        employee_user_id=employee_user_id,
        snapshot_type=snapshot_type,
        rows=rows,
    )


def create_snapshot(
    *,
    shift_report_id: int,
    store_id: int,
    employee_user_id: int,
    snapshot_type: str,
    items,
) -> ScratcherSnapshot:
    """
    Record a start or end snapshot for a shift.

    Each item is bound to its slot's currently active pack.

    Raises:
        ValidationError: bad type, duplicate slot, slot outside the store
        DuplicateSnapshotError: (shift, type) already recorded
    """
    def _op():
        report = get_shift_report(shift_report_id, store_id=store_id)
        return _create_snapshot(
            report,
            store_id=store_id,
            employee_user_id=employee_user_id,
            snapshot_type=snapshot_type,
            items=items,
        )

    return run_with_retry(_op)


def create_baseline_snapshot(*, store_id: int, actor_user_id: int, items) -> ScratcherSnapshot:
    """Create a baseline shift report and its store-wide start snapshot."""
    def _op():
        get_store(store_id)
        # Validate before the baseline report row exists
        _clean_items(items, _store_slots(store_id))
        report = create_baseline_shift_report(store_id, actor_user_id)
        snapshot = _create_snapshot(
            report,
            store_id=store_id,
            employee_user_id=actor_user_id,
            snapshot_type=SNAPSHOT_TYPE_START,
            items=items,
        )
        current_app.logger.info("Recorded scratcher baseline %s for store %s (%d slots)", snapshot.id, store_id, len(snapshot.items))
        return snapshot

    return run_with_retry(_op)


def get_latest_baseline(store_id: int) -> ScratcherSnapshot | None:
    """Most recent start snapshot recorded on a baseline shift report."""
    return (
        db.session.query(ScratcherSnapshot)
        .join(ShiftReport, ShiftReport.id == ScratcherSnapshot.shift_report_id)
        .filter(
            ScratcherSnapshot.store_id == store_id,
            ScratcherSnapshot.snapshot_type == SNAPSHOT_TYPE_START,
            ShiftReport.is_baseline.is_(True),
        )
        .order_by(ScratcherSnapshot.created_at.desc(), ScratcherSnapshot.id.desc())
        .first()
    )


def get_shift_snapshot(shift_report_id: int, snapshot_type: str) -> ScratcherSnapshot | None:
    return (
        db.session.query(ScratcherSnapshot)
        .filter_by(shift_report_id=shift_report_id, snapshot_type=snapshot_type)
        .first()
    )



def resolve_start_snapshot(shift_report_id: int, store_id: int) -> tuple[ScratcherSnapshot, str]:
    """
    Find the start reading for a shift.

    Returns:
        (snapshot, source) where source is "shift" or "baseline"

    Raises:
        BaselineRequiredError: no start on the shift and no store baseline
    """
    own = get_shift_snapshot(shift_report_id, SNAPSHOT_TYPE_START)
    if own is not None and own.items:
        return own, START_SOURCE_SHIFT

    baseline = get_latest_baseline(store_id)
    if baseline is None or not baseline.items:
        raise BaselineRequiredError(store_id)
    return baseline, START_SOURCE_BASELINE


def detect_rollovers(start_items, end_values: dict[int, str], slots) -> list[dict]:
    """
    Slots whose end reading is below the start reading while the slot still
    holds the pack the start reading was taken on.

    start_items: iterable with .slot_id / .ticket_value / .pack_id
    end_values:  {slot_id: ticket value string}
    slots:       iterable with .id / .slot_number / .active_pack_id

    Unparseable readings are skipped. A swap whose new numbering stays at or
    above the start reading is indistinguishable from normal sales and is
    not reported.

    Returns [{"slot_id", "slot_number"}, ...] ordered by slot number.
    """
    start_by_slot = {item.slot_id: item for item in start_items}
    found = []
    for slot in sorted(slots, key=lambda s: s.slot_number):
        if slot.id not in end_values:
            continue
        start_item = start_by_slot.get(slot.id)
        if start_item is None:
            continue
        start_value = parse_ticket_value(start_item.ticket_value)
        end_value = parse_ticket_value(end_values[slot.id])
        if start_value is None or end_value is None:
            continue
        if end_value < start_value and slot.active_pack_id is not None and slot.active_pack_id == start_item.pack_id:
            found.append({"slot_id": slot.id, "slot_number": slot.slot_number})
    return found


def submit_start_snapshot(
    *,
    store_id: int,
    employee_user_id: int,
    items,
    shift_report_id: int | None = None,
    shift_date: str | None = None,
) -> ScratcherSnapshot:
    """Start snapshot for an explicit shift report, or the employee's draft for shift_date."""
    def _op():
        report = resolve_submission_report(
            store_id, employee_user_id, shift_report_id=shift_report_id, shift_date=shift_date,
        )
        return _create_snapshot(
            report,
            store_id=store_id,
            employee_user_id=employee_user_id,
            snapshot_type=SNAPSHOT_TYPE_START,
            items=items,
        )

    return run_with_retry(_op)


def submit_end_snapshot(
    *,
    store_id: int,
    employee_user_id: int,
    items,
    shift_report_id: int | None = None,
    shift_date: str | None = None,
    reported_scratcher_cents: int | None = None,
) -> tuple[ScratcherSnapshot, ScratcherShiftCalculation]:
    """
    End-of-shift submission.

    Steps (one transaction, slot rows locked from step 3 on):
    1. reject if the shift already has an end snapshot
    2. resolve the start reading (own start, else latest baseline)
    3. lock the store's slots and run rollover detection
    4. any rollover -> RolloverDetectedError, nothing written
    5. clone the baseline into the shift if it was used, persist the end
       snapshot, recalculate

    Returns:
        (end_snapshot, calculation)
    """
    from .reconciliation_service import recalculate

    def _op():
        report = resolve_submission_report(
            store_id, employee_user_id, shift_report_id=shift_report_id, shift_date=shift_date,
        )

        if get_shift_snapshot(report.id, SNAPSHOT_TYPE_END) is not None:
            raise EndSnapshotExistsError("End snapshot already exists.", details={"shift_report_id": report.id})

        start_snapshot, source = resolve_start_snapshot(report.id, store_id)

        slots = _store_slots(store_id, lock=True)
        end_values = _clean_items(items, slots)

        rollovers = detect_rollovers(start_snapshot.items, end_values, slots.values())
        if rollovers:
            current_app.logger.info(
                "Rejected end snapshot for shift %s: rollover on slots %s",
                report.id, [r["slot_number"] for r in rollovers],
            )
            raise RolloverDetectedError(rollovers)

        if source == START_SOURCE_BASELINE and get_shift_snapshot(report.id, SNAPSHOT_TYPE_START) is None:
            _write_snapshot(
                report,
                store_id=store_id,
                employee_user_id=employee_user_id,
                snapshot_type=SNAPSHOT_TYPE_START,
                rows=[(i.slot_id, i.ticket_value, i.pack_id) for i in start_snapshot.items],
                cloned_from_snapshot_id=start_snapshot.id,
            )

        end_snapshot = _write_snapshot(
            report,
            store_id=store_id,
            employee_user_id=employee_user_id,
            snapshot_type=SNAPSHOT_TYPE_END,
            rows=[
                (slot.id, end_values[slot.id], slot.active_pack_id)
                for slot in slots.values()
                if slot.id in end_values
            ],
        )

        record_reported_scratcher(report, reported_scratcher_cents)
        calculation = recalculate(report.id, store_id)
        return end_snapshot, calculation

    return run_with_retry(_op)
