# Overview: Sold-ticket / revenue reconciliation of a shift's start and end snapshots.

"""
Reconciliation turns two snapshots into expected scratcher sales.

PER SLOT (every slot read in either snapshot, by slot number):
- end >= start: sold = end - start (readings are the next ticket to sell)
- end <  start with different start/end packs: the old pack sold out and a
  new one was opened mid-shift:
      sold_old = old_pack.end_ticket - start + 1
      sold_new = end - new_pack.start_ticket
  each part priced by its own pack's product
- end <  start on the same (or an unknown) pack: flagged, sold = 0

FLAGS (review markers stored with the calculation):
    missing_start_snapshot, missing_end_snapshot
    incomplete_<slot_id>            reading on one side only
    invalid_ticket_<slot_id>        reading is not a number
    large_jump_<slot_id>            sold > SCRATCHER_JUMP_THRESHOLD
    rollover_missing_pack_<slot_id> numbering went down on the same pack
    rollover_invalid_pack_<slot_id> pack bounds are not numbers
    missing_product_<slot_id>       no price; slot excluded from totals

The calculation row is a cache: it is rewritten only when the computed
values differ, so re-running is a no-op on unchanged data.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import (
    ScratcherPack,
    ScratcherProduct,
    ScratcherShiftCalculation,
    ScratcherSlot,
    ShiftReport,
)
from ..models.snapshots import SNAPSHOT_TYPE_END, SNAPSHOT_TYPE_START
from ..tickets import parse_ticket_value
from .shift_service import get_shift_report
from .snapshot_service import get_shift_snapshot


MISSING_PRODUCT_FLAG_PREFIX = "missing_product_"


def jump_threshold() -> int:
    return int(current_app.config.get("SCRATCHER_JUMP_THRESHOLD", 100))


def _pack_price(pack: ScratcherPack | None, products: dict[int, ScratcherProduct]) -> int | None:
    if pack is None:
        return None
    product = products.get(pack.product_id)
    return product.price_cents if product else None


def _slot_line(slot_id, slot_number, start_item, end_item, packs, products, threshold) -> tuple[dict, list[str]]:
    """Breakdown entry and flags for one slot."""
    flags: list[str] = []
    start_raw = start_item.ticket_value if start_item else ""
    end_raw = end_item.ticket_value if end_item else ""
    start_pack = packs.get(start_item.pack_id) if start_item and start_item.pack_id else None
    end_pack = packs.get(end_item.pack_id) if end_item and end_item.pack_id else None
    pricing_pack = end_pack or start_pack

    line = {
        "slot_id": slot_id,
        "slot_number": slot_number,
        "start_ticket": start_raw,
        "end_ticket": end_raw,
        "sold": 0,
        "sold_old": 0,
        "sold_new": 0,
        "value_cents": 0,
        "product_id": None,
        "pack_id": pricing_pack.id if pricing_pack else None,
        "included": False,
    }

    if start_item is None or end_item is None:
        flags.append(f"incomplete_{slot_id}")
        return line, flags

    start = parse_ticket_value(start_raw)
    end = parse_ticket_value(end_raw)
    if start is None or end is None:
        flags.append(f"invalid_ticket_{slot_id}")
        return line, flags

    if end >= start:
        sold = end - start
        if sold > threshold:
            flags.append(f"large_jump_{slot_id}")
        price = _pack_price(pricing_pack, products)
        line["sold"] = sold
        if price is None:
            flags.append(f"{MISSING_PRODUCT_FLAG_PREFIX}{slot_id}")
            return line, flags
        line["value_cents"] = sold * price
        line["product_id"] = pricing_pack.product_id
        line["included"] = True
        return line, flags

    if start_pack is None or end_pack is None or start_pack.id == end_pack.id:
        flags.append(f"rollover_missing_pack_{slot_id}")
        return line, flags

    old_end = parse_ticket_value(start_pack.end_ticket)
    new_start = parse_ticket_value(end_pack.start_ticket)
    if old_end is None or new_start is None:
        flags.append(f"rollover_invalid_pack_{slot_id}")
        return line, flags

    sold_old = old_end - start + 1
    sold_new = end - new_start
    line.update(sold=sold_old + sold_new, sold_old=sold_old, sold_new=sold_new)

    old_price = _pack_price(start_pack, products)
    new_price = _pack_price(end_pack, products)
    if old_price is None or new_price is None:
        flags.append(f"{MISSING_PRODUCT_FLAG_PREFIX}{slot_id}")
        return line, flags

    line["value_cents"] = sold_old * old_price + sold_new * new_price
    line["product_id"] = end_pack.product_id
    line["included"] = True
    return line, flags


def compute_calculation(report: ShiftReport) -> dict:
    """Pure read: the calculation values for a shift without persisting them."""
    start_snapshot = get_shift_snapshot(report.id, SNAPSHOT_TYPE_START)
    end_snapshot = get_shift_snapshot(report.id, SNAPSHOT_TYPE_END)

    flags: list[str] = []
    if start_snapshot is None:
        flags.append("missing_start_snapshot")
    if end_snapshot is None:
        flags.append("missing_end_snapshot")

    start_map = {i.slot_id: i for i in (start_snapshot.items if start_snapshot else [])}
    end_map = {i.slot_id: i for i in (end_snapshot.items if end_snapshot else [])}
    slot_ids = set(start_map) | set(end_map)

    slot_numbers = {
        row.id: row.slot_number
        for row in db.session.query(ScratcherSlot.id, ScratcherSlot.slot_number)
        .filter(ScratcherSlot.id.in_(slot_ids))
        .all()
    } if slot_ids else {}

    pack_ids = {i.pack_id for i in list(start_map.values()) + list(end_map.values()) if i.pack_id}
    packs = {
        p.id: p for p in db.session.query(ScratcherPack).filter(ScratcherPack.id.in_(pack_ids)).all()
    } if pack_ids else {}
    products = {p.id: p for p in db.session.query(ScratcherProduct).all()}

    threshold = jump_threshold()
    breakdown: list[dict] = []
    expected_tickets = 0
    expected_cents = 0

    ordered = sorted(slot_ids, key=lambda sid: (slot_numbers.get(sid, 0), sid))
    for slot_id in ordered:
        line, slot_flags = _slot_line(
            slot_id,
            slot_numbers.get(slot_id),
            start_map.get(slot_id),
            end_map.get(slot_id),
            packs,
            products,
            threshold,
        )
        flags.extend(slot_flags)
        breakdown.append(line)
        if line["included"]:
            expected_tickets += line["sold"]
            expected_cents += line["value_cents"]

    reported = report.reported_scratcher_cents
    return {
        "expected_total_tickets": expected_tickets,
        "expected_total_cents": expected_cents,
        "reported_scratcher_cents": reported,
        "variance_cents": expected_cents - (reported or 0),
        "breakdown_json": breakdown,
        "flags_json": flags,
        "employee_user_id": report.employee_user_id,
    }


def recalculate(shift_report_id: int, store_id: int) -> ScratcherShiftCalculation:
    """
    Recompute and upsert the shift's calculation.

    The row is only touched when a value changed; the shift report's
    has_scratcher_discrepancy mirrors (variance != 0 or any flag).
    Flushes only.
    """
    report = get_shift_report(shift_report_id, store_id=store_id)
    values = compute_calculation(report)

    calc = get_calculation(report.id)
    if calc is None:
        calc = ScratcherShiftCalculation(shift_report_id=report.id, store_id=store_id, **values)
        db.session.add(calc)
    else:
        for key, value in values.items():
            if getattr(calc, key) != value:
                setattr(calc, key, value)

    has_discrepancy = values["variance_cents"] != 0 or bool(values["flags_json"])
    if report.has_scratcher_discrepancy != has_discrepancy:
        report.has_scratcher_discrepancy = has_discrepancy

    db.session.flush()
    current_app.logger.info(
        "Recalculated scratchers for shift %s: %d tickets, %d cents, flags=%s",
        report.id, values["expected_total_tickets"], values["expected_total_cents"], values["flags_json"],
    )
    return calc


def get_calculation(shift_report_id: int) -> ScratcherShiftCalculation | None:
    return db.session.query(ScratcherShiftCalculation).filter_by(shift_report_id=shift_report_id).first()


def has_missing_product(calc: ScratcherShiftCalculation) -> bool:
    return any(flag.startswith(MISSING_PRODUCT_FLAG_PREFIX) for flag in calc.flags)


def recalculate_flagged(store_id: int | None = None) -> list[ScratcherShiftCalculation]:
    """Re-run every calculation carrying a missing_product_* flag."""
    query = db.session.query(ScratcherShiftCalculation)
    if store_id is not None:
        query = query.filter(ScratcherShiftCalculation.store_id == store_id)
    flagged = [calc for calc in query.all() if has_missing_product(calc)]
    return [recalculate(calc.shift_report_id, calc.store_id) for calc in flagged]


def list_calculations(store_id: int, *, refresh_flagged: bool = False) -> list[ScratcherShiftCalculation]:
    """Store's calculations, most recently updated first."""
    if refresh_flagged:
        recalculate_flagged(store_id)
    return (
        db.session.query(ScratcherShiftCalculation)
        .filter_by(store_id=store_id)
        .order_by(ScratcherShiftCalculation.updated_at.desc(), ScratcherShiftCalculation.id.desc())
        .all()
    )


def is_discrepancy(calc: ScratcherShiftCalculation) -> bool:
    return (
        bool(calc.flags)
        or calc.variance_cents != 0
        or calc.expected_total_tickets < 0
        or calc.expected_total_cents < 0
    )


def list_discrepancies(store_id: int) -> list[ScratcherShiftCalculation]:
    """Calculations needing review: any flag, non-zero variance or negative totals."""
    return [calc for calc in list_calculations(store_id) if is_discrepancy(calc)]


def get_shift_detail(shift_report_id: int, *, store_id: int | None = None) -> dict:
    """Shift report, its calculation and end readings sorted by slot number."""
    report = get_shift_report(shift_report_id, store_id=store_id)
    calc = get_calculation(report.id)
    end_snapshot = get_shift_snapshot(report.id, SNAPSHOT_TYPE_END)

    end_items = []
    if end_snapshot is not None:
        numbers = {
            row.id: row.slot_number
            for row in db.session.query(ScratcherSlot.id, ScratcherSlot.slot_number)
            .filter(ScratcherSlot.store_id == report.store_id)
            .all()
        }
        for item in sorted(end_snapshot.items, key=lambda i: (numbers.get(i.slot_id, 0), i.slot_id)):
            end_items.append({**item.to_dict(), "slot_number": numbers.get(item.slot_id)})

    return {
        "shift_report": report.to_dict(),
        "calculation": calc.to_dict() if calc else None,
        "end_items": end_items,
    }

