# Overview: Slot registry; numbered dispensers per store.

"""
Slots are the physical dispenser positions a store loads packs into.

RULES:
- slot_number is 1..SCRATCHER_MAX_SLOTS and unique per store
- initialize_slots() is idempotent: it only fills in missing numbers
- active_pack_id is NOT writable here; only pack_service swaps it
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import ScratcherPack, ScratcherProduct, ScratcherSlot
from ..validation import clean_patch, coerce_int
from .concurrency import run_with_retry
from .store_service import get_store


SLOT_WRITABLE_FIELDS = frozenset({"label", "is_active", "default_product_id"})


def max_slots() -> int:
    return int(current_app.config.get("SCRATCHER_MAX_SLOTS", 32))


def list_slots(store_id: int) -> list[ScratcherSlot]:
    return (
        db.session.query(ScratcherSlot)
        .filter_by(store_id=store_id)
        .order_by(ScratcherSlot.slot_number.asc())
        .all()
    )


def get_slot(slot_id: int, *, store_id: int | None = None) -> ScratcherSlot:
    slot = db.session.get(ScratcherSlot, slot_id)
    if not slot or (store_id is not None and slot.store_id != store_id):
        raise NotFoundError("Slot not found", details={"slot_id": slot_id})
    return slot


def create_slot(store_id: int, slot_number=None, label: str | None = None) -> ScratcherSlot:
    """
    Create one slot. Without slot_number the next free number after the
    current maximum is used.

    Raises:
        ValidationError: number outside 1..max
        ConflictError (SLOT_EXISTS): number already taken in this store
    """
    def _op():
        get_store(store_id)
        limit = max_slots()

        if slot_number is None:
            current_max = (
                db.session.query(func.max(ScratcherSlot.slot_number))
                .filter(ScratcherSlot.store_id == store_id)
                .scalar()
            )
            number = (current_max or 0) + 1
        else:
            number = coerce_int("slot_number", slot_number)

        if number < 1 or number > limit:
            raise ValidationError(
                f"slot_number must be between 1 and {limit}",
                details={"slot_number": number},
            )

        existing = db.session.query(ScratcherSlot.id).filter_by(store_id=store_id, slot_number=number).first()
        if existing:
            raise ConflictError("Slot number already exists", code="SLOT_EXISTS", details={"slot_number": number})

        slot = ScratcherSlot(
            store_id=store_id,
            slot_number=number,
            label=(label or "").strip() or None,
            is_active=True,
        )
        db.session.add(slot)
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError("Slot number already exists", code="SLOT_EXISTS", details={"slot_number": number})
        return slot

    return run_with_retry(_op)


def initialize_slots(store_id: int) -> list[ScratcherSlot]:
    """Create every missing slot number 1..max; existing slots are left untouched."""
    def _op():
        get_store(store_id)
        taken = {
            row[0]
            for row in db.session.query(ScratcherSlot.slot_number).filter_by(store_id=store_id).all()
        }
        missing = [n for n in range(1, max_slots() + 1) if n not in taken]
        for number in missing:
            db.session.add(ScratcherSlot(store_id=store_id, slot_number=number, is_active=True))
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError("Slots were created concurrently; retry", code="SLOT_EXISTS")
        return list_slots(store_id)

    return run_with_retry(_op)


def update_slot(slot_id: int, patch: dict, *, store_id: int | None = None) -> ScratcherSlot:
    """
    Partial update of label / is_active / default_product_id.

    Keys absent from patch are left as they are; an explicit null
    default_product_id clears the default.
    """
    def _op():
        slot = get_slot(slot_id, store_id=store_id)
        cleaned = clean_patch(ScratcherSlot, patch, writable=SLOT_WRITABLE_FIELDS)

        if "default_product_id" in cleaned and cleaned["default_product_id"] is not None:
            if not db.session.get(ScratcherProduct, cleaned["default_product_id"]):
                raise NotFoundError(
                    "Default product not found",
                    details={"default_product_id": cleaned["default_product_id"]},
                )

        if "label" in cleaned:
            cleaned["label"] = cleaned["label"] or None

        for key, value in cleaned.items():
            setattr(slot, key, value)
        db.session.flush()
        return slot

    return run_with_retry(_op)


def list_slot_bundle(store_id: int) -> dict:
    """
    Dashboard read model: slots, the store's packs (newest first), all
    products, and the latest baseline snapshot with its items.
    """
    from .snapshot_service import get_latest_baseline

    slots = list_slots(store_id)
    packs = (
        db.session.query(ScratcherPack)
        .filter_by(store_id=store_id)
        .order_by(ScratcherPack.activated_at.desc(), ScratcherPack.id.desc())
        .all()
    )
    products = (
        db.session.query(ScratcherProduct)
        .order_by(ScratcherProduct.price_cents.desc(), ScratcherProduct.id.asc())
        .all()
    )
    baseline = get_latest_baseline(store_id)

    return {
        "slots": [s.to_dict() for s in slots],
        "packs": [p.to_dict() for p in packs],
        "products": [p.to_dict() for p in products],
        "baseline": (
            {
                **baseline.to_dict(),
                "items": [i.to_dict() for i in baseline.items],
            }
            if baseline
            else None
        ),
    }
