# Overview: Pack lifecycle (activate, return, audit events) and the slot's active-pack pointer.

"""
LIFECYCLE:
1. activate_pack(): new pack becomes ACTIVE in its slot; whatever pack was
   active there is ENDED in the same transaction
2. return_pack(): pack is sent back with a receipt -> RETURNED
3. create_pack_event(): corrections, notes, manual end, pickup receipts

The slot's active_pack_id is only ever moved by _swap_active_pack(), a
compare-and-swap on the slot row. A concurrent activation that loses the
swap (or trips the one-active-pack-per-slot index) gets a ConflictError
and its transaction is rolled back by the caller.

All functions flush only; the route commits.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ReceiptRequiredError,
    ValidationError,
)
from ..extensions import db
from ..models import (
    ScratcherPack,
    ScratcherPackEvent,
    ScratcherProduct,
    ScratcherSlot,
)
from ..models.packs import PACK_STATUS_ACTIVE, PACK_STATUS_ENDED, PACK_STATUS_RETURNED
from ..tickets import compute_end_ticket, pack_size_for_price
from ..time_utils import utcnow
from .access_service import Actor, ROLE_EMPLOYEE
from .concurrency import compare_and_set, lock_for_update, run_with_retry
from .file_service import StoredReceipt, get_file, record_receipt
from .notification_service import send_store_message


EVENT_ACTIVATED = "activated"
EVENT_ENDED = "ended"
EVENT_RETURNED = "returned"
EVENT_CORRECTION = "correction"
EVENT_NOTE = "note"
EVENT_RETURN_RECEIPT = "return_receipt"

EVENT_TYPES = {
    EVENT_ACTIVATED,
    EVENT_ENDED,
    EVENT_RETURNED,
    EVENT_CORRECTION,
    EVENT_NOTE,
    EVENT_RETURN_RECEIPT,
}

# Written only by activate_pack() / return_pack()
LIFECYCLE_EVENT_TYPES = {EVENT_ACTIVATED, EVENT_RETURNED}

EMPLOYEE_EVENT_TYPES = {EVENT_RETURN_RECEIPT}
PRIVILEGED_EVENT_TYPES = {EVENT_CORRECTION, EVENT_NOTE, EVENT_ENDED, EVENT_RETURN_RECEIPT}

ENDED_ON_ACTIVATION_NOTE = "Pack ended on activation of a new pack."

ACTIVATION_RECEIPT_LABEL = "Scratcher Pack Receipt"
RETURN_RECEIPT_LABEL = "Scratcher Pack Return"
PICKUP_RECEIPT_LABEL = "Scratcher Pickup Receipt"


def get_pack(pack_id: int, *, store_id: int | None = None) -> ScratcherPack:
    pack = db.session.get(ScratcherPack, pack_id)
    if not pack or (store_id is not None and pack.store_id != store_id):
        raise NotFoundError("Scratcher pack not found", details={"pack_id": pack_id})
    return pack


def _swap_active_pack(slot_id: int, *, expected: int | None, new: int | None) -> None:
    """Move the slot pointer from expected to new, or fail if someone moved it first."""
    if not compare_and_set(ScratcherSlot, slot_id, "active_pack_id", expected=expected, new=new):
        raise ConflictError(
            "Slot's active pack changed concurrently; retry.",
            code="SLOT_ACTIVE_PACK_CHANGED",
            details={"slot_id": slot_id},
        )


def _append_event(pack_id: int, event_type: str, user_id: int, *, note=None, file_id=None) -> ScratcherPackEvent:
    event = ScratcherPackEvent(
        pack_id=pack_id,
        event_type=event_type,
        created_by_user_id=user_id,
        note=note,
        file_id=file_id,
    )
    db.session.add(event)
    return event


def _receipt_file_id(
    *,
    store_id: int,
    receipt: StoredReceipt | None,
    receipt_file_id: int | None,
    label: str,
    user_id: int,
) -> int:
    """Record a freshly stored receipt, or check that an existing one belongs to the store."""
    if receipt is not None:
        return record_receipt(receipt, store_id=store_id, label=label, uploaded_by_user_id=user_id).id
    return get_file(receipt_file_id, store_id=store_id).id


def _end_pack(pack: ScratcherPack, *, user_id: int, status: str, when) -> None:
    pack.status = status
    pack.ended_at = when
    pack.ended_by_user_id = user_id


def activate_pack(
    *,
    store_id: int,
    slot_id: int,
    product_id: int,
    pack_code: str,
    start_ticket: str,
    receipt_file_id: int | None = None,
    receipt: StoredReceipt | None = None,
    actor_user_id: int,
    actor_name: str | None = None,
) -> tuple[ScratcherPack, str]:
    """
    Load a new pack into a slot.

    Checks, in order:
        receipt present        -> ReceiptRequiredError
        slot exists in store   -> NotFoundError
        product exists         -> NotFoundError
        price has a pack size  -> UnsupportedPriceError
        start ticket parses    -> InvalidStartTicketError
        pack code present      -> ValidationError
        receipt file in store  -> NotFoundError

    receipt is an upload already written by file_service.store_receipt();
    its row is inserted here so a retried attempt records it again.
    receipt_file_id references a receipt recorded earlier.

    end_ticket = start + pack_size - 1, rendered at the start ticket's width.

    Any pack still ACTIVE in the slot is ENDED (with an 'ended' event) before
    the new one is inserted, then the slot pointer is swapped from the old
    pack to the new one.

    Returns:
        (pack, end_ticket)
    """
    def _op():
        if receipt is None and not receipt_file_id:
            raise ReceiptRequiredError("Activation receipt photo is required.")

        slot = lock_for_update(
            db.session.query(ScratcherSlot).filter_by(id=slot_id, store_id=store_id)
        ).first()
        if not slot:
            raise NotFoundError("Slot not found", details={"slot_id": slot_id, "store_id": store_id})

        product = db.session.get(ScratcherProduct, product_id)
        if not product:
            raise NotFoundError("Scratcher product not found.", details={"product_id": product_id})

        pack_size = pack_size_for_price(product.price_cents)
        end_ticket = compute_end_ticket(start_ticket, pack_size)

        code = (pack_code or "").strip()
        if not code:
            raise ValidationError("pack_code is required")

        file_id = _receipt_file_id(
            store_id=store_id,
            receipt=receipt,
            receipt_file_id=receipt_file_id,
            label=ACTIVATION_RECEIPT_LABEL,
            user_id=actor_user_id,
        )

        now = utcnow()
        previous_id = slot.active_pack_id

        # Includes a pack left ACTIVE without the pointer referencing it
        still_active = lock_for_update(
            db.session.query(ScratcherPack).filter_by(slot_id=slot.id, status=PACK_STATUS_ACTIVE)
        ).all()
        for old in still_active:
            _end_pack(old, user_id=actor_user_id, status=PACK_STATUS_ENDED, when=now)
            _append_event(old.id, EVENT_ENDED, actor_user_id, note=ENDED_ON_ACTIVATION_NOTE)
        if still_active:
            db.session.flush()

        pack = ScratcherPack(
            store_id=store_id,
            slot_id=slot.id,
            product_id=product.id,
            pack_code=code,
            start_ticket=start_ticket.strip(),
            end_ticket=end_ticket,
            status=PACK_STATUS_ACTIVE,
            activated_by_user_id=actor_user_id,
            activated_at=now,
            activation_receipt_file_id=file_id,
        )
        db.session.add(pack)
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError(
                "Slot already has an active pack; retry.",
                code="SLOT_ACTIVE_PACK_CHANGED",
                details={"slot_id": slot.id},
            )

        _swap_active_pack(slot.id, expected=previous_id, new=pack.id)
        _append_event(pack.id, EVENT_ACTIVATED, actor_user_id, file_id=file_id)

        send_store_message(
            store_id,
            f"{actor_name or 'Employee'} activated a new scratcher pack "
            f"(Slot {slot.slot_number}, ${product.price}, pack {code}).",
            sender_user_id=actor_user_id,
        )
        db.session.flush()

        current_app.logger.info(
            "Activated scratcher pack %s in slot %s (store %s, ended %d)",
            pack.id, slot.id, store_id, len(still_active),
        )
        return pack, end_ticket

    return run_with_retry(_op)


def return_pack(
    *,
    store_id: int,
    pack_id: int,
    returned_by_user_id: int,
    receipt_file_id: int | None = None,
    receipt: StoredReceipt | None = None,
    note: str | None = None,
    actor_name: str | None = None,
) -> ScratcherPack:
    """
    Mark a pack RETURNED (receipt required).

    The slot pointer is cleared only when it still references this pack.
    """
    def _op():
        if receipt is None and not receipt_file_id:
            raise ReceiptRequiredError("Return receipt photo is required.")

        pack = lock_for_update(db.session.query(ScratcherPack).filter_by(id=pack_id)).first()
        if not pack or pack.store_id != store_id:
            raise NotFoundError("Scratcher pack not found", details={"pack_id": pack_id})
        if pack.status == PACK_STATUS_RETURNED:
            raise ConflictError("Scratcher pack already returned", code="PACK_ALREADY_RETURNED", details={"pack_id": pack_id})

        file_id = _receipt_file_id(
            store_id=store_id,
            receipt=receipt,
            receipt_file_id=receipt_file_id,
            label=RETURN_RECEIPT_LABEL,
            user_id=returned_by_user_id,
        )

        _end_pack(pack, user_id=returned_by_user_id, status=PACK_STATUS_RETURNED, when=utcnow())

        slot = lock_for_update(db.session.query(ScratcherSlot).filter_by(id=pack.slot_id)).first()
        if slot and slot.active_pack_id == pack.id:
            _swap_active_pack(slot.id, expected=pack.id, new=None)

        _append_event(pack.id, EVENT_RETURNED, returned_by_user_id, note=note, file_id=file_id)
        send_store_message(
            store_id,
            f"{actor_name or 'Employee'} returned scratcher pack {pack.pack_code}",
            sender_user_id=returned_by_user_id,
        )
        db.session.flush()

        current_app.logger.info("Returned scratcher pack %s (store %s)", pack.id, store_id)
        return pack

    return run_with_retry(_op)


def create_pack_event(
    *,
    pack_id: int,
    event_type: str,
    actor: Actor,
    note: str | None = None,
    file_id: int | None = None,
    receipt: StoredReceipt | None = None,
) -> ScratcherPackEvent:
    """
    Append an audit event to a pack.

    - return_receipt requires a file
    - employees may only add return_receipt
    - managers/owners may add correction, note, ended, return_receipt
    - activated / returned are written by the lifecycle operations only

    An 'ended' event on an ACTIVE pack ends it and clears the slot pointer.
    """
    def _op():
        normalized = (event_type or "").strip().lower()
        if normalized not in EVENT_TYPES:
            raise ValidationError("Invalid event type", details={"event_type": event_type})
        if normalized in LIFECYCLE_EVENT_TYPES:
            raise ValidationError(
                f"'{normalized}' events are recorded by pack activation/return",
                details={"event_type": normalized},
            )

        pack = get_pack(pack_id)

        if normalized == EVENT_RETURN_RECEIPT and receipt is None and not file_id:
            raise ReceiptRequiredError("Receipt photo is required for return receipts.")

        allowed = EMPLOYEE_EVENT_TYPES if actor.role == ROLE_EMPLOYEE else PRIVILEGED_EVENT_TYPES
        if normalized not in allowed:
            raise PermissionDeniedError("Forbidden", details={"event_type": normalized})

        event_file_id = None
        if receipt is not None or file_id:
            event_file_id = _receipt_file_id(
                store_id=pack.store_id,
                receipt=receipt,
                receipt_file_id=file_id,
                label=PICKUP_RECEIPT_LABEL,
                user_id=actor.user_id,
            )

        if normalized == EVENT_ENDED and pack.status == PACK_STATUS_ACTIVE:
            _end_pack(pack, user_id=actor.user_id, status=PACK_STATUS_ENDED, when=utcnow())
            slot = lock_for_update(db.session.query(ScratcherSlot).filter_by(id=pack.slot_id)).first()
            if slot and slot.active_pack_id == pack.id:
                _swap_active_pack(slot.id, expected=pack.id, new=None)

        event = _append_event(pack.id, normalized, actor.user_id, note=note, file_id=event_file_id)
        db.session.flush()
        return event

    return run_with_retry(_op)


def list_pack_events(store_id: int, *, pack_id: int | None = None, limit: int = 200) -> list[ScratcherPackEvent]:
    """Audit trail for a store's packs, newest first."""
    query = (
        db.session.query(ScratcherPackEvent)
        .join(ScratcherPack, ScratcherPack.id == ScratcherPackEvent.pack_id)
        .filter(ScratcherPack.store_id == store_id)
    )
    if pack_id is not None:
        query = query.filter(ScratcherPackEvent.pack_id == pack_id)
    return (
        query.order_by(ScratcherPackEvent.created_at.desc(), ScratcherPackEvent.id.desc())
        .limit(limit)
        .all()
    )

