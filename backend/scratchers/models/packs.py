from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PACK_STATUS_ACTIVE = "active"
PACK_STATUS_ENDED = "ended"
PACK_STATUS_RETURNED = "returned"


class ScratcherSlot(db.Model):
    """
    Numbered dispenser position in a store.

    INVARIANTS:
    - slot_number is unique per store and within 1..SCRATCHER_MAX_SLOTS
    - active_pack_id points at the slot's single ACTIVE pack (or NULL)

    active_pack_id is only ever changed through a compare-and-swap UPDATE
    (see pack_service._swap_active_pack) so two concurrent activations on
    the same slot cannot both win.
    """
    __tablename__ = "scratcher_slots"
    __table_args__ = (
        db.UniqueConstraint("store_id", "slot_number", name="uq_scratcher_slots_store_number"),
        db.CheckConstraint("slot_number >= 1", name="ck_scratcher_slots_number_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    slot_number = db.Column(db.Integer, nullable=False)
    label = db.Column(db.String(120), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    default_product_id = db.Column(db.Integer, db.ForeignKey("scratcher_products.id"), nullable=True)

    # Circular with scratcher_packs.slot_id, hence use_alter
    active_pack_id = db.Column(
        db.Integer,
        db.ForeignKey("scratcher_packs.id", use_alter=True, name="fk_scratcher_slots_active_pack_id"),
        nullable=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("scratcher_slots", lazy=True))
    default_product = db.relationship("ScratcherProduct", foreign_keys=[default_product_id])

    def __repr__(self) -> str:
        return f"<ScratcherSlot id={self.id} store_id={self.store_id} number={self.slot_number}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "slot_number": self.slot_number,
            "label": self.label,
            "is_active": self.is_active,
            "default_product_id": self.default_product_id,
            "active_pack_id": self.active_pack_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ScratcherPack(db.Model):
    """
    A physical pack of sequentially numbered tickets loaded into a slot.

    LIFECYCLE:
    1. active: loaded in the slot, tickets being sold
    2. ended: superseded by a newer pack or ended by a manager
    3. returned: sent back to the lottery with a receipt

    start_ticket / end_ticket are the printed bounds, kept as strings so
    the original zero padding survives.

    INVARIANT: at most one ACTIVE pack per slot, enforced by the partial
    unique index below in addition to the slot's compare-and-swap pointer.
    Packs are never deleted.
    """
    __tablename__ = "scratcher_packs"
    __table_args__ = (
        db.Index(
            "uq_scratcher_packs_one_active_per_slot",
            "slot_id",
            unique=True,
            sqlite_where=db.text("status = 'active'"),
            postgresql_where=db.text("status = 'active'"),
        ),
        db.Index("ix_scratcher_packs_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    slot_id = db.Column(db.Integer, db.ForeignKey("scratcher_slots.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("scratcher_products.id"), nullable=False)

    pack_code = db.Column(db.String(64), nullable=False)
    start_ticket = db.Column(db.String(32), nullable=False)
    end_ticket = db.Column(db.String(32), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=PACK_STATUS_ACTIVE)

    activated_by_user_id = db.Column(db.Integer, nullable=False)
    activated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    activation_receipt_file_id = db.Column(db.Integer, db.ForeignKey("scratcher_files.id"), nullable=False)

    ended_by_user_id = db.Column(db.Integer, nullable=True)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    slot = db.relationship("ScratcherSlot", foreign_keys=[slot_id], backref=db.backref("packs", lazy=True))
    product = db.relationship("ScratcherProduct")
    activation_receipt = db.relationship("ScratcherFile", foreign_keys=[activation_receipt_file_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<ScratcherPack id={self.id} slot_id={self.slot_id} code={self.pack_code!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "slot_id": self.slot_id,
            "product_id": self.product_id,
            "pack_code": self.pack_code,
            "start_ticket": self.start_ticket,
            "end_ticket": self.end_ticket,
            "status": self.status,
            "activated_by_user_id": self.activated_by_user_id,
            "activated_at": to_utc_z(self.activated_at),
            "activation_receipt_file_id": self.activation_receipt_file_id,
            "ended_by_user_id": self.ended_by_user_id,
            "ended_at": to_utc_z(self.ended_at) if self.ended_at else None,
            "version_id": self.version_id,
        }


class ScratcherPackEvent(db.Model):
    """
    Append-only audit trail of pack lifecycle events.

    event_type: activated | ended | returned | correction | note | return_receipt

    No updates, no deletes. A 'returned' or 'return_receipt' event always
    carries a file_id.
    """
    __tablename__ = "scratcher_pack_events"
    __table_args__ = (
        db.Index("ix_scratcher_pack_events_pack_created", "pack_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pack_id = db.Column(db.Integer, db.ForeignKey("scratcher_packs.id"), nullable=False)
    event_type = db.Column(db.String(32), nullable=False, index=True)
    created_by_user_id = db.Column(db.Integer, nullable=False)
    note = db.Column(db.Text, nullable=True)
    file_id = db.Column(db.Integer, db.ForeignKey("scratcher_files.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    pack = db.relationship("ScratcherPack", backref=db.backref("events", lazy=True, order_by="ScratcherPackEvent.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pack_id": self.pack_id,
            "event_type": self.event_type,
            "created_by_user_id": self.created_by_user_id,
            "note": self.note,
            "file_id": self.file_id,
            "created_at": to_utc_z(self.created_at),
        }


class ScratcherFile(db.Model):
    """
    Receipt photo metadata (activation, return, pickup receipts).

    The bytes live under RECEIPT_STORAGE_DIR; storage_path is relative to it.
    """
    __tablename__ = "scratcher_files"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    label = db.Column(db.String(120), nullable=False)
    original_filename = db.Column(db.String(255), nullable=True)
    content_type = db.Column(db.String(120), nullable=True)
    size_bytes = db.Column(db.Integer, nullable=False)
    sha256 = db.Column(db.String(64), nullable=False)
    storage_path = db.Column(db.String(512), nullable=False)
    uploaded_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "label": self.label,
            "original_filename": self.original_filename,
            "content_type": self.content_type,
            "size_bytes": self.size_bytes,
            "sha256": self.sha256,
            "storage_path": self.storage_path,
            "uploaded_by_user_id": self.uploaded_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
