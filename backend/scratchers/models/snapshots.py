from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SNAPSHOT_TYPE_START = "start"
SNAPSHOT_TYPE_END = "end"
SNAPSHOT_TYPES = {SNAPSHOT_TYPE_START, SNAPSHOT_TYPE_END}


class ScratcherSnapshot(db.Model):
    """
    Point-in-time set of per-slot ticket readings for a shift.

    INVARIANTS:
    - at most one 'start' and one 'end' snapshot per shift report
      (unique constraint; concurrent duplicates collapse to one row)
    - immutable once written; corrections are pack events/notes
    """
    __tablename__ = "scratcher_snapshots"
    __table_args__ = (
        db.UniqueConstraint("shift_report_id", "snapshot_type", name="uq_scratcher_snapshots_shift_type"),
        db.Index("ix_scratcher_snapshots_store_type_created", "store_id", "snapshot_type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_report_id = db.Column(db.Integer, db.ForeignKey("shift_reports.id"), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    employee_user_id = db.Column(db.Integer, nullable=False)
    snapshot_type = db.Column(db.String(8), nullable=False)

    # Set when a shift's start snapshot was cloned from a store baseline
    cloned_from_snapshot_id = db.Column(db.Integer, db.ForeignKey("scratcher_snapshots.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shift_report = db.relationship("ShiftReport", backref=db.backref("scratcher_snapshots", lazy=True))
    items = db.relationship(
        "ScratcherSnapshotItem",
        backref="snapshot",
        lazy=True,
        order_by="ScratcherSnapshotItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_report_id": self.shift_report_id,
            "store_id": self.store_id,
            "employee_user_id": self.employee_user_id,
            "snapshot_type": self.snapshot_type,
            "cloned_from_snapshot_id": self.cloned_from_snapshot_id,
            "created_at": to_utc_z(self.created_at),
        }


class ScratcherSnapshotItem(db.Model):
    """
    One slot's reading inside a snapshot.

    pack_id is the slot's active pack at the moment the reading was written;
    reconciliation prices the reading against that pack's product.
    """
    __tablename__ = "scratcher_snapshot_items"
    __table_args__ = (
        db.UniqueConstraint("snapshot_id", "slot_id", name="uq_scratcher_snapshot_items_snapshot_slot"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    snapshot_id = db.Column(db.Integer, db.ForeignKey("scratcher_snapshots.id"), nullable=False, index=True)
    slot_id = db.Column(db.Integer, db.ForeignKey("scratcher_slots.id"), nullable=False)
    pack_id = db.Column(db.Integer, db.ForeignKey("scratcher_packs.id"), nullable=True)
    ticket_value = db.Column(db.String(32), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "snapshot_id": self.snapshot_id,
            "slot_id": self.slot_id,
            "pack_id": self.pack_id,
            "ticket_value": self.ticket_value,
            "created_at": to_utc_z(self.created_at),
        }


class ScratcherShiftCalculation(db.Model):
    """
    Cached reconciliation for one shift (read-time projection).

    Always derivable from snapshots + packs + products; recalculation
    overwrites it. breakdown_json holds one entry per slot, flags_json the
    list of review flags (e.g. "missing_product_12").
    """
    __tablename__ = "scratcher_shift_calculations"
    __table_args__ = (
        db.UniqueConstraint("shift_report_id", name="uq_scratcher_calculations_shift"),
        db.Index("ix_scratcher_calculations_store", "store_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_report_id = db.Column(db.Integer, db.ForeignKey("shift_reports.id"), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    employee_user_id = db.Column(db.Integer, nullable=True)

    expected_total_tickets = db.Column(db.Integer, nullable=False, default=0)
    expected_total_cents = db.Column(db.Integer, nullable=False, default=0)
    reported_scratcher_cents = db.Column(db.Integer, nullable=True)
    variance_cents = db.Column(db.Integer, nullable=False, default=0)

    breakdown_json = db.Column(db.JSON, nullable=False, default=list)
    flags_json = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shift_report = db.relationship("ShiftReport")

    @property
    def flags(self) -> list[str]:
        return list(self.flags_json or [])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_report_id": self.shift_report_id,
            "store_id": self.store_id,
            "employee_user_id": self.employee_user_id,
            "expected_total_tickets": self.expected_total_tickets,
            "expected_total_cents": self.expected_total_cents,
            "expected_total_value": f"{self.expected_total_cents / 100:.2f}",
            "reported_scratcher_cents": self.reported_scratcher_cents,
            "variance_cents": self.variance_cents,
            "breakdown": list(self.breakdown_json or []),
            "flags": self.flags,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
