from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Store(db.Model):
    """
    A physical store. Owned and managed by the surrounding portal; the
    scratcher engine only needs it as the ownership root for slots, packs
    and snapshots.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class ShiftReport(db.Model):
    """
    Employee shift report (external entity) that owns a start/end snapshot pair.

    Baseline reports (is_baseline=True) are created by managers/owners to
    hold a store-wide start snapshot that is not tied to an employee shift.

    reported_scratcher_cents is what the employee reported as scratcher
    sales; the reconciliation variance is measured against it.
    """
    __tablename__ = "shift_reports"
    __table_args__ = (
        db.UniqueConstraint("store_id", "employee_user_id", "shift_date", name="uq_shift_reports_store_employee_date"),
        db.Index("ix_shift_reports_store_baseline", "store_id", "is_baseline"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    employee_user_id = db.Column(db.Integer, nullable=False, index=True)

    # YYYY-MM-DD for employee shifts, "baseline-<timestamp>" for baselines
    shift_date = db.Column(db.String(64), nullable=False)
    is_baseline = db.Column(db.Boolean, nullable=False, default=False)

    reported_scratcher_cents = db.Column(db.Integer, nullable=True)
    has_scratcher_discrepancy = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("shift_reports", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "employee_user_id": self.employee_user_id,
            "shift_date": self.shift_date,
            "is_baseline": self.is_baseline,
            "reported_scratcher_cents": self.reported_scratcher_cents,
            "has_scratcher_discrepancy": self.has_scratcher_discrepancy,
            "created_at": to_utc_z(self.created_at),
        }
