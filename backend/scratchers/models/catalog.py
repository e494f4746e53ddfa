from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ScratcherProduct(db.Model):
    """
    Scratcher game definition, keyed by price.

    Products are shared by all stores. The price decides pack size at
    activation time (see tickets.PACK_SIZE_BY_PRICE_CENTS), so at most one
    ACTIVE product per price is kept by catalog normalization.
    """
    __tablename__ = "scratcher_products"
    __table_args__ = (
        db.Index("ix_scratcher_products_price_active", "price_cents", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<ScratcherProduct id={self.id} price_cents={self.price_cents} active={self.is_active}>"

    @property
    def price(self) -> str:
        return f"{self.price_cents / 100:.2f}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "price_cents": self.price_cents,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
