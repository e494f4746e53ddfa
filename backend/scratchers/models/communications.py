from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class StoreMessage(db.Model):
    """
    System message posted to a store's chat channel.

    The chat UI itself lives elsewhere; the engine only appends rows here
    when packs are activated/returned or an employee adds a product.
    """
    __tablename__ = "store_messages"
    __table_args__ = (
        db.Index("ix_store_messages_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    sender_user_id = db.Column(db.Integer, nullable=True)
    message = db.Column(db.Text, nullable=False)
    is_system = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "sender_user_id": self.sender_user_id,
            "message": self.message,
            "is_system": self.is_system,
            "created_at": to_utc_z(self.created_at),
        }
