from __future__ import annotations

from ..extensions import db
from ..models import StoreMessage


def send_store_message(store_id: int, message: str, *, sender_user_id: int | None = None) -> StoreMessage:
    """
    Append a system message to the store's chat channel.

    Flushes only; the caller's transaction decides whether it sticks.
    """
    row = StoreMessage(
        store_id=store_id,
        sender_user_id=sender_user_id,
        message=message,
        is_system=True,
    )
    db.session.add(row)
    db.session.flush()
    return row

