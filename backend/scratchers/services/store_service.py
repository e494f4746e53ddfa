from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Store


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if not store:
        raise NotFoundError("Store not found", details={"store_id": store_id})
    return store


def list_stores() -> list[Store]:
    return db.session.query(Store).order_by(Store.id.asc()).all()


def create_store(name: str, code: str | None = None) -> Store:
    """Register a store; the portal normally owns these rows, the CLI seeds them locally."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Store name is required")
    code = (code or "").strip() or None

    store = Store(name=name, code=code, is_active=True)
    db.session.add(store)
    try:
        db.session.flush()
    except IntegrityError:
        raise ConflictError("Store code already exists", code="STORE_EXISTS", details={"code": code})
    return store
