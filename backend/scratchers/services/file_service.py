# Overview: Receipt upload storage; bytes on disk, metadata in scratcher_files.

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass

from flask import current_app
from werkzeug.utils import secure_filename

from ..errors import NotFoundError, ReceiptRequiredError
from ..extensions import db
from ..models import ScratcherFile


@dataclass(frozen=True)
class StoredReceipt:
    """Receipt bytes already written to disk, not yet recorded in the database."""
    original_filename: str
    content_type: str | None
    size_bytes: int
    sha256: str
    storage_path: str


def receipt_storage_dir() -> str:
    """Configured receipt directory, defaulting to <instance_path>/receipts."""
    configured = current_app.config.get("RECEIPT_STORAGE_DIR")
    return configured or os.path.join(current_app.instance_path, "receipts")


def store_receipt(file_storage) -> StoredReceipt:
    """
    Write an uploaded receipt photo to disk.

    file_storage is a werkzeug FileStorage (request.files[...]). An absent
    or empty upload raises ReceiptRequiredError. Files are content-addressed
    by sha256, so storing the same photo twice rewrites the same path.

    The metadata row is written separately by record_receipt(), inside the
    service transaction that references it.
    """
    if file_storage is None or not (file_storage.filename or "").strip():
        raise ReceiptRequiredError("Receipt photo is required.")

    data = file_storage.read()
    if not data:
        raise ReceiptRequiredError("Receipt photo is required.")

    digest = hashlib.sha256(data).hexdigest()
    filename = secure_filename(file_storage.filename) or "receipt"
    relative_path = os.path.join(digest[:2], f"{digest}-{filename}")

    full_path = os.path.join(receipt_storage_dir(), relative_path)
    os.makedirs(os.path.dirname(full_path), exist_ok=True)
    with open(full_path, "wb") as fh:
        fh.write(data)

    return StoredReceipt(
        original_filename=file_storage.filename,
        content_type=file_storage.mimetype or None,
        size_bytes=len(data),
        sha256=digest,
        storage_path=relative_path,
    )


def record_receipt(
    stored: StoredReceipt,
    *,
    store_id: int,
    label: str,
    uploaded_by_user_id: int | None,
) -> ScratcherFile:
    """Insert the scratcher_files row for a stored receipt (flush only)."""
    row = ScratcherFile(
        store_id=store_id,
        label=label,
        original_filename=stored.original_filename,
        content_type=stored.content_type,
        size_bytes=stored.size_bytes,
        sha256=stored.sha256,
        storage_path=stored.storage_path,
        uploaded_by_user_id=uploaded_by_user_id,
    )
    db.session.add(row)
    db.session.flush()
    return row


def get_file(file_id: int, *, store_id: int | None = None) -> ScratcherFile:
    row = db.session.get(ScratcherFile, file_id)
    if not row or (store_id is not None and row.store_id != store_id):
        raise NotFoundError("File not found", details={"file_id": file_id})
    return row


def resolve_file_path(row: ScratcherFile) -> str:
    return os.path.join(receipt_storage_dir(), row.storage_path)
