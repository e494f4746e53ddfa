# Overview: Helpers shared by the scratcher blueprints (store scoping, error bodies).

from __future__ import annotations

from flask import current_app, g, jsonify

from ..errors import ScratcherError, ValidationError
from ..services.access_service import default_store_id, require_store_access
from ..validation import coerce_int


def json_error(exc: ScratcherError):
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(message: str):
    """Log the active exception and return a generic 500 body."""
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR", "details": {}}), 500


def scoped_store_id(raw) -> int:
    """
    Store the request targets: explicit store_id, else the actor's only store.

    Raises ValidationError when neither is available and
    PermissionDeniedError when the actor may not access it.
    """
    if raw is None or raw == "":
        store_id = default_store_id(g.actor)
        if store_id is None:
            raise ValidationError("store_id is required")
    else:
        store_id = coerce_int("store_id", raw)
    require_store_access(g.actor, store_id)
    return store_id


def optional_int(field: str, raw) -> int | None:
    if raw is None or raw == "":
        return None
    return coerce_int(field, raw)


def required_text(field: str, raw) -> str:
    value = "" if raw is None else str(raw).strip()
    if not value:
        raise ValidationError("Missing required fields.", details={"field": field})
    return value
