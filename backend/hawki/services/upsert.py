"""Keyed insert-or-update shared by the sync services."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session


def _pending(db: Session, model: type, key_field: str, key: Any) -> Any | None:
    # Sessions run with autoflush off, so rows added earlier in the same batch
    # are not visible to Session.get yet.
    for obj in db.new:
        if isinstance(obj, model) and getattr(obj, key_field) == key:
            return obj
    return None


def upsert(db: Session, model: type, key: Any, values: dict[str, Any], *, key_field: str = "id") -> bool:
    """Insert-if-absent else update in place; returns True when a row was created.

    A key repeated within one uncommitted batch updates the pending row
    instead of queueing a second INSERT.
    """
    row = db.get(model, key)
    if row is None:
        row = _pending(db, model, key_field, key)
    if row is None:
        db.add(model(**{key_field: key}, **values))
        return True
    for name, value in values.items():
        setattr(row, name, value)
    return False
