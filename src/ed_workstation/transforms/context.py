"""
Project the loaded encounter state into the JSON context sent to the AI function.
"""

from __future__ import annotations
import uuid
from datetime import date, datetime

NOTE_FIELDS   = ("note_type", "title", "content", "occurred_at")
ORDER_FIELDS  = ("code", "name", "status", "occurred_at")
RESULT_FIELDS = ("category", "code", "name", "value", "unit", "flag", "occurred_at")
DDX_FIELDS    = ("source", "name", "prob", "reason")

def _jsonable(v):
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, uuid.UUID):
        return str(v)
    return v

def _project(rows: list[dict], fields: tuple[str, ...]) -> list[dict]:
    return [{f: _jsonable(r.get(f)) for f in fields} for r in rows]

def build_ai_context(notes, orders, results, ddx, patient: dict | None = None) -> dict:
    """Client-side projection of what is on screen; no fresh fetch."""
    ctx = {
        "notes": _project(notes, NOTE_FIELDS),
        "orders": _project(orders, ORDER_FIELDS),
        "results": _project(results, RESULT_FIELDS),
        "ddx": _project(ddx, DDX_FIELDS),
    }
    if patient:
        ctx["patient"] = {k: _jsonable(patient.get(k)) for k in ("name", "sex", "dob")}
    return ctx
