"""
Standalone prototype: notes and orders kept in a JSON file instead of the
database, keyed the way the browser build keeps them in localStorage.
"""

from __future__ import annotations
import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from ed_workstation.core.config import LOCAL_STORAGE_FILE
from ed_workstation.transforms.orders import ORDER_STATUS_SENT, parse_order_text

log = logging.getLogger(__name__)

NOTES_KEY = "er-notes"
ORDERS_KEY = "er-orders"

DEFAULT_NOTES = [
    {"id": "1", "date": "12/25", "type": "Admission Note", "content": "Chief complaint: chest pain..."},
    {"id": "2", "date": "12/25", "type": "Progress Note", "content": "Blood pressure stable..."},
]

class LocalStorage:
    """String key/value store persisted to a single JSON file."""

    def __init__(self, path: Path | str = LOCAL_STORAGE_FILE):
        self.path = Path(path)
        self._items: dict[str, str] = {}
        if self.path.exists():
            try:
                self._items = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                log.warning("Ignoring unreadable local storage %s: %s", self.path, e)

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._items, ensure_ascii=False), encoding="utf-8")

def _rehydrate(storage: LocalStorage, key: str, default: list[dict]) -> list[dict]:
    saved = storage.get_item(key)
    if saved is None:
        return [dict(d) for d in default]
    try:
        return json.loads(saved)
    except json.JSONDecodeError:
        log.warning("Discarding corrupt %s entry", key)
        return [dict(d) for d in default]

class PrototypeNotebook:
    def __init__(self, storage: LocalStorage | None = None):
        self.storage = storage or LocalStorage()
        self.notes = _rehydrate(self.storage, NOTES_KEY, DEFAULT_NOTES)
        self.orders = _rehydrate(self.storage, ORDERS_KEY, [])
        self._persist()

    def _persist(self) -> None:
        self.storage.set_item(NOTES_KEY, json.dumps(self.notes, ensure_ascii=False))
        self.storage.set_item(ORDERS_KEY, json.dumps(self.orders, ensure_ascii=False))

    def update_note(self, note_id: str, content: str) -> None:
        self.notes = [{**n, "content": content} if n["id"] == note_id else n for n in self.notes]
        self._persist()

    def add_order(self, text: str) -> dict | None:
        parsed = parse_order_text(text)
        if parsed is None:
            return None
        order = {
            "id": uuid.uuid4().hex,
            "date": datetime.now().strftime("%m/%d"),
            "status": ORDER_STATUS_SENT,
            **parsed,
        }
        self.orders = [order, *self.orders]
        self._persist()
        return order
