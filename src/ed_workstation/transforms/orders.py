"""
Free-text order entry: "<CODE> <name...>" -> order fields.
"""

from __future__ import annotations
import re

DEFAULT_ORDER_NAME = "General Order"
ORDER_STATUS_SENT = "sent"

_FIRST_TOKEN = re.compile(r"\s+")

def parse_order_text(text: str | None) -> dict | None:
    """Split on the first whitespace run: uppercased code, then the name.

    Returns None for blank input (nothing to order). No registry lookup is
    done on the code.
    """
    s = (text or "").strip()
    if not s:
        return None
    parts = _FIRST_TOKEN.split(s, maxsplit=1)
    code = parts[0].upper() or None
    name = parts[1].strip() if len(parts) > 1 else ""
    return {"code": code, "name": name or DEFAULT_ORDER_NAME}
