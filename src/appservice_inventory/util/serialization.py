from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

REDACTED_VALUE = "<redacted>"
SENSITIVE_KEY_SUBSTRINGS = (
    "password",
    "secret",
    "token",
    "connectionstring",
    "publishingusername",
    "storageaccountkey",
)
# Excel rejects cells longer than this
MAX_CELL_CHARS = 32767
_SCALAR_CELL_TYPES = (int, float, bool, Decimal, timedelta)


def _is_sensitive_key(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    lowered = key.lower().replace("_", "")
    return any(token in lowered for token in SENSITIVE_KEY_SUBSTRINGS)


def sanitize_for_json(value: Any) -> Any:
    """
    Convert common non-JSON types to serializable forms and redact sensitive fields.
    """
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if _is_sensitive_key(k):
                out[k] = REDACTED_VALUE
            else:
                out[k] = sanitize_for_json(v)
        return out
    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_json(v) for v in value]
    # azure.core / msrest models
    as_dict = getattr(value, "as_dict", None)
    if callable(as_dict):
        try:
            return sanitize_for_json(as_dict())
        except Exception:
            return str(value)
    return value


def stable_json_dumps(value: Any) -> str:
    return json.dumps(sanitize_for_json(value), sort_keys=True, ensure_ascii=False, default=str)


def to_cell_value(value: Any) -> Any:
    """
    Convert one record value into something a worksheet cell accepts.
    Nested structures are rendered as compact JSON; timezone-aware datetimes are
    converted to naive UTC because Excel has no timezone support.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return _cell_text(value)
    if isinstance(value, _SCALAR_CELL_TYPES):
        return value
    if isinstance(value, bytes):
        return _cell_text(value.decode("utf-8", "replace"))
    return _cell_text(stable_json_dumps(value))


def _cell_text(text: str) -> str:
    # Control characters other than tab/newline are rejected by the xlsx format
    text = ILLEGAL_CHARACTERS_RE.sub("", text)
    if len(text) > MAX_CELL_CHARS:
        return text[: MAX_CELL_CHARS - 3] + "..."
    return text
