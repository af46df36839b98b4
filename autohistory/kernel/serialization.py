from __future__ import annotations

import json
from datetime import date, datetime, time
from enum import Enum
from typing import Any


def stringify(value: Any) -> str | None:
    """Render a property value the way it is stored in a change set.

    `None` stays `None` so it survives as JSON `null` and is never confused
    with an empty string.
    """
    if value is None:
        return None

    if isinstance(value, str):
        return value

    if isinstance(value, Enum):
        return stringify(value.value)

    if isinstance(value, (datetime, date, time)):
        return value.isoformat()

    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()

    # bool, int, Decimal, UUID and anything else fall back to str().
    return str(value)


def json_dumps_compact(value: Any) -> str:
    """Compact JSON encoding; key order follows insertion order."""
    return json.dumps(
        value,
        ensure_ascii=False,
        separators=(",", ":"),
    )


def json_loads(value: str) -> Any:
    return json.loads(value)
