"""
Change Sets

The per-entity mapping of property name to stringified values, and the JSON
codec used for the `AutoHistory.changed` column.
"""

from __future__ import annotations

import json
from typing import Any

from autohistory.kernel.errors import ChangeSetParseError
from autohistory.kernel.serialization import json_dumps_compact, json_loads


class ChangeSet(dict[str, list[str | None]]):
    """
    Changed properties of one entity.

    Each value holds one item for created and removed entries, and
    `[before, after]` for updated entries.
    """

    def serialize(self) -> str:
        return serialize_change_set(self)

    @classmethod
    def deserialize(cls, text: str) -> "ChangeSet":
        return deserialize_change_set(text)


def serialize_change_set(change_set: dict[str, list[str | None]]) -> str:
    """Encode a change set as compact JSON."""
    return json_dumps_compact({name: list(values) for name, values in change_set.items()})


def deserialize_change_set(text: str) -> ChangeSet:
    """
    Decode a change set written by `serialize_change_set`.

    Raises:
        ChangeSetParseError: If the text is not a JSON object of
            string-or-null arrays.
    """
    if not isinstance(text, str):
        raise ChangeSetParseError(
            message="Change set must be a string",
            meta={"type": type(text).__name__},
        )

    try:
        payload: Any = json_loads(text)
    except json.JSONDecodeError as exc:
        raise ChangeSetParseError(
            message=f"Change set is not valid JSON: {exc.msg}",
            meta={"position": exc.pos},
        ) from exc

    if not isinstance(payload, dict):
        raise ChangeSetParseError(
            message="Change set must be a JSON object",
            meta={"type": type(payload).__name__},
        )

    change_set = ChangeSet()
    for name, values in payload.items():
        if not isinstance(values, list):
            raise ChangeSetParseError(
                message=f"Values for {name!r} must be a JSON array",
                meta={"property": name},
            )
        for value in values:
            if value is not None and not isinstance(value, str):
                raise ChangeSetParseError(
                    message=f"Values for {name!r} must be strings or null",
                    meta={"property": name},
                )
        change_set[name] = list(values)

    return change_set
