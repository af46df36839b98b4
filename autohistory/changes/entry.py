"""
Tracked Entries

The read-only view of one entity instance in a unit of work that the
change-capture engine consumes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable


class EntityState(str, Enum):
    """Lifecycle state of a tracked entry."""

    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


@runtime_checkable
class PropertyEntry(Protocol):
    """A single scalar property of a tracked entry."""

    @property
    def name(self) -> str: ...

    @property
    def current_value(self) -> Any: ...

    @property
    def original_value(self) -> Any: ...

    @property
    def is_modified(self) -> bool: ...


@runtime_checkable
class TrackedEntry(Protocol):
    """
    One entity instance mid-transaction.

    `get_database_values` is expensive (a round trip to the store) and is
    only called by the diff builder when it has to.
    """

    @property
    def entity_type(self) -> type: ...

    @property
    def state(self) -> EntityState: ...

    @property
    def table_name(self) -> str: ...

    @property
    def properties(self) -> Sequence[PropertyEntry]: ...

    @property
    def key_property_names(self) -> Sequence[str]: ...

    def property(self, name: str) -> PropertyEntry | None: ...

    def get_database_values(self) -> Mapping[str, Any]: ...


@dataclass(frozen=True)
class PropertyValue:
    """Plain `PropertyEntry` for entries built outside a mapped session."""

    name: str
    current_value: Any = None
    original_value: Any = None
    is_modified: bool = False
