"""
Diff Computation

Turns a tracked entry into the change set stored on its history record.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from autohistory.changes.changeset import ChangeSet
from autohistory.changes.entry import EntityState, PropertyEntry, TrackedEntry
from autohistory.kernel.errors import UnsupportedEntityStateError
from autohistory.kernel.serialization import stringify


def has_modified_properties(properties: Iterable[PropertyEntry]) -> bool:
    """Check whether any of the given properties is flagged modified."""
    return any(prop.is_modified for prop in properties)


def build_change_set(
    entry: TrackedEntry,
    properties: Iterable[PropertyEntry],
    state: EntityState | None = None,
) -> ChangeSet | None:
    """
    Compute the change set for an entry.

    Args:
        entry: Tracked entry being recorded
        properties: Eligible (non-excluded) properties of the entry
        state: Lifecycle state to record; defaults to `entry.state`.
            Created entries are recorded after the flush, when the ORM
            already reports them as persistent, so callers pass it.

    Returns:
        The change set, or None for an updated entry with no modified
        eligible property (no record should be written).

    Raises:
        UnsupportedEntityStateError: For any state other than created,
            updated or removed.
    """
    state = entry.state if state is None else state

    if state in (EntityState.CREATED, EntityState.REMOVED):
        return _single_value_changes(properties)
    if state == EntityState.UPDATED:
        return _updated_changes(entry, properties)

    raise UnsupportedEntityStateError(state=state, meta={"table_name": entry.table_name})


def _single_value_changes(properties: Iterable[PropertyEntry]) -> ChangeSet:
    changes = ChangeSet()
    for prop in properties:
        changes[prop.name] = [stringify(prop.original_value)]
    return changes


def _updated_changes(entry: TrackedEntry, properties: Iterable[PropertyEntry]) -> ChangeSet | None:
    changes = ChangeSet()
    database_values: Mapping[str, Any] | None = None

    for prop in properties:
        if not prop.is_modified:
            continue

        current = prop.current_value
        original = prop.original_value

        if _values_equal(original, current):
            # The in-memory original was reset or never loaded; ask the store
            # once for this entry and reuse the row for every property.
            if database_values is None:
                database_values = entry.get_database_values()
            before = database_values.get(prop.name)
        else:
            before = original

        changes[prop.name] = [stringify(before), stringify(current)]

    if not changes:
        return None
    return changes


def _values_equal(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is b
    try:
        return bool(a == b)
    except (TypeError, ValueError):
        # e.g. numpy arrays or objects with odd __eq__
        return a is b
