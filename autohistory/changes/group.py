"""Group ids that tie related history rows together."""

from __future__ import annotations

from autohistory.changes.entry import TrackedEntry
from autohistory.config import AutoHistoryOptions
from autohistory.kernel.serialization import stringify


class GroupCorrelator:
    def __init__(self, options: AutoHistoryOptions):
        self._options = options

    def group_id(self, entry: TrackedEntry) -> str | None:
        """Stringified value of the type's group property, if one is configured."""
        if not self._options.use_group_id:
            return None

        type_options = self._options.type_options(entry.entity_type)
        if type_options is None or type_options.group_property is None:
            return None

        prop = entry.property(type_options.group_property)
        if prop is None:
            return None
        return stringify(prop.current_value)
