"""Row identifiers for tracked entries."""

from __future__ import annotations

from autohistory.changes.entry import TrackedEntry
from autohistory.kernel.serialization import stringify

KEY_SEPARATOR = ","


class KeyExtractor:
    """Builds the `row_id` of a history record from an entry's identity."""

    def __init__(self):
        self._keys_cache: dict[type, tuple[str, ...]] = {}

    def key_names(self, entry: TrackedEntry) -> tuple[str, ...]:
        names = self._keys_cache.get(entry.entity_type)
        if names is None:
            names = self._keys_cache.setdefault(entry.entity_type, tuple(entry.key_property_names))
        return names

    def primary_key(self, entry: TrackedEntry) -> str:
        """
        Stringified identity of `entry`.

        Composite keys are joined with a comma in declared order. Embedded
        commas are not escaped; existing rows depend on this format.
        """
        return KEY_SEPARATOR.join(self._key_part(entry, name) for name in self.key_names(entry))

    @staticmethod
    def _key_part(entry: TrackedEntry, name: str) -> str:
        prop = entry.property(name)
        if prop is None:
            return ""
        return stringify(prop.current_value) or ""
