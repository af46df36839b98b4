"""
History Builder

Entry point of the capture engine: turns tracked entries into history
records using one frozen set of options.
"""

from __future__ import annotations

from typing import Callable

import structlog

from autohistory.changes.diff import build_change_set, has_modified_properties
from autohistory.changes.entry import EntityState, PropertyEntry, TrackedEntry
from autohistory.changes.exclusion import ExclusionResolver
from autohistory.changes.group import GroupCorrelator
from autohistory.changes.keys import KeyExtractor
from autohistory.config import AutoHistoryOptions
from autohistory.db.models import AutoHistory, AutoHistoryMixin
from autohistory.history import THistory, create_history_record
from autohistory.kernel.errors import UnsupportedEntityStateError
from autohistory.kernel.time import coerce_utc

logger = structlog.get_logger()


class AutoHistoryBuilder:
    """
    Builds history records for tracked entries.

    Provides:
    - Type and property exclusion, resolved once per type
    - Row ids from single or composite keys
    - Optional group ids for related rows
    - Change sets for created, updated and removed entries

    A builder can be shared between sessions and threads.
    """

    def __init__(self, options: AutoHistoryOptions | None = None):
        self.options = (options or AutoHistoryOptions.from_settings()).freeze()
        self.exclusions = ExclusionResolver(self.options)
        self.keys = KeyExtractor()
        self.groups = GroupCorrelator(self.options)
        self.history_class: type[AutoHistoryMixin] = self.options.history_class or AutoHistory

    def default_history_factory(self) -> AutoHistoryMixin:
        """Create an empty record stamped with application name and UTC time."""
        return self.history_class(
            application_name=self.options.application_name,
            created=coerce_utc(self.options.date_time_factory()),
        )

    def is_excluded(self, entry: TrackedEntry) -> bool:
        return self.exclusions.is_entry_excluded(entry)

    def auto_history(
        self,
        entry: TrackedEntry,
        factory: Callable[[], THistory] | None = None,
        user_name: str | None = None,
    ) -> THistory | None:
        """
        Record an updated or removed entry.

        Returns:
            The record, or None when the type is excluded or an updated
            entry has no modified eligible property.

        Raises:
            UnsupportedEntityStateError: If the entry is neither updated
                nor removed.
        """
        if self.exclusions.is_entry_excluded(entry):
            return None

        properties = self.exclusions.eligible_properties(entry)
        if entry.state == EntityState.UPDATED and not has_modified_properties(properties):
            logger.debug(
                "Skipped entry without modified properties",
                table_name=entry.table_name,
            )
            return None

        if entry.state not in (EntityState.UPDATED, EntityState.REMOVED):
            # Created entries are recorded after the flush via added_history().
            raise UnsupportedEntityStateError(
                state=entry.state,
                message=f"auto_history() records updated and removed entries only (got {entry.state.value})",
                meta={"table_name": entry.table_name},
            )

        return self._build(entry, properties, entry.state, factory, user_name)

    def added_history(
        self,
        entry: TrackedEntry,
        factory: Callable[[], THistory] | None = None,
        user_name: str | None = None,
    ) -> THistory | None:
        """
        Record a created entry.

        Call after the store has assigned generated keys, so the row id is
        the real one.
        """
        if self.exclusions.is_entry_excluded(entry):
            return None

        properties = self.exclusions.eligible_properties(entry)
        return self._build(entry, properties, EntityState.CREATED, factory, user_name)

    def _build(
        self,
        entry: TrackedEntry,
        properties: list[PropertyEntry],
        state: EntityState,
        factory: Callable[[], THistory] | None,
        user_name: str | None,
    ) -> THistory | None:
        change_set = build_change_set(entry, properties, state)
        if change_set is None:
            return None

        history = create_history_record(
            factory or self.default_history_factory,
            change_set=change_set,
            row_id=self.keys.primary_key(entry),
            table_name=entry.table_name,
            kind=state,
            user_name=user_name,
            group_id=self.groups.group_id(entry),
        )

        logger.debug(
            "Built history record",
            table_name=history.table_name,
            row_id=history.row_id,
            kind=state.value,
            properties=len(change_set),
        )

        return history
