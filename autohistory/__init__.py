"""Automatic change history for SQLAlchemy sessions."""

from autohistory.builder import AutoHistoryBuilder
from autohistory.changes import ChangeSet, EntityState
from autohistory.config import AutoHistoryOptions, AutoHistorySettings, TypeOptions, get_settings
from autohistory.db.models import AutoHistory, AutoHistoryMixin
from autohistory.history import create_history_record
from autohistory.kernel.errors import (
    AutoHistoryError,
    ChangeSetParseError,
    ConfigurationError,
    PersistedRowMissingError,
    UnsupportedEntityStateError,
)
from autohistory.markers import EXCLUDED, exclude_from_history
from autohistory.orm import (
    SqlAlchemyEntry,
    enable_auto_history,
    ensure_added_history,
    ensure_auto_history,
    ensure_auto_history_async,
    flush_with_history,
    flush_with_history_async,
)

__all__ = [
    "AutoHistoryBuilder",
    "ChangeSet",
    "EntityState",
    "AutoHistoryOptions",
    "AutoHistorySettings",
    "TypeOptions",
    "get_settings",
    "AutoHistory",
    "AutoHistoryMixin",
    "create_history_record",
    "AutoHistoryError",
    "ChangeSetParseError",
    "ConfigurationError",
    "PersistedRowMissingError",
    "UnsupportedEntityStateError",
    "EXCLUDED",
    "exclude_from_history",
    "SqlAlchemyEntry",
    "enable_auto_history",
    "ensure_added_history",
    "ensure_auto_history",
    "ensure_auto_history_async",
    "flush_with_history",
    "flush_with_history_async",
]
