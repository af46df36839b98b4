"""
History Database Models

SQLAlchemy model for the rows written by history capture. Column sizes are
taken from `__history_options__` when a subclass sets it, otherwise from
`AutoHistorySettings` (`AUTOHISTORY_*` environment variables).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import declarative_base, declared_attr

from autohistory.changes.changeset import ChangeSet, deserialize_change_set
from autohistory.changes.entry import EntityState
from autohistory.config import AutoHistoryOptions
from autohistory.markers import exclude_from_history

Base = declarative_base()


def _options(cls: Any) -> AutoHistoryOptions:
    # Read at class creation, so env settings must be in place before import.
    return getattr(cls, "__history_options__", None) or AutoHistoryOptions.from_settings()


@exclude_from_history
class AutoHistoryMixin:
    """
    Columns of a history record.

    Mix into a class on your own declarative base to store history next to
    your models, or subclass `AutoHistory` to add columns.
    """

    __history_options__ = None

    id = Column(Integer, primary_key=True, autoincrement=True)

    @declared_attr
    def row_id(cls):
        return Column(String(_options(cls).row_id_max_length), nullable=False)

    @declared_attr
    def table_name(cls):
        return Column(String(_options(cls).table_max_length), nullable=False)

    @declared_attr
    def changed(cls):
        max_length = _options(cls).effective_changed_max_length
        return Column(String(max_length) if max_length else Text, nullable=True)

    @declared_attr
    def user_name(cls):
        return Column(String(_options(cls).user_name_max_length), nullable=True)

    @declared_attr
    def application_name(cls):
        return Column(String(_options(cls).application_name_max_length), nullable=False)

    kind = Column(
        Enum(
            EntityState,
            native_enum=False,
            length=16,
            values_callable=lambda states: [state.value for state in states],
            name="auto_history_kind",
        ),
        nullable=False,
    )
    created = Column(DateTime(timezone=True), nullable=False)
    group_id = Column(String(128), nullable=True, index=True)

    @property
    def change_set(self) -> ChangeSet:
        """Decoded `changed` column."""
        return deserialize_change_set(self.changed)

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} id={self.id!r} table_name={self.table_name!r} "
            f"row_id={self.row_id!r} kind={self.kind!r}>"
        )


class AutoHistory(AutoHistoryMixin, Base):
    """Default history record."""

    __tablename__ = "auto_history"
