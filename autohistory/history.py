"""History record construction."""

from __future__ import annotations

from typing import Callable, TypeVar

from autohistory.changes.changeset import ChangeSet
from autohistory.changes.entry import EntityState
from autohistory.db.models import AutoHistoryMixin

THistory = TypeVar("THistory", bound=AutoHistoryMixin)


def create_history_record(
    factory: Callable[[], THistory],
    *,
    change_set: ChangeSet,
    row_id: str,
    table_name: str,
    kind: EntityState,
    user_name: str | None = None,
    group_id: str | None = None,
) -> THistory:
    """
    Build a populated history record.

    `factory` takes no arguments, so callers can return a subclass carrying
    extra columns. The record is not added to any session.
    """
    history = factory()
    history.row_id = row_id
    history.table_name = table_name
    history.changed = change_set.serialize()
    history.user_name = user_name
    history.kind = kind
    history.group_id = group_id
    return history
