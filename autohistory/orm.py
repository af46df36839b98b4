"""
SQLAlchemy Binding

Adapts SQLAlchemy sessions to the capture engine. Two ways to use it:

Explicit, mirroring a two-pass save:

    records = flush_with_history(session, builder, user_name="alice")
    session.commit()

Event driven, in the style of SQLAlchemy's `versioned_session` example:

    Session = sessionmaker(bind=engine)
    enable_auto_history(Session, builder, user_name=lambda session: session.info.get("user"))

Nothing here commits; the caller owns the transaction.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Sequence

import structlog
from sqlalchemy import event, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session
from sqlalchemy.orm.state import InstanceState

from autohistory.builder import AutoHistoryBuilder
from autohistory.changes.entry import EntityState
from autohistory.history import THistory
from autohistory.kernel.errors import PersistedRowMissingError

logger = structlog.get_logger()

UserName = str | Callable[[Session], "str | None"] | None

_PENDING_ADDED_KEY = "autohistory.pending_added"


class SqlAlchemyProperty:
    """Read-through view of one mapped column attribute."""

    __slots__ = ("_entry", "_key")

    def __init__(self, entry: "SqlAlchemyEntry", key: str):
        self._entry = entry
        self._key = key

    @property
    def name(self) -> str:
        return self._key

    def _history(self):
        return self._entry.instance_state.attrs[self._key].history

    @property
    def is_modified(self) -> bool:
        history = self._history()
        return bool(history.added or history.deleted)

    @property
    def current_value(self) -> Any:
        state = self._entry.instance_state
        if self._key in state.dict:
            return state.dict[self._key]
        # Expired or deferred; load without flushing pending changes.
        with self._entry.session.no_autoflush:
            return getattr(state.obj(), self._key)

    @property
    def original_value(self) -> Any:
        history = self._history()
        if history.deleted:
            return history.deleted[0]
        # Unchanged, or assigned while expired so the loaded value is unknown.
        return self.current_value

    def __repr__(self) -> str:
        return f"<SqlAlchemyProperty {self._key!r}>"


class SqlAlchemyEntry:
    """`TrackedEntry` over one instance in a SQLAlchemy session."""

    def __init__(self, session: Session, instance: Any, state: EntityState | None = None):
        self.session = session
        self.instance = instance
        self.instance_state: InstanceState = inspect(instance)
        self._mapper = self.instance_state.mapper
        self._state = state if state is not None else _entry_state(session, instance, self.instance_state)
        self._properties = [SqlAlchemyProperty(self, attr.key) for attr in self._mapper.column_attrs]
        self._by_name = {prop.name: prop for prop in self._properties}

    @property
    def entity_type(self) -> type:
        return self._mapper.class_

    @property
    def state(self) -> EntityState:
        return self._state

    @property
    def table_name(self) -> str:
        return self._mapper.local_table.name

    @property
    def properties(self) -> Sequence[SqlAlchemyProperty]:
        return self._properties

    @property
    def key_property_names(self) -> list[str]:
        return [self._mapper.get_property_by_column(column).key for column in self._mapper.primary_key]

    def property(self, name: str) -> SqlAlchemyProperty | None:
        return self._by_name.get(name)

    def get_database_values(self) -> Mapping[str, Any]:
        """
        Load the persisted row of this instance.

        Raises:
            PersistedRowMissingError: If the instance has no identity or its
                row no longer exists.
        """
        identity = self.instance_state.identity
        if identity is None:
            raise PersistedRowMissingError(
                message="Instance has no persisted identity",
                meta={"table_name": self.table_name},
            )

        columns = [attr.columns[0].label(attr.key) for attr in self._mapper.column_attrs]
        stmt = (
            select(*columns)
            .select_from(self._mapper.persist_selectable)
            .where(*(column == value for column, value in zip(self._mapper.primary_key, identity)))
        )
        with self.session.no_autoflush:
            row = self.session.execute(stmt).mappings().one_or_none()

        if row is None:
            raise PersistedRowMissingError(
                meta={"table_name": self.table_name, "identity": [str(value) for value in identity]},
            )

        logger.debug("Fetched persisted values", table_name=self.table_name)
        return dict(row)

    def __repr__(self) -> str:
        return f"<SqlAlchemyEntry {self.entity_type.__name__} {self._state.value}>"


def _entry_state(session: Session, instance: Any, instance_state: InstanceState) -> EntityState:
    if instance_state.pending:
        return EntityState.CREATED
    if instance in session.deleted:
        return EntityState.REMOVED
    if _is_updated(session, instance, instance_state):
        return EntityState.UPDATED
    return EntityState.UNCHANGED


def _is_updated(session: Session, instance: Any, instance_state: InstanceState) -> bool:
    return instance_state.persistent and session.is_modified(instance, include_collections=False)


def _resolve_user_name(session: Session, user_name: UserName) -> str | None:
    if callable(user_name):
        return user_name(session)
    return user_name


def ensure_auto_history(
    session: Session,
    builder: AutoHistoryBuilder,
    factory: Callable[[], THistory] | None = None,
    user_name: str | None = None,
) -> list[THistory]:
    """
    Add history records for updated and removed instances to the session.

    Call before the flush that writes the changes.
    """
    # Materialize first; the records we add must not be visited.
    # `session.dirty` never holds instances marked for deletion.
    candidates = [
        *((instance, EntityState.UPDATED) for instance in session.dirty),
        *((instance, EntityState.REMOVED) for instance in session.deleted),
    ]
    records: list[THistory] = []

    with session.no_autoflush:
        for instance, state in candidates:
            if state == EntityState.UPDATED and not _is_updated(session, instance, inspect(instance)):
                continue
            entry = SqlAlchemyEntry(session, instance, state=state)
            record = builder.auto_history(entry, factory, user_name)
            if record is not None:
                session.add(record)
                records.append(record)

    if records:
        logger.debug("Added history for modified entries", count=len(records))
    return records


def ensure_added_history(
    session: Session,
    builder: AutoHistoryBuilder,
    instances: Iterable[Any],
    factory: Callable[[], THistory] | None = None,
    user_name: str | None = None,
) -> list[THistory]:
    """
    Add history records for instances inserted by a previous flush.

    `instances` is what `session.new` held before that flush; keys
    generated by the store are now populated.
    """
    records: list[THistory] = []

    with session.no_autoflush:
        for instance in list(instances):
            entry = SqlAlchemyEntry(session, instance, state=EntityState.CREATED)
            record = builder.added_history(entry, factory, user_name)
            if record is not None:
                session.add(record)
                records.append(record)

    if records:
        logger.debug("Added history for created entries", count=len(records))
    return records


def flush_with_history(
    session: Session,
    builder: AutoHistoryBuilder,
    factory: Callable[[], THistory] | None = None,
    user_name: str | None = None,
) -> list[THistory]:
    """
    Flush pending changes together with their history.

    Updates and deletes are recorded before the flush; inserts after it,
    followed by a second flush for their records. The caller commits.
    """
    added = list(session.new)

    records = ensure_auto_history(session, builder, factory, user_name)
    session.flush()

    if added:
        records.extend(ensure_added_history(session, builder, added, factory, user_name))
        session.flush()

    return records


async def ensure_auto_history_async(
    session: AsyncSession,
    builder: AutoHistoryBuilder,
    factory: Callable[[], THistory] | None = None,
    user_name: str | None = None,
) -> list[THistory]:
    return await session.run_sync(ensure_auto_history, builder, factory, user_name)


async def flush_with_history_async(
    session: AsyncSession,
    builder: AutoHistoryBuilder,
    factory: Callable[[], THistory] | None = None,
    user_name: str | None = None,
) -> list[THistory]:
    """`flush_with_history` for an `AsyncSession`."""
    return await session.run_sync(flush_with_history, builder, factory, user_name)


def enable_auto_history(
    target: Any,
    builder: AutoHistoryBuilder,
    user_name: UserName = None,
    factory: Callable[[], THistory] | None = None,
) -> Callable[[], None]:
    """
    Record history on every flush of `target`.

    `target` is a `Session`, a `sessionmaker` or a `Session` subclass.
    `user_name` is a string or a callable receiving the session. Records
    for inserted rows are added after the flush and written by the next
    one, which `commit()` performs on its own.

    Returns:
        A callable that removes the listeners.
    """

    def before_flush(session: Session, flush_context, instances) -> None:
        ensure_auto_history(session, builder, factory, _resolve_user_name(session, user_name))

    def after_flush(session: Session, flush_context) -> None:
        # `session.new` still holds the pre-flush inserts here.
        session.info.setdefault(_PENDING_ADDED_KEY, []).extend(session.new)

    def after_flush_postexec(session: Session, flush_context) -> None:
        pending = session.info.pop(_PENDING_ADDED_KEY, None)
        if pending:
            ensure_added_history(session, builder, pending, factory, _resolve_user_name(session, user_name))

    def after_rollback(session: Session) -> None:
        session.info.pop(_PENDING_ADDED_KEY, None)

    listeners = [
        ("before_flush", before_flush),
        ("after_flush", after_flush),
        ("after_flush_postexec", after_flush_postexec),
        ("after_rollback", after_rollback),
    ]
    for identifier, fn in listeners:
        event.listen(target, identifier, fn)

    def remove() -> None:
        for identifier, fn in listeners:
            event.remove(target, identifier, fn)

    return remove
