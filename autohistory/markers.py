"""Static exclusion markers for entity types and mapped properties.

    @exclude_from_history
    class AuditSecret(Base):
        ...

    class Blog(Base):
        private_url = Column(Text, info={**EXCLUDED})
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable, Mapping, TypeVar

from sqlalchemy import inspect

MARKER_KEY = "exclude_from_history"

# Read-only; spread it into each `info=` (`info={**EXCLUDED}`) so columns
# never share one dict.
EXCLUDED: Mapping[str, bool] = MappingProxyType({MARKER_KEY: True})

ExclusionMarker = Callable[[type, "str | None"], bool]

_T = TypeVar("_T", bound=type)


def exclude_from_history(cls: _T) -> _T:
    """Class decorator: never record history for this type or its subclasses."""
    cls.__exclude_from_history__ = True
    return cls


def has_exclusion_marker(entity_type: type, property_name: str | None = None) -> bool:
    """
    Default marker predicate.

    With no property name, reports whether the type itself is marked.
    Otherwise reports whether the named property carries the marker in its
    SQLAlchemy `info` dict or is listed in `__exclude_properties_from_history__`.
    """
    if property_name is None:
        return bool(getattr(entity_type, "__exclude_from_history__", False))

    if property_name in getattr(entity_type, "__exclude_properties_from_history__", ()):
        return True

    mapper = inspect(entity_type, raiseerr=False)
    if mapper is None:
        return False

    prop = mapper.attrs.get(property_name)
    if prop is None:
        return False
    if prop.info.get(MARKER_KEY):
        return True
    # SQL expressions behind a column_property carry no info dict.
    return any(getattr(column, "info", {}).get(MARKER_KEY) for column in getattr(prop, "columns", ()))
