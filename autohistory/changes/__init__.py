"""
Change Capture Module

Provides exclusion resolution, row keys, group ids, diff computation and
the change-set codec.
"""

from autohistory.changes.changeset import (
    ChangeSet,
    deserialize_change_set,
    serialize_change_set,
)
from autohistory.changes.diff import (
    build_change_set,
    has_modified_properties,
)
from autohistory.changes.entry import (
    EntityState,
    PropertyEntry,
    PropertyValue,
    TrackedEntry,
)
from autohistory.changes.exclusion import (
    ExclusionResolver,
    ExclusionRule,
)
from autohistory.changes.group import GroupCorrelator
from autohistory.changes.keys import KeyExtractor

__all__ = [
    "ChangeSet",
    "deserialize_change_set",
    "serialize_change_set",
    "build_change_set",
    "has_modified_properties",
    "EntityState",
    "PropertyEntry",
    "PropertyValue",
    "TrackedEntry",
    "ExclusionResolver",
    "ExclusionRule",
    "GroupCorrelator",
    "KeyExtractor",
]
