"""
Exclusion Resolution

Decides which entity types and properties take part in history capture.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import structlog
from sqlalchemy import inspect

from autohistory.changes.entry import PropertyEntry, TrackedEntry
from autohistory.config import AutoHistoryOptions

logger = structlog.get_logger()


@dataclass(frozen=True)
class ExclusionRule:
    """Resolved exclusion for one entity type."""

    type_excluded: bool
    excluded_properties: frozenset[str]


class ExclusionResolver:
    """
    Merges static markers with configured type options.

    Union semantics: anything excluded by either source stays excluded.
    Rules are computed once per type and cached; options are frozen before
    first use, so the cache is never invalidated.
    """

    def __init__(self, options: AutoHistoryOptions):
        self._options = options
        self._cache: dict[type, ExclusionRule] = {}

    def rule_for(self, entity_type: type, property_names: Iterable[str] = ()) -> ExclusionRule:
        rule = self._cache.get(entity_type)
        if rule is None:
            # A concurrent miss computes the same rule; setdefault keeps the first.
            rule = self._cache.setdefault(entity_type, self._compute(entity_type, property_names))
        return rule

    def _compute(self, entity_type: type, property_names: Iterable[str]) -> ExclusionRule:
        marker = self._options.exclusion_marker
        type_options = self._options.type_options(entity_type)

        excluded = marker(entity_type, None)
        if type_options is not None and type_options.exclude_from_history:
            excluded = True

        if excluded:
            logger.debug("Entity type excluded from history", entity_type=entity_type.__name__)
            return ExclusionRule(type_excluded=True, excluded_properties=frozenset())

        candidates = dict.fromkeys([*property_names, *_declared_property_names(entity_type)])
        names = [name for name in candidates if marker(entity_type, name)]
        if type_options is not None:
            names.extend(name for name in type_options.exclude_properties if name not in names)

        return ExclusionRule(type_excluded=False, excluded_properties=frozenset(names))

    def is_excluded(self, entity_type: type) -> bool:
        """Check whether instances of `entity_type` never produce history."""
        return self.rule_for(entity_type).type_excluded

    def is_entry_excluded(self, entry: TrackedEntry) -> bool:
        return self._rule_for_entry(entry).type_excluded

    def excluded_properties(self, entity_type: type, property_names: Iterable[str] = ()) -> frozenset[str]:
        return self.rule_for(entity_type, property_names).excluded_properties

    def eligible_properties(self, entry: TrackedEntry) -> list[PropertyEntry]:
        """Entry properties minus excluded ones, in declared order."""
        rule = self._rule_for_entry(entry)
        if rule.type_excluded:
            return []
        return [prop for prop in entry.properties if prop.name not in rule.excluded_properties]

    def _rule_for_entry(self, entry: TrackedEntry) -> ExclusionRule:
        return self.rule_for(entry.entity_type, (prop.name for prop in entry.properties))


def _declared_property_names(entity_type: type) -> list[str]:
    """Property names known from the type itself, so rules do not depend on which entry came first."""
    names = list(getattr(entity_type, "__exclude_properties_from_history__", ()))
    mapper = inspect(entity_type, raiseerr=False)
    if mapper is not None:
        names.extend(prop.key for prop in mapper.column_attrs)
    return names
