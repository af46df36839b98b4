"""Configuration for history capture.

`AutoHistorySettings` carries the environment-driven defaults (pydantic
settings). `AutoHistoryOptions` is the explicit object handed to
`AutoHistoryBuilder`; it is frozen once the builder has captured it.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from autohistory.kernel.errors import ConfigurationError
from autohistory.kernel.time import utc_now
from autohistory.markers import ExclusionMarker, has_exclusion_marker

DEFAULT_CHANGED_MAX_LENGTH = 2048


class AutoHistorySettings(BaseSettings):
    """Settings loaded from `AUTOHISTORY_*` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOHISTORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Record defaults
    application_name: str | None = Field(default=None)
    use_group_id: bool = Field(default=False)

    # Column sizes
    changed_max_length: int | None = Field(default=None)
    limit_changed_length: bool = Field(default=True)
    row_id_max_length: int = Field(default=50)
    table_max_length: int = Field(default=128)
    user_name_max_length: int = Field(default=50)
    application_name_max_length: int = Field(default=128)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")


@lru_cache
def get_settings() -> AutoHistorySettings:
    """Get cached settings instance."""
    return AutoHistorySettings()


def default_application_name() -> str:
    """Name of the running program, used when none is configured."""
    argv0 = sys.argv[0] if sys.argv else ""
    return Path(argv0).stem or "python"


def _member_name(value: Any) -> str:
    if isinstance(value, str):
        return value
    # Mapped attributes (e.g. `Blog.url`) expose their property name as `.key`.
    key = getattr(value, "key", None)
    if isinstance(key, str):
        return key
    raise ConfigurationError(
        message="Expected a property name or a mapped attribute",
        meta={"type": type(value).__name__},
    )


@dataclass
class TypeOptions:
    """Options for a single entity type."""

    entity_type: type
    exclude_from_history: bool = False
    exclude_properties: tuple[str, ...] = ()
    group_property: str | None = None
    _frozen: bool = field(default=False, init=False, repr=False, compare=False)

    def _check_mutable(self) -> None:
        if self._frozen:
            raise ConfigurationError(
                message=f"Options for {self.entity_type.__name__} are frozen",
                code="options.frozen",
            )

    def with_exclude_from_history(self) -> "TypeOptions":
        self._check_mutable()
        self.exclude_from_history = True
        return self

    def with_exclude_property(self, prop: Any) -> "TypeOptions":
        self._check_mutable()
        name = _member_name(prop)
        if name not in self.exclude_properties:
            self.exclude_properties = (*self.exclude_properties, name)
        return self

    def with_group_property(self, prop: Any) -> "TypeOptions":
        self._check_mutable()
        self.group_property = _member_name(prop)
        return self


@dataclass
class AutoHistoryOptions:
    """
    Process-wide history options.

    Build one during setup, configure it, then pass it to
    `AutoHistoryBuilder`. The builder freezes it; later changes raise
    `ConfigurationError`.
    """

    application_name: str | None = None
    use_group_id: bool = False
    date_time_factory: Callable[[], datetime] = utc_now
    exclusion_marker: ExclusionMarker = has_exclusion_marker
    history_class: type | None = None
    types_options: dict[type, TypeOptions] = field(default_factory=dict)

    changed_max_length: int | None = None
    limit_changed_length: bool = True
    row_id_max_length: int = 50
    table_max_length: int = 128
    user_name_max_length: int = 50
    application_name_max_length: int = 128

    _frozen: bool = field(default=False, init=False, repr=False, compare=False)

    @classmethod
    def from_settings(cls, settings: AutoHistorySettings | None = None) -> "AutoHistoryOptions":
        settings = settings or get_settings()
        return cls(
            application_name=settings.application_name,
            use_group_id=settings.use_group_id,
            changed_max_length=settings.changed_max_length,
            limit_changed_length=settings.limit_changed_length,
            row_id_max_length=settings.row_id_max_length,
            table_max_length=settings.table_max_length,
            user_name_max_length=settings.user_name_max_length,
            application_name_max_length=settings.application_name_max_length,
        )

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def effective_changed_max_length(self) -> int | None:
        """Max length of the `changed` column, or None for unbounded text."""
        if not self.limit_changed_length:
            return None
        if self.changed_max_length is None or self.changed_max_length <= 0:
            return DEFAULT_CHANGED_MAX_LENGTH
        return self.changed_max_length

    def _check_mutable(self) -> None:
        if self._frozen:
            raise ConfigurationError(
                message="AutoHistoryOptions are frozen once a builder uses them",
                code="options.frozen",
            )

    def __setattr__(self, name: str, value: Any) -> None:
        if name != "_frozen" and getattr(self, "_frozen", False):
            self._check_mutable()
        super().__setattr__(name, value)

    def with_group_id(self, enabled: bool = True) -> "AutoHistoryOptions":
        self.use_group_id = enabled
        return self

    def with_application_name(self, name: str) -> "AutoHistoryOptions":
        self.application_name = name
        return self

    def with_date_time_factory(self, factory: Callable[[], datetime]) -> "AutoHistoryOptions":
        self.date_time_factory = factory
        return self

    def configure_type(
        self,
        entity_type: type,
        configure: Callable[[TypeOptions], Any] | None = None,
    ) -> "AutoHistoryOptions":
        """Create or update the options for `entity_type`."""
        self._check_mutable()
        type_options = self.types_options.get(entity_type)
        if type_options is None:
            type_options = TypeOptions(entity_type=entity_type)
            self.types_options[entity_type] = type_options
        if configure is not None:
            configure(type_options)
        return self

    def type_options(self, entity_type: type) -> TypeOptions | None:
        return self.types_options.get(entity_type)

    def freeze(self) -> "AutoHistoryOptions":
        """Resolve defaults and lock the options."""
        if self._frozen:
            return self
        if not self.application_name:
            self.application_name = default_application_name()
        for type_options in self.types_options.values():
            type_options._frozen = True
        self._frozen = True
        return self
