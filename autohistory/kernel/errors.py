from __future__ import annotations

import re
from typing import Any


_ERROR_CODE_RE = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)*$")


class AutoHistoryError(Exception):
    """Base typed error for autohistory.

    Goals:
    - Stable `code` for programmatic handling by callers.
    - Human-readable `message`.
    - Optional `meta` payload for debugging.
    """

    def __init__(
        self,
        *,
        code: str,
        message: str,
        meta: dict[str, Any] | None = None,
    ) -> None:
        if not _ERROR_CODE_RE.fullmatch(code):
            raise ValueError(
                "Invalid autohistory error code. Expected dot-separated lowercase tokens, "
                f"got: {code!r}"
            )
        super().__init__(message)
        self.code = code
        self.message = message
        self.meta = dict(meta or {})

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "detail": self.message,
            "code": self.code,
        }
        if self.meta:
            payload["meta"] = self.meta
        return payload


class UnsupportedEntityStateError(AutoHistoryError):
    def __init__(
        self,
        *,
        state: Any,
        message: str | None = None,
        code: str = "entry.unsupported_state",
        meta: dict[str, Any] | None = None,
    ):
        label = str(getattr(state, "value", state))
        super().__init__(
            code=code,
            message=message or f"AutoHistory only supports created, updated and removed entries (got {label})",
            meta={"state": label, **(meta or {})},
        )
        self.state = state


class ChangeSetParseError(AutoHistoryError):
    def __init__(
        self,
        *,
        message: str = "Malformed change set",
        code: str = "change_set.parse_error",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, meta=meta)


class ConfigurationError(AutoHistoryError):
    def __init__(
        self,
        *,
        message: str = "Invalid autohistory options",
        code: str = "options.invalid",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, meta=meta)


class PersistedRowMissingError(AutoHistoryError):
    def __init__(
        self,
        *,
        message: str = "Persisted row not found",
        code: str = "entry.persisted_row_missing",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, meta=meta)
