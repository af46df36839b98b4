from __future__ import annotations

import pytest

from autohistory.changes.entry import EntityState
from autohistory.kernel.errors import (
    AutoHistoryError,
    ChangeSetParseError,
    ConfigurationError,
    PersistedRowMissingError,
    UnsupportedEntityStateError,
)


@pytest.mark.unit
def test_error_code_must_be_dotted_lowercase():
    with pytest.raises(ValueError):
        AutoHistoryError(code="Bad-Code", message="nope")


@pytest.mark.unit
def test_error_to_dict_includes_meta():
    err = ChangeSetParseError(meta={"position": 3})
    assert err.to_dict() == {
        "detail": "Malformed change set",
        "code": "change_set.parse_error",
        "meta": {"position": 3},
    }


@pytest.mark.unit
def test_unsupported_state_error_records_state():
    err = UnsupportedEntityStateError(state=EntityState.UNCHANGED)
    assert err.code == "entry.unsupported_state"
    assert err.state is EntityState.UNCHANGED
    assert "unchanged" in err.meta["state"]


@pytest.mark.unit
def test_subclasses_share_base():
    for err in (
        ChangeSetParseError(),
        ConfigurationError(),
        PersistedRowMissingError(),
        UnsupportedEntityStateError(state="detached"),
    ):
        assert isinstance(err, AutoHistoryError)
