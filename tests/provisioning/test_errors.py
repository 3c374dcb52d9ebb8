"""Tests for vendor creation-error classification."""

import pytest

from cloudlaunch.provisioning.errors import (
    CreationFatalError,
    CreationRejectedError,
    LocationDisabledError,
    NameConflictError,
    TypeUnavailableError,
    classify_creation_error,
)


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Failed to create server: server name is already used", NameConflictError),
        ("Failed to create server: Label already in use", NameConflictError),
        ("Failed to create server: location disabled", LocationDisabledError),
        ("Failed to create server: Location Disabled for new servers", LocationDisabledError),
        ("Failed to create server: server type unavailable", TypeUnavailableError),
        ("Failed to create server: Plan is not available in the selected region", TypeUnavailableError),
        ("Failed to create server: cx11 is sold out", TypeUnavailableError),
        ("Failed to create server: unsupported server type for location", TypeUnavailableError),
        ("Failed to create server: insufficient funds", CreationFatalError),
        ("Failed to create server: already exists", CreationFatalError),
        ("", CreationFatalError),
        (None, CreationFatalError),
    ],
)
def test_classify_creation_error(message, expected):
    assert classify_creation_error(message) is expected


def test_all_creation_errors_share_a_base():
    for cls in (NameConflictError, LocationDisabledError, TypeUnavailableError, CreationFatalError):
        assert issubclass(cls, CreationRejectedError)


def test_hint_is_kept():
    error = CreationFatalError("boom", hint="try again")
    assert str(error) == "boom"
    assert error.hint == "try again"
