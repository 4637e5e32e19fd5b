"""Tests for somnus.core.exceptions."""

import pytest

from somnus.core.exceptions import (
    ConfigurationError,
    DataProcessingError,
    SomnusError,
    ValidationError,
)


def test_hierarchy():
    """All exceptions should inherit from SomnusError."""
    for exc_cls in [ValidationError, ConfigurationError, DataProcessingError]:
        assert issubclass(exc_cls, SomnusError)


def test_validation_error_is_value_error():
    assert issubclass(ValidationError, ValueError)


def test_exception_message():
    err = ConfigurationError("missing key: coalescer.merge_threshold_ms")
    assert "missing key" in str(err)


def test_catch_base():
    with pytest.raises(SomnusError):
        raise DataProcessingError("bad document")
