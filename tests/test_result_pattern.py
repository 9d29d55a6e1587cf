"""Tests for the Result type."""

import pytest

from media_organizer.domain.result import Success, Failure


class TestResult:
    """Test cases for Success and Failure."""

    def test_success(self):
        result = Success(3)
        assert result.is_success()
        assert not result.is_failure()
        assert result.value() == 3
        assert result.or_else(0) == 3
        with pytest.raises(ValueError):
            result.error()

    def test_failure(self):
        result = Failure("locked")
        assert result.is_failure()
        assert result.error() == "locked"
        assert result.or_else(0) == 0
        with pytest.raises(ValueError):
            result.value()

    def test_repr(self):
        assert repr(Success(1)) == "Success(1)"
        assert repr(Failure("x")) == "Failure('x')"
