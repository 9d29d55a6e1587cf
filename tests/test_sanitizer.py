"""Tests for key segment sanitizing."""

import re

import pytest
from hypothesis import given, strategies as st

from media_organizer.core.sanitizer import sanitize, FALLBACK_SEGMENT


class TestSanitize:
    """Test cases for sanitize."""

    @pytest.mark.parametrize("text,expected", [
        ("Intro To Robotics!", "intro-to-robotics"),
        ("Module 1", "module-1"),
        ("Lesson  One", "lesson-one"),
        ("  --Hello -- World--  ", "hello-world"),
        ("notes_v2.final", "notes_v2.final"),
        ("Tab\tand\nnewline", "tab-and-newline"),
        ("Héllo Wörld", "hllo-wrld"),
    ])
    def test_sanitize_examples(self, text, expected):
        assert sanitize(text) == expected

    @pytest.mark.parametrize("text", [None, "", "   ", "!!!", "---", "...", "."])
    def test_empty_results_use_fallback(self, text):
        """Nothing usable left means the fallback token, never an empty segment."""
        assert sanitize(text) == FALLBACK_SEGMENT

    def test_custom_fallback(self):
        assert sanitize("", fallback="unknown-course") == "unknown-course"

    def test_never_produces_parent_segments(self):
        assert sanitize("..") == FALLBACK_SEGMENT
        assert sanitize("../etc") == "etc"
        assert "/" not in sanitize("a/b/c")

    def test_non_string_input(self):
        assert sanitize(42) == "42"

    def test_deterministic(self):
        text = "Same Input, Same Output?"
        assert sanitize(text) == sanitize(text) == "same-input-same-output"

    @pytest.mark.parametrize("text", [
        "Árbol de Navidad 🎄",
        "a -- b",
        "x y",
        "UPPER lower 123",
        "__under__scores__",
    ])
    def test_output_alphabet(self, text):
        """Output uses only the allowed characters and has no hyphen runs."""
        result = sanitize(text)
        assert result
        assert re.fullmatch(r"[a-z0-9\-_.]+", result)
        assert "--" not in result


@given(st.one_of(st.none(), st.text()))
def test_sanitize_never_returns_empty(text) -> None:
    """Every input, junk included, yields a usable segment."""
    assert sanitize(text)


@given(st.text())
def test_sanitize_output_is_a_safe_segment(text: str) -> None:
    """Only ``[a-z0-9._-]``, no hyphen runs, never a relative path segment."""
    result = sanitize(text)
    assert re.fullmatch(r"[a-z0-9._-]+", result)
    assert "--" not in result
    assert result not in (".", "..")
    assert not result.startswith(("-", "."))


@given(st.text())
def test_sanitize_is_idempotent(text: str) -> None:
    """Sanitizing a sanitized segment changes nothing."""
    once = sanitize(text)
    assert sanitize(once) == once
