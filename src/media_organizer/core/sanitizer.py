"""Turn free text into a single safe object key segment."""

import re
from typing import Any

FALLBACK_SEGMENT = "unknown"

_WHITESPACE = re.compile(r'\s+')
_DISALLOWED = re.compile(r'[^a-z0-9\-_.]')
_HYPHEN_RUNS = re.compile(r'-{2,}')


def sanitize(text: Any, fallback: str = FALLBACK_SEGMENT) -> str:
    """Sanitize ``text`` into a lowercase path segment.

    Whitespace runs become one hyphen, anything outside ``[a-z0-9-_.]`` is
    dropped and hyphen runs collapse. Leading and trailing hyphens and dots
    are stripped, so the result is never ``.`` or ``..``.

    Never returns an empty string: an empty segment would shift the depth of
    every key below it. ``None``, blank input and input made only of
    disallowed characters all produce ``fallback``.
    """
    if text is None:
        return fallback

    segment = str(text).strip().lower()
    segment = _WHITESPACE.sub('-', segment)
    segment = _DISALLOWED.sub('', segment)
    segment = _HYPHEN_RUNS.sub('-', segment)
    segment = segment.strip('-.')

    return segment or fallback
