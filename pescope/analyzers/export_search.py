"""
Export Search
==============

Wildcard lookup over an image's exported names.  ``*`` matches any run
of characters, ``?`` exactly one; everything else is literal.  Matching
is case-insensitive and covers the whole name.
"""

from __future__ import annotations

import re

from pescope.core.models import AnalysisResult, ExportedFunction


def wildcard_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a ``*``/``?`` wildcard *pattern* into a regex for ``fullmatch``.

    >>> bool(wildcard_to_regex("Get*Error").fullmatch("GetLastError"))
    True
    """
    escaped = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(escaped, re.IGNORECASE | re.DOTALL)


def search_exports(result: AnalysisResult, pattern: str) -> list[ExportedFunction]:
    """Return the named exports matching *pattern*, sorted by name."""
    regex = wildcard_to_regex(pattern)
    matches = [e for e in result.exports if e.name is not None and regex.fullmatch(e.name)]
    return sorted(matches, key=lambda e: e.name or "")
