"""
filters.py

Pure filtering helpers for candidate selection.

This module:
- Contains NO I/O
- Contains NO API calls
- Contains NO state

It is safe to call anywhere and cheap to run.
"""

from __future__ import annotations

import html
import re
from typing import Iterable, List, Optional, Pattern

REGEX_PREFIX = "re:"


# ============================================================
# Title normalization
# ============================================================


def normalize_title(title: str) -> str:
    """
    Normalize a search-result title for matching.

    - Unescapes HTML entities (search.list snippets return ``&amp;``, ``&#39;``)
    - Collapses whitespace

    Case is preserved; pattern matching is case-insensitive.

    Examples:
        >>> normalize_title("Rock &amp; Roll  [MV]")
        'Rock & Roll [MV]'
    """
    if not title:
        return ""

    t = html.unescape(title)
    t = re.sub(r"\s+", " ", t).strip()
    return t


# ============================================================
# Inclusion patterns
# ============================================================


def compile_patterns(patterns: Iterable[str]) -> List[Pattern[str]]:
    """
    Compile inclusion patterns, case-insensitive.

    Plain patterns are literal substrings, so ``[MV]`` matches the text
    "[MV]" rather than acting as a character class. A ``re:`` prefix
    marks a regular expression.

    Raises:
        re.error: If a ``re:`` pattern is not a valid regular expression
    """
    compiled: List[Pattern[str]] = []
    for p in patterns:
        if not p:
            continue
        if p.startswith(REGEX_PREFIX):
            compiled.append(re.compile(p[len(REGEX_PREFIX) :], re.IGNORECASE))
        else:
            compiled.append(re.compile(re.escape(p), re.IGNORECASE))
    return compiled


def matching_pattern(title: str, patterns: Iterable[Pattern[str]]) -> Optional[str]:
    """
    Return the first pattern that matches ``title``, or None.

    matched pattern is for diagnostics only.

    Examples:
        >>> pats = compile_patterns(["[MV]", "[Official Audio]"])
        >>> matching_pattern("ARTIST - Song [mv]", pats) is not None
        True

        >>> matching_pattern("ARTIST - Song (Teaser)", pats) is None
        True
    """
    if not title:
        return None

    for pattern in patterns:
        if pattern.search(title):
            return pattern.pattern
    return None


# ============================================================
# Duration validation
# ============================================================


def meets_min_duration(duration_seconds: Optional[int], min_seconds: int) -> bool:
    """
    Check a video's duration against the configured minimum.

    A minimum of 0 disables the check. An unknown duration counts as 0.

    Examples:
        >>> meets_min_duration(180, 60)
        True

        >>> meets_min_duration(None, 60)
        False

        >>> meets_min_duration(None, 0)
        True
    """
    if min_seconds <= 0:
        return True
    return (duration_seconds or 0) >= min_seconds
