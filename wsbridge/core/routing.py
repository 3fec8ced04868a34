"""Glob-based tag routing for outbound fan-out.

Tags and send directives are ``/``-delimited paths such as
``SERVER/1/NODE``. Patterns support:

- ``*`` (and the other fnmatch wildcards) within one segment
- ``**`` for zero or more whole segments
- ``{a,b}`` alternation, nesting allowed
- base-name matching: a pattern may match the trailing segments of a tag

Directives can arrive from remote peers, so patterns whose alternation
would expand past a limit, or nest deeper than ``MAX_BRACE_DEPTH``, never
match instead of being expanded.
"""

import fnmatch
import logging
from collections.abc import Iterable
from functools import lru_cache
from typing import Any

from wsbridge.config import get_settings

logger = logging.getLogger("bridge")

SEPARATOR = "/"
GLOBSTAR = "**"

MAX_BRACE_EXPANSIONS = 256
MAX_BRACE_DEPTH = 8


def _split_alternatives(body: str) -> list[str]:
    """Split a brace body on commas that are not inside a nested group."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in body:
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        current.append(ch)
    parts.append("".join(current))
    return parts


def _closing_brace(pattern: str, start: int) -> int:
    """Index of the brace closing the group opened at ``start``, or -1."""
    depth = 0
    for index in range(start, len(pattern)):
        if pattern[index] == "{":
            depth += 1
        elif pattern[index] == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


def brace_depth(pattern: str) -> int:
    """Deepest brace nesting in ``pattern``."""
    depth = deepest = 0
    for ch in pattern:
        if ch == "{":
            depth += 1
            deepest = max(deepest, depth)
        elif ch == "}" and depth:
            depth -= 1
    return deepest


@lru_cache(maxsize=1024)
def brace_expansion_count(pattern: str, limit: int = MAX_BRACE_EXPANSIONS) -> int:
    """Count the alternatives ``expand_braces`` would produce without building them.

    Counting stops as soon as the result exceeds ``limit``; ``limit + 1`` is
    returned in that case.
    """
    total = 1
    position = 0
    while True:
        start = pattern.find("{", position)
        if start == -1:
            return total
        end = _closing_brace(pattern, start)
        if end == -1:
            return total

        alternatives = _split_alternatives(pattern[start + 1 : end])
        if len(alternatives) > 1:
            options = 0
            for alternative in alternatives:
                options += brace_expansion_count(alternative, limit)
                if options > limit:
                    return limit + 1
            total *= options
            if total > limit:
                return limit + 1
        position = end + 1


def pattern_allowed(pattern: str, max_expansions: int = MAX_BRACE_EXPANSIONS) -> bool:
    """Check that ``pattern`` stays within the nesting and expansion limits."""
    if "{" not in pattern:
        return True
    if brace_depth(pattern) > MAX_BRACE_DEPTH:
        return False
    return brace_expansion_count(pattern, max_expansions) <= max_expansions


@lru_cache(maxsize=1024)
def expand_braces(pattern: str) -> tuple[str, ...]:
    """Expand ``{a,b}`` groups into every concrete alternative.

    Unbalanced braces and single-item groups such as ``{a}`` stay literal.
    Callers handling untrusted patterns check ``pattern_allowed`` first.
    """
    expanded = [""]
    position = 0
    while True:
        start = pattern.find("{", position)
        end = _closing_brace(pattern, start) if start != -1 else -1
        if end == -1:
            tail = pattern[position:]
            return tuple(prefix + tail for prefix in expanded)

        head = pattern[position:start]
        alternatives = _split_alternatives(pattern[start + 1 : end])
        if len(alternatives) < 2:
            options: list[str] = [pattern[start : end + 1]]
        else:
            options = [option for alternative in alternatives for option in expand_braces(alternative)]

        expanded = [prefix + head + option for prefix in expanded for option in options]
        position = end + 1


@lru_cache(maxsize=4096)
def _match_segments(segments: tuple[str, ...], patterns: tuple[str, ...]) -> bool:
    if not patterns:
        return not segments

    head, rest = patterns[0], patterns[1:]
    if head == GLOBSTAR:
        return any(_match_segments(segments[i:], rest) for i in range(len(segments) + 1))
    if not segments:
        return False
    return fnmatch.fnmatchcase(segments[0], head) and _match_segments(segments[1:], rest)


def _pattern_segments(pattern: str) -> tuple[str, ...]:
    segments: list[str] = []
    for segment in pattern.split(SEPARATOR):
        # Consecutive globstars match the same as one
        if segment == GLOBSTAR and segments and segments[-1] == GLOBSTAR:
            continue
        segments.append(segment)
    return tuple(segments)


def tag_matches(tag: str, pattern: str, max_expansions: int = MAX_BRACE_EXPANSIONS) -> bool:
    """Check whether one tag matches one directive pattern."""
    if tag == pattern:
        return True
    if not pattern_allowed(pattern, max_expansions):
        return False

    segments = tuple(tag.split(SEPARATOR))
    for alternative in expand_braces(pattern):
        pattern_segments = _pattern_segments(alternative)
        # Any trailing run of the tag's segments may satisfy the pattern
        for offset in range(len(segments)):
            if _match_segments(segments[offset:], pattern_segments):
                return True
    return False


def normalize_directive(directive: Any) -> list[Any]:
    """Normalize a scalar send directive to a one-element list."""
    if isinstance(directive, (list, tuple, set, frozenset)):
        return list(directive)
    return [directive]


class TagRouter:
    """Matches send directives against one bridge instance's tags."""

    def __init__(self, tags: Iterable[str], max_expansions: int | None = None):
        self.tags: tuple[str, ...] = tuple(tags)
        if max_expansions is None:
            max_expansions = get_settings().bridge_max_brace_expansions
        self.max_expansions = max_expansions

    def matches(self, directive: Any) -> bool:
        """True if any configured tag matches any string in ``directive``."""
        if not self.tags:
            return False

        for pattern in normalize_directive(directive):
            if not isinstance(pattern, str):
                continue
            if not pattern_allowed(pattern, self.max_expansions):
                logger.warning(
                    "Send directive pattern exceeds brace limits",
                    extra={
                        "service": "bridge",
                        "directive": pattern[:80],
                        "metadata": {"length": len(pattern), "max_expansions": self.max_expansions},
                    },
                )
                continue
            if any(tag_matches(tag, pattern, self.max_expansions) for tag in self.tags):
                return True
        return False
