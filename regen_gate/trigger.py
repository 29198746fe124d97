"""Trigger filtering for pull request runs.

Patterns follow the platform's filter syntax: ``*`` matches within a single
path segment, ``**`` matches across segments, ``?`` matches one character
other than ``/`` and a leading ``!`` negates a pattern. When several
patterns match, the last one wins.
"""

from __future__ import annotations

import functools
import logging
import re
from typing import Any, Dict, Iterable, Sequence

from .events import PullRequestEvent

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Translate a filter ``pattern`` into a compiled regular expression."""

    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**", i):
                if pattern.startswith("**/", i):
                    out.append("(?:.*/)?")
                    i += 3
                else:
                    out.append(".*")
                    i += 2
                continue
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(char))
            else:
                body = pattern[i + 1 : end].replace("\\", "\\\\")
                out.append(f"[{body}]")
                i = end
        else:
            out.append(re.escape(char))
        i += 1
    return re.compile("".join(out) + r"\Z")


def matches(value: str, patterns: Sequence[str]) -> bool:
    """Return ``True`` if ``value`` is selected by ``patterns``."""

    selected = False
    for pattern in patterns:
        negated = pattern.startswith("!")
        body = pattern[1:] if negated else pattern
        if compile_pattern(body).match(value):
            selected = not negated
    return selected


def branch_matches(branch: str, cfg: Dict[str, Any]) -> bool:
    branches = cfg["trigger"].get("branches") or []
    if not branches:
        return True
    return matches(branch, branches)


def paths_match(changed: Iterable[str], cfg: Dict[str, Any]) -> bool:
    patterns = cfg["trigger"].get("paths") or []
    if not patterns:
        return True
    return any(matches(path, patterns) for path in changed)


def should_run(
    cfg: Dict[str, Any],
    *,
    event: PullRequestEvent | None = None,
    changed_files: Iterable[str] | None = None,
) -> bool:
    """Decide whether the workflow applies to a pull request.

    The base branch comes from ``event`` when given, otherwise from
    ``cfg["base_ref"]``. Without a changed-file list the path filter is
    considered satisfied.
    """

    base = event.base_ref if event is not None else cfg["base_ref"]
    if not branch_matches(base, cfg):
        logger.info("base branch %s is not a trigger branch", base)
        return False

    files = changed_files
    if files is None and event is not None:
        files = event.changed_files
    if files is None:
        return True
    files = list(files)
    if not paths_match(files, cfg):
        logger.info("none of %d changed files match the trigger paths", len(files))
        return False
    return True


__all__ = ["compile_pattern", "matches", "branch_matches", "paths_match", "should_run"]
