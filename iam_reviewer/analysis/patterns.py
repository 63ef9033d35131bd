"""Text grammars for IAM permission strings and changed-file filtering."""

from __future__ import annotations

import fnmatch
import re
from typing import List, Sequence

# Quotes are optional around wildcard actions.
IAM_WILDCARD_PATTERN = re.compile(r"""["']?([a-zA-Z0-9-]+:[a-zA-Z0-9*?]*\*[a-zA-Z0-9*?]*)["']?""")

# Explicit actions only count when quoted; bare `service:Word` is too common in prose and code.
IAM_EXPLICIT_PATTERN = re.compile(r"""["']([a-zA-Z0-9-]+:[a-zA-Z][a-zA-Z0-9]*)["']""")


def find_wildcard_actions(line: str) -> List[str]:
    """Return every wildcard-shaped action on the line, left to right."""
    return IAM_WILDCARD_PATTERN.findall(line)


def find_explicit_actions(line: str) -> List[str]:
    """Return every quoted, fully named action on the line, left to right."""
    return IAM_EXPLICIT_PATTERN.findall(line)


def matches_patterns(filename: str, patterns: Sequence[str]) -> bool:
    """Return True if the filename matches any glob; an empty pattern list matches everything."""

    if not patterns:
        return True
    for pattern in patterns:
        if fnmatch.fnmatchcase(filename, pattern):
            return True
        # `**/` also covers files at the repository root
        if pattern.startswith("**/") and fnmatch.fnmatchcase(filename, pattern[3:]):
            return True
    return False
