"""Shared data structures for wildcard review processing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass(slots=True)
class FilePatch:
    path: str
    status: str = ""
    additions: int = 0
    deletions: int = 0
    patch: str | None = None


@dataclass(frozen=True, slots=True)
class PullRequestTarget:
    repository: str
    pull_number: int
    head_sha: str | None = None


@dataclass(frozen=True, slots=True)
class WildcardMatch:
    """One wildcard action seen on one added line."""

    action: str
    line: int
    file: str


@dataclass(frozen=True, slots=True)
class WildcardBlock:
    """A contiguous run of lines in one file that carry wildcard actions."""

    file: str
    start_line: int
    end_line: int
    actions: Tuple[str, ...]


@dataclass(slots=True)
class DiffExtraction:
    wildcard_matches: List[WildcardMatch] = field(default_factory=list)
    explicit_actions: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ReviewComment:
    path: str
    line: int
    body: str

    def to_payload(self) -> Dict[str, Any]:
        """Return the inline comment shape accepted by the pull request review API."""
        return {"path": self.path, "line": self.line, "body": self.body, "side": "RIGHT"}


@dataclass(frozen=True, slots=True)
class ProcessingStats:
    files_scanned: int = 0
    wildcards_found: int = 0
    blocks_created: int = 0
    actions_expanded: int = 0


@dataclass(slots=True)
class ProcessingResult:
    comments: List[ReviewComment] = field(default_factory=list)
    redundant_actions: List[str] = field(default_factory=list)
    stats: ProcessingStats = field(default_factory=ProcessingStats)
