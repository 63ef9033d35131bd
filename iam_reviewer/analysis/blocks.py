"""Group wildcard matches into contiguous per-file blocks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from iam_reviewer.models.review import WildcardBlock, WildcardMatch


@dataclass(slots=True)
class _BlockBuilder:
    file: str
    start_line: int
    end_line: int
    actions: Dict[str, None] = field(default_factory=dict)

    @classmethod
    def starting_at(cls, match: WildcardMatch) -> _BlockBuilder:
        return cls(file=match.file, start_line=match.line, end_line=match.line, actions={match.action: None})

    def accepts(self, match: WildcardMatch) -> bool:
        # same line or the very next one
        return match.file == self.file and match.line <= self.end_line + 1

    def add(self, match: WildcardMatch) -> None:
        self.actions.setdefault(match.action, None)
        self.end_line = max(self.end_line, match.line)

    def close(self) -> WildcardBlock:
        return WildcardBlock(
            file=self.file,
            start_line=self.start_line,
            end_line=self.end_line,
            actions=tuple(self.actions),
        )


def group_into_blocks(matches: Iterable[WildcardMatch]) -> List[WildcardBlock]:
    """Merge matches on the same or adjacent lines of a file into one block.

    Input order does not matter; blocks come out ordered by file, then line.
    Actions inside a block are unique and keep first-seen order.
    """

    ordered = sorted(matches, key=lambda match: (match.file, match.line))
    if not ordered:
        return []

    blocks: List[WildcardBlock] = []
    current = _BlockBuilder.starting_at(ordered[0])
    for match in ordered[1:]:
        if current.accepts(match):
            current.add(match)
        else:
            blocks.append(current.close())
            current = _BlockBuilder.starting_at(match)

    blocks.append(current.close())
    return blocks
