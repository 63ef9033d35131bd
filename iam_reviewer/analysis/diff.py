"""Extract IAM actions from the added lines of unified diff patches."""

from __future__ import annotations

import re
from typing import Iterable, Iterator, List, Tuple

from iam_reviewer.analysis.patterns import find_explicit_actions, find_wildcard_actions
from iam_reviewer.models.review import DiffExtraction, FilePatch, WildcardMatch

# `@@ -12,7 +14,9 @@ optional section heading` -- group 1 is the destination start line.
_HUNK_HEADER_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")

# `diff --git a/path b/path` -- the b/ side is the destination path.
_DIFF_HEADER_RE = re.compile(r"^diff --git a/.+ b/(.+)$")


def iter_added_lines(patch: str) -> Iterator[Tuple[int, str]]:
    """Yield ``(destination_line, text)`` for every added line of a patch."""

    current_line: int | None = None
    for raw_line in patch.splitlines():
        header = _HUNK_HEADER_RE.match(raw_line)
        if header:
            current_line = int(header.group(1))
            continue
        if current_line is None:
            continue
        # "+++ b/path" only appears before the first hunk, so any "+" line here is content
        if raw_line.startswith("+"):
            yield current_line, raw_line[1:]
            current_line += 1
        elif raw_line.startswith("-") or raw_line.startswith("\\"):
            # removed lines and "\ No newline at end of file" do not exist in the destination
            continue
        else:
            current_line += 1


def extract_from_diff(files: Iterable[FilePatch]) -> DiffExtraction:
    """Collect wildcard matches (with file and line) and explicit actions from added lines."""

    extraction = DiffExtraction()
    for file in files:
        if not file.patch:
            continue
        for line_number, text in iter_added_lines(file.patch):
            for action in dict.fromkeys(find_wildcard_actions(text)):
                extraction.wildcard_matches.append(
                    WildcardMatch(action=action, line=line_number, file=file.path)
                )
            extraction.explicit_actions.extend(find_explicit_actions(text))
    return extraction


def split_unified_diff(diff: str) -> List[FilePatch]:
    """Split a multi-file ``git diff`` into per-file patches.

    Each patch keeps only the hunk lines, the same shape GitHub returns in the
    ``patch`` field of the pull request files API. Deleted files are skipped.
    """

    files: List[FilePatch] = []
    path: str | None = None
    status = "modified"
    hunk_lines: List[str] = []
    in_hunks = False

    def _flush() -> None:
        if path is None:
            return
        added = sum(1 for line in hunk_lines if line.startswith("+"))
        removed = sum(1 for line in hunk_lines if line.startswith("-"))
        files.append(
            FilePatch(
                path=path,
                status=status,
                additions=added,
                deletions=removed,
                patch="\n".join(hunk_lines) if hunk_lines else None,
            )
        )

    for raw_line in diff.splitlines():
        header = _DIFF_HEADER_RE.match(raw_line)
        if header:
            _flush()
            path = header.group(1)
            status = "modified"
            hunk_lines = []
            in_hunks = False
            continue
        if path is None:
            continue
        if not in_hunks:
            if raw_line == "--- /dev/null":
                status = "added"
            elif raw_line == "+++ /dev/null":
                path = None
            elif raw_line.startswith("@@"):
                in_hunks = True
        if in_hunks:
            hunk_lines.append(raw_line)

    _flush()
    return files
