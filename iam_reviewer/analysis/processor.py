"""Run the wildcard detection pipeline over a set of changed files."""

from __future__ import annotations

from typing import Callable, Sequence

from iam_reviewer.analysis.blocks import group_into_blocks
from iam_reviewer.analysis.comments import DEFAULT_COLLAPSE_THRESHOLD, create_review_comments
from iam_reviewer.analysis.diff import extract_from_diff
from iam_reviewer.analysis.expansion import WildcardExpander, expand_wildcards, find_redundant_actions
from iam_reviewer.analysis.patterns import matches_patterns
from iam_reviewer.logger import get_logger
from iam_reviewer.models.review import FilePatch, ProcessingResult, ProcessingStats

logger = get_logger()

FilePredicate = Callable[[str, Sequence[str]], bool]


async def process_files(
    files: Sequence[FilePatch],
    expander: WildcardExpander,
    *,
    file_patterns: Sequence[str] = (),
    collapse_threshold: int = DEFAULT_COLLAPSE_THRESHOLD,
    predicate: FilePredicate = matches_patterns,
) -> ProcessingResult:
    """Extract, group, expand and render review comments for the given files.

    Stops early with partial statistics when no files match the patterns, when no
    wildcard is found, or when no wildcard expands to anything.
    """

    filtered = [file for file in files if predicate(file.path, file_patterns)] if file_patterns else list(files)
    logger.debug(f"Scanning {len(filtered)} of {len(files)} changed file(s)")
    if not filtered:
        return ProcessingResult()

    extraction = extract_from_diff(filtered)
    matches = extraction.wildcard_matches
    if not matches:
        logger.info("No IAM wildcard actions found in the changes")
        return ProcessingResult(stats=ProcessingStats(files_scanned=len(filtered)))

    logger.info(f"Found {len(matches)} IAM wildcard action(s)")
    if extraction.explicit_actions:
        logger.info(f"Found {len(extraction.explicit_actions)} explicit action(s)")

    blocks = group_into_blocks(matches)
    logger.info(f"Grouped into {len(blocks)} block(s)")

    expanded = await expand_wildcards((match.action for match in matches), expander)
    if not expanded:
        logger.info("No wildcard actions could be expanded")
        return ProcessingResult(
            stats=ProcessingStats(
                files_scanned=len(filtered),
                wildcards_found=len(matches),
                blocks_created=len(blocks),
            )
        )

    redundant = find_redundant_actions(extraction.explicit_actions, expanded)
    comments = create_review_comments(blocks, expanded, redundant, collapse_threshold)

    return ProcessingResult(
        comments=comments,
        redundant_actions=redundant,
        stats=ProcessingStats(
            files_scanned=len(filtered),
            wildcards_found=len(matches),
            blocks_created=len(blocks),
            actions_expanded=len(expanded),
        ),
    )
