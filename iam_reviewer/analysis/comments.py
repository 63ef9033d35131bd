"""Render review comments for wildcard blocks."""

from __future__ import annotations

from typing import List, Mapping, Sequence

from iam_reviewer.analysis.docs import format_action_with_link
from iam_reviewer.models.review import ReviewComment, WildcardBlock

COMMENT_TITLE = "**🔍 IAM Wildcard Expansion**"
# Every posted body starts with the title, so it doubles as the rerun marker.
COMMENT_MARKER = COMMENT_TITLE
DEFAULT_COLLAPSE_THRESHOLD = 5


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"- `{item}`" for item in items)


def format_comment(
    original_actions: Sequence[str],
    expanded_actions: Sequence[str],
    *,
    collapse_threshold: int = DEFAULT_COLLAPSE_THRESHOLD,
    redundant_actions: Sequence[str] | None = None,
) -> str:
    """Build the markdown body for one block.

    The expanded list is folded into a ``<details>`` element only when it is
    strictly longer than ``collapse_threshold``.
    """

    if len(original_actions) == 1:
        header = f"`{original_actions[0]}` expands to {len(expanded_actions)} action(s):"
        patterns = ""
    else:
        header = (
            f"{len(original_actions)} wildcard patterns expand to "
            f"{len(expanded_actions)} action(s):"
        )
        patterns = f"\n**Patterns:**\n{_bullets(original_actions)}"

    warning = ""
    if redundant_actions:
        warning = (
            "\n\n**⚠️ Redundant actions detected:**\n"
            "The following explicit actions are already covered by the wildcard pattern(s) above:\n"
            f"{_bullets(redundant_actions)}"
        )

    actions_list = "\n".join(f"- {format_action_with_link(action)}" for action in expanded_actions)
    if len(expanded_actions) > collapse_threshold:
        actions_block = (
            "<details>\n<summary>Click to expand</summary>\n\n"
            f"{actions_list}\n\n</details>"
        )
    else:
        actions_block = actions_list

    return f"{COMMENT_TITLE}\n\n{header}{patterns}{warning}\n\n{actions_block}"


def create_review_comments(
    blocks: Sequence[WildcardBlock],
    expanded_actions: Mapping[str, Sequence[str]],
    redundant_actions: Sequence[str],
    collapse_threshold: int = DEFAULT_COLLAPSE_THRESHOLD,
) -> List[ReviewComment]:
    """Create one comment per block that has at least one expanded pattern, anchored at its last line."""

    comments: List[ReviewComment] = []
    for block in blocks:
        original_actions: List[str] = []
        all_expanded: List[str] = []
        for action in block.actions:
            expanded = expanded_actions.get(action)
            if expanded:
                original_actions.append(action)
                all_expanded.extend(expanded)

        if not all_expanded:
            continue

        unique_expanded = sorted(dict.fromkeys(all_expanded), key=str.lower)
        comments.append(
            ReviewComment(
                path=block.file,
                line=block.end_line,
                body=format_comment(
                    original_actions,
                    unique_expanded,
                    collapse_threshold=collapse_threshold,
                    redundant_actions=redundant_actions,
                ),
            )
        )
    return comments
