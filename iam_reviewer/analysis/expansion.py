"""Wildcard expansion and redundancy detection."""

from __future__ import annotations

from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Sequence

from iam_reviewer.logger import get_logger

logger = get_logger()

WildcardExpander = Callable[[str], Awaitable[Sequence[str]]]


def _is_real_expansion(pattern: str, expanded: Sequence[str]) -> bool:
    # A single result equal to the input means nothing matched the pattern.
    if len(expanded) > 1:
        return True
    return len(expanded) == 1 and expanded[0].lower() != pattern.lower()


async def expand_wildcards(
    actions: Iterable[str], expander: WildcardExpander
) -> Dict[str, List[str]]:
    """Expand each distinct pattern exactly once.

    Patterns whose expansion is empty or just echoes the pattern are left out of
    the returned map. Errors raised by the expander propagate to the caller.
    """

    expanded: Dict[str, List[str]] = {}
    for action in dict.fromkeys(actions):
        result = list(await expander(action))
        if _is_real_expansion(action, result):
            expanded[action] = result
            logger.debug(f"Expanded {action} to {len(result)} action(s)")
        else:
            logger.debug(f"Skipping {action}: no matching actions")
    return expanded


def find_redundant_actions(
    explicit_actions: Iterable[str], expanded_actions: Mapping[str, Sequence[str]]
) -> List[str]:
    """Return explicit actions already covered by some wildcard expansion (case-insensitive)."""

    covered = {action.lower() for actions in expanded_actions.values() for action in actions}
    return [action for action in explicit_actions if action.lower() in covered]
