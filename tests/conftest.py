"""Shared test fixtures."""

from __future__ import annotations

from typing import Callable, Dict, List, Sequence

import pytest

from iam_reviewer.config import reset_settings_cache


class StaticExpander:
    """Expansion capability backed by a fixed mapping; unknown patterns echo back."""

    def __init__(self, mapping: Dict[str, List[str]]) -> None:
        self.mapping = mapping
        self.calls: List[str] = []

    async def __call__(self, pattern: str) -> List[str]:
        self.calls.append(pattern)
        return list(self.mapping.get(pattern, [pattern]))


@pytest.fixture
def static_expander() -> Callable[[Dict[str, List[str]]], StaticExpander]:
    return StaticExpander


@pytest.fixture
def make_patch() -> Callable[[Sequence[str]], str]:
    """Build a patch that adds each given line at line 1, 2, 3, ... of the destination."""

    def _make(lines: Sequence[str]) -> str:
        return "\n".join(f"@@ -0,0 +{index + 1} @@\n+{line}" for index, line in enumerate(lines))

    return _make


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "GITHUB_API_URL",
        "GITHUB_TOKEN",
        "GITHUB_APP_ID",
        "GITHUB_PRIVATE_KEY",
        "GITHUB_WEBHOOK_SECRET",
        "COLLAPSE_THRESHOLD",
        "FILE_PATTERNS",
        "IAM_ACTIONS_CATALOG",
        "IAM_ACTIONS_CATALOG_URL",
        "GITHUB_EVENT_PATH",
        "GITHUB_STEP_SUMMARY",
        "GITHUB_REPOSITORY",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings_cache()
    yield
    reset_settings_cache()
