"""Tests for the end-to-end review pipeline."""

from __future__ import annotations

import pytest

from iam_reviewer.analysis.comments import COMMENT_MARKER
from iam_reviewer.analysis.processor import process_files
from iam_reviewer.models.review import FilePatch, ProcessingResult, ProcessingStats

S3_GET = {"s3:Get*": ["s3:getobject", "s3:getbucket"]}


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------


class TestProcessFiles:
    @pytest.mark.asyncio
    async def test_wildcard_with_redundant_explicit_action(self, static_expander, make_patch) -> None:
        files = [FilePatch(path="policy.tf", patch=make_patch(['"s3:Get*"', '"s3:GetObject"']))]

        result = await process_files(files, static_expander(S3_GET))

        assert len(result.comments) == 1
        comment = result.comments[0]
        assert (comment.path, comment.line) == ("policy.tf", 1)
        assert COMMENT_MARKER in comment.body
        assert "s3:getobject" in comment.body
        assert "s3:getbucket" in comment.body
        assert "Redundant actions detected" in comment.body
        assert "- `s3:GetObject`" in comment.body
        assert result.redundant_actions == ["s3:GetObject"]
        assert result.stats == ProcessingStats(
            files_scanned=1, wildcards_found=1, blocks_created=1, actions_expanded=1
        )

    @pytest.mark.asyncio
    async def test_one_comment_per_block(self, static_expander) -> None:
        patch = '@@ -0,0 +1,5 @@\n+"s3:Get*"\n+"kms:Describe*"\n+{\n+}\n+"s3:Get*"'
        expander = static_expander({**S3_GET, "kms:Describe*": ["kms:DescribeKey", "kms:DescribeCustomKeyStores"]})

        result = await process_files([FilePatch(path="policy.json", patch=patch)], expander)

        assert [comment.line for comment in result.comments] == [2, 5]
        assert expander.calls == ["s3:Get*", "kms:Describe*"]
        assert result.stats.wildcards_found == 3
        assert result.stats.blocks_created == 2
        assert result.stats.actions_expanded == 2

    @pytest.mark.asyncio
    async def test_collapse_threshold_forwarded(self, static_expander, make_patch) -> None:
        files = [FilePatch(path="policy.tf", patch=make_patch(['"s3:Get*"']))]
        result = await process_files(files, static_expander(S3_GET), collapse_threshold=1)
        assert "<details>" in result.comments[0].body


# ---------------------------------------------------------------------------
# Early exits
# ---------------------------------------------------------------------------


class TestEarlyExits:
    @pytest.mark.asyncio
    async def test_no_files(self, static_expander) -> None:
        assert await process_files([], static_expander({})) == ProcessingResult()

    @pytest.mark.asyncio
    async def test_no_files_match_patterns(self, static_expander, make_patch) -> None:
        files = [FilePatch(path="README.md", patch=make_patch(['"s3:Get*"']))]
        expander = static_expander(S3_GET)

        result = await process_files(files, expander, file_patterns=["**/*.tf"])

        assert result == ProcessingResult()
        assert expander.calls == []

    @pytest.mark.asyncio
    async def test_no_wildcards(self, static_expander, make_patch) -> None:
        files = [
            FilePatch(path="policy.tf", patch=make_patch(['"s3:GetObject"'])),
            FilePatch(path="image.png"),
        ]
        result = await process_files(files, static_expander(S3_GET))
        assert result.comments == []
        assert result.redundant_actions == []
        assert result.stats == ProcessingStats(files_scanned=2)

    @pytest.mark.asyncio
    async def test_nothing_expands(self, static_expander, make_patch) -> None:
        files = [FilePatch(path="policy.tf", patch=make_patch(['"unknownservice:*"', '"s3:GetObject"']))]
        result = await process_files(files, static_expander({}))
        assert result.comments == []
        assert result.redundant_actions == []
        assert result.stats == ProcessingStats(files_scanned=1, wildcards_found=1, blocks_created=1)


# ---------------------------------------------------------------------------
# File filtering
# ---------------------------------------------------------------------------


class TestFileFiltering:
    @pytest.mark.asyncio
    async def test_only_matching_files_scanned(self, static_expander, make_patch) -> None:
        files = [
            FilePatch(path="infra/policy.tf", patch=make_patch(['"s3:Get*"'])),
            FilePatch(path="docs/notes.md", patch=make_patch(['"s3:Get*"'])),
        ]
        result = await process_files(files, static_expander(S3_GET), file_patterns=["**/*.tf"])
        assert [comment.path for comment in result.comments] == ["infra/policy.tf"]
        assert result.stats.files_scanned == 1

    @pytest.mark.asyncio
    async def test_custom_predicate(self, static_expander, make_patch) -> None:
        seen = []

        def predicate(filename, patterns):
            seen.append((filename, tuple(patterns)))
            return filename.startswith("iam/")

        files = [
            FilePatch(path="iam/a.json", patch=make_patch(['"s3:Get*"'])),
            FilePatch(path="app/b.json", patch=make_patch(['"s3:Get*"'])),
        ]
        result = await process_files(files, static_expander(S3_GET), file_patterns=["x"], predicate=predicate)

        assert seen == [("iam/a.json", ("x",)), ("app/b.json", ("x",))]
        assert [comment.path for comment in result.comments] == ["iam/a.json"]

    @pytest.mark.asyncio
    async def test_redundancy_only_counts_filtered_files(self, static_expander, make_patch) -> None:
        files = [
            FilePatch(path="policy.tf", patch=make_patch(['"s3:Get*"'])),
            FilePatch(path="notes.md", patch=make_patch(['"s3:GetObject"'])),
        ]
        result = await process_files(files, static_expander(S3_GET), file_patterns=["*.tf"])
        assert result.redundant_actions == []
