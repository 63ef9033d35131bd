"""Helpers to turn GitHub pull request data into review inputs."""

from __future__ import annotations

from typing import Any, Dict, List

from iam_reviewer.github_client import GitHubAPIError, GitHubClient
from iam_reviewer.logger import get_logger, log_timing, log_with_context
from iam_reviewer.models.review import FilePatch, PullRequestTarget

logger = get_logger()


def serialize_files(files: List[Dict[str, Any]]) -> List[FilePatch]:
    serialized: List[FilePatch] = []
    skipped_count = 0
    for file in files:
        # GitHub API may return "filename" or "path" depending on endpoint
        path = file.get("filename") or file.get("path")
        if not path:
            logger.warning(f"Skipping file entry missing filename/path: {file}")
            skipped_count += 1
            continue
        serialized.append(
            FilePatch(
                path=path,
                status=file.get("status", ""),
                additions=int(file.get("additions", 0) or 0),
                deletions=int(file.get("deletions", 0) or 0),
                patch=file.get("patch"),
            )
        )
    if skipped_count > 0:
        logger.warning(f"Skipped {skipped_count} file(s) due to missing path/filename")
    logger.debug(f"Serialized {len(serialized)} file(s) from {len(files)} file entries")
    return serialized


async def fetch_pull_request_files(client: GitHubClient, target: PullRequestTarget) -> List[FilePatch]:
    ctx_logger = log_with_context(logger, repository=target.repository, pull_number=target.pull_number)
    try:
        with log_timing(ctx_logger, "fetch_pr_files"):
            files = await client.list_pull_request_files(
                full_name=target.repository,
                pull_number=target.pull_number,
            )
    except GitHubAPIError as exc:
        if exc.status_code == 404:
            ctx_logger.error(f"PR or repository not found (404): {exc}")
        elif exc.status_code == 403:
            ctx_logger.error(f"Permission denied (403): {exc}")
        elif exc.status_code == 429:
            ctx_logger.error(f"Rate limit exceeded (429): {exc}")
        else:
            ctx_logger.error(f"GitHub API error ({exc.status_code}): {exc}")
        raise

    serialized = serialize_files(files)
    if not serialized:
        ctx_logger.warning(f"No files changed in PR #{target.pull_number}")
    ctx_logger.info(f"Fetched {len(serialized)} changed file(s) for PR #{target.pull_number}")
    return serialized
