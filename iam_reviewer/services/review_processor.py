"""Publish wildcard expansion reviews to pull requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from iam_reviewer.analysis.comments import COMMENT_MARKER
from iam_reviewer.analysis.expansion import WildcardExpander
from iam_reviewer.analysis.processor import process_files
from iam_reviewer.catalog import ActionCatalog, CatalogError, load_catalog
from iam_reviewer.config import SettingsError, get_settings
from iam_reviewer.github_client import GitHubAPIError, GitHubAppAuth, GitHubClient
from iam_reviewer.logger import get_logger, log_failure, log_success, log_timing, log_with_context
from iam_reviewer.models.review import ProcessingResult, PullRequestTarget
from iam_reviewer.queue.models import ReviewJob
from iam_reviewer.services.review_context import fetch_pull_request_files

logger = get_logger()


class ReviewProcessorError(RuntimeError):
    """Raised when review processing fails."""

    def __init__(self, message: str, step: str, original_error: Exception | None = None):
        super().__init__(message)
        self.step = step
        self.original_error = original_error


@dataclass(slots=True)
class ReviewOutcome:
    result: ProcessingResult
    deleted_comments: int = 0
    posted_comments: int = 0


async def delete_existing_comments(client: GitHubClient, target: PullRequestTarget) -> int:
    """Delete review comments left on the pull request by earlier runs."""

    comments = await client.list_review_comments(full_name=target.repository, pull_number=target.pull_number)
    ours = [comment for comment in comments if COMMENT_MARKER in (comment.get("body") or "")]
    for comment in ours:
        await client.delete_review_comment(full_name=target.repository, comment_id=comment["id"])
    return len(ours)


async def review_pull_request(
    client: GitHubClient,
    target: PullRequestTarget,
    expander: WildcardExpander,
    *,
    file_patterns: Sequence[str] = (),
    collapse_threshold: int,
    dry_run: bool = False,
) -> ReviewOutcome:
    """Analyse a pull request and replace earlier wildcard comments with fresh ones.

    Analysis finishes before anything on the pull request is touched, so a
    failed expansion never leaves the pull request half updated.
    """

    ctx_logger = log_with_context(logger, repository=target.repository, pull_number=target.pull_number)
    ctx_logger.info(f"Analyzing PR #{target.pull_number} in {target.repository}")

    files = await fetch_pull_request_files(client, target)
    with log_timing(ctx_logger, "process_files"):
        result = await process_files(
            files,
            expander,
            file_patterns=file_patterns,
            collapse_threshold=collapse_threshold,
        )

    if result.redundant_actions:
        ctx_logger.warning(
            f"Found {len(result.redundant_actions)} redundant action(s): {', '.join(result.redundant_actions)}"
        )

    outcome = ReviewOutcome(result=result)
    if dry_run:
        ctx_logger.info(f"Dry run: {len(result.comments)} comment(s) not published")
        return outcome

    outcome.deleted_comments = await delete_existing_comments(client, target)
    if outcome.deleted_comments:
        ctx_logger.info(f"Deleted {outcome.deleted_comments} existing comment(s) from previous runs")

    if not result.comments:
        ctx_logger.info("No comments to post")
        return outcome

    await client.create_pull_request_review(
        full_name=target.repository,
        pull_number=target.pull_number,
        commit_id=target.head_sha,
        comments=[comment.to_payload() for comment in result.comments],
    )
    outcome.posted_comments = len(result.comments)
    ctx_logger.info(f"Posted review with {outcome.posted_comments} comment(s)")
    return outcome


class ReviewProcessor:
    """Queue handler that reviews pull requests on behalf of the GitHub App."""

    def __init__(self, catalog: ActionCatalog | None = None) -> None:
        self._catalog = catalog

    async def _get_catalog(self) -> ActionCatalog:
        if self._catalog is None:
            self._catalog = await load_catalog(get_settings())
        return self._catalog

    async def __call__(self, job: ReviewJob) -> None:
        payload = job.payload
        ctx_logger = log_with_context(
            logger,
            delivery_id=job.delivery_id,
            repository=payload.repository.full_name,
            pull_number=payload.pull_request.number,
        )
        ctx_logger.info("=== PROCESSOR: Starting wildcard review ===")

        try:
            settings = get_settings()
            credentials = settings.require_app_credentials()
        except SettingsError as exc:
            log_failure(logger, "Configuration missing", exc, delivery_id=job.delivery_id)
            raise ReviewProcessorError("Configuration incomplete", "load_configuration", exc) from exc

        try:
            with log_timing(ctx_logger, "load_catalog"):
                catalog = await self._get_catalog()
        except CatalogError as exc:
            log_failure(logger, f"Failed to load IAM action catalog: {exc}", exc, delivery_id=job.delivery_id)
            raise ReviewProcessorError("Catalog unavailable", "load_catalog", exc) from exc

        target = payload.to_target()

        app_auth = GitHubAppAuth(
            base_url=settings.normalized_github_api_base_url,
            app_id=credentials.github_app_id,
            private_key_pem=credentials.github_private_key_pem,
        )
        github_client = None
        try:
            github_client = await app_auth.installation_client(payload.installation_id)
            outcome = await review_pull_request(
                github_client,
                target,
                catalog,
                file_patterns=settings.file_patterns,
                collapse_threshold=settings.collapse_threshold,
            )
        except GitHubAPIError as exc:
            log_failure(logger, f"GitHub request failed (status={exc.status_code})", exc, delivery_id=job.delivery_id)
            raise ReviewProcessorError("GitHub request failed", "review_pull_request", exc) from exc
        finally:
            if github_client:
                await github_client.aclose()
            await app_auth.aclose()

        log_success(
            logger,
            f"Wildcard review finished for {target.repository}#{target.pull_number} "
            f"(posted={outcome.posted_comments}, deleted={outcome.deleted_comments})",
            delivery_id=job.delivery_id,
        )
