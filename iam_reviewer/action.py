#!/usr/bin/env python3
"""Run the IAM wildcard review for the pull request of a GitHub Actions workflow."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Sequence

from iam_reviewer.analysis.diff import split_unified_diff
from iam_reviewer.analysis.processor import process_files
from iam_reviewer.catalog import load_catalog
from iam_reviewer.config import Settings, SettingsError, get_settings, parse_file_patterns
from iam_reviewer.github_client import GitHubClient
from iam_reviewer.logger import get_logger, log_failure, log_success
from iam_reviewer.models.review import ProcessingResult, PullRequestTarget
from iam_reviewer.services.review_processor import review_pull_request

logger = get_logger()


def load_github_event(event_path: str | None = None) -> Dict[str, Any]:
    """Load the GitHub Actions event payload."""
    path = event_path or os.getenv("GITHUB_EVENT_PATH")
    if not path or not Path(path).exists():
        raise FileNotFoundError("GITHUB_EVENT_PATH not set or file not found")

    with open(path, encoding="utf-8") as f:
        return json.load(f)


def get_pull_request_target(event: Dict[str, Any]) -> PullRequestTarget | None:
    """Return the pull request the event refers to, or None for other events."""

    pr = event.get("pull_request")
    if not pr:
        return None
    repository = (event.get("repository") or {}).get("full_name") or os.getenv("GITHUB_REPOSITORY", "")
    if not repository:
        raise ValueError("Repository full name missing from event and GITHUB_REPOSITORY")
    return PullRequestTarget(
        repository=repository,
        pull_number=int(pr["number"]),
        head_sha=(pr.get("head") or {}).get("sha"),
    )


def format_job_summary(result: ProcessingResult) -> str:
    stats = result.stats
    summary = "# IAM Wildcard Expansion\n\n"
    summary += "| Metric | Count |\n"
    summary += "|--------|-------|\n"
    summary += f"| Files scanned | {stats.files_scanned} |\n"
    summary += f"| Wildcards found | {stats.wildcards_found} |\n"
    summary += f"| Blocks created | {stats.blocks_created} |\n"
    summary += f"| Patterns expanded | {stats.actions_expanded} |\n"
    summary += f"| Comments | {len(result.comments)} |\n"

    if result.redundant_actions:
        summary += "\n## Redundant actions\n\n"
        for action in result.redundant_actions:
            summary += f"- `{action}`\n"
    return summary


def write_job_summary(result: ProcessingResult) -> None:
    summary_path = os.getenv("GITHUB_STEP_SUMMARY")
    if not summary_path:
        logger.debug("GITHUB_STEP_SUMMARY not set, skipping summary")
        return

    Path(summary_path).parent.mkdir(parents=True, exist_ok=True)
    with open(summary_path, "a", encoding="utf-8") as f:
        f.write(format_job_summary(result))
    logger.info("Job summary written")


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    update: Dict[str, Any] = {}
    if args.collapse_threshold is not None:
        if args.collapse_threshold < 0:
            raise SettingsError("--collapse-threshold must not be negative.")
        update["collapse_threshold"] = args.collapse_threshold
    if args.file_patterns is not None:
        update["file_patterns"] = parse_file_patterns(args.file_patterns)
    if args.catalog is not None:
        update["action_catalog_path"] = args.catalog
    return settings.model_copy(update=update) if update else settings


async def analyze_diff_file(diff_path: str, settings: Settings) -> ProcessingResult:
    """Review a local unified diff without contacting GitHub."""

    path = Path(diff_path)
    if not path.exists():
        raise FileNotFoundError(f"Diff file not found: {diff_path}")
    files = split_unified_diff(path.read_text(encoding="utf-8"))
    logger.info(f"Loaded {len(files)} file patch(es) from {diff_path}")

    catalog = await load_catalog(settings)
    return await process_files(
        files,
        catalog,
        file_patterns=settings.file_patterns,
        collapse_threshold=settings.collapse_threshold,
    )


async def run_action(settings: Settings, *, event_path: str | None = None, dry_run: bool = False) -> ProcessingResult | None:
    event = load_github_event(event_path)
    target = get_pull_request_target(event)
    if target is None:
        logger.info("This action only runs on pull requests. Skipping.")
        return None

    token = settings.github_token if dry_run else settings.require_token()
    catalog = await load_catalog(settings)

    client = GitHubClient(base_url=settings.normalized_github_api_base_url, token=token)
    try:
        outcome = await review_pull_request(
            client,
            target,
            catalog,
            file_patterns=settings.file_patterns,
            collapse_threshold=settings.collapse_threshold,
            dry_run=dry_run,
        )
    finally:
        await client.aclose()
    return outcome.result


def _print_comments(result: ProcessingResult) -> None:
    payload = {
        "comments": [comment.to_payload() for comment in result.comments],
        "redundant_actions": result.redundant_actions,
        "stats": {
            "files_scanned": result.stats.files_scanned,
            "wildcards_found": result.stats.wildcards_found,
            "blocks_created": result.stats.blocks_created,
            "actions_expanded": result.stats.actions_expanded,
        },
    }
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Expand IAM wildcard actions added in a pull request")
    parser.add_argument("--event-path", default=None, help="Path to GitHub event JSON (defaults to GITHUB_EVENT_PATH)")
    parser.add_argument("--collapse-threshold", type=int, default=None, help="Collapse action lists longer than this")
    parser.add_argument("--file-patterns", default=None, help="Comma- or newline-separated globs of files to scan")
    parser.add_argument("--catalog", default=None, help="Path to a JSON IAM action catalog")
    parser.add_argument("--diff-file", default=None, help="Review a local unified diff and print the comments")
    parser.add_argument("--dry-run", action="store_true", help="Analyse the pull request without posting comments")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = _apply_overrides(get_settings(), args)
        if args.diff_file:
            result = asyncio.run(analyze_diff_file(args.diff_file, settings))
            _print_comments(result)
            return 0

        result = asyncio.run(run_action(settings, event_path=args.event_path, dry_run=args.dry_run))
        if result is None:
            return 0
        if args.dry_run:
            _print_comments(result)
        write_job_summary(result)
        log_success(logger, f"Wildcard review complete ({len(result.comments)} comment(s))")
        return 0
    except Exception as exc:
        log_failure(logger, "IAM wildcard review failed", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
