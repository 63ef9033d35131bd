"""GitHub webhook ingestion."""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from iam_reviewer.config import AppCredentials
from iam_reviewer.dependencies import app_credentials_dependency
from iam_reviewer.logger import get_logger, log_failure, log_success, log_with_context
from iam_reviewer.queue import enqueue_review_job
from iam_reviewer.queue.models import PullRequestPayload, PullRequestRef, RepositoryRef, ReviewJob

router = APIRouter()

logger = get_logger()

DELIVERY_TTL_SECONDS = 60 * 60  # retain delivery IDs for one hour
_delivery_cache: Dict[str, float] = {}
_supported_pr_actions = {"opened", "reopened", "synchronize", "ready_for_review"}


class IgnoreEventError(RuntimeError):
    """Raised when a webhook event should be acknowledged but not processed."""


def build_github_signature(secret: str, payload: bytes) -> str:
    """Return the GitHub-style HMAC signature for the given payload."""

    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_github_signature(secret: str, payload: bytes, raw_signature: str | None) -> bool:
    if not raw_signature:
        return False
    return hmac.compare_digest(build_github_signature(secret, payload), raw_signature)


def _prune_delivery_cache(now: float) -> None:
    expiry_threshold = now - DELIVERY_TTL_SECONDS
    expired = [key for key, timestamp in _delivery_cache.items() if timestamp < expiry_threshold]
    for key in expired:
        _delivery_cache.pop(key, None)


def _is_duplicate(delivery_id: str, now: float) -> bool:
    _prune_delivery_cache(now)
    return delivery_id in _delivery_cache


def reset_delivery_cache() -> None:
    """Forget every seen delivery (primarily for tests)."""
    _delivery_cache.clear()


def build_pull_request_payload(event: str, payload: Dict[str, Any]) -> PullRequestPayload:
    if event != "pull_request":
        raise IgnoreEventError(f"Event '{event}' is not handled.")

    action = payload.get("action")
    if action not in _supported_pr_actions:
        raise IgnoreEventError(f"Pull request action '{action}' not actionable.")

    installation = payload.get("installation") or {}
    repository = payload.get("repository") or {}
    pull_request = payload.get("pull_request") or {}

    if not installation.get("id"):
        raise ValueError("Pull request event missing installation id.")
    if not repository.get("full_name"):
        raise ValueError("Pull request event missing repository metadata.")
    if not pull_request.get("number"):
        raise ValueError("Pull request payload missing number.")

    head_sha = (pull_request.get("head") or {}).get("sha")
    if not head_sha:
        raise ValueError("Pull request payload missing head commit sha.")

    return PullRequestPayload(
        installation_id=installation["id"],
        action=action,
        repository=RepositoryRef(full_name=repository["full_name"]),
        pull_request=PullRequestRef(number=pull_request["number"], head_sha=head_sha),
    )


@router.post("/webhook", summary="Receive GitHub webhooks")
async def receive_webhook(
    request: Request,
    credentials: AppCredentials = Depends(app_credentials_dependency),
) -> Dict[str, str]:
    """Verify webhook signatures, dedupe deliveries, and enqueue pull request reviews."""

    start_time = time.time()
    delivery_id = request.headers.get("X-GitHub-Delivery")
    event = request.headers.get("X-GitHub-Event")

    if not delivery_id:
        log_failure(logger, "Missing X-GitHub-Delivery header", event_type=event)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing X-GitHub-Delivery header")
    if not event:
        log_failure(logger, "Missing X-GitHub-Event header", delivery_id=delivery_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing X-GitHub-Event header")

    ctx_logger = log_with_context(logger, delivery_id=delivery_id, event_type=event)

    raw_body = await request.body()
    if not verify_github_signature(
        credentials.github_webhook_secret, raw_body, request.headers.get("X-Hub-Signature-256")
    ):
        log_failure(logger, "Webhook signature verification failed", delivery_id=delivery_id, event_type=event)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        log_failure(logger, "Invalid JSON payload", exc, delivery_id=delivery_id, event_type=event)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc

    now = time.time()
    if _is_duplicate(delivery_id, now):
        ctx_logger.info("Duplicate delivery ignored")
        return {"status": "ignored", "reason": "duplicate"}

    try:
        job_payload = build_pull_request_payload(event, payload)
        job = ReviewJob(delivery_id=delivery_id, payload=job_payload)
    except IgnoreEventError as exc:
        ctx_logger.debug(f"Webhook ignored: {exc}")
        return {"status": "ignored", "reason": str(exc)}
    except (ValueError, ValidationError) as exc:
        log_failure(logger, f"Invalid payload structure: {exc}", exc, delivery_id=delivery_id, event_type=event)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    await enqueue_review_job(job)
    _delivery_cache[delivery_id] = now

    log_success(
        logger,
        f"Enqueued wildcard review for {job_payload.repository.full_name}#{job_payload.pull_request.number} "
        f"(processed in {time.time() - start_time:.3f}s)",
        delivery_id=delivery_id,
        event_type=event,
    )
    return {"status": "accepted"}
