"""Pydantic models for webhook deliveries waiting in the review queue."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from iam_reviewer.models.review import PullRequestTarget


class RepositoryRef(BaseModel):
    full_name: str


class PullRequestRef(BaseModel):
    number: int
    head_sha: str


class PullRequestPayload(BaseModel):
    """The parts of a ``pull_request`` delivery needed to review it."""

    installation_id: int
    action: str
    repository: RepositoryRef
    pull_request: PullRequestRef

    def to_target(self) -> PullRequestTarget:
        return PullRequestTarget(
            repository=self.repository.full_name,
            pull_number=self.pull_request.number,
            head_sha=self.pull_request.head_sha,
        )


class ReviewJob(BaseModel):
    delivery_id: str
    event: Literal["pull_request"] = "pull_request"
    payload: PullRequestPayload
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
