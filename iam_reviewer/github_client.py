"""GitHub API client helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List

import httpx
import jwt


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, status_code: int, response_body: Any | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


DEFAULT_ACCEPT_HEADER = "application/vnd.github+json"
DEFAULT_API_VERSION = "2022-11-28"
DEFAULT_USER_AGENT = "IAM-Wildcard-Reviewer/1.0"
PAGE_SIZE = 100


def _response_detail(response: httpx.Response) -> Any | None:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _split_full_name(full_name: str) -> tuple[str, str]:
    if "/" not in full_name:
        raise ValueError(f"Repository full name '{full_name}' is invalid.")
    owner, repo = full_name.split("/", 1)
    return owner, repo


class GitHubClient:
    """Token-authenticated client for the pull request endpoints used by the reviewer."""

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)
        self._owns_client = client is None
        self._headers = {
            "User-Agent": user_agent,
            "Accept": DEFAULT_ACCEPT_HEADER,
            "X-GitHub-Api-Version": DEFAULT_API_VERSION,
        }
        # anonymous access is enough for dry runs on public repositories
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        response = await self._client.request(method, url, headers=self._headers, params=params, json=json)
        if response.status_code >= 400:
            raise GitHubAPIError(
                f"GitHub API request to {url} failed with status {response.status_code}.",
                response.status_code,
                _response_detail(response),
            )
        return response

    async def _paginate(self, url: str, *, what: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            response = await self._request("GET", url, params={"per_page": PAGE_SIZE, "page": page})
            batch = response.json()
            if not isinstance(batch, list):
                raise GitHubAPIError(
                    f"Unexpected response while listing {what}.",
                    response.status_code,
                    batch,
                )
            items.extend(batch)
            if len(batch) < PAGE_SIZE:
                break
            page += 1
        return items

    async def list_pull_request_files(self, *, full_name: str, pull_number: int) -> List[Dict[str, Any]]:
        owner, repo = _split_full_name(full_name)
        return await self._paginate(
            f"/repos/{owner}/{repo}/pulls/{pull_number}/files", what="pull request files"
        )

    async def list_review_comments(self, *, full_name: str, pull_number: int) -> List[Dict[str, Any]]:
        owner, repo = _split_full_name(full_name)
        return await self._paginate(
            f"/repos/{owner}/{repo}/pulls/{pull_number}/comments", what="review comments"
        )

    async def delete_review_comment(self, *, full_name: str, comment_id: int) -> None:
        owner, repo = _split_full_name(full_name)
        await self._request("DELETE", f"/repos/{owner}/{repo}/pulls/comments/{comment_id}")

    async def create_pull_request_review(
        self,
        *,
        full_name: str,
        pull_number: int,
        commit_id: str | None,
        comments: Iterable[Dict[str, Any]],
        body: str | None = None,
        event: str = "COMMENT",
    ) -> Dict[str, Any]:
        owner, repo = _split_full_name(full_name)
        payload: Dict[str, Any] = {"event": event, "comments": list(comments)}
        if commit_id:
            payload["commit_id"] = commit_id
        if body:
            payload["body"] = body
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{pull_number}/reviews",
            json=payload,
        )
        return response.json()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance owns it."""

        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


@dataclass
class InstallationToken:
    token: str
    expires_at: datetime

    def is_active(self, *, skew_seconds: int = 60) -> bool:
        """Return True if the token is still valid accounting for clock skew."""

        return self.expires_at - timedelta(seconds=skew_seconds) > datetime.now(timezone.utc)


class GitHubAppAuth:
    """Exchange GitHub App credentials for installation-scoped clients."""

    def __init__(
        self,
        *,
        base_url: str,
        app_id: int,
        private_key_pem: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._app_id = app_id
        # Environment variables often carry the key with escaped newlines
        self._private_key = private_key_pem.replace("\\n", "\n")
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)
        self._owns_client = client is None
        self._installation_tokens: Dict[int, InstallationToken] = {}

    def _build_jwt(self) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "iat": int((now - timedelta(seconds=60)).timestamp()),
            "exp": int((now + timedelta(minutes=10)).timestamp()),
            "iss": str(self._app_id),
        }
        try:
            return jwt.encode(payload, self._private_key, algorithm="RS256")
        except Exception as exc:
            raise GitHubAPIError(
                f"Failed to encode JWT: {exc}. Check that GITHUB_PRIVATE_KEY is a valid RSA private key in PEM format.",
                0,
                None,
            ) from exc

    async def _fetch_installation_token(self, installation_id: int) -> InstallationToken:
        url = f"/app/installations/{installation_id}/access_tokens"
        response = await self._client.post(
            url,
            headers={
                "Authorization": f"Bearer {self._build_jwt()}",
                "Accept": DEFAULT_ACCEPT_HEADER,
                "X-GitHub-Api-Version": DEFAULT_API_VERSION,
            },
        )
        if response.status_code >= 400:
            raise GitHubAPIError(
                f"GitHub API request to {url} failed with status {response.status_code}.",
                response.status_code,
                _response_detail(response),
            )

        data = response.json()
        token_value = data.get("token")
        expires_at_raw = data.get("expires_at")
        if not token_value or not expires_at_raw:
            raise GitHubAPIError(
                "GitHub did not return a usable installation token.",
                response.status_code,
                data,
            )
        return InstallationToken(token=token_value, expires_at=_parse_github_timestamp(expires_at_raw))

    async def get_installation_token(self, installation_id: int) -> InstallationToken:
        cached = self._installation_tokens.get(installation_id)
        if cached and cached.is_active():
            return cached

        token = await self._fetch_installation_token(installation_id)
        self._installation_tokens[installation_id] = token
        return token

    async def installation_client(self, installation_id: int) -> GitHubClient:
        token = await self.get_installation_token(installation_id)
        return GitHubClient(base_url=self._base_url, token=token.token, timeout=self._timeout)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def _parse_github_timestamp(raw: str) -> datetime:
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw).astimezone(timezone.utc)
