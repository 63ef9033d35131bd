"""Application configuration helpers."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Final, List

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, BaseModel, Field, ValidationError

# Load environment variables from a .env file next to the project, if present
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_GITHUB_API_BASE_URL: Final[str] = "https://api.github.com"
DEFAULT_CATALOG_URL: Final[str] = "https://awspolicygen.s3.amazonaws.com/js/policies.js"
DEFAULT_COLLAPSE_THRESHOLD: Final[int] = 5


class SettingsError(RuntimeError):
    """Raised when application configuration is invalid or incomplete."""


@dataclass(frozen=True)
class AppCredentials:
    github_app_id: int
    github_private_key_pem: str
    github_webhook_secret: str


class Settings(BaseModel):
    """Runtime settings loaded from environment variables."""

    github_api_base_url: AnyHttpUrl = DEFAULT_GITHUB_API_BASE_URL
    github_token: str | None = None
    github_app_id: int | None = None
    github_private_key_pem: str | None = None
    github_webhook_secret: str | None = None
    collapse_threshold: int = Field(default=DEFAULT_COLLAPSE_THRESHOLD, ge=0)
    file_patterns: List[str] = Field(default_factory=list)
    action_catalog_path: str | None = None
    action_catalog_url: AnyHttpUrl = DEFAULT_CATALOG_URL

    @property
    def normalized_github_api_base_url(self) -> str:
        """Return the GitHub API base URL without a trailing slash."""
        return str(self.github_api_base_url).rstrip("/")

    def require_token(self) -> str:
        if not self.github_token:
            raise SettingsError("GITHUB_TOKEN environment variable is required to publish review comments.")
        return self.github_token

    def require_app_credentials(self) -> AppCredentials:
        """Ensure GitHub App secrets are configured and return them."""

        missing = []
        if self.github_app_id is None:
            missing.append("GITHUB_APP_ID")
        if not self.github_private_key_pem:
            missing.append("GITHUB_PRIVATE_KEY")
        if not self.github_webhook_secret:
            missing.append("GITHUB_WEBHOOK_SECRET")

        if missing:
            missing_vars = ", ".join(missing)
            raise SettingsError(
                "GitHub App mode is not configured. Missing environment variables: "
                f"{missing_vars}."
            )

        return AppCredentials(
            github_app_id=int(self.github_app_id),
            github_private_key_pem=self.github_private_key_pem,
            github_webhook_secret=self.github_webhook_secret,
        )


def parse_file_patterns(raw_value: str | None) -> List[str]:
    """Split a comma- or newline-separated list of globs, dropping blanks."""

    if not raw_value:
        return []
    return [pattern.strip() for pattern in re.split(r"[,\n]", raw_value) if pattern.strip()]


def parse_collapse_threshold(raw_value: str | None) -> int:
    if raw_value is None or not raw_value.strip():
        return DEFAULT_COLLAPSE_THRESHOLD
    try:
        value = int(raw_value.strip())
    except ValueError as exc:
        raise SettingsError(
            f"Invalid value for COLLAPSE_THRESHOLD: {raw_value!r}. It must be an integer."
        ) from exc
    if value < 0:
        raise SettingsError("COLLAPSE_THRESHOLD must not be negative.")
    return value


def _build_settings() -> Settings:
    github_app_id = os.getenv("GITHUB_APP_ID")

    try:
        github_app_id_value: int | None
        if github_app_id and github_app_id.strip():
            github_app_id_value = int(github_app_id)
        else:
            github_app_id_value = None
    except ValueError as exc:
        raise SettingsError("Invalid value for GITHUB_APP_ID. It must be an integer.") from exc

    try:
        return Settings(
            github_api_base_url=os.getenv("GITHUB_API_URL") or DEFAULT_GITHUB_API_BASE_URL,
            github_token=os.getenv("GITHUB_TOKEN") or None,
            github_app_id=github_app_id_value,
            github_private_key_pem=os.getenv("GITHUB_PRIVATE_KEY"),
            github_webhook_secret=os.getenv("GITHUB_WEBHOOK_SECRET"),
            collapse_threshold=parse_collapse_threshold(os.getenv("COLLAPSE_THRESHOLD")),
            file_patterns=parse_file_patterns(os.getenv("FILE_PATTERNS")),
            action_catalog_path=os.getenv("IAM_ACTIONS_CATALOG") or None,
            action_catalog_url=os.getenv("IAM_ACTIONS_CATALOG_URL") or DEFAULT_CATALOG_URL,
        )
    except ValidationError as exc:
        raise SettingsError("Invalid application configuration.") from exc


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return _build_settings()


def get_settings() -> Settings:
    """Retrieve cached application settings."""
    return _cached_settings()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for tests)."""
    _cached_settings.cache_clear()
