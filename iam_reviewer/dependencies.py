"""FastAPI dependency factories."""

from __future__ import annotations

from fastapi import HTTPException

from iam_reviewer.config import AppCredentials, Settings, SettingsError, get_settings
from iam_reviewer.logger import get_logger

logger = get_logger()


def settings_dependency() -> Settings:
    """Resolve application settings, surfacing configuration errors via HTTPException."""

    try:
        return get_settings()
    except SettingsError as exc:
        logger.error(f"Failed to load settings: {exc}")
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def app_credentials_dependency() -> AppCredentials:
    """Resolve the GitHub App credentials the webhook endpoint needs."""

    settings = settings_dependency()
    try:
        return settings.require_app_credentials()
    except SettingsError as exc:
        logger.error(f"GitHub App credentials missing: {exc}")
        raise HTTPException(status_code=500, detail=f"Configuration error: {exc}") from exc
