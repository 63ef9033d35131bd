"""IAM action catalog used to expand wildcard patterns."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List

import httpx

from iam_reviewer.config import Settings
from iam_reviewer.logger import get_logger, log_timing

logger = get_logger()

_POLICY_GENERATOR_PREFIX = "app.PolicyEditorConfig="


class CatalogError(RuntimeError):
    """Raised when the IAM action catalog cannot be loaded."""


def _fragment_regex(fragment: str) -> re.Pattern[str]:
    parts = []
    for char in fragment:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE)


class ActionCatalog:
    """Known ``service:Action`` strings, indexed by lowercase service prefix."""

    def __init__(self, actions: Iterable[str]) -> None:
        self._by_service: Dict[str, Dict[str, None]] = {}
        for action in actions:
            service, sep, name = action.partition(":")
            if not sep or not service or not name:
                continue
            self._by_service.setdefault(service.lower(), {}).setdefault(action, None)

    def __len__(self) -> int:
        return sum(len(actions) for actions in self._by_service.values())

    def services(self) -> List[str]:
        return sorted(self._by_service)

    def expand(self, pattern: str) -> List[str]:
        """Return catalog actions matching the pattern, in catalog order.

        ``*`` matches any run of characters and ``?`` a single character;
        matching ignores case. Unknown services and malformed patterns give [].
        """

        service, sep, fragment = pattern.partition(":")
        if not sep or not fragment:
            return []
        candidates = self._by_service.get(service.lower())
        if not candidates:
            return []
        regex = _fragment_regex(fragment)
        return [action for action in candidates if regex.fullmatch(action.partition(":")[2])]

    async def __call__(self, pattern: str) -> List[str]:
        return self.expand(pattern)


def _catalog_from_json(data: Any, source: str) -> ActionCatalog:
    if isinstance(data, list) and all(isinstance(item, str) for item in data):
        return ActionCatalog(data)
    if isinstance(data, dict):
        actions: List[str] = []
        for service, names in data.items():
            if not isinstance(names, list):
                raise CatalogError(f"Catalog {source} lists a non-array value for service '{service}'.")
            actions.extend(f"{service}:{name}" for name in names)
        return ActionCatalog(actions)
    raise CatalogError(
        f"Catalog {source} must be a JSON array of 'service:Action' strings or an object of service -> actions."
    )


def load_catalog_file(path: str | Path) -> ActionCatalog:
    catalog_path = Path(path)
    try:
        data = json.loads(catalog_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CatalogError(f"Unable to read IAM action catalog {catalog_path}: {exc}") from exc
    except ValueError as exc:
        raise CatalogError(f"IAM action catalog {catalog_path} is not valid JSON.") from exc
    catalog = _catalog_from_json(data, str(catalog_path))
    logger.info(f"Loaded {len(catalog)} IAM action(s) from {catalog_path}")
    return catalog


def parse_policy_generator_config(text: str) -> ActionCatalog:
    """Build a catalog from the AWS policy generator's ``policies.js`` payload."""

    body = text.strip()
    if body.startswith(_POLICY_GENERATOR_PREFIX):
        body = body[len(_POLICY_GENERATOR_PREFIX):]
    try:
        config = json.loads(body.rstrip(";"))
    except ValueError as exc:
        raise CatalogError("AWS policy generator data is not valid JSON.") from exc

    service_map = config.get("serviceMap") if isinstance(config, dict) else None
    if not isinstance(service_map, dict):
        raise CatalogError("AWS policy generator data is missing 'serviceMap'.")

    actions: List[str] = []
    for service in service_map.values():
        prefix = service.get("StringPrefix")
        if not prefix:
            continue
        actions.extend(f"{prefix}:{name}" for name in service.get("Actions") or [])
    return ActionCatalog(actions)


async def fetch_policy_generator_catalog(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> ActionCatalog:
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout)
    try:
        with log_timing(logger, "fetch_action_catalog", url=url):
            response = await http.get(url)
        if response.status_code >= 400:
            raise CatalogError(f"Fetching IAM action catalog from {url} failed with status {response.status_code}.")
    except httpx.HTTPError as exc:
        raise CatalogError(f"Unable to fetch IAM action catalog from {url}: {exc}") from exc
    finally:
        if owns_client:
            await http.aclose()

    catalog = parse_policy_generator_config(response.text)
    logger.info(f"Loaded {len(catalog)} IAM action(s) across {len(catalog.services())} service(s) from {url}")
    return catalog


async def load_catalog(settings: Settings, *, client: httpx.AsyncClient | None = None) -> ActionCatalog:
    """Load the catalog from the configured file, falling back to the policy generator URL."""

    if settings.action_catalog_path:
        return load_catalog_file(settings.action_catalog_path)
    return await fetch_policy_generator_catalog(str(settings.action_catalog_url), client=client)
