"""Read-only metadata lookups against package registries.

Every lookup returns None (or an empty list) on any failure so that
providers can classify an unreachable registry instead of crashing.
"""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from pubaudit import __version__
from pubaudit.shell import run_command

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15

NUGET_SEARCH_URL = "https://azuresearch-usnc.nuget.org/query?q=packageid:{id}&take=1"
NUGET_FLAT_URL = "https://api.nuget.org/v3-flatcontainer/{id}/index.json"
PYPI_JSON_URL = "https://pypi.org/pypi/{name}/json"


def fetch_json(url: str, timeout: float = DEFAULT_TIMEOUT) -> Any | None:
    """GET a URL and decode its JSON body.

    Args:
        url: Absolute URL.
        timeout: Socket timeout in seconds.

    Returns:
        Decoded JSON, or None on HTTP errors, network errors or invalid JSON.
    """
    request = Request(
        url,
        headers={"Accept": "application/json", "User-Agent": f"pubaudit/{__version__}"},
    )
    try:
        with urlopen(request, timeout=timeout) as response:
            raw = response.read()
    except HTTPError as exc:
        logger.debug("GET %s failed with status %s", url, exc.code)
        return None
    except (URLError, TimeoutError, OSError) as exc:
        logger.debug("GET %s failed: %s", url, exc)
        return None

    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.debug("GET %s returned invalid JSON", url)
        return None


def npm_view(name: str, timeout: float = DEFAULT_TIMEOUT) -> dict[str, Any] | None:
    """Fetch package metadata with `npm view <name> --json`."""
    result = run_command(["npm", "view", name, "--json"], timeout=timeout)
    if not result.ok or not result.stdout.strip():
        logger.debug("npm view %s failed: %s", name, result.stderr.strip())
        return None
    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError:
        return None
    # npm prints an {"error": ...} document for unknown packages
    if not isinstance(data, dict) or "error" in data:
        return None
    return data


def nuget_search(package_id: str, timeout: float = DEFAULT_TIMEOUT) -> dict[str, Any] | None:
    """Return the search-index record for a NuGet package, or None."""
    data = fetch_json(NUGET_SEARCH_URL.format(id=quote(package_id)), timeout)
    if not isinstance(data, dict):
        return None
    hits = data.get("data") or []
    if not hits or not isinstance(hits[0], dict):
        return None
    return hits[0]


def nuget_flat_versions(package_id: str, timeout: float = DEFAULT_TIMEOUT) -> list[str]:
    """Return every published version from the NuGet flat container.

    The flat container updates faster than the search index. An empty list
    means the lookup failed or the package has no versions.
    """
    data = fetch_json(NUGET_FLAT_URL.format(id=quote(package_id.lower())), timeout)
    if not isinstance(data, dict):
        return []
    versions = data.get("versions") or []
    return [str(v) for v in versions]


def pypi_metadata(name: str, timeout: float = DEFAULT_TIMEOUT) -> dict[str, Any] | None:
    """Return the PyPI JSON API document for a project, or None."""
    data = fetch_json(PYPI_JSON_URL.format(name=quote(name)), timeout)
    return data if isinstance(data, dict) else None
