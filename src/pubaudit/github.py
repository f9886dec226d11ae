"""GitHub access through the `gh` CLI.

Provides read helpers for tags, releases, repository settings, file
contents and container packages, plus the write operations used by the
remote fixers, the PR flow and receipt attachment.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote

from pubaudit.shell import CommandResult, run_command

logger = logging.getLogger(__name__)


class GitHubError(RuntimeError):
    """Raised when a GitHub write is rejected or the `gh` CLI fails."""


@dataclass(frozen=True)
class RemoteFile:
    """A file read through the contents API.

    Attributes:
        content: Decoded UTF-8 text.
        sha: Blob revision; writes are conditional on it.
    """

    content: str
    sha: str


class GitHubClient:
    """Thin wrapper over `gh api` calls.

    Reads return None or an empty list on failure. Writes raise GitHubError.
    """

    def __init__(self, timeout: float = 15) -> None:
        self.timeout = timeout

    def _api(self, *args: str, payload: dict[str, Any] | None = None) -> CommandResult:
        cmd = ["gh", "api", *args]
        data = None
        if payload is not None:
            cmd += ["--input", "-"]
            data = json.dumps(payload)
        return run_command(cmd, timeout=self.timeout, input=data)

    def _api_json(self, *args: str) -> Any | None:
        result = self._api(*args)
        if not result.ok:
            logger.debug("gh api %s failed: %s", " ".join(args), result.stderr.strip())
            return None
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError:
            return None

    def _api_lines(self, endpoint: str, jq: str) -> list[str]:
        result = self._api(endpoint, "--paginate", "--jq", jq)
        if not result.ok:
            logger.debug("gh api %s failed: %s", endpoint, result.stderr.strip())
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]

    # ---- Reads ----

    def list_tags(self, repo: str) -> list[str]:
        """Return every git tag name of a repository."""
        return self._api_lines(f"repos/{repo}/tags", ".[].name")

    def list_release_tags(self, repo: str) -> list[str]:
        """Return the tag names that have a GitHub Release."""
        return self._api_lines(f"repos/{repo}/releases", ".[].tag_name")

    def get_repo(self, repo: str) -> dict[str, Any] | None:
        data = self._api_json(f"repos/{repo}")
        return data if isinstance(data, dict) else None

    def read_file(self, repo: str, path: str) -> RemoteFile | None:
        """Read a file from the default branch.

        Returns:
            RemoteFile, or None if the file doesn't exist or can't be read.
        """
        data = self._api_json(f"repos/{repo}/contents/{quote(path)}")
        if not isinstance(data, dict) or "content" not in data:
            return None
        try:
            raw = base64.b64decode(data["content"])
            content = raw.decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return None
        return RemoteFile(content=content, sha=data.get("sha", ""))

    def find_files(self, repo: str, suffix: str) -> list[str]:
        """List paths in the HEAD tree ending with suffix."""
        data = self._api_json(f"repos/{repo}/git/trees/HEAD?recursive=1")
        if not isinstance(data, dict):
            return []
        return [
            item["path"]
            for item in data.get("tree", [])
            if isinstance(item, dict) and str(item.get("path", "")).endswith(suffix)
        ]

    def list_container_versions(self, owner: str, package: str) -> list[dict[str, Any]] | None:
        """List GHCR package versions, newest first.

        Tries the organisation endpoint, then the user endpoint.

        Returns:
            Version records, or None if neither endpoint answered.
        """
        name = quote(package, safe="")
        for scope in ("orgs", "users"):
            data = self._api_json(f"/{scope}/{owner}/packages/container/{name}/versions")
            if isinstance(data, list):
                return data
        return None

    # ---- Writes ----

    def write_file(self, repo: str, path: str, content: str, sha: str, message: str) -> None:
        """Update a file, conditional on its current blob sha.

        Raises:
            GitHubError: If the update is rejected (e.g. the sha moved).
        """
        payload = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "sha": sha,
        }
        result = self._api(f"repos/{repo}/contents/{quote(path)}", "--method", "PUT", payload=payload)
        if not result.ok:
            raise GitHubError(f"Failed to update {path} in {repo}: {result.stderr.strip()}")

    def update_repo(self, repo: str, fields: dict[str, Any]) -> None:
        """PATCH repository settings (homepage, description, ...).

        Raises:
            GitHubError: If the update is rejected.
        """
        result = self._api(f"repos/{repo}", "--method", "PATCH", payload=fields)
        if not result.ok:
            raise GitHubError(f"Failed to update {repo}: {result.stderr.strip()}")

    def attach_release_asset(self, repo: str, tag: str, path: Path) -> str:
        """Upload a file to the release for tag, replacing an asset of the same name.

        Returns:
            URL of the release page.

        Raises:
            GitHubError: If the release doesn't exist or the upload fails.
        """
        check = self._api(f"repos/{repo}/releases/tags/{tag}", "--jq", ".id")
        if not check.ok:
            raise GitHubError(f"No release {tag} in {repo}")
        upload = run_command(
            ["gh", "release", "upload", tag, str(path), "--repo", repo, "--clobber"],
            timeout=max(self.timeout, 30),
        )
        if not upload.ok:
            raise GitHubError(f"Failed to attach {path.name} to {repo}@{tag}: {upload.stderr.strip()}")
        return f"https://github.com/{repo}/releases/tag/{tag}"

    def create_pull_request(self, title: str, body: str, cwd: Path) -> str:
        """Open a PR for the checked-out branch in cwd.

        Returns:
            The PR URL printed by `gh pr create`.

        Raises:
            GitHubError: If the PR cannot be created.
        """
        result = run_command(
            ["gh", "pr", "create", "--title", title, "--body", body],
            cwd=cwd,
            timeout=max(self.timeout, 30),
        )
        if not result.ok:
            raise GitHubError(f"gh pr create failed: {result.stderr.strip()}")
        return result.stdout.strip()
