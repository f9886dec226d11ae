"""Publish orchestrator.

Publishes manifest entries one at a time through their providers and
records every successful publish as an immutable receipt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pubaudit.github import GitHubClient, GitHubError
from pubaudit.models import ManifestEntry
from pubaudit.providers.base import BaseProvider, PublishOptions, PublishResult
from pubaudit.providers.registry import CONTEXT_PROVIDER, match_providers
from pubaudit.receipts.schema import ReceiptValidationError
from pubaudit.receipts.store import ImmutabilityError, ReceiptStore
from pubaudit.shell import get_commit_sha

logger = logging.getLogger(__name__)


class MissingCredentialsError(RuntimeError):
    """Raised before publishing when required credentials are not set."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing credentials: {', '.join(missing)}")


@dataclass
class PublishFailure:
    package_name: str
    target: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"packageName": self.package_name, "target": self.target, "error": self.error}


@dataclass
class PublishOutcome:
    """Result of a publish run.

    Attributes:
        results: (entry, target, result) for every attempted publish.
        failures: Failed publishes and receipt writes.
        receipts: Paths of receipts written.
        attachments: Release URLs receipts were attached to.
        planned: Commands a dry run would execute, keyed "target/package".
    """

    dry_run: bool = False
    results: list[tuple[ManifestEntry, str, PublishResult]] = field(default_factory=list)
    failures: list[PublishFailure] = field(default_factory=list)
    receipts: list[Path] = field(default_factory=list)
    attachments: list[str] = field(default_factory=list)
    planned: dict[str, list[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "dryRun": self.dry_run,
            "results": [
                {
                    "packageName": entry.name,
                    "target": target,
                    "success": result.success,
                    "version": result.version,
                    "artifacts": [a.to_dict() for a in result.artifacts],
                    "error": result.error,
                }
                for entry, target, result in self.results
            ],
            "failures": [f.to_dict() for f in self.failures],
            "receipts": [str(p) for p in self.receipts],
            "attachments": list(self.attachments),
            "planned": dict(self.planned),
        }


def publishers_for(providers: list[BaseProvider], entry: ManifestEntry) -> list[BaseProvider]:
    """Providers able to publish the entry."""
    return [
        p
        for p in match_providers(providers, entry)
        if p.name != CONTEXT_PROVIDER and p.supports_publish
    ]


def preflight(
    entries: list[ManifestEntry],
    providers: list[BaseProvider],
    dry_run: bool = False,
) -> list[str]:
    """Check credentials for every provider the run will use.

    Returns:
        Missing environment variable names, deduplicated, in first-seen order.

    Raises:
        MissingCredentialsError: If anything is missing and this is not a dry run.
    """
    missing: list[str] = []
    for entry in entries:
        for provider in publishers_for(providers, entry):
            name = provider.missing_credential()
            if name and name not in missing:
                missing.append(name)
    if missing and not dry_run:
        raise MissingCredentialsError(missing)
    return missing


class PublishRunner:
    """Publishes entries sequentially and writes receipts.

    Attributes:
        providers: Active providers.
        store: Receipt store for successful publishes.
        github: Client used to attach receipts to releases.
        attach_receipts: Upload each receipt to the v<version> release.
    """

    def __init__(
        self,
        providers: list[BaseProvider],
        store: ReceiptStore,
        github: GitHubClient | None = None,
        attach_receipts: bool = False,
    ) -> None:
        self.providers = providers
        self.store = store
        self.github = github or GitHubClient()
        self.attach_receipts = attach_receipts

    def run(self, entries: list[ManifestEntry], dry_run: bool = False, cwd: Path | None = None) -> PublishOutcome:
        """Publish every entry.

        Credentials are checked up front. A failure on one entry, including
        an already-existing receipt, is recorded and the next entry still runs.

        Raises:
            MissingCredentialsError: If credentials are missing outside a dry run.
        """
        preflight(entries, self.providers, dry_run)
        opts = PublishOptions(cwd=Path(cwd) if cwd is not None else Path.cwd(), dry_run=dry_run)
        outcome = PublishOutcome(dry_run=dry_run)

        for entry in entries:
            publishers = publishers_for(self.providers, entry)
            if not publishers:
                logger.warning("No provider can publish %s", entry.name)
                continue
            for provider in publishers:
                self._publish_one(provider, entry, opts, outcome)

        return outcome

    def _publish_one(
        self,
        provider: BaseProvider,
        entry: ManifestEntry,
        opts: PublishOptions,
        outcome: PublishOutcome,
    ) -> None:
        logger.info("Publishing %s via %s%s", entry.name, provider.name, " (dry run)" if opts.dry_run else "")
        try:
            result = provider.publish(entry, opts)
        except Exception as e:
            logger.error("%s publish of %s raised: %s", provider.name, entry.name, e)
            error = f"{provider.name}: publish raised {type(e).__name__}: {e}"
            result = PublishResult(False, error=error)
        outcome.results.append((entry, provider.name, result))

        if not result.success:
            outcome.failures.append(
                PublishFailure(entry.name, provider.name, result.error or "publish failed")
            )
            return
        if opts.dry_run:
            outcome.planned[f"{provider.name}/{entry.name}"] = provider.plan(entry)
            return

        try:
            commit_sha = get_commit_sha(opts.cwd)
            receipt = provider.build_receipt(entry, result, commit_sha)
            path = self.store.write_publish(receipt)
        except (ImmutabilityError, ReceiptValidationError, RuntimeError) as e:
            logger.error("Receipt for %s failed: %s", entry.name, e)
            outcome.failures.append(PublishFailure(entry.name, provider.name, str(e)))
            return
        outcome.receipts.append(path)

        if self.attach_receipts:
            tag = f"v{result.version}"
            try:
                outcome.attachments.append(self.github.attach_release_asset(entry.repo, tag, path))
            except GitHubError as e:
                logger.warning("Could not attach receipt to %s@%s: %s", entry.repo, tag, e)
