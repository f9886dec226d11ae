"""Fixer that adds a logo and a catalog link to the top of README.md."""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import urlparse

from pubaudit.context import SharedContext
from pubaudit.fixers.base import ApplyResult, BaseFixer, Diagnosis, FixOptions
from pubaudit.github import GitHubError
from pubaudit.models import ManifestEntry

README = "README.md"
SITE_NAME = "MCP Tool Shop"
LOGO_PATHS = ("logo.png", "logo.svg", "assets/logo.png", "assets/logo.svg")

# A logo only counts if it's part of the header
HEADER_LINES = 10

_HEADING = re.compile(r"^#[ \t]+[^\r\n]+", re.MULTILINE)


def _read(path: Path) -> str:
    # newline="" keeps CRLF line endings intact
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


class ReadmeHeaderFixer(BaseFixer):
    code = "readme-header"
    target = "readme"
    finding_codes = ("missing-readme",)
    description = "Add logo and site link to README.md header"

    def has_logo(self, content: str) -> bool:
        head = "\n".join(content.split("\n")[:HEADER_LINES])
        return "![" in head or "<img" in head

    def has_site_link(self, content: str) -> bool:
        host = urlparse(self.site_url).netloc
        return (
            self.site_url in content
            or (bool(host) and host in content)
            or SITE_NAME in content
        )

    def analyze(self, content: str) -> Diagnosis:
        missing = []
        if not self.has_logo(content):
            missing.append("logo")
        if not self.has_site_link(content):
            missing.append("site link")
        if not missing:
            return Diagnosis(needed=False)
        return Diagnosis(
            needed=True,
            before=f"Missing: {', '.join(missing)}",
            after="Logo + site link in header",
            file=README,
        )

    def add_header(self, content: str, entry: ManifestEntry, logo_path: str = LOGO_PATHS[0]) -> str:
        """Prepend the logo block and insert the site link after the first heading."""
        eol = "\r\n" if "\r\n" in content else "\n"
        result = content
        if not self.has_logo(result):
            logo = [
                '<p align="center">',
                f'  <img src="{logo_path}" width="200" alt="{entry.repo_name}">',
                "</p>",
                "",
                "",
            ]
            result = eol.join(logo) + result

        if not self.has_site_link(result):
            link = f"> Part of [{SITE_NAME}]({self.site_url})"
            heading = _HEADING.search(result)
            if heading:
                result = result[: heading.end()] + f"{eol}{eol}{link}" + result[heading.end() :]
            else:
                result = result + f"{eol}{eol}{link}{eol}"
        return result

    def diagnose(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> Diagnosis:
        if opts.remote:
            remote = self.github.read_file(entry.repo, README)
            content = remote.content if remote else None
        else:
            path = Path(opts.cwd) / README
            content = _read(path) if path.is_file() else None

        # A missing README is reported by the audit but never created here
        if content is None:
            return Diagnosis(needed=False)
        return self.analyze(content)

    def apply_local(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        cwd = Path(opts.cwd)
        path = cwd / README
        if not path.is_file():
            return ApplyResult(changed=False, message=f"No {README} in {cwd}")

        content = _read(path)
        logo = next((p for p in LOGO_PATHS if (cwd / p).exists()), LOGO_PATHS[0])
        updated = self.add_header(content, entry, logo)
        if updated == content:
            return ApplyResult(changed=False, file=README)

        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(updated)
        return ApplyResult(changed=True, before="(header missing)", after="(header added)", file=README)

    def apply_remote(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        remote = self.github.read_file(entry.repo, README)
        if remote is None:
            return ApplyResult(changed=False, message=f"No {README} in {entry.repo}")

        updated = self.add_header(remote.content, entry)
        if updated == remote.content:
            return ApplyResult(changed=False, file=README)

        try:
            self.github.write_file(
                entry.repo, README, updated, remote.sha,
                f"chore: add logo and {SITE_NAME} link to README",
            )
        except GitHubError as e:
            return ApplyResult(changed=False, file=README, error=str(e))
        return ApplyResult(changed=True, before="(header missing)", after="(header added)", file=README)
