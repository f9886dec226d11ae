"""Fixer that adds NuGet project metadata to a .csproj file.

The project file is edited as text: missing elements are inserted right
after the first <PropertyGroup> opening tag and every other byte of the
file is left as it was.
"""

from __future__ import annotations

import re
from pathlib import Path

from pubaudit.context import SharedContext
from pubaudit.fixers.base import ApplyResult, BaseFixer, Diagnosis, FixOptions
from pubaudit.fixers.utils import github_url
from pubaudit.github import GitHubError
from pubaudit.models import ManifestEntry

_PROPERTY_GROUP = re.compile(r"<PropertyGroup[^>]*>")

CSPROJ_SUFFIX = ".csproj"


def missing_elements(content: str) -> list[str]:
    """Return the metadata element names the project file lacks."""
    missing = []
    if "<PackageProjectUrl>" not in content:
        missing.append("PackageProjectUrl")
    if "<RepositoryUrl>" not in content:
        missing.append("RepositoryUrl")
    return missing


def insert_metadata(content: str, repo_url: str) -> str:
    """Insert missing PackageProjectUrl/RepositoryUrl after the first <PropertyGroup>.

    Args:
        content: Project file text.
        repo_url: Repository URL without a trailing ".git".

    Returns:
        The edited text, or content unchanged if nothing is missing or the
        file has no <PropertyGroup>.
    """
    match = _PROPERTY_GROUP.search(content)
    if match is None:
        return content

    additions = []
    if "<PackageProjectUrl>" not in content:
        additions.append(f"    <PackageProjectUrl>{repo_url}#readme</PackageProjectUrl>")
    if "<RepositoryUrl>" not in content:
        additions.append(f"    <RepositoryUrl>{repo_url}.git</RepositoryUrl>")
    if not additions:
        return content

    insert_at = match.end()
    block = "\n" + "\n".join(additions)
    return content[:insert_at] + block + content[insert_at:]


def _matches_package(path: str, package_name: str) -> bool:
    stem = Path(path).name[: -len(CSPROJ_SUFFIX)].lower()
    return stem in (package_name.lower(), package_name.split(".")[-1].lower())


def pick_project(paths: list[str], package_name: str) -> str | None:
    """Prefer a project named after the package (or its last dotted segment)."""
    if not paths:
        return None
    return next((p for p in paths if _matches_package(p, package_name)), paths[0])


def find_local_project(cwd: Path, package_name: str) -> Path | None:
    """Locate the project file for a package in a local checkout.

    Looks for `<package>.csproj` in cwd, then any .csproj in cwd or in
    a direct subdirectory of src/.
    """
    direct = cwd / f"{package_name}{CSPROJ_SUFFIX}"
    if direct.is_file():
        return direct

    candidates = sorted(cwd.glob(f"*{CSPROJ_SUFFIX}"))
    src = cwd / "src"
    if src.is_dir():
        candidates += sorted(src.glob(f"*/*{CSPROJ_SUFFIX}"))

    chosen = pick_project([str(p) for p in candidates], package_name)
    return Path(chosen) if chosen else None


class NuGetCsprojFixer(BaseFixer):
    code = "nuget-csproj"
    target = "nuget"
    finding_codes = ("missing-project-url",)
    description = "Add PackageProjectUrl and RepositoryUrl to .csproj"

    def _remote_project(self, entry: ManifestEntry) -> str | None:
        return pick_project(self.github.find_files(entry.repo, CSPROJ_SUFFIX), entry.name)

    @staticmethod
    def _diagnosis(content: str, file: str) -> Diagnosis:
        missing = missing_elements(content)
        if not missing:
            return Diagnosis(needed=False)
        return Diagnosis(
            needed=True,
            before=", ".join(f"{name}: (missing)" for name in missing),
            after=", ".join(f"{name}: (set)" for name in missing),
            file=file,
        )

    def diagnose(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> Diagnosis:
        if opts.remote:
            path = self._remote_project(entry)
            remote = self.github.read_file(entry.repo, path) if path else None
            if path is None or remote is None:
                return Diagnosis(needed=False)
            return self._diagnosis(remote.content, path)

        project = find_local_project(Path(opts.cwd), entry.name)
        if project is None:
            return Diagnosis(needed=False)
        content = project.read_text(encoding="utf-8")
        return self._diagnosis(content, _relative(project, opts.cwd))

    def apply_local(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        project = find_local_project(Path(opts.cwd), entry.name)
        if project is None:
            return ApplyResult(changed=False, message=f"No .csproj found in {opts.cwd}")

        # newline="" keeps CRLF line endings intact
        with open(project, encoding="utf-8", newline="") as f:
            content = f.read()
        updated = insert_metadata(content, github_url(entry.repo))
        file = _relative(project, opts.cwd)
        if updated == content:
            return ApplyResult(changed=False, file=file)

        with open(project, "w", encoding="utf-8", newline="") as f:
            f.write(updated)
        return ApplyResult(
            changed=True, before="(missing metadata)", after="(metadata added)", file=file
        )

    def apply_remote(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        path = self._remote_project(entry)
        if path is None:
            return ApplyResult(changed=False, message=f"No .csproj found in {entry.repo}")
        remote = self.github.read_file(entry.repo, path)
        if remote is None:
            return ApplyResult(changed=False, message=f"Cannot read {path} in {entry.repo}")

        updated = insert_metadata(remote.content, github_url(entry.repo))
        if updated == remote.content:
            return ApplyResult(changed=False, file=path)

        try:
            self.github.write_file(
                entry.repo, path, updated, remote.sha, f"chore: add NuGet metadata to {path}"
            )
        except GitHubError as e:
            return ApplyResult(changed=False, file=path, error=str(e))
        return ApplyResult(
            changed=True, before="(missing metadata)", after="(metadata added)", file=path
        )


def _relative(path: Path, cwd: Path) -> str:
    try:
        return path.relative_to(cwd).as_posix()
    except ValueError:
        return str(path)
