"""Configuration management for the pubaudit CLI tool.

Handles configuration loading from multiple sources with precedence:
CLI args > environment variables > .pubauditrc > pyproject.toml > defaults
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

# tomllib is only available in Python 3.11+
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import-not-found]

CONFIG_FILENAME = ".pubauditrc"


class ConfigError(ValueError):
    """Raised for invalid configuration, manifests or plugin registrations."""


@dataclass
class PubauditConfig:
    """Configuration for the pubaudit CLI tool.

    Attributes:
        profiles_dir: Directory holding the fleet manifest (default: "profiles")
        receipts_dir: Receipt store root (default: "receipts")
        reports_dir: Audit report output directory (default: "reports")
        manifest_name: Manifest file inside profiles_dir (default: "manifest.json")
        enabled_providers: Provider names to run; empty means all providers
        site_url: Catalog site linked from README headers and repo homepages
        attach_receipts: Upload publish receipts to the matching GitHub Release
        timeout: Per-call timeout in seconds for registry and GitHub queries
    """

    profiles_dir: str = "profiles"
    receipts_dir: str = "receipts"
    reports_dir: str = "reports"
    manifest_name: str = "manifest.json"
    enabled_providers: list[str] = field(default_factory=list)
    site_url: str = "https://mcptoolshop.com"
    attach_receipts: bool = False
    timeout: int = 15

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigError: If any configuration value is invalid.
        """
        for name in ("profiles_dir", "receipts_dir", "reports_dir"):
            value = getattr(self, name)
            if not value or not isinstance(value, str):
                raise ConfigError(f"{name} must be a non-empty string")

        if not self.manifest_name or not isinstance(self.manifest_name, str):
            raise ConfigError("manifest_name must be a non-empty string")
        if not self.manifest_name.endswith((".json", ".yaml", ".yml")):
            raise ConfigError("manifest_name must end with .json, .yaml or .yml")

        if not isinstance(self.enabled_providers, list) or not all(
            isinstance(p, str) for p in self.enabled_providers
        ):
            raise ConfigError("enabled_providers must be a list of strings")

        if not self.site_url or not isinstance(self.site_url, str):
            raise ConfigError("site_url must be a non-empty string")
        if not self.site_url.startswith(("http://", "https://")):
            raise ConfigError("site_url must be an http(s) URL")

        if not isinstance(self.attach_receipts, bool):
            raise ConfigError("attach_receipts must be a boolean")

        if isinstance(self.timeout, bool) or not isinstance(self.timeout, int):
            raise ConfigError("timeout must be an integer")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")

    def get_profiles_path(self, base_path: Path | None = None) -> Path:
        """Get the full path to the profiles directory.

        Args:
            base_path: Base path to resolve from. Defaults to current directory.

        Returns:
            Path to the profiles directory.
        """
        return _resolve(self.profiles_dir, base_path)

    def get_manifest_path(self, base_path: Path | None = None) -> Path:
        """Get the full path to the fleet manifest.

        Args:
            base_path: Base path to resolve from. Defaults to current directory.

        Returns:
            Path to the manifest file.
        """
        return self.get_profiles_path(base_path) / self.manifest_name

    def get_receipts_path(self, base_path: Path | None = None) -> Path:
        """Get the full path to the receipt store root.

        Args:
            base_path: Base path to resolve from. Defaults to current directory.

        Returns:
            Path to the receipts directory.
        """
        return _resolve(self.receipts_dir, base_path)

    def get_reports_path(self, base_path: Path | None = None) -> Path:
        """Get the full path to the reports directory.

        Args:
            base_path: Base path to resolve from. Defaults to current directory.

        Returns:
            Path to the reports directory.
        """
        return _resolve(self.reports_dir, base_path)


def _resolve(path: str, base_path: Path | None) -> Path:
    p = Path(path)
    if p.is_absolute():
        return p
    return (base_path or Path.cwd()) / p


def _get_config_field_names() -> set[str]:
    """Get the set of valid configuration field names.

    Returns:
        Set of field names from PubauditConfig.
    """
    return {f.name for f in fields(PubauditConfig)}


def find_config_file(filename: str = CONFIG_FILENAME, start_dir: Path | None = None) -> Path | None:
    """Find a configuration file by traversing up the directory tree.

    Searches for the specified file starting from start_dir (or current directory)
    and traversing up to the filesystem root.

    Args:
        filename: Name of the config file to find.
        start_dir: Directory to start searching from. Defaults to current directory.

    Returns:
        Path to the config file if found, None otherwise.
    """
    current = start_dir or Path.cwd()
    current = current.resolve()

    while True:
        config_path = current / filename
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:
            # Reached filesystem root
            return None
        current = parent


def get_project_root(start_dir: Path | None = None) -> Path:
    """Directory that relative config paths resolve against.

    This is the directory holding the nearest .pubauditrc, or start_dir
    itself when no config file exists.
    """
    config_path = find_config_file(CONFIG_FILENAME, start_dir)
    if config_path is not None:
        return config_path.parent
    return (start_dir or Path.cwd()).resolve()


def _load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents.

    Args:
        path: Path to the TOML file.

    Returns:
        Dictionary containing the parsed TOML content.

    Raises:
        ConfigError: If the file cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as f:
            result: dict[str, Any] = tomllib.load(f)
            return result
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e


def _check_known_keys(data: dict[str, Any], source: Path) -> dict[str, Any]:
    valid_fields = _get_config_field_names()
    unknown = sorted(set(data) - valid_fields)
    if unknown:
        raise ConfigError(f"Unknown config key(s) in {source}: {', '.join(unknown)}")
    return data


def _load_from_rcfile(start_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from the .pubauditrc file.

    Args:
        start_dir: Directory to start searching from.

    Returns:
        Dictionary containing configuration from .pubauditrc, or empty dict if not found.

    Raises:
        ConfigError: If the file is malformed or contains unknown keys.
    """
    config_path = find_config_file(CONFIG_FILENAME, start_dir)
    if config_path is None:
        return {}
    return _check_known_keys(_load_toml_file(config_path), config_path)


def _load_from_pyproject(start_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from pyproject.toml [tool.pubaudit] section.

    Args:
        start_dir: Directory to start searching from.

    Returns:
        Dictionary containing configuration from pyproject.toml, or empty dict if not found.
    """
    config_path = find_config_file("pyproject.toml", start_dir)
    if config_path is None:
        return {}

    data = _load_toml_file(config_path)
    section = data.get("tool", {}).get("pubaudit", {})
    if not isinstance(section, dict):
        raise ConfigError(f"[tool.pubaudit] in {config_path} must be a table")
    return _check_known_keys(section, config_path)


def _load_from_env() -> dict[str, Any]:
    """Load configuration from environment variables.

    Environment variables are prefixed with PUBAUDIT_ and use uppercase names.
    For example: PUBAUDIT_RECEIPTS_DIR, PUBAUDIT_ENABLED_PROVIDERS=npm,nuget

    Returns:
        Dictionary containing configuration from environment variables.

    Raises:
        ConfigError: If PUBAUDIT_TIMEOUT is not an integer.
    """
    env_mapping = {
        "PUBAUDIT_PROFILES_DIR": "profiles_dir",
        "PUBAUDIT_RECEIPTS_DIR": "receipts_dir",
        "PUBAUDIT_REPORTS_DIR": "reports_dir",
        "PUBAUDIT_MANIFEST_NAME": "manifest_name",
        "PUBAUDIT_SITE_URL": "site_url",
    }

    result: dict[str, Any] = {}
    for env_var, config_key in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            result[config_key] = value

    providers = os.environ.get("PUBAUDIT_ENABLED_PROVIDERS")
    if providers is not None:
        result["enabled_providers"] = [p.strip() for p in providers.split(",") if p.strip()]

    attach = os.environ.get("PUBAUDIT_ATTACH_RECEIPTS")
    if attach is not None:
        result["attach_receipts"] = attach.strip().lower() in ("1", "true", "yes", "on")

    timeout = os.environ.get("PUBAUDIT_TIMEOUT")
    if timeout is not None:
        try:
            result["timeout"] = int(timeout)
        except ValueError:
            raise ConfigError(f"PUBAUDIT_TIMEOUT must be an integer, got {timeout!r}") from None

    return result


def _merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge multiple configuration dictionaries.

    Later dictionaries take precedence over earlier ones.

    Args:
        *configs: Configuration dictionaries to merge, in order of increasing precedence.

    Returns:
        Merged configuration dictionary.
    """
    result: dict[str, Any] = {}
    for config in configs:
        for key, value in config.items():
            if value is not None:
                result[key] = value
    return result


def load_config(
    cli_overrides: dict[str, Any] | None = None,
    start_dir: Path | None = None,
) -> PubauditConfig:
    """Load configuration with full precedence chain.

    Loads configuration from multiple sources and merges them with the following
    precedence (highest to lowest):
    1. CLI arguments (cli_overrides)
    2. Environment variables (PUBAUDIT_*)
    3. .pubauditrc file
    4. pyproject.toml [tool.pubaudit] section
    5. Default values

    Args:
        cli_overrides: Configuration overrides from CLI arguments.
        start_dir: Directory to start searching for config files.

    Returns:
        Fully resolved PubauditConfig instance.

    Raises:
        ConfigError: If any source is malformed or the result is invalid.
    """
    pyproject_config = _load_from_pyproject(start_dir)
    rc_config = _load_from_rcfile(start_dir)
    env_config = _load_from_env()
    cli_config = cli_overrides or {}

    # Filter CLI overrides to only valid fields
    valid_fields = _get_config_field_names()
    cli_config = {k: v for k, v in cli_config.items() if k in valid_fields and v is not None}

    merged = _merge_configs(
        pyproject_config,
        rc_config,
        env_config,
        cli_config,
    )

    # Defaults are applied by the dataclass
    return PubauditConfig(**merged)
