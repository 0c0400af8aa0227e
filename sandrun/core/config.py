"""
Configuration management for sandrun.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError

DEFAULT_STATE_DIR = "~/.sandrun"


@dataclass
class SandboxConfig:
    """Execution sandbox configuration."""

    default_timeout_ms: int = 30_000
    install_timeout_ms: int = 120_000  # used by timeout_ms="auto" when packages are requested
    grace_period_seconds: float = 5.0
    persistent_workspace: str = f"{DEFAULT_STATE_DIR}/python-workspace"
    python_executable: str | None = None
    env_allowlist: list[str] = field(default_factory=list)
    max_output_bytes: int | None = None


@dataclass
class PackageCacheConfig:
    """Cross-request dependency cache. Disabled unless explicitly enabled."""

    enabled: bool = False
    directory: str = f"{DEFAULT_STATE_DIR}/python-packages"


@dataclass
class ProjectConfig:
    """Main sandrun configuration."""

    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    package_cache: PackageCacheConfig = field(default_factory=PackageCacheConfig)
    log_level: str = "WARNING"

    @classmethod
    def load_from_file(cls, config_path: Path) -> "ProjectConfig":
        """Load configuration from file."""
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, encoding="utf-8") as f:
                if config_path.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load configuration from {config_path}: {e}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file {config_path} must contain a mapping at the top level"
            )

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectConfig":
        """Build a configuration from a plain mapping, ignoring unknown keys."""
        sandbox_data = data.get("sandbox") or {}
        cache_data = data.get("package_cache") or {}
        if not isinstance(sandbox_data, dict) or not isinstance(cache_data, dict):
            raise ConfigurationError("'sandbox' and 'package_cache' must be mappings")

        try:
            sandbox = SandboxConfig(**_known_fields(SandboxConfig, sandbox_data))
            package_cache = PackageCacheConfig(**_known_fields(PackageCacheConfig, cache_data))
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

        raw_allowlist = sandbox.env_allowlist
        if isinstance(raw_allowlist, str):
            sandbox.env_allowlist = [raw_allowlist]
        elif isinstance(raw_allowlist, list):
            sandbox.env_allowlist = [str(item).strip() for item in raw_allowlist if str(item).strip()]
        else:
            sandbox.env_allowlist = []

        for name in ("default_timeout_ms", "install_timeout_ms"):
            value = getattr(sandbox, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"sandbox.{name} must be a positive integer, got {value!r}")
        if sandbox.grace_period_seconds is None or float(sandbox.grace_period_seconds) < 0:
            raise ConfigurationError("sandbox.grace_period_seconds must be >= 0")
        sandbox.grace_period_seconds = float(sandbox.grace_period_seconds)

        return cls(
            sandbox=sandbox,
            package_cache=package_cache,
            log_level=str(data.get("log_level") or "WARNING"),
        )

    def save_to_file(self, config_path: Path) -> None:
        """
        Save configuration to file.

        Args:
            config_path: Path to save the configuration file
        """
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            data = asdict(self)

            with open(config_path, "w", encoding="utf-8") as f:
                if config_path.suffix.lower() == ".json":
                    json.dump(data, f, indent=2)
                else:
                    yaml.dump(data, f, default_flow_style=False, indent=2)
        except Exception as e:
            raise ConfigurationError(f"Failed to save configuration: {e}")


def _known_fields(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in data.items() if key in names}


class ConfigManager:
    """Manages sandrun configuration."""

    CONFIG_FILENAME = "sandrun_config.yaml"

    def __init__(self, project_root: Path | None = None, config_path: Path | None = None):
        self.project_root = project_root or Path.cwd()
        self.config_path = config_path or self.project_root / self.CONFIG_FILENAME
        self._config: ProjectConfig | None = None

    @property
    def config(self) -> ProjectConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self.load_config()
        return self._config

    def load_config(self) -> ProjectConfig:
        """Load configuration from file, falling back to defaults."""
        if self.config_path.exists():
            self._config = ProjectConfig.load_from_file(self.config_path)
        else:
            self._config = ProjectConfig()
        return self._config

    def save_config(self) -> None:
        """Save current configuration to file."""
        if self._config is None:
            raise ConfigurationError("No configuration to save")
        self._config.save_to_file(self.config_path)
