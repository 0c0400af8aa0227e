"""
Opt-in cross-request cache of installed dependencies.

Each unpinned specifier gets its own entry directory, keyed by the
normalized package name. Entries are populated in a private temporary
directory and then renamed into place, so readers only ever see complete
entries; when two requests race, the loser discards its copy and reuses the
winner's.

Pinned specifiers (any version operator) and ``force_reinstall`` bypass the
cache and install into the per-request directory instead.
"""

from __future__ import annotations

import os
import re
import shutil
import tempfile
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from ..core.exceptions import DependencyInstallTimeoutError
from ..core.logging import get_logger
from .installer import DependencyInstaller, InstallResult, validate_package_specs

logger = get_logger(__name__)

_VERSION_OPERATOR = re.compile(r"[=<>!~,]")
_NAME_SEPARATORS = re.compile(r"[-_.]+")
_TMP_PREFIX = ".tmp-"


def is_pinned(spec: str) -> bool:
    """True when `spec` carries any version constraint."""
    return bool(_VERSION_OPERATOR.search(spec))


def cache_key(spec: str) -> str:
    """Filesystem-safe normalized name, e.g. ``Foo.Bar[extra]`` -> ``foo-bar_extra``."""
    name, _, extras = spec.partition("[")
    key = _NAME_SEPARATORS.sub("-", name).lower()
    extras = extras.rstrip("]")
    if extras:
        parts = sorted(_NAME_SEPARATORS.sub("-", e.strip()).lower() for e in extras.split(","))
        key = f"{key}_{'-'.join(p for p in parts if p)}"
    return key


@dataclass
class CacheResolution:
    """How each requested specifier was satisfied."""

    cached: list[str] = field(default_factory=list)
    populated: list[str] = field(default_factory=list)
    direct: list[str] = field(default_factory=list)
    paths: list[Path] = field(default_factory=list)
    summaries: list[str] = field(default_factory=list)

    @property
    def notes(self) -> list[str]:
        if not self.cached:
            return []
        return [f"Using cached packages: {', '.join(self.cached)}"]

    def to_install_result(self, target_dir: Path | None) -> InstallResult:
        installed = [*self.populated, *self.direct]
        return InstallResult(
            packages=installed,
            target_dir=target_dir,
            summary="\n".join(s for s in self.summaries if s),
            notes=self.notes,
        )


class PackageCache:
    """Directory of per-package install trees shared between requests."""

    def __init__(self, directory: str | Path, installer: DependencyInstaller | None = None):
        self.directory = Path(os.path.expanduser(str(directory)))
        self.installer = installer or DependencyInstaller()

    def entry_dir(self, spec: str) -> Path:
        return self.directory / cache_key(spec)

    def lookup(self, spec: str) -> Path | None:
        entry = self.entry_dir(spec)
        return entry if entry.is_dir() else None

    def _commit(self, staging: Path, entry: Path) -> Path:
        try:
            os.rename(staging, entry)
        except OSError:
            if not entry.is_dir():
                raise
            # Lost the race: another request published first.
            logger.debug(f"Cache entry {entry} already published; discarding {staging}")
            shutil.rmtree(staging, ignore_errors=True)
        return entry

    async def _populate(
        self,
        spec: str,
        *,
        python: str,
        timeout_ms: int,
        env: Mapping[str, str],
        cwd: Path | None,
    ) -> InstallResult:
        self.directory.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=_TMP_PREFIX, dir=self.directory))
        try:
            result = await self.installer.install(
                [spec],
                python=python,
                target_dir=staging,
                timeout_ms=timeout_ms,
                env=env,
                cwd=cwd,
            )
            result.target_dir = self._commit(staging, self.entry_dir(spec))
            return result
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

    async def resolve(
        self,
        packages: list[str],
        *,
        python: str,
        request_dir: Path,
        timeout_ms: int,
        env: Mapping[str, str],
        force_reinstall: bool = False,
        cwd: Path | None = None,
    ) -> CacheResolution:
        """
        Satisfy `packages` from the cache where possible.

        Cache misses are installed one entry at a time and all installs share
        one `timeout_ms` budget. Bypassing specifiers are installed together
        into `request_dir`.
        """
        specs = validate_package_specs(packages)
        resolution = CacheResolution()
        deadline = time.monotonic() + timeout_ms / 1000

        def remaining_ms() -> int:
            left = int((deadline - time.monotonic()) * 1000)
            if left <= 0:
                raise DependencyInstallTimeoutError(specs, timeout_ms)
            return left

        for spec in specs:
            if force_reinstall or is_pinned(spec):
                resolution.direct.append(spec)
                continue
            entry = self.lookup(spec)
            if entry is not None:
                logger.debug(f"Cache hit for {spec}: {entry}")
                resolution.cached.append(spec)
                resolution.paths.append(entry)
                continue
            try:
                result = await self._populate(
                    spec, python=python, timeout_ms=remaining_ms(), env=env, cwd=cwd
                )
            except DependencyInstallTimeoutError:
                raise DependencyInstallTimeoutError(specs, timeout_ms)
            resolution.populated.append(spec)
            resolution.summaries.append(result.summary)
            if result.target_dir is not None:
                resolution.paths.append(result.target_dir)

        if resolution.direct:
            try:
                result = await self.installer.install(
                    resolution.direct,
                    python=python,
                    target_dir=request_dir,
                    timeout_ms=remaining_ms(),
                    env=env,
                    cwd=cwd,
                )
            except DependencyInstallTimeoutError:
                raise DependencyInstallTimeoutError(specs, timeout_ms)
            resolution.summaries.append(result.summary)

        if resolution.cached:
            logger.info(f"Using cached packages: {', '.join(resolution.cached)}")
        return resolution
