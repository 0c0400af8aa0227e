"""
Dependency installation into an isolated per-request directory.

Every specifier is checked against a conservative grammar before anything is
spawned, so a caller cannot smuggle installer options (``--index-url``,
``-e``, ...) into the argument vector.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from ..core.exceptions import (
    DependencyError,
    DependencyInstallTimeoutError,
    InterpreterNotFoundError,
    InvalidPackageSpecError,
)
from ..core.logging import get_logger
from .runtimes import LocalSandboxRuntime, ProcessOutcome, RuntimeExecutionRequest, SandboxRuntime

logger = get_logger(__name__)

# No leading '-', no '..' or '--' anywhere, and a restricted charset.
PACKAGE_SPEC_PATTERN = re.compile(r"^(?!-)(?!.*(?:\.\.|--))[A-Za-z0-9_.\-\[\]!>=<,]+$")

SUMMARY_MARKERS = ("Successfully installed", "Requirement already satisfied", "WARNING", "ERROR")
SUMMARY_TAIL_LINES = 5


def package_spec_error(spec: object) -> str | None:
    """Return why `spec` is rejected, or None if it is acceptable."""
    if not isinstance(spec, str):
        return "must be a string"
    if not spec:
        return "must not be empty"
    if spec.startswith("-"):
        return "must not start with '-'"
    if ".." in spec:
        return "must not contain '..'"
    if "--" in spec:
        return "must not contain '--'"
    if not PACKAGE_SPEC_PATTERN.fullmatch(spec):
        return "contains characters outside the allowed set"
    return None


def validate_package_specs(packages: Iterable[object]) -> list[str]:
    """Check every specifier; the first bad one fails the whole batch."""
    validated: list[str] = []
    for spec in packages:
        reason = package_spec_error(spec)
        if reason is not None:
            raise InvalidPackageSpecError(str(spec), reason)
        validated.append(spec)  # type: ignore[arg-type]
    return validated


def pip_install_argv(python: str, target_dir: Path, packages: list[str]) -> list[str]:
    return [
        python,
        "-m",
        "pip",
        "install",
        "--target",
        str(target_dir),
        "--no-input",
        "--disable-pip-version-check",
        *packages,
    ]


def summarize_pip_output(output: str) -> str:
    """Keep the informative pip lines, or the tail when none match."""
    lines = [line.rstrip() for line in output.splitlines() if line.strip()]
    kept = [line for line in lines if any(marker in line for marker in SUMMARY_MARKERS)]
    if not kept:
        kept = lines[-SUMMARY_TAIL_LINES:]
    return "\n".join(kept)


@dataclass
class InstallResult:
    """Outcome of a successful install batch."""

    packages: list[str]
    target_dir: Path | None
    summary: str = ""
    duration_ms: int = 0
    notes: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        parts = []
        if self.packages:
            parts.append(f"Successfully installed packages: {', '.join(self.packages)}")
        parts.extend(self.notes)
        return "\n".join(parts)


class DependencyInstaller:
    """Runs pip with ``--target`` through a sandbox runtime."""

    def __init__(
        self,
        runtime: SandboxRuntime | None = None,
        *,
        grace_period_seconds: float = 5.0,
        max_output_bytes: int | None = None,
    ):
        self.runtime = runtime or LocalSandboxRuntime()
        self.grace_period_seconds = grace_period_seconds
        self.max_output_bytes = max_output_bytes

    async def install(
        self,
        packages: Iterable[str],
        *,
        python: str,
        target_dir: Path,
        timeout_ms: int,
        env: Mapping[str, str],
        cwd: Path | None = None,
    ) -> InstallResult:
        """
        Install `packages` into `target_dir`.

        Raises:
            InvalidPackageSpecError: a specifier failed the grammar check
            InterpreterNotFoundError: the interpreter could not be spawned
            DependencyInstallTimeoutError: pip exceeded `timeout_ms`
            DependencyError: pip exited non-zero
        """
        specs = validate_package_specs(packages)
        if not specs:
            return InstallResult(packages=[], target_dir=target_dir)

        argv = pip_install_argv(python, target_dir, specs)
        logger.info(f"Installing packages into {target_dir}: {', '.join(specs)}")
        outcome: ProcessOutcome = await self.runtime.execute(
            RuntimeExecutionRequest(
                argv=argv,
                workdir=cwd or target_dir,
                timeout_ms=timeout_ms,
                env=dict(env),
                grace_period_seconds=self.grace_period_seconds,
                max_output_bytes=self.max_output_bytes,
            )
        )

        if outcome.spawn_failed:
            raise InterpreterNotFoundError(python, outcome.spawn_error or "spawn failed")

        if outcome.timed_out:
            raise DependencyInstallTimeoutError(
                specs,
                timeout_ms,
                partial_output=outcome.stdout_text + outcome.stderr_text,
            )

        if outcome.return_code != 0:
            raise DependencyError(
                f"Failed to install packages: {', '.join(specs)}\n\n"
                f"Error:\n{outcome.stderr_text}\n{outcome.stdout_text}",
                packages=specs,
            )

        summary = summarize_pip_output(outcome.stdout_text + "\n" + outcome.stderr_text)
        logger.debug(f"pip finished in {outcome.duration_ms}ms:\n{summary}")
        return InstallResult(
            packages=specs,
            target_dir=target_dir,
            summary=summary,
            duration_ms=outcome.duration_ms,
        )
