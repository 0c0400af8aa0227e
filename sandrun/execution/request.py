"""
Execution request model and upstream argument validation.

Validation happens here, before any directory is created or process spawned.
The installer re-checks package specifiers at its own boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..core.config import SandboxConfig
from ..core.exceptions import RequestValidationError
from ..sandbox.installer import package_spec_error

AUTO_TIMEOUT = "auto"
MIN_TIMEOUT_MS = 1_000
MAX_TIMEOUT_MS = 300_000


def _is_utf8_text(value: str) -> bool:
    # Lone surrogates survive JSON decoding but cannot be written as source.
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class ReturnFormat(str, Enum):
    SIMPLE = "simple"
    DETAILED = "detailed"


@dataclass
class ExecutionRequest:
    """One validated call of the execution tool."""

    code: str
    target_directory: str | None = None
    timeout_ms: int | str = AUTO_TIMEOUT
    install_packages: list[str] = field(default_factory=list)
    workspace: str = "temp"
    return_format: ReturnFormat = ReturnFormat.SIMPLE
    force_reinstall: bool = False

    @classmethod
    def from_arguments(cls, arguments: dict[str, Any] | None) -> ExecutionRequest:
        """Validate raw tool arguments. Raises RequestValidationError naming the field."""
        if not isinstance(arguments, dict):
            raise RequestValidationError("arguments", "expected an object")

        code = arguments.get("code")
        if not isinstance(code, str) or not code.strip():
            raise RequestValidationError("code", "must be a non-empty string")
        if not _is_utf8_text(code):
            raise RequestValidationError("code", "must be valid UTF-8 text (unpaired surrogate found)")

        target_directory = arguments.get("target_directory")
        if target_directory is not None and not isinstance(target_directory, str):
            raise RequestValidationError("target_directory", "must be a string")
        if target_directory and "\x00" in target_directory:
            raise RequestValidationError("target_directory", "must not contain NUL characters")

        timeout_ms = arguments.get("timeout_ms", AUTO_TIMEOUT)
        if timeout_ms is None:
            timeout_ms = AUTO_TIMEOUT
        if isinstance(timeout_ms, str):
            if timeout_ms != AUTO_TIMEOUT:
                raise RequestValidationError("timeout_ms", f"must be an integer or '{AUTO_TIMEOUT}'")
        elif isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int):
            raise RequestValidationError("timeout_ms", f"must be an integer or '{AUTO_TIMEOUT}'")
        elif not MIN_TIMEOUT_MS <= timeout_ms <= MAX_TIMEOUT_MS:
            raise RequestValidationError(
                "timeout_ms", f"must be between {MIN_TIMEOUT_MS} and {MAX_TIMEOUT_MS}"
            )

        packages = arguments.get("install_packages") or []
        if not isinstance(packages, list):
            raise RequestValidationError("install_packages", "must be a list of strings")
        for spec in packages:
            reason = package_spec_error(spec)
            if reason is not None:
                raise RequestValidationError(
                    "install_packages", f"invalid package specifier {spec!r}: {reason}"
                )

        workspace = arguments.get("workspace") or "temp"
        if not isinstance(workspace, str) or not workspace.strip():
            raise RequestValidationError("workspace", "must be 'temp', 'persistent' or a path")
        if "\x00" in workspace:
            raise RequestValidationError("workspace", "must not contain NUL characters")

        raw_format = arguments.get("return_format") or ReturnFormat.SIMPLE.value
        try:
            return_format = ReturnFormat(raw_format)
        except ValueError:
            raise RequestValidationError("return_format", "must be 'simple' or 'detailed'")

        force_reinstall = arguments.get("force_reinstall", False)
        if not isinstance(force_reinstall, bool):
            raise RequestValidationError("force_reinstall", "must be a boolean")

        return cls(
            code=code,
            target_directory=target_directory or None,
            timeout_ms=timeout_ms,
            install_packages=list(packages),
            workspace=workspace.strip(),
            return_format=return_format,
            force_reinstall=force_reinstall,
        )

    def effective_timeout_ms(self, config: SandboxConfig | None = None) -> int:
        """An explicit timeout wins; "auto" depends on whether packages are requested."""
        if isinstance(self.timeout_ms, int):
            return self.timeout_ms
        config = config or SandboxConfig()
        if self.install_packages:
            return config.install_timeout_ms
        return config.default_timeout_ms
