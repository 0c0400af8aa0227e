"""
Result formatting for execution responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..core.exceptions import SandrunError
from ..sandbox.runtimes import ProcessOutcome

NO_OUTPUT = "(no output)"


def workspace_uri(path: Path | str) -> str:
    """``file://`` URI of `path` with forward slashes on every platform."""
    text = str(path).replace("\\", "/")
    if not text.startswith("/"):
        text = "/" + text
    return f"file://{text}"


def format_success(stdout: str, stderr: str) -> str:
    text = stdout if stdout else NO_OUTPUT
    if stderr.strip():
        text += f"\n\nWarnings/Info:\n{stderr}"
    return text


def format_timeout(timeout_ms: int, stdout: str, stderr: str) -> str:
    return f"Execution timed out after {timeout_ms}ms\n\nPartial output:\n{stdout}\n{stderr}"


def format_failure(return_code: int | None, stderr: str, stdout: str) -> str:
    return f"Execution failed (exit code {return_code}):\n{stderr}\n{stdout}"


def format_spawn_failure(detail: str) -> str:
    return f"Failed to start Python interpreter: {detail}"


def format_error(error: BaseException) -> str:
    if isinstance(error, SandrunError):
        text = error.user_message or str(error)
        if error.recovery_hint:
            text += f"\n\nHint: {error.recovery_hint}"
        return text
    return f"Failed to execute Python code: {error}"


def execution_details(
    workdir: Path,
    timeout_ms: int,
    packages: list[str] | None = None,
    notes: list[str] | None = None,
    truncated: bool = False,
) -> str:
    lines = [
        "Execution Details:",
        f"- Working directory: {workspace_uri(workdir)}",
        f"- Timeout: {timeout_ms}ms",
    ]
    if packages:
        lines.append(f"- Installed packages: {', '.join(packages)}")
    for note in notes or []:
        lines.append(f"- {note}")
    if truncated:
        lines.append("- Output was truncated")
    return "\n".join(lines)


def format_outcome(outcome: ProcessOutcome, timeout_ms: int) -> tuple[bool, str]:
    """Map a process outcome to ``(success, text)``."""
    stdout = outcome.stdout_text
    stderr = outcome.stderr_text
    if outcome.spawn_failed:
        return False, format_spawn_failure(outcome.spawn_error or "unknown error")
    if outcome.timed_out:
        return False, format_timeout(timeout_ms, stdout, stderr)
    if outcome.return_code != 0:
        return False, format_failure(outcome.return_code, stderr, stdout)
    return True, format_success(stdout, stderr)


@dataclass
class ExecutionResponse:
    """Text blocks plus an error flag, in tool-call response shape."""

    success: bool
    text: str
    blocks: list[str] = field(default_factory=list)
    outcome: ProcessOutcome | None = None

    @property
    def is_error(self) -> bool:
        return not self.success

    @classmethod
    def from_error(cls, error: BaseException) -> ExecutionResponse:
        return cls(success=False, text=format_error(error))

    def to_mcp_response(self) -> dict[str, Any]:
        """Convert to MCP response format."""
        return {
            "content": [{"type": "text", "text": block} for block in [self.text, *self.blocks]],
            "isError": self.is_error,
        }
