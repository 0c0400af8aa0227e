"""
Base types for sandbox execution runtimes.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol


class ProcessState(str, Enum):
    """Lifecycle states of a spawned process."""

    SPAWNED = "spawned"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    KILLED = "killed"
    SPAWN_FAILED = "spawn_failed"


@dataclass(slots=True)
class RuntimeExecutionRequest:
    """Execution request passed to a runtime backend."""

    argv: list[str]
    workdir: Path
    timeout_ms: int
    env: dict[str, str]
    grace_period_seconds: float = 5.0
    max_output_bytes: int | None = None


@dataclass(slots=True)
class ProcessOutcome:
    """Captured result of one subprocess run."""

    state: ProcessState = ProcessState.SPAWNED
    stdout: bytes = b""
    stderr: bytes = b""
    return_code: int | None = None
    timed_out: bool = False
    killed: bool = False
    spawn_error: str | None = None
    duration_ms: int = 0
    truncated: bool = False
    transitions: list[ProcessState] = field(default_factory=list)

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    @property
    def spawn_failed(self) -> bool:
        return self.state is ProcessState.SPAWN_FAILED

    @property
    def ok(self) -> bool:
        return self.state is ProcessState.COMPLETED and self.return_code == 0


class SandboxRuntime(Protocol):
    """Runtime contract for sandbox execution backends."""

    name: str

    async def execute(self, request: RuntimeExecutionRequest) -> ProcessOutcome:
        """Execute request and return the process outcome."""
