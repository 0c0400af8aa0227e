"""
Sandbox runtime backends.
"""

from .base import ProcessOutcome, ProcessState, RuntimeExecutionRequest, SandboxRuntime
from .local_runtime import LocalSandboxRuntime

__all__ = [
    "LocalSandboxRuntime",
    "ProcessOutcome",
    "ProcessState",
    "RuntimeExecutionRequest",
    "SandboxRuntime",
]
