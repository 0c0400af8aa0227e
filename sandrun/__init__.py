"""
sandrun: confined execution of Python code.

Runs caller-supplied code in a separate interpreter whose filesystem access is
limited to its working directory and a per-request scratch directory, with
injection-safe dependency installs, a bounded lifetime and a minimal
environment.
"""

from .core.config import ConfigManager, ProjectConfig
from .execution import ExecutionRequest, ExecutionResponse, PythonExecutor

__version__ = "0.1.0"

__all__ = [
    "ConfigManager",
    "ExecutionRequest",
    "ExecutionResponse",
    "ProjectConfig",
    "PythonExecutor",
    "__version__",
]
