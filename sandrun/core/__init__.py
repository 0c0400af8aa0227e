"""
Core functionality for sandrun.
"""

from .config import ConfigManager, PackageCacheConfig, ProjectConfig, SandboxConfig
from .exceptions import (
    ConfigurationError,
    DependencyError,
    DependencyInstallTimeoutError,
    ExecutionError,
    InterpreterNotFoundError,
    InvalidPackageSpecError,
    RequestValidationError,
    SandrunError,
    WorkspaceError,
    WorkspaceEscapeError,
)
from .logging import get_logger, setup_logging

__all__ = [
    "ConfigManager",
    "ConfigurationError",
    "DependencyError",
    "DependencyInstallTimeoutError",
    "ExecutionError",
    "InterpreterNotFoundError",
    "InvalidPackageSpecError",
    "PackageCacheConfig",
    "ProjectConfig",
    "RequestValidationError",
    "SandboxConfig",
    "SandrunError",
    "WorkspaceError",
    "WorkspaceEscapeError",
    "get_logger",
    "setup_logging",
]
