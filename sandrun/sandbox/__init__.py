"""
Sandboxed guest execution building blocks.
"""

from .environment import build_minimal_env, python_runtime_env
from .installer import DependencyInstaller, InstallResult, validate_package_specs
from .package_cache import PackageCache
from .policy import ConfinementPolicy, is_within, normalize_path
from .runtimes import LocalSandboxRuntime, ProcessOutcome, ProcessState, RuntimeExecutionRequest
from .shim import render_shim, write_shim_script
from .workspace import ExecutionContext, WorkspaceMode, resolve_working_directory

__all__ = [
    "ConfinementPolicy",
    "DependencyInstaller",
    "ExecutionContext",
    "InstallResult",
    "LocalSandboxRuntime",
    "PackageCache",
    "ProcessOutcome",
    "ProcessState",
    "RuntimeExecutionRequest",
    "WorkspaceMode",
    "build_minimal_env",
    "is_within",
    "normalize_path",
    "python_runtime_env",
    "render_shim",
    "resolve_working_directory",
    "validate_package_specs",
    "write_shim_script",
]
