"""
Custom exceptions for sandrun.

Provides specific exception types for better error handling and user feedback.
"""


class SandrunError(Exception):
    """Base exception for sandrun errors."""

    user_message: str = "The Python execution request failed."
    recovery_hint: str | None = None


class ConfigurationError(SandrunError):
    """Error in configuration."""


# Request Errors


class RequestValidationError(SandrunError):
    """A request field failed validation before anything was created."""

    def __init__(self, field: str, message: str):
        super().__init__(f"Invalid argument '{field}': {message}")
        self.field = field
        self.user_message = f"Invalid arguments for execute_python_code: {field}: {message}"
        self.recovery_hint = f"Fix the '{field}' argument and try again."


# Workspace Errors


class WorkspaceError(SandrunError):
    """Working directory could not be created or verified."""

    def __init__(self, message: str, recovery_hint: str | None = None):
        super().__init__(message)
        self.user_message = message
        self.recovery_hint = recovery_hint


class WorkspaceEscapeError(WorkspaceError):
    """A relative workspace path resolved outside the invocation directory."""

    def __init__(self, workspace: str, base: str):
        super().__init__(
            f"Workspace path '{workspace}' escapes the base directory {base}",
            recovery_hint="Use a path inside the current directory or an absolute path.",
        )
        self.workspace = workspace
        self.base = base


# Dependency Errors


class DependencyError(SandrunError):
    """Dependency installation failed; the whole batch is aborted."""

    def __init__(self, message: str, packages: list[str] | None = None):
        super().__init__(message)
        self.packages = list(packages or [])
        self.user_message = message
        self.recovery_hint = "Check the package names and versions, then retry."


class InvalidPackageSpecError(DependencyError):
    """A dependency specifier failed the installer's grammar check."""

    def __init__(self, spec: str, reason: str):
        super().__init__(f"Invalid package specifier '{spec}': {reason}", packages=[spec])
        self.spec = spec
        self.reason = reason
        self.recovery_hint = (
            "Package names must not start with '-' and may only contain letters, digits, "
            "'_', '.', '-', and version specifiers ([, ], =, <, >, ,, !)."
        )


class DependencyInstallTimeoutError(DependencyError):
    """The package installer exceeded the request timeout."""

    def __init__(self, packages: list[str], timeout_ms: int, partial_output: str = ""):
        super().__init__(
            f"Failed to install packages: {', '.join(packages)} - Timeout after {timeout_ms}ms",
            packages=packages,
        )
        self.timeout_ms = timeout_ms
        self.partial_output = partial_output
        self.recovery_hint = f"Try increasing timeout_ms above {timeout_ms}."


# Execution Errors


class ExecutionError(SandrunError):
    """Base exception for execution errors."""


class InterpreterNotFoundError(ExecutionError):
    """The Python interpreter could not be started."""

    def __init__(self, executable: str, detail: str):
        super().__init__(f"Failed to start Python interpreter '{executable}': {detail}")
        self.executable = executable
        self.detail = detail
        self.user_message = (
            f"Failed to start Python interpreter: {detail}\n\n"
            "Python is not installed or not found in PATH. "
            "Please install Python 3 to use this tool."
        )
        self.recovery_hint = "Set sandbox.python_executable in sandrun_config.yaml."
