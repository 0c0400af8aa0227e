"""
Workspace resolution and per-request execution contexts.

Workspace modes:
  - ``temp``: the per-request scratch directory is the working directory
  - ``persistent``: a fixed directory under the user's home, kept forever
  - anything else: a custom path (absolute paths are trusted, relative paths
    must stay inside the invocation directory)

An explicit ``target_directory`` overrides whatever the workspace mode
would pick; the mode then only decides the default.
"""

from __future__ import annotations

import errno
import os
import shutil
import tempfile
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..core.exceptions import WorkspaceError, WorkspaceEscapeError
from ..core.logging import get_logger
from .policy import ConfinementPolicy

logger = get_logger(__name__)

SCRATCH_PREFIX = "python-exec-"
SCRIPT_NAME = "script.py"
PACKAGES_DIRNAME = "packages"


class WorkspaceMode(str, Enum):
    """Selector for the default guest working directory."""

    TEMP = "temp"
    PERSISTENT = "persistent"
    CUSTOM = "custom"

    @classmethod
    def classify(cls, workspace: str | None) -> WorkspaceMode:
        value = (workspace or cls.TEMP.value).strip()
        if value == cls.TEMP.value:
            return cls.TEMP
        if value == cls.PERSISTENT.value:
            return cls.PERSISTENT
        return cls.CUSTOM


@dataclass
class ExecutionContext:
    """State owned by exactly one execution request."""

    scratch_dir: Path
    packages_dir: Path
    script_path: Path
    workdir: Path | None = None
    policy: ConfinementPolicy | None = None
    extra_python_path: list[Path] = field(default_factory=list)
    _cleaned: bool = field(default=False, repr=False)

    @classmethod
    def create(cls, base_dir: Path | None = None) -> ExecutionContext:
        """Create the scratch directory and its package install directory."""
        parent = Path(base_dir) if base_dir else Path(tempfile.gettempdir())
        session_id = f"{SCRATCH_PREFIX}{int(time.time() * 1000)}-{uuid.uuid4().hex[:10]}"
        scratch_dir = parent / session_id
        scratch_dir.mkdir(parents=True, exist_ok=False)
        packages_dir = scratch_dir / PACKAGES_DIRNAME
        packages_dir.mkdir()
        logger.debug(f"Created scratch directory {scratch_dir}")
        return cls(
            scratch_dir=scratch_dir,
            packages_dir=packages_dir,
            script_path=scratch_dir / SCRIPT_NAME,
        )

    @property
    def python_path(self) -> list[Path]:
        """Dependency search path for the guest: per-request dir first."""
        return [self.packages_dir, *self.extra_python_path]

    def build_policy(self, read_only: list[Path] | None = None) -> ConfinementPolicy:
        """Allow the working directory and the scratch directory."""
        if self.workdir is None:
            raise WorkspaceError("Working directory has not been resolved")
        self.policy = ConfinementPolicy.from_directories(
            [self.workdir, self.scratch_dir],
            read_only=list(read_only or []),
        )
        return self.policy

    def cleanup(self) -> bool:
        """
        Remove the scratch directory. Safe to call repeatedly.

        Returns:
            True if the directory is gone afterwards, False if removal failed
            (the failure is logged, never raised).
        """
        if self._cleaned and not self.scratch_dir.exists():
            return True
        try:
            shutil.rmtree(self.scratch_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(
                f"Failed to clean up temporary Python execution directory {self.scratch_dir}: {e}"
            )
            return False
        self._cleaned = True
        return True


def _describe_mkdir_error(path: Path, exc: OSError, purpose: str) -> WorkspaceError:
    if isinstance(exc, PermissionError) or exc.errno in (errno.EACCES, errno.EPERM):
        return WorkspaceError(
            f"Permission denied creating {purpose} at {path}",
            recovery_hint=f"Check write permissions on {path.parent} or choose another workspace.",
        )
    if exc.errno in (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)):
        return WorkspaceError(
            f"No space left on device while creating {purpose} at {path}",
            recovery_hint="Free up disk space or choose a workspace on another volume.",
        )
    if isinstance(exc, (FileExistsError, NotADirectoryError)) or exc.errno in (
        errno.EEXIST,
        errno.ENOTDIR,
    ):
        return WorkspaceError(
            f"Cannot create {purpose}: {path} exists and is not a directory",
            recovery_hint=f"Remove or rename the file at {path}, or choose another workspace.",
        )
    return WorkspaceError(
        f"Failed to create {purpose} at {path}: {exc}",
        recovery_hint="Check the path and try again.",
    )


def ensure_directory(path: Path, purpose: str = "workspace directory") -> Path:
    """Create `path` (and parents) if needed, mapping failures to WorkspaceError."""
    if path.exists() and not path.is_dir():
        raise _describe_mkdir_error(path, FileExistsError(errno.EEXIST, "exists"), purpose)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise _describe_mkdir_error(path, e, purpose) from e
    except ValueError as e:
        raise WorkspaceError(
            f"Invalid {purpose} path {str(path)!r}: {e}",
            recovery_hint="Use a path without NUL characters.",
        ) from e
    return path


def resolve_relative_within(workspace: str, base: Path) -> Path:
    """
    Resolve a relative workspace path that must stay inside `base`.

    Both the lexical form and the symlink-resolved form are checked.
    """
    base = Path(os.path.abspath(base))
    resolved = Path(os.path.normpath(base / workspace))

    for candidate, anchor in (
        (resolved, base),
        (Path(os.path.realpath(resolved)), Path(os.path.realpath(base))),
    ):
        try:
            relative = os.path.relpath(candidate, anchor)
        except ValueError:
            # Different drives on Windows.
            raise WorkspaceEscapeError(workspace, str(base))
        if relative == os.pardir or relative.startswith(os.pardir + os.sep) or os.path.isabs(relative):
            raise WorkspaceEscapeError(workspace, str(base))

    return resolved


def resolve_workspace_dir(
    workspace: str | None,
    context: ExecutionContext,
    *,
    persistent_root: str | Path,
    base_dir: Path | None = None,
) -> Path:
    """Pick the workspace-derived directory, creating it when the mode requires."""
    mode = WorkspaceMode.classify(workspace)
    if mode is WorkspaceMode.TEMP:
        return context.scratch_dir

    if mode is WorkspaceMode.PERSISTENT:
        path = Path(os.path.expanduser(str(persistent_root)))
        return ensure_directory(Path(os.path.abspath(path)), "persistent workspace")

    value = str(workspace).strip()
    if os.path.isabs(value):
        path = Path(os.path.normpath(value))
    else:
        path = resolve_relative_within(value, base_dir or Path.cwd())
    return ensure_directory(path, "custom workspace")


def verify_directory(path: Path) -> Path:
    if not path.exists():
        raise WorkspaceError(
            f"Target directory does not exist: {path}",
            recovery_hint="Create the directory first or omit target_directory.",
        )
    if not path.is_dir():
        raise WorkspaceError(
            f"Target path is not a directory: {path}",
            recovery_hint="Point target_directory at a directory, not a file.",
        )
    return path


def resolve_working_directory(
    context: ExecutionContext,
    *,
    workspace: str | None = None,
    target_directory: str | None = None,
    persistent_root: str | Path,
    base_dir: Path | None = None,
) -> Path:
    """
    Resolve and verify the guest working directory for `context`.

    ``target_directory`` wins over the workspace mode. On any failure the
    scratch directory is removed before the error propagates.
    """
    base = Path(base_dir) if base_dir else Path.cwd()
    try:
        if target_directory:
            target = Path(os.path.expanduser(target_directory))
            if not target.is_absolute():
                target = base / target
            workdir = Path(os.path.normpath(target))
        else:
            workdir = resolve_workspace_dir(
                workspace,
                context,
                persistent_root=persistent_root,
                base_dir=base,
            )
        verify_directory(workdir)
    except WorkspaceError:
        context.cleanup()
        raise
    except (OSError, ValueError) as e:
        context.cleanup()
        raise WorkspaceError(
            f"Failed to resolve working directory: {e}",
            recovery_hint="Check that the workspace or target_directory path is valid.",
        ) from e

    context.workdir = workdir
    logger.debug(f"Resolved working directory {workdir} (workspace={workspace!r})")
    return workdir
