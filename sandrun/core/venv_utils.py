"""
Utilities for locating the Python interpreter that runs guest code.
Looks for a project venv (`.venv` or `venv`) in the invocation directory,
then for `python3`/`python` on PATH.
"""

import asyncio
import os
import shutil
import sys
from pathlib import Path

from .logging import get_logger

logger = get_logger(__name__)

_PROBE_TIMEOUT_SECONDS = 5.0


def find_project_venv(project_dir: Path) -> Path | None:
    """
    Find virtual environment in project directory.

    Checks for:
    - .venv/ (standard location)
    - venv/ (alternative location)
    """
    for venv_name in [".venv", "venv"]:
        venv_path = project_dir / venv_name
        if venv_path.exists() and get_venv_python(venv_path) is not None:
            return venv_path
    return None


def get_venv_python(venv_path: Path) -> Path | None:
    """Get Python executable path from venv, or None if not found."""
    if os.name == "nt":  # Windows
        python_exe = venv_path / "Scripts" / "python.exe"
    else:  # Unix-like
        python_exe = venv_path / "bin" / "python"

    return python_exe if python_exe.exists() else None


async def probe_python(command: str) -> bool:
    """Return True if `command --version` exits cleanly within the probe timeout."""
    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            "--version",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError:
        return False

    try:
        return await asyncio.wait_for(proc.wait(), timeout=_PROBE_TIMEOUT_SECONDS) == 0
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return False


async def detect_python(configured: str | None = None, project_dir: Path | None = None) -> str:
    """
    Pick the interpreter used for guest code and package installs.

    Order: configured executable, project venv, python3/python on PATH,
    then the host interpreter. A configured executable is returned as-is so
    that a missing interpreter surfaces as a spawn failure.
    """
    if configured:
        return configured

    venv_path = find_project_venv(project_dir or Path.cwd())
    if venv_path:
        python_exe = get_venv_python(venv_path)
        if python_exe:
            logger.debug(f"Using project venv Python: {python_exe}")
            return str(python_exe)

    for candidate in ("python3", "python"):
        resolved = shutil.which(candidate)
        if resolved and await probe_python(resolved):
            return resolved

    logger.debug("No python on PATH - using sys.executable")
    return sys.executable
