"""
Minimal environment construction for spawned interpreters.

Only a fixed whitelist of host variables is forwarded so credentials and
tokens in the host environment never reach guest code.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping

from ..core.logging import get_logger

logger = get_logger(__name__)

BASE_ENV_WHITELIST = ("PATH", "HOME", "TMPDIR", "TEMP", "TMP")
POSIX_ENV_WHITELIST = ("USER", "LOGNAME", "LANG", "LC_ALL", "LC_CTYPE")
WINDOWS_ENV_WHITELIST = (
    "SYSTEMROOT",
    "SYSTEMDRIVE",
    "USERPROFILE",
    "APPDATA",
    "LOCALAPPDATA",
    "PATHEXT",
    "COMSPEC",
)

# Never forwarded from the host, not even through the configured allowlist.
# PYTHONPATH is owned by the runner and points only at isolated install dirs.
FORBIDDEN_ENV_KEYS = frozenset(
    {"PYTHONPATH", "PYTHONHOME", "PYTHONSTARTUP", "PYTHONINSPECT", "PYTHONUSERBASE"}
)


def whitelist_for_platform(os_name: str | None = None) -> tuple[str, ...]:
    if (os_name or os.name) == "nt":
        return BASE_ENV_WHITELIST + WINDOWS_ENV_WHITELIST
    return BASE_ENV_WHITELIST + POSIX_ENV_WHITELIST


def build_minimal_env(
    source: Mapping[str, str] | None = None,
    *,
    extra_allowlist: Iterable[str] = (),
    os_name: str | None = None,
) -> dict[str, str]:
    """
    Build the smallest environment the interpreter and pip need.

    Args:
        source: Environment to pick from (defaults to ``os.environ``)
        extra_allowlist: Additional host variable names to forward
        os_name: Override of ``os.name`` for platform selection

    Returns:
        A new dict; empty-valued entries are dropped.
    """
    if source is None:
        source = os.environ
    nt = (os_name or os.name) == "nt"

    def lookup(key: str) -> str | None:
        if not nt:
            return source.get(key)
        # Windows variable names are case-insensitive.
        for name, value in source.items():
            if name.upper() == key.upper():
                return value
        return None

    env: dict[str, str] = {}
    for key in whitelist_for_platform(os_name):
        value = lookup(key)
        if value:
            env[key] = value

    for raw_key in extra_allowlist:
        key = str(raw_key).strip()
        if not key:
            continue
        if key.upper() in FORBIDDEN_ENV_KEYS:
            logger.warning(f"Refusing to forward {key} from the host environment")
            continue
        value = lookup(key)
        if not value:
            continue
        # Prevent control chars from leaking into process env.
        env[key] = value.replace("\n", "").replace("\r", "")

    return env


def python_runtime_env(
    base: Mapping[str, str],
    *,
    python_path: Iterable[str] = (),
    os_name: str | None = None,
) -> dict[str, str]:
    """Layer interpreter settings and an explicit PYTHONPATH over a minimal env."""
    env = dict(base)
    env["PYTHONUNBUFFERED"] = "1"
    env["PYTHONDONTWRITEBYTECODE"] = "1"
    env["PYTHONIOENCODING"] = "utf-8"
    if (os_name or os.name) == "nt":
        env["PYTHONUTF8"] = "1"

    entries = [str(entry) for entry in python_path if str(entry)]
    if entries:
        env["PYTHONPATH"] = os.pathsep.join(entries)
    else:
        env.pop("PYTHONPATH", None)
    return env
