"""
Confinement policy: the normalized set of directories a guest may touch.

The same normalization and boundary rule is emitted into the guest shim, so
host-side checks and guest-side checks agree.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

# Platforms whose default filesystems compare paths case-insensitively.
CASE_INSENSITIVE_PLATFORMS = ("win32", "cygwin", "darwin")


def is_case_insensitive_platform(platform: str | None = None) -> bool:
    return (platform or sys.platform) in CASE_INSENSITIVE_PLATFORMS


def normalize_path(path: str | os.PathLike[str], *, fold_case: bool | None = None) -> str:
    """
    Canonicalize a path for policy comparison.

    Expands ``~``, resolves symlinks, strips trailing separators and folds
    case on case-insensitive platforms. Raises on malformed input; callers
    that check membership treat any exception as a denial.
    """
    if fold_case is None:
        fold_case = is_case_insensitive_platform()

    raw = os.fspath(path)
    if isinstance(raw, bytes):
        raw = os.fsdecode(raw)
    if not raw:
        raise ValueError("empty path")

    resolved = os.path.realpath(os.path.expanduser(raw))
    stripped = resolved.rstrip(os.sep)
    if os.altsep:
        stripped = stripped.rstrip(os.altsep)
    # Filesystem root ("/" or "C:\\") keeps its separator.
    if not stripped or stripped.endswith(":"):
        stripped = resolved

    return stripped.lower() if fold_case else stripped


def is_within(candidate: str, root: str) -> bool:
    """Boundary-aware containment of two already-normalized paths."""
    if candidate == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return candidate.startswith(prefix)


@dataclass(slots=True)
class ConfinementPolicy:
    """Ordered allow-list of directory roots, stored pre-normalized."""

    roots: list[str] = field(default_factory=list)
    read_only_roots: list[str] = field(default_factory=list)
    fold_case: bool = field(default_factory=is_case_insensitive_platform)

    @classmethod
    def from_directories(
        cls,
        directories: list[str | os.PathLike[str]],
        read_only: list[str | os.PathLike[str]] | None = None,
        *,
        fold_case: bool | None = None,
    ) -> ConfinementPolicy:
        if fold_case is None:
            fold_case = is_case_insensitive_platform()
        policy = cls(fold_case=fold_case)
        for directory in directories:
            policy.add_root(directory)
        for directory in read_only or []:
            policy.add_root(directory, read_only=True)
        return policy

    def add_root(self, directory: str | os.PathLike[str], *, read_only: bool = False) -> str:
        normalized = normalize_path(directory, fold_case=self.fold_case)
        target = self.read_only_roots if read_only else self.roots
        if normalized not in target:
            target.append(normalized)
        return normalized

    def allows(self, path: str | os.PathLike[str], *, write: bool = True) -> bool:
        """Return True if `path` falls inside an allowed root. Errors deny."""
        try:
            candidate = normalize_path(path, fold_case=self.fold_case)
        except (OSError, TypeError, ValueError):
            return False

        roots = self.roots if write else [*self.roots, *self.read_only_roots]
        return any(is_within(candidate, root) for root in roots)

    def to_dict(self) -> dict[str, object]:
        return {
            "roots": list(self.roots),
            "read_only_roots": list(self.read_only_roots),
            "fold_case": self.fold_case,
        }
