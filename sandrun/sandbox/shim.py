"""
Confinement shim generation.

Renders :data:`~sandrun.sandbox.shim_template.SHIM_TEMPLATE` into the script
the guest interpreter runs. The caller's source and the policy are embedded
base64-encoded, so no caller-controlled text is ever spliced into code.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from pathlib import Path

from ..core.logging import get_logger
from .policy import ConfinementPolicy, normalize_path
from .shim_template import SHIM_TEMPLATE, SHIM_TEMPLATE_VERSION, USER_CODE_FILENAME

logger = get_logger(__name__)


@dataclass(slots=True)
class ShimConfig:
    """Everything the guest preamble needs to know about its confinement."""

    roots: list[str]
    read_only_roots: list[str]
    fold_case: bool
    workdir: str
    scratch_dir: str

    @classmethod
    def from_policy(
        cls,
        policy: ConfinementPolicy,
        *,
        workdir: Path,
        scratch_dir: Path,
    ) -> ShimConfig:
        return cls(
            roots=list(policy.roots),
            read_only_roots=list(policy.read_only_roots),
            fold_case=policy.fold_case,
            workdir=str(workdir),
            # Resolved, so tempfile paths created in the guest pass the check.
            scratch_dir=normalize_path(scratch_dir, fold_case=False),
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "version": SHIM_TEMPLATE_VERSION,
                "roots": self.roots,
                "read_only_roots": self.read_only_roots,
                "fold_case": self.fold_case,
                "workdir": self.workdir,
                "scratch_dir": self.scratch_dir,
            },
            sort_keys=True,
        )


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def render_shim(code: str, config: ShimConfig) -> str:
    """Return the complete guest script for `code` under `config`."""
    return SHIM_TEMPLATE.substitute(
        version=SHIM_TEMPLATE_VERSION,
        config_b64=_b64(config.to_json()),
        code_b64=_b64(code),
        user_code_filename=USER_CODE_FILENAME,
    )


def write_shim_script(
    code: str,
    *,
    policy: ConfinementPolicy,
    workdir: Path,
    scratch_dir: Path,
    script_path: Path,
) -> Path:
    """Render the shim for `code` and write it to `script_path`."""
    config = ShimConfig.from_policy(policy, workdir=workdir, scratch_dir=scratch_dir)
    script_path.write_text(render_shim(code, config), encoding="utf-8")
    logger.debug(
        f"Wrote confinement shim v{SHIM_TEMPLATE_VERSION} to {script_path} "
        f"(roots={config.roots}, read_only={config.read_only_roots})"
    )
    return script_path
