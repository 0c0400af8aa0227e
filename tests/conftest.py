"""
Pytest configuration and fixtures for sandrun tests.
"""

import os
import sys
from pathlib import Path

import pytest
from hypothesis import Verbosity, settings

from sandrun.core.config import ProjectConfig
from sandrun.execution import PythonExecutor
from sandrun.sandbox.runtimes import ProcessOutcome, ProcessState

# Configure hypothesis settings for property-based testing
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Disable deadline for slow operations
)

settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.register_profile(
    "dev",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


class RecordingRuntime:
    """Runtime double that records requests and replays a fixed outcome."""

    name = "recording"

    def __init__(self, outcome: ProcessOutcome | None = None):
        self.outcome = outcome or ProcessOutcome(state=ProcessState.COMPLETED, return_code=0)
        self.requests = []

    async def execute(self, request):
        self.requests.append(request)
        return self.outcome


@pytest.fixture
def recording_runtime():
    return RecordingRuntime()


@pytest.fixture
def project_config(tmp_path):
    """Defaults, pinned to the test interpreter and a private persistent dir."""
    config = ProjectConfig()
    config.sandbox.python_executable = sys.executable
    config.sandbox.persistent_workspace = str(tmp_path / "persistent")
    config.sandbox.grace_period_seconds = 1.0
    config.package_cache.directory = str(tmp_path / "package-cache")
    return config


@pytest.fixture
def base_dir(tmp_path) -> Path:
    path = tmp_path / "base"
    path.mkdir()
    return path


@pytest.fixture
def scratch_root(tmp_path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture
def executor(project_config, base_dir, scratch_root):
    return PythonExecutor(project_config, base_dir=base_dir, scratch_root=scratch_root)


@pytest.fixture
def outside_dir(tmp_path) -> Path:
    """A directory no guest is ever granted."""
    path = tmp_path / "outside"
    path.mkdir()
    (path / "secret.txt").write_text("top secret", encoding="utf-8")
    return path
