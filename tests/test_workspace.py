"""Tests for workspace resolution and execution contexts."""

import os
from pathlib import Path

import pytest

from sandrun.core.exceptions import WorkspaceError, WorkspaceEscapeError
from sandrun.sandbox.workspace import (
    PACKAGES_DIRNAME,
    SCRATCH_PREFIX,
    SCRIPT_NAME,
    ExecutionContext,
    WorkspaceMode,
    resolve_relative_within,
    resolve_working_directory,
)


@pytest.fixture
def context(scratch_root):
    ctx = ExecutionContext.create(scratch_root)
    yield ctx
    ctx.cleanup()


def test_workspace_mode_classification():
    assert WorkspaceMode.classify(None) is WorkspaceMode.TEMP
    assert WorkspaceMode.classify("temp") is WorkspaceMode.TEMP
    assert WorkspaceMode.classify("persistent") is WorkspaceMode.PERSISTENT
    assert WorkspaceMode.classify("./data") is WorkspaceMode.CUSTOM


class TestExecutionContext:
    """Tests for ExecutionContext."""

    def test_create_lays_out_scratch_directory(self, context):
        assert context.scratch_dir.is_dir()
        assert context.scratch_dir.name.startswith(SCRATCH_PREFIX)
        assert context.packages_dir == context.scratch_dir / PACKAGES_DIRNAME
        assert context.packages_dir.is_dir()
        assert context.script_path == context.scratch_dir / SCRIPT_NAME

    def test_contexts_are_unique(self, scratch_root):
        first = ExecutionContext.create(scratch_root)
        second = ExecutionContext.create(scratch_root)
        try:
            assert first.scratch_dir != second.scratch_dir
        finally:
            first.cleanup()
            second.cleanup()

    def test_cleanup_is_idempotent(self, context):
        (context.scratch_dir / "leftover.txt").write_text("x", encoding="utf-8")
        assert context.cleanup() is True
        assert not context.scratch_dir.exists()
        assert context.cleanup() is True

    def test_cleanup_failure_is_reported_not_raised(self, context, monkeypatch):
        def boom(path, *args, **kwargs):
            raise PermissionError(13, "Permission denied", str(path))

        monkeypatch.setattr("sandrun.sandbox.workspace.shutil.rmtree", boom)
        assert context.cleanup() is False

    def test_python_path_puts_request_packages_first(self, context, tmp_path):
        context.extra_python_path.append(tmp_path / "cache" / "six")
        assert context.python_path == [context.packages_dir, tmp_path / "cache" / "six"]

    def test_build_policy_requires_workdir(self, context):
        with pytest.raises(WorkspaceError):
            context.build_policy()

    def test_build_policy_grants_workdir_and_scratch(self, context, base_dir):
        context.workdir = base_dir
        policy = context.build_policy()
        assert policy.allows(base_dir / "out.txt")
        assert policy.allows(context.packages_dir / "pkg.py")
        assert not policy.allows(base_dir.parent / "elsewhere.txt")


class TestResolveWorkingDirectory:
    """Tests for resolve_working_directory."""

    def test_temp_mode_uses_scratch_directory(self, context, base_dir, tmp_path):
        workdir = resolve_working_directory(
            context, workspace="temp", persistent_root=tmp_path / "p", base_dir=base_dir
        )
        assert workdir == context.scratch_dir
        assert context.workdir == context.scratch_dir

    def test_persistent_mode_creates_directory(self, context, base_dir, tmp_path):
        persistent_root = tmp_path / "state" / "python-workspace"
        workdir = resolve_working_directory(
            context, workspace="persistent", persistent_root=persistent_root, base_dir=base_dir
        )
        assert workdir == persistent_root
        assert persistent_root.is_dir()

    def test_persistent_root_that_is_a_file(self, context, base_dir, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a dir", encoding="utf-8")

        with pytest.raises(WorkspaceError) as exc_info:
            resolve_working_directory(
                context, workspace="persistent", persistent_root=blocker, base_dir=base_dir
            )
        assert "exists and is not a directory" in str(exc_info.value)
        assert exc_info.value.recovery_hint
        assert not context.scratch_dir.exists()

    @pytest.mark.parametrize("mode", ["persistent", "custom"])
    def test_nul_byte_in_path_is_a_workspace_error(self, context, base_dir, tmp_path, mode):
        bad = str(tmp_path / "ws") + "\x00evil"
        with pytest.raises(WorkspaceError):
            resolve_working_directory(
                context,
                workspace="persistent" if mode == "persistent" else bad,
                persistent_root=Path(bad),
                base_dir=base_dir,
            )
        assert not context.scratch_dir.exists()

    def test_custom_relative_path_is_created_inside_base(self, context, base_dir, tmp_path):
        workdir = resolve_working_directory(
            context, workspace="data/run1", persistent_root=tmp_path / "p", base_dir=base_dir
        )
        assert workdir == base_dir / "data" / "run1"
        assert workdir.is_dir()

    def test_custom_absolute_path_is_trusted(self, context, base_dir, tmp_path):
        target = tmp_path / "absolute" / "ws"
        workdir = resolve_working_directory(
            context, workspace=f"{target}/../ws", persistent_root=tmp_path / "p", base_dir=base_dir
        )
        assert workdir == target
        assert target.is_dir()

    def test_relative_escape_fails_closed(self, context, base_dir, tmp_path):
        with pytest.raises(WorkspaceEscapeError):
            resolve_working_directory(
                context, workspace="../elsewhere", persistent_root=tmp_path / "p", base_dir=base_dir
            )
        assert not (tmp_path / "elsewhere").exists()
        assert not context.scratch_dir.exists()

    def test_target_directory_overrides_workspace(self, context, base_dir, tmp_path):
        target = tmp_path / "target"
        target.mkdir()
        persistent_root = tmp_path / "p"

        workdir = resolve_working_directory(
            context,
            workspace="persistent",
            target_directory=str(target),
            persistent_root=persistent_root,
            base_dir=base_dir,
        )
        assert workdir == target
        assert not persistent_root.exists()

    def test_relative_target_directory_resolves_against_base(self, context, base_dir, tmp_path):
        (base_dir / "project").mkdir()
        workdir = resolve_working_directory(
            context, target_directory="project", persistent_root=tmp_path / "p", base_dir=base_dir
        )
        assert workdir == base_dir / "project"

    def test_missing_target_directory_is_not_created(self, context, base_dir, tmp_path):
        missing = tmp_path / "missing"
        with pytest.raises(WorkspaceError) as exc_info:
            resolve_working_directory(
                context, target_directory=str(missing), persistent_root=tmp_path / "p", base_dir=base_dir
            )
        assert "does not exist" in str(exc_info.value)
        assert not missing.exists()
        assert not context.scratch_dir.exists()

    def test_target_directory_that_is_a_file(self, context, base_dir, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("x", encoding="utf-8")
        with pytest.raises(WorkspaceError) as exc_info:
            resolve_working_directory(
                context, target_directory=str(target), persistent_root=tmp_path / "p", base_dir=base_dir
            )
        assert "not a directory" in str(exc_info.value)


class TestResolveRelativeWithin:
    """Tests for resolve_relative_within."""

    def test_dot_segments_inside_base_are_allowed(self, base_dir):
        assert resolve_relative_within("a/../b", base_dir) == base_dir / "b"
        assert resolve_relative_within(".", base_dir) == base_dir

    def test_parent_reference_is_rejected(self, base_dir):
        with pytest.raises(WorkspaceEscapeError):
            resolve_relative_within("..", base_dir)
        with pytest.raises(WorkspaceEscapeError):
            resolve_relative_within("a/../../b", base_dir)

    def test_dotdot_prefixed_name_is_not_an_escape(self, base_dir):
        assert resolve_relative_within("..data", base_dir) == base_dir / "..data"

    def test_symlink_escape_is_rejected(self, base_dir, tmp_path):
        outside = tmp_path / "outside-link-target"
        outside.mkdir()
        os.symlink(outside, base_dir / "link", target_is_directory=True)
        with pytest.raises(WorkspaceEscapeError):
            resolve_relative_within("link/sub", base_dir)
