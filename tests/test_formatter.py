"""Tests for execution result formatting."""

from pathlib import Path, PureWindowsPath

from sandrun.core.exceptions import DependencyInstallTimeoutError, WorkspaceError
from sandrun.execution.formatter import (
    ExecutionResponse,
    execution_details,
    format_failure,
    format_outcome,
    format_success,
    format_timeout,
    workspace_uri,
)
from sandrun.sandbox.runtimes import ProcessOutcome, ProcessState


def test_success_without_output():
    assert format_success("", "") == "(no output)"


def test_success_with_stderr_section():
    assert format_success("42\n", "DeprecationWarning: x\n") == (
        "42\n\n\nWarnings/Info:\nDeprecationWarning: x\n"
    )


def test_whitespace_only_stderr_adds_no_section():
    assert format_success("42\n", "\n  \n") == "42\n"
    assert format_success("", " \t\n") == "(no output)"


def test_timeout_text_includes_partial_output():
    assert format_timeout(1000, "partial\n", "") == (
        "Execution timed out after 1000ms\n\nPartial output:\npartial\n\n"
    )


def test_failure_text():
    assert format_failure(1, "Traceback...\n", "") == "Execution failed (exit code 1):\nTraceback...\n\n"


def test_workspace_uri_uses_forward_slashes():
    assert workspace_uri(Path("/srv/ws")) == "file:///srv/ws"
    assert workspace_uri(PureWindowsPath("C:\\Users\\me\\ws")) == "file:///C:/Users/me/ws"


def test_execution_details():
    details = execution_details(
        Path("/srv/ws"),
        120_000,
        packages=["six", "idna"],
        notes=["Using cached packages: six"],
    )
    assert details.splitlines() == [
        "Execution Details:",
        "- Working directory: file:///srv/ws",
        "- Timeout: 120000ms",
        "- Installed packages: six, idna",
        "- Using cached packages: six",
    ]


class TestFormatOutcome:
    """Tests for format_outcome."""

    def test_completed(self):
        outcome = ProcessOutcome(state=ProcessState.COMPLETED, return_code=0, stdout=b"hi\n")
        assert format_outcome(outcome, 30_000) == (True, "hi\n")

    def test_nonzero_exit(self):
        outcome = ProcessOutcome(state=ProcessState.COMPLETED, return_code=2, stderr=b"bad\n")
        success, text = format_outcome(outcome, 30_000)
        assert not success
        assert text.startswith("Execution failed (exit code 2):\nbad\n")

    def test_timed_out(self):
        outcome = ProcessOutcome(
            state=ProcessState.KILLED, timed_out=True, killed=True, return_code=-9, stdout=b"p"
        )
        success, text = format_outcome(outcome, 2_000)
        assert not success
        assert text.startswith("Execution timed out after 2000ms")

    def test_spawn_failed(self):
        outcome = ProcessOutcome(state=ProcessState.SPAWN_FAILED, spawn_error="No such file")
        assert format_outcome(outcome, 1_000) == (
            False,
            "Failed to start Python interpreter: No such file",
        )

    def test_invalid_utf8_is_replaced(self):
        outcome = ProcessOutcome(state=ProcessState.COMPLETED, return_code=0, stdout=b"\xff ok")
        assert format_outcome(outcome, 1_000) == (True, "\ufffd ok")


class TestExecutionResponse:
    """Tests for ExecutionResponse."""

    def test_mcp_shape(self):
        response = ExecutionResponse(success=True, text="hi\n", blocks=["Execution Details:"])
        assert response.to_mcp_response() == {
            "content": [
                {"type": "text", "text": "hi\n"},
                {"type": "text", "text": "Execution Details:"},
            ],
            "isError": False,
        }

    def test_from_sandrun_error_includes_hint(self):
        response = ExecutionResponse.from_error(
            WorkspaceError("Permission denied creating x", recovery_hint="Check permissions.")
        )
        assert response.is_error
        assert response.text == "Permission denied creating x\n\nHint: Check permissions."

    def test_install_timeout_message(self):
        response = ExecutionResponse.from_error(DependencyInstallTimeoutError(["six"], 1000))
        assert response.text.startswith("Failed to install packages: six - Timeout after 1000ms")
        assert response.to_mcp_response()["isError"] is True

    def test_unexpected_error(self):
        response = ExecutionResponse.from_error(RuntimeError("boom"))
        assert response.text == "Failed to execute Python code: boom"
