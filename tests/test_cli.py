"""Tests for the sandrun command line."""

import logging
import sys

import pytest

from sandrun.cli import build_parser, main


@pytest.fixture(autouse=True)
def restore_sandrun_logger():
    logger = logging.getLogger("sandrun")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "sandrun_config.yaml"
    path.write_text(
        f"sandbox:\n  python_executable: {sys.executable!r}\n"
        f"  persistent_workspace: {str(tmp_path / 'persistent')!r}\n",
        encoding="utf-8",
    )
    return path


def test_parser_defaults():
    args = build_parser().parse_args(["run"])
    assert args.file == "-"
    assert args.workspace == "temp"
    assert args.timeout_ms is None
    assert args.install is None
    assert args.detailed is False


def test_parser_options():
    args = build_parser().parse_args(
        ["run", "job.py", "-t", "5000", "-i", "six", "-i", "idna==3.7", "--detailed", "-w", "persistent"]
    )
    assert args.timeout_ms == 5000
    assert args.install == ["six", "idna==3.7"]
    assert args.workspace == "persistent"
    assert build_parser().parse_args(["run", "-t", "auto"]).timeout_ms == "auto"


def test_parser_rejects_bad_timeout():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["run", "-t", "soon"])


def test_run_file(tmp_path, config_file, capsys):
    script = tmp_path / "job.py"
    script.write_text("print('from cli')\n", encoding="utf-8")

    assert main(["run", str(script), "--config", str(config_file)]) == 0
    assert "from cli" in capsys.readouterr().out


def test_run_failure_exit_code(tmp_path, config_file, capsys):
    script = tmp_path / "job.py"
    script.write_text("raise SystemExit(4)\n", encoding="utf-8")

    assert main(["run", str(script), "--config", str(config_file)]) == 1
    assert "Execution failed (exit code 4)" in capsys.readouterr().out


def test_missing_file(tmp_path, config_file):
    assert main(["run", str(tmp_path / "missing.py"), "--config", str(config_file)]) == 2


def test_bad_config(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("sandbox: [1]\n", encoding="utf-8")
    script = tmp_path / "job.py"
    script.write_text("print(1)\n", encoding="utf-8")
    assert main(["run", str(script), "--config", str(bad)]) == 2
