"""Tests for batch_upgrade.shell."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from batch_upgrade.errors import CommandTimeout
from batch_upgrade.shell import CommandResult, gh, git, npm, run


def py(code: str) -> tuple[str, ...]:
    return (sys.executable, "-c", code)


class TestRun:
    def test_captures_stdout(self, tmp_path: Path) -> None:
        result = run(*py("print('hello')"), cwd=tmp_path)

        assert result.ok
        assert result.stdout == "hello\n"
        assert result.stderr == ""

    def test_captures_stderr(self, tmp_path: Path) -> None:
        result = run(*py("import sys; sys.stderr.write('oops\\n')"), cwd=tmp_path)
        assert result.stderr == "oops\n"

    def test_nonzero_exit_is_returned_not_raised(self, tmp_path: Path) -> None:
        result = run(*py("import sys; sys.exit(3)"), cwd=tmp_path)

        assert result.returncode == 3
        assert not result.ok

    def test_no_output(self, tmp_path: Path) -> None:
        result = run(*py("pass"), cwd=tmp_path)
        assert result == CommandResult(args=list(py("pass")), returncode=0)

    def test_runs_in_cwd(self, tmp_path: Path) -> None:
        before = os.getcwd()
        result = run(*py("import os; print(os.getcwd())"), cwd=tmp_path)

        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()
        assert os.getcwd() == before

    def test_feeds_stdin(self, tmp_path: Path) -> None:
        result = run(
            *py("import sys; print(sys.stdin.read().upper())"),
            cwd=tmp_path,
            input="piped text",
        )
        assert result.stdout == "PIPED TEXT\n"

    def test_stdin_closed_without_input(self, tmp_path: Path) -> None:
        result = run(*py("import sys; print(repr(sys.stdin.read()))"), cwd=tmp_path)
        assert result.stdout == "''\n"

    def test_streams_with_label(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        run(*py("print('line')"), cwd=tmp_path, label="svc")
        assert "[svc] line" in capsys.readouterr().out

    def test_echo_disabled(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        run(*py("print('quiet')"), cwd=tmp_path, echo=False)
        assert "quiet" not in capsys.readouterr().out

    def test_timeout_kills_and_raises(self, tmp_path: Path) -> None:
        with pytest.raises(CommandTimeout) as excinfo:
            run(*py("import time; time.sleep(30)"), cwd=tmp_path, timeout=0.5)

        assert excinfo.value.stage == "CommandTimeout"
        assert "timed out after 0.5s" in str(excinfo.value)


@pytest.mark.parametrize(
    ("wrapper", "program"), [(git, "git"), (npm, "npm"), (gh, "gh")]
)
@patch("batch_upgrade.shell.run")
def test_tool_wrappers(
    mock_run: MagicMock, wrapper, program: str, tmp_path: Path
) -> None:
    wrapper("status", cwd=tmp_path, timeout=10, label="x")

    mock_run.assert_called_once_with(program, "status", cwd=tmp_path, timeout=10, label="x")
