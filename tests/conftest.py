"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from batch_upgrade.models import UpdateRequest
from batch_upgrade.shell import CommandResult

Hook = Callable[[Path], "CommandResult | None"]


class FakeTools:
    """Stand-in for git/npm/gh that records calls and returns canned results.

    Every command succeeds with empty output unless a response was
    registered for a prefix of its arguments. The longest matching prefix
    wins. A hook is called with the command's cwd and may return a result
    (or None to fall through to the default success).
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.cwds: list[Path] = []
        self._hooks: dict[tuple[str, ...], Hook] = {}

    def on(self, *prefix: str, hook: Hook) -> None:
        self._hooks[prefix] = hook

    def respond(
        self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = ""
    ) -> None:
        result = CommandResult(
            args=list(prefix), returncode=returncode, stdout=stdout, stderr=stderr
        )
        self.on(*prefix, hook=lambda cwd: result)

    def fail(self, *prefix: str, stderr: str = "boom") -> None:
        self.respond(*prefix, returncode=1, stderr=stderr)

    def called(self, *prefix: str) -> bool:
        return any(call[: len(prefix)] == prefix for call in self.calls)

    def calls_to(self, tool: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[0] == tool]

    def tool(self, name: str) -> Callable[..., CommandResult]:
        def fake(
            *args: str, cwd: Path, timeout: float | None = None, label: str | None = None
        ) -> CommandResult:
            cmd = (name, *args)
            self.calls.append(cmd)
            self.cwds.append(Path(cwd))
            for prefix in sorted(self._hooks, key=len, reverse=True):
                if cmd[: len(prefix)] == prefix:
                    result = self._hooks[prefix](Path(cwd))
                    if result is not None:
                        return result
                    break
            return CommandResult(args=list(cmd), returncode=0)

        return fake


@pytest.fixture
def tools(monkeypatch: pytest.MonkeyPatch) -> FakeTools:
    """Patch git, npm and gh as seen by the pipeline."""
    fake = FakeTools()
    monkeypatch.setattr("batch_upgrade.pipeline.git", fake.tool("git"))
    monkeypatch.setattr("batch_upgrade.pipeline.npm", fake.tool("npm"))
    monkeypatch.setattr("batch_upgrade.pipeline.gh", fake.tool("gh"))
    return fake


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """An empty repository directory."""
    path = tmp_path / "repo"
    path.mkdir()
    return path


@pytest.fixture
def write_manifest() -> Callable[[Path, dict[str, Any]], Path]:
    """Write package.json into a directory the way npm formats it."""

    def write(directory: Path, data: dict[str, Any]) -> Path:
        path = directory / "package.json"
        path.write_text(json.dumps(data, indent=2) + "\n")
        return path

    return write


@pytest.fixture
def request_factory() -> Callable[..., UpdateRequest]:
    def make(
        packages: list[str], versions: list[str], repositories: list[str] | None = None
    ) -> UpdateRequest:
        return UpdateRequest(
            packages=packages,
            versions=versions,
            repositories=repositories or ["repo"],
        )

    return make
