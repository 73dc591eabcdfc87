"""Shell and console utilities.

Provides a subprocess wrapper that streams a command's output to the
terminal while also capturing it, thin git/npm/gh helpers on top of it, and
output formatting helpers.

Every command takes an explicit ``cwd``. Nothing here ever changes the
process working directory, so several repositories can be processed from
worker threads at once.
"""

from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from typing import IO

import click
from pydantic import BaseModel, ConfigDict

from .errors import CommandTimeout

# How long to wait for output pumps after killing a timed-out child. npm may
# leave grandchildren holding the pipes open.
_DRAIN_GRACE = 5.0


class CommandResult(BaseModel):
    """Exit status and captured output of a finished command."""

    model_config = ConfigDict(frozen=True)

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _pump(
    stream: IO[str], sink: list[str], *, err: bool, label: str | None, echo: bool
) -> None:
    prefix = f"[{label}] " if label else "    "
    for line in iter(stream.readline, ""):
        sink.append(line)
        if echo:
            click.echo(prefix + line, nl=not line.endswith("\n"), err=err)
    stream.close()


def _feed(stream: IO[str], data: str) -> None:
    try:
        stream.write(data)
        stream.close()
    except BrokenPipeError:
        # Child exited without consuming all of stdin; its exit code says
        # whether that matters.
        pass


def run(
    *args: str,
    cwd: Path | str,
    input: str | None = None,
    timeout: float | None = None,
    label: str | None = None,
    echo: bool = True,
) -> CommandResult:
    """Run a command in ``cwd``, streaming and capturing its output.

    A non-zero exit is a normal result, not an exception: callers inspect
    ``CommandResult.ok``.

    Args:
        *args: Command and arguments (e.g., "npm", "install", "--force").
        cwd: Working directory for the child process.
        input: Text written to the child's stdin. When None, stdin is
            closed so a command waiting for input fails fast instead of
            hanging.
        timeout: Seconds before the child is killed. None waits forever.
        label: Prefix for streamed lines (used when several repositories
            stream at once).
        echo: Stream output to the terminal as it arrives.

    Raises:
        CommandTimeout: If the deadline passed and the child was killed.
    """
    proc = subprocess.Popen(
        list(args),
        cwd=cwd,
        stdin=subprocess.PIPE if input is not None else subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
    )

    out: list[str] = []
    err: list[str] = []
    threads = [
        threading.Thread(
            target=_pump,
            args=(proc.stdout, out),
            kwargs={"err": False, "label": label, "echo": echo},
            daemon=True,
        ),
        threading.Thread(
            target=_pump,
            args=(proc.stderr, err),
            kwargs={"err": True, "label": label, "echo": echo},
            daemon=True,
        ),
    ]
    if input is not None:
        threads.append(
            threading.Thread(target=_feed, args=(proc.stdin, input), daemon=True)
        )
    for t in threads:
        t.start()

    try:
        returncode = proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()
        for t in threads:
            t.join(_DRAIN_GRACE)
        raise CommandTimeout(list(args), timeout or 0) from None

    for t in threads:
        t.join()

    return CommandResult(
        args=list(args), returncode=returncode, stdout="".join(out), stderr="".join(err)
    )


def git(
    *args: str, cwd: Path | str, timeout: float | None = None, label: str | None = None
) -> CommandResult:
    """Run a git command in ``cwd``."""
    return run("git", *args, cwd=cwd, timeout=timeout, label=label)


def npm(
    *args: str, cwd: Path | str, timeout: float | None = None, label: str | None = None
) -> CommandResult:
    """Run an npm command in ``cwd``."""
    return run("npm", *args, cwd=cwd, timeout=timeout, label=label)


def gh(
    *args: str, cwd: Path | str, timeout: float | None = None, label: str | None = None
) -> CommandResult:
    """Run a GitHub CLI command in ``cwd``."""
    return run("gh", *args, cwd=cwd, timeout=timeout, label=label)


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate repositories and major phases in terminal output.
    """
    click.secho(f"\n{'─' * 60}\n{msg}\n{'─' * 60}", fg="cyan")


def _line(msg: str, label: str | None) -> str:
    return f"[{label}] {msg}" if label else f"  {msg}"


def note(msg: str, *, label: str | None = None) -> None:
    click.secho(_line(msg, label), fg="blue")


def success(msg: str, *, label: str | None = None) -> None:
    click.secho(_line(msg, label), fg="green")


def warn(msg: str, *, label: str | None = None) -> None:
    click.secho(_line(f"Warning: {msg}", label), fg="yellow", err=True)


def error(msg: str, *, label: str | None = None) -> None:
    click.secho(_line(f"Error: {msg}", label), fg="red", err=True)
