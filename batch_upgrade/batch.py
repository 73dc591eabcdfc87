"""Batch coordinator: preconditions → per-repository pipeline → summary.

Global preconditions (GitHub CLI login, request shape) are checked once,
before any repository is touched. After that every repository is attempted;
one repository failing never stops the others.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path

import click
from pydantic import ValidationError

from .errors import AuthenticationError, InputShapeError
from .models import BatchSummary, Failed, NoChanges, RepositoryOutcome, Success, UpdateRequest
from .pipeline import branch_name, format_pr_title, update_repository
from .shell import gh, note, step, success


def check_gh_auth() -> None:
    """Verify (live, not cached) that the GitHub CLI is logged in.

    Raises:
        AuthenticationError: If ``gh`` is missing or ``gh auth status`` fails.
    """
    step("Checking GitHub CLI authentication")
    try:
        result = gh("auth", "status", cwd=Path.cwd())
    except FileNotFoundError as exc:
        raise AuthenticationError(
            "GitHub CLI (gh) is not installed or not on PATH. "
            "Install it from https://cli.github.com and run 'gh auth login'."
        ) from exc
    if not result.ok:
        raise AuthenticationError(
            "You are not logged into GitHub CLI. Please run 'gh auth login' first."
        )
    success("GitHub CLI authentication confirmed.")


def build_request(
    packages: Sequence[str], versions: Sequence[str], repositories: Sequence[str]
) -> UpdateRequest:
    """Validate the raw lists into an UpdateRequest.

    Raises:
        InputShapeError: If the lists are empty or packages/versions differ
            in length.
    """
    try:
        return UpdateRequest(
            packages=list(packages),
            versions=list(versions),
            repositories=list(repositories),
        )
    except ValidationError as exc:
        messages = "; ".join(
            str(e.get("ctx", {}).get("error") or e["msg"]) for e in exc.errors()
        )
        raise InputShapeError(messages) from exc


def make_timestamp(now: datetime | None = None) -> str:
    """Format as YYYYMMDDHHmmss (UTC). Shared by every repository in a batch."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y%m%d%H%M%S")


def _process(
    request: UpdateRequest,
    branch: str,
    jobs: int,
    timeout: float | None,
) -> list[RepositoryOutcome]:
    if jobs <= 1 or len(request.repositories) == 1:
        return [
            update_repository(repo, request, branch, timeout=timeout)
            for repo in request.repositories
        ]

    labels = [Path(repo).name or repo for repo in request.repositories]
    with ThreadPoolExecutor(max_workers=jobs) as pool:
        futures = [
            pool.submit(
                update_repository, repo, request, branch, timeout=timeout, label=label
            )
            for repo, label in zip(request.repositories, labels)
        ]
        outcomes: list[RepositoryOutcome] = []
        for repo, future in zip(request.repositories, futures):
            try:
                outcomes.append(future.result())
            except Exception as exc:
                outcomes.append(
                    Failed(repository=repo, stage="UnexpectedError", reason=str(exc))
                )
        return outcomes


def print_summary(summary: BatchSummary) -> None:
    step("Summary")
    for outcome in summary.outcomes:
        if isinstance(outcome, Success):
            click.secho(f"{outcome.repository}: Success ({outcome.pr_url})", fg="green")
        elif isinstance(outcome, NoChanges):
            click.secho(f"{outcome.repository}: No changes", fg="yellow")
        else:
            click.secho(
                f"{outcome.repository}: Failed ({outcome.stage}: {outcome.reason})",
                fg="red",
            )
    click.echo(
        f"\n{summary.total} repositories: {len(summary.succeeded)} updated, "
        f"{len(summary.unchanged)} unchanged, {len(summary.failed)} failed"
    )


def run_batch(
    packages: Sequence[str],
    versions: Sequence[str],
    repositories: Sequence[str],
    *,
    jobs: int = 1,
    timeout: float | None = None,
    now: datetime | None = None,
) -> BatchSummary:
    """Upgrade the requested packages in every repository.

    Args:
        packages: Package names, in processing order.
        versions: Target version ranges, positionally matching packages.
        repositories: Repository paths.
        jobs: Repositories processed at once. 1 means sequential.
        timeout: Per-command deadline in seconds.
        now: Batch start time (for the branch name); defaults to now.

    Returns:
        Outcome of every repository, in input order.

    Raises:
        AuthenticationError: GitHub CLI isn't logged in.
        InputShapeError: The request lists are empty or mismatched.
    """
    check_gh_auth()
    request = build_request(packages, versions, repositories)

    branch = branch_name(make_timestamp(now))
    step("Planned upgrade")
    note(format_pr_title(list(request.pairs())))
    note(f"Branch: {branch}")
    note(f"Repositories: {', '.join(request.repositories)}")

    summary = BatchSummary(outcomes=_process(request, branch, jobs, timeout))
    print_summary(summary)
    return summary
