"""CLI entry point for batch-upgrade-npm."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from pathlib import Path

import click

from batch_upgrade.batch import run_batch
from batch_upgrade.config import (
    DEFAULT_CONFIG_FILE,
    UpgradeConfig,
    load_config,
    write_default_config,
)
from batch_upgrade.errors import UpgradeError


def _split(values: Iterable[str]) -> list[str]:
    """Flatten repeated options, splitting each on whitespace and commas."""
    return [part for value in values for part in re.split(r"[\s,]+", value) if part]


def _prompt_list(message: str, expected: int | None = None) -> list[str]:
    def convert(raw: str) -> list[str]:
        items = _split([raw])
        if not items:
            raise click.BadParameter("Enter at least one value.")
        if expected is not None and len(items) != expected:
            raise click.BadParameter(
                f"Number of versions ({len(items)}) must match number of packages ({expected})"
            )
        return items

    return click.prompt(message, value_proc=convert)


@click.group()
@click.version_option(package_name="batch-upgrade-npm")
def cli() -> None:
    """Upgrade npm packages across many repositories, one PR per repo."""


@cli.command()
@click.option(
    "-p",
    "--package",
    "packages",
    multiple=True,
    help="Package to update (repeatable, or space/comma separated).",
)
@click.option(
    "-v",
    "--version-range",
    "versions",
    multiple=True,
    help="Target version range, in the same order as the packages.",
)
@click.option(
    "-r",
    "--repo",
    "repos",
    multiple=True,
    help="Repository path, relative to the current directory (repeatable).",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Read packages and repositories from a config file (see 'init').",
)
@click.option(
    "-j",
    "--jobs",
    type=click.IntRange(min=1),
    default=None,
    help="Repositories to process at once.  [default: 1]",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Per-command timeout in seconds.",
)
@click.option("-y", "--yes", is_flag=True, help="Don't ask for confirmation.")
@click.option(
    "--json",
    "json_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the batch summary as JSON to this file.",
)
def upgrade(
    packages: tuple[str, ...],
    versions: tuple[str, ...],
    repos: tuple[str, ...],
    config_path: Path | None,
    jobs: int | None,
    timeout: float | None,
    yes: bool,
    json_path: Path | None,
) -> None:
    """Update package versions and open a pull request in each repository."""
    try:
        config = load_config(config_path) if config_path else UpgradeConfig()
    except UpgradeError as exc:
        raise click.ClickException(str(exc)) from exc

    # Command-line values win over the config file
    pkg_list = _split(packages) or list(config.packages)
    ver_list = _split(versions) or (
        list(config.packages.values()) if not packages else []
    )
    # Each -r value is one path, spaces and commas included
    repo_list = list(repos) or list(config.repositories)

    if not (pkg_list and ver_list and repo_list):
        click.secho("Batch NPM Package Upgrader", fg="cyan")
        click.secho("==========================", fg="cyan")
    if not pkg_list:
        pkg_list = _prompt_list("Enter packages to update (space-separated)")
    if not ver_list:
        ver_list = _prompt_list(
            "Enter version ranges (space-separated, matching the order of packages)",
            expected=len(pkg_list),
        )
    if not repo_list:
        repo_list = _prompt_list("Enter repository paths (space-separated)")

    click.secho("\nUpgrading packages:", fg="cyan")
    for pkg, ver in zip(pkg_list, ver_list):
        click.secho(f"  {pkg} → {ver}", fg="green")
    click.secho("\nIn repositories:", fg="cyan")
    for repo in repo_list:
        click.secho(f"  {repo}", fg="green")

    if not yes and not click.confirm(
        "\nDo you want to proceed with the upgrade?", default=False
    ):
        click.secho("Operation cancelled.", fg="yellow")
        return

    try:
        summary = run_batch(
            pkg_list,
            ver_list,
            repo_list,
            jobs=jobs or config.jobs,
            timeout=timeout if timeout is not None else config.timeout,
        )
    except UpgradeError as exc:
        raise click.ClickException(str(exc)) from exc

    if json_path:
        json_path.write_text(json.dumps(summary.to_report(), indent=2) + "\n")
        click.echo(f"Wrote summary to {json_path}")

    if summary.failed:
        raise SystemExit(1)


@cli.command()
@click.option(
    "--path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="Where to write the config file.",
)
def init(path: Path) -> None:
    """Scaffold a batch config file."""
    try:
        write_default_config(path)
    except UpgradeError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"✓ Wrote {path}")
    click.echo()
    click.echo("Next steps:")
    click.echo("  1. List your repositories and packages in the file")
    click.echo("  2. Run the upgrade:")
    click.echo(f"       batch-upgrade-npm upgrade --config {path}")
