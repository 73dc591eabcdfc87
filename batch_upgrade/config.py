"""Batch config file reading and scaffolding.

Uses tomlkit so the scaffolded file keeps its comments and so package order
in ``[upgrade.packages]`` is preserved exactly as written.
"""

from __future__ import annotations

from pathlib import Path

import tomlkit
from pydantic import BaseModel, Field, ValidationError
from tomlkit.exceptions import ParseError

from .errors import ConfigError

DEFAULT_CONFIG_FILE = "batch-upgrade.toml"

DEFAULT_CONFIG = """\
# batch-upgrade-npm configuration.
# Run with: batch-upgrade-npm upgrade --config batch-upgrade.toml

[upgrade]
# Repository paths, relative to the directory you run from.
repositories = ["my-service", "my-other-service"]

# Number of repositories to process at once.
jobs = 1

# Per-command timeout in seconds (remove for no timeout).
timeout = 900

# Package name = target version range, applied in this order.
[upgrade.packages]
lodash = "^4.17.21"
"""


class UpgradeConfig(BaseModel):
    """Contents of the ``[upgrade]`` table.

    Attributes:
        packages: Package name → target version range, in file order.
        repositories: Repository paths.
        jobs: Repositories processed at once.
        timeout: Per-command timeout in seconds, or None for no limit.
    """

    packages: dict[str, str] = Field(default_factory=dict)
    repositories: list[str] = Field(default_factory=list)
    jobs: int = Field(default=1, ge=1)
    timeout: float | None = Field(default=None, gt=0)


def load_config(path: Path) -> UpgradeConfig:
    """Load the ``[upgrade]`` table from a TOML config file.

    Raises:
        ConfigError: If the file is missing, isn't valid TOML, has no
            ``[upgrade]`` table, or has values of the wrong type.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        doc = tomlkit.parse(path.read_text(encoding="utf-8"))
    except ParseError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    table = doc.get("upgrade")
    if not isinstance(table, dict):
        raise ConfigError(f"No [upgrade] table in {path}")

    try:
        return UpgradeConfig.model_validate(table.unwrap())
    except ValidationError as exc:
        raise ConfigError(f"Invalid [upgrade] table in {path}:\n{exc}") from exc


def write_default_config(path: Path) -> None:
    """Scaffold an example config file.

    Raises:
        ConfigError: If the file already exists.
    """
    if path.exists():
        raise ConfigError(f"{path} already exists; not overwriting.")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG, encoding="utf-8")
