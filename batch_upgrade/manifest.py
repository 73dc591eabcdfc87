"""package.json reading and writing utilities.

The manifest is rewritten the way npm itself writes it (2-space indent,
original key order, trailing newline) so that loading and saving an
untouched npm-written manifest is byte-for-byte identical. Change detection
relies on that: a package we skipped must never show up as a diff.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

from .errors import ManifestError
from .models import DependencySection
from .shell import warn

MANIFEST_FILE = "package.json"
LOCKFILE = "package-lock.json"
INSTALL_DIR = "node_modules"


def manifest_exists(path: Path) -> bool:
    return path.is_file()


def load_manifest(path: Path) -> dict[str, Any]:
    """Load and parse a package.json file.

    Raises:
        ManifestError: If the file can't be read, isn't valid JSON, or
            isn't a JSON object at the top level.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ManifestError(f"Cannot read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"{path} does not contain a JSON object")
    return data


def dump_manifest(data: dict[str, Any]) -> str:
    """Serialize in npm's canonical layout."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def save_manifest(path: Path, data: dict[str, Any]) -> None:
    """Write package.json atomically.

    The new content goes to a sibling temp file which then replaces the
    original, so a failed write never leaves a truncated manifest behind.
    """
    text = dump_manifest(data)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except OSError as exc:
        Path(tmp_name).unlink(missing_ok=True)
        raise ManifestError(f"Cannot write {path}: {exc}") from exc


def find_package(path: Path, name: str) -> tuple[DependencySection, str] | None:
    """Find which section declares ``name`` and at what version.

    Sections are checked in priority order: dependencies, devDependencies,
    peerDependencies. The first hit wins.

    Returns:
        (section, declared version), or None if the manifest is missing,
        unparsable, or doesn't declare the package.
    """
    if not manifest_exists(path):
        return None

    try:
        data = load_manifest(path)
    except ManifestError as exc:
        warn(f"Could not look up {name}: {exc}")
        return None

    for section in DependencySection:
        deps = data.get(section.value)
        if isinstance(deps, dict) and name in deps:
            return section, str(deps[name])
    return None


def set_version(
    path: Path, section: DependencySection, name: str, version: str
) -> bool:
    """Rewrite the declared version of an existing dependency.

    Update-only: never adds a package to a section and never creates a
    section.

    Returns:
        True if the manifest was rewritten, False if the section is absent
        or doesn't already declare ``name``.

    Raises:
        ManifestError: If the manifest can't be parsed or written.
    """
    data = load_manifest(path)
    deps = data.get(section.value)
    if not isinstance(deps, dict) or name not in deps:
        return False

    deps[name] = version
    save_manifest(path, data)
    return True
