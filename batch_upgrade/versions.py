"""Version parsing and comparison utilities.

Handles conversion between npm version range strings and semver objects.
Range operators are stripped rather than interpreted: "^1.2.0" compares as
plain 1.2.0, so "is the declared version already new enough" is a simple
precedence check, not a range-intersection check.
"""

from __future__ import annotations

import semver

RANGE_PREFIX_CHARS = "^~="


class InvalidVersionError(ValueError):
    """Raised when a version string can't be parsed after prefix stripping."""


def strip_range_prefix(spec: str) -> str:
    """Remove leading range operators and whitespace.

    Examples:
        "^1.2.3" → "1.2.3"
        "~2.0" → "2.0"
        "=1.0.0" → "1.0.0"
    """
    return spec.strip().lstrip(RANGE_PREFIX_CHARS).strip()


def parse_version(spec: str) -> semver.Version:
    """Parse a version (or simple range) string into a semver.Version.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "^1.2" → "1.2.0"
    - "~1.2.3-beta.1" → "1.2.3-beta.1"

    Raises:
        InvalidVersionError: If the cleaned string is not a dotted numeric
            version (e.g. "latest", "*", ">=1 <2", "github:org/repo").
    """
    cleaned = strip_range_prefix(spec)
    try:
        return semver.Version.parse(cleaned, optional_minor_and_patch=True)
    except (ValueError, TypeError) as exc:
        raise InvalidVersionError(f"Cannot parse version {spec!r}") from exc


def is_at_least(current: str, target: str) -> bool:
    """Return True if ``current`` is >= ``target`` after stripping prefixes.

    Raises:
        InvalidVersionError: If either string can't be parsed.
    """
    return parse_version(current) >= parse_version(target)
