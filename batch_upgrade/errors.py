"""Error taxonomy for batch upgrades.

Batch-scoped errors (authentication, input shape, config) abort the whole
run before any repository is touched. Everything else is repository-scoped:
the pipeline turns it into a ``Failed`` outcome for that repository and the
batch moves on to the next one.
"""

from __future__ import annotations


class UpgradeError(Exception):
    """Base class for all stage-tagged errors.

    The ``stage`` tag is what ends up in a ``Failed`` outcome and in the
    printed diagnostic. It defaults to the class name.
    """

    @property
    def stage(self) -> str:
        return type(self).__name__


# Batch-scoped


class AuthenticationError(UpgradeError):
    """GitHub CLI is not logged in."""


class InputShapeError(UpgradeError):
    """Packages, versions or repositories are empty or mismatched."""


class ConfigError(UpgradeError):
    """The batch config file is missing or malformed."""


# Repository-scoped


class NavigationError(UpgradeError):
    """Repository path is unusable (missing, or not a git working tree)."""


class BranchSwitchError(UpgradeError):
    pass


class SyncError(UpgradeError):
    pass


class BranchCreateError(UpgradeError):
    pass


class InstallError(UpgradeError):
    """npm install failed during the force or regular phase."""

    def __init__(self, phase: str, message: str) -> None:
        super().__init__(message)
        self.phase = phase

    @property
    def stage(self) -> str:
        return f"InstallError({self.phase})"


class CommitError(UpgradeError):
    pass


class PushError(UpgradeError):
    pass


class PublishError(UpgradeError):
    """Pull request creation failed."""


class CommandTimeout(UpgradeError):
    """An external command exceeded its deadline and was killed."""

    def __init__(self, args: list[str], timeout: float) -> None:
        super().__init__(f"'{' '.join(args)}' timed out after {timeout:g}s")
        self.args_run = args
        self.timeout = timeout


class ManifestError(Exception):
    """package.json could not be parsed or written."""
