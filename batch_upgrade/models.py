"""Data models for batch-upgrade-npm.

These Pydantic models represent the core data structures passed between the
batch coordinator and the per-repository pipeline. All of them are frozen:
a resolution or outcome is built once and never mutated afterwards.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DependencySection(str, Enum):
    """A package.json section that can declare a dependency.

    Declaration order is lookup priority when a package appears in more
    than one section.
    """

    DEPENDENCIES = "dependencies"
    DEV_DEPENDENCIES = "devDependencies"
    PEER_DEPENDENCIES = "peerDependencies"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class UpdateRequest(_Frozen):
    """Input to a batch run.

    Attributes:
        packages: Package names, in the order they should be processed.
        versions: Target version ranges; versions[i] belongs to packages[i].
        repositories: Repository paths, relative to the current directory
            or absolute.
    """

    packages: list[str]
    versions: list[str]
    repositories: list[str]

    @model_validator(mode="after")
    def _check_shape(self) -> UpdateRequest:
        if len(self.packages) != len(self.versions):
            raise ValueError("Number of packages and versions must match.")
        if not self.packages:
            raise ValueError("No packages specified.")
        if not self.repositories:
            raise ValueError("No repositories specified.")
        return self

    def pairs(self) -> Iterator[tuple[str, str]]:
        """Yield (package, target version) in request order."""
        return zip(self.packages, self.versions)


# Per-package resolutions


class NotFound(_Frozen):
    kind: Literal["not-found"] = "not-found"
    package: str


class AlreadyCurrent(_Frozen):
    kind: Literal["already-current"] = "already-current"
    package: str
    current_version: str
    target_version: str


class Unparsable(_Frozen):
    """Either the declared or the requested version couldn't be compared."""

    kind: Literal["unparsable"] = "unparsable"
    package: str
    current_version: str
    target_version: str
    reason: str


class EditFailed(_Frozen):
    kind: Literal["edit-failed"] = "edit-failed"
    package: str
    section: DependencySection


class Updated(_Frozen):
    kind: Literal["updated"] = "updated"
    package: str
    from_version: str
    to_version: str
    section: DependencySection


PackageResolution = Annotated[
    Union[NotFound, AlreadyCurrent, Unparsable, EditFailed, Updated],
    Field(discriminator="kind"),
]


# Per-repository outcomes


class UpdatedPackage(_Frozen):
    """A package whose declared version was actually rewritten."""

    name: str
    from_version: str
    to_version: str


class Success(_Frozen):
    status: Literal["success"] = "success"
    repository: str
    updated_packages: list[UpdatedPackage] = Field(default_factory=list)
    pr_url: str


class NoChanges(_Frozen):
    status: Literal["no-changes"] = "no-changes"
    repository: str


class Failed(_Frozen):
    status: Literal["failed"] = "failed"
    repository: str
    stage: str
    reason: str


RepositoryOutcome = Annotated[
    Union[Success, NoChanges, Failed],
    Field(discriminator="status"),
]


class BatchSummary(_Frozen):
    """Every repository's outcome, in input order."""

    outcomes: list[RepositoryOutcome] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> list[Success]:
        return [o for o in self.outcomes if isinstance(o, Success)]

    @property
    def unchanged(self) -> list[NoChanges]:
        return [o for o in self.outcomes if isinstance(o, NoChanges)]

    @property
    def failed(self) -> list[Failed]:
        return [o for o in self.outcomes if isinstance(o, Failed)]

    def to_report(self) -> dict[str, Any]:
        """Serializable summary: count plus per-repository status and details."""
        return {
            "total": self.total,
            "repositories": [o.model_dump(mode="json") for o in self.outcomes],
        }
