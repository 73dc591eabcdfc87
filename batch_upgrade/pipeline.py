"""Repository pipeline: reset → branch → update → verify → commit → PR.

This module runs one repository through the upgrade process:
1. Resolve the repository path and check it is usable
2. Discard local changes, switch to main, pull latest
3. Create the batch branch (update-packages-<timestamp>)
4. Rewrite package.json for every requested package that is declared
   and behind the target version
5. Reinstall twice (forced, then regular) from a clean node_modules
6. If package.json or package-lock.json changed, commit, push and open a
   pull request; otherwise delete the branch again

Each stage either succeeds or raises its stage-tagged UpgradeError;
update_repository() turns that into the repository's outcome. The caller's
working directory is never changed: every command gets the repository as
an explicit cwd.
"""

from __future__ import annotations

import json
import shutil
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from .errors import (
    BranchCreateError,
    BranchSwitchError,
    CommitError,
    InstallError,
    ManifestError,
    NavigationError,
    PublishError,
    PushError,
    SyncError,
    UpgradeError,
)
from .manifest import INSTALL_DIR, LOCKFILE, MANIFEST_FILE, find_package, set_version
from .models import (
    AlreadyCurrent,
    EditFailed,
    Failed,
    NoChanges,
    NotFound,
    PackageResolution,
    RepositoryOutcome,
    Success,
    Unparsable,
    Updated,
    UpdatedPackage,
    UpdateRequest,
)
from .shell import CommandResult, error, gh, git, note, npm, step, success, warn
from .versions import InvalidVersionError, is_at_least

TRUNK_BRANCH = "main"
REMOTE = "origin"
BRANCH_PREFIX = "update-packages-"
PR_FOOTER = "Automatically generated by batch-upgrade-npm."


class Checkout(BaseModel):
    """A repository being processed: where it lives and how to run in it.

    Attributes:
        path: Absolute path to the repository working tree.
        timeout: Per-command deadline in seconds, or None.
        label: Prefix for console output when repositories run in parallel.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    timeout: float | None = None
    label: str | None = None

    @property
    def manifest(self) -> Path:
        return self.path / MANIFEST_FILE

    @property
    def lockfile(self) -> Path:
        return self.path / LOCKFILE


def branch_name(timestamp: str) -> str:
    return f"{BRANCH_PREFIX}{timestamp}"


def format_pr_title(pairs: Sequence[tuple[str, str]]) -> str:
    """Title listing each package@version, e.g. "Update npm packages: a@^2"."""
    return "Update npm packages: " + ", ".join(f"{p}@{v}" for p, v in pairs)


def format_pr_body(pairs: Sequence[tuple[str, str]]) -> str:
    lines = ["This PR updates the following npm packages:", ""]
    lines.extend(f"- {p} to {v}" for p, v in pairs)
    lines.extend(["", PR_FOOTER])
    return "\n".join(lines)


def _git(checkout: Checkout, *args: str) -> CommandResult:
    return git(*args, cwd=checkout.path, timeout=checkout.timeout, label=checkout.label)


def _npm(checkout: Checkout, *args: str) -> CommandResult:
    return npm(*args, cwd=checkout.path, timeout=checkout.timeout, label=checkout.label)


def _gh(checkout: Checkout, *args: str) -> CommandResult:
    return gh(*args, cwd=checkout.path, timeout=checkout.timeout, label=checkout.label)


def enter_repository(
    repo_path: str, *, timeout: float | None = None, label: str | None = None
) -> Checkout:
    """Resolve ``repo_path`` against the current directory.

    Raises:
        NavigationError: If the path doesn't exist or isn't a directory.
    """
    path = Path(repo_path).expanduser().resolve()
    if not path.is_dir():
        raise NavigationError(f"repository path {path} is not a directory")
    return Checkout(path=path, timeout=timeout, label=label)


def reset_worktree(checkout: Checkout) -> None:
    """Discard uncommitted changes to tracked files."""
    note("Discarding uncommitted changes...", label=checkout.label)
    if not _git(checkout, "reset", "--hard", "HEAD").ok:
        raise NavigationError(f"{checkout.path} is not a git working tree")


def checkout_trunk(checkout: Checkout) -> None:
    note(f"Switching to {TRUNK_BRANCH} branch...", label=checkout.label)
    if not _git(checkout, "checkout", TRUNK_BRANCH).ok:
        raise BranchSwitchError("could not switch to trunk branch")


def sync_trunk(checkout: Checkout) -> None:
    note(f"Pulling latest changes from {REMOTE}/{TRUNK_BRANCH}...", label=checkout.label)
    if not _git(checkout, "pull", REMOTE, TRUNK_BRANCH).ok:
        raise SyncError("could not pull latest changes")


def create_branch(checkout: Checkout, branch: str) -> None:
    note(f"Creating and switching to new branch: {branch}...", label=checkout.label)
    if not _git(checkout, "checkout", "-b", branch).ok:
        raise BranchCreateError("could not create new branch")


def resolve_package(checkout: Checkout, package: str, target: str) -> PackageResolution:
    """Decide what to do with one requested package, editing if needed.

    Never raises for per-package problems: a missing package, an
    unparsable version or a failed edit is a skip, not a failure.
    """
    label = checkout.label
    found = find_package(checkout.manifest, package)
    if found is None:
        note(f"  - Skipping {package}: not found in {MANIFEST_FILE}", label=label)
        return NotFound(package=package)

    section, current = found
    try:
        current_enough = is_at_least(current, target)
    except InvalidVersionError as exc:
        warn(f"Skipping {package}: {exc}", label=label)
        return Unparsable(
            package=package,
            current_version=current,
            target_version=target,
            reason=str(exc),
        )

    if current_enough:
        note(
            f"  - Skipping {package}: current version {current} is already >= {target}",
            label=label,
        )
        return AlreadyCurrent(
            package=package, current_version=current, target_version=target
        )

    try:
        edited = set_version(checkout.manifest, section, package, target)
    except ManifestError as exc:
        warn(f"Could not update {package}: {exc}", label=label)
        return EditFailed(package=package, section=section)
    if not edited:
        warn(f"Could not update {package} in {MANIFEST_FILE}", label=label)
        return EditFailed(package=package, section=section)

    success(
        f"  - Updated {package} from {current} to {target} in {section.value}",
        label=label,
    )
    return Updated(
        package=package, from_version=current, to_version=target, section=section
    )


def analyze_and_update(
    checkout: Checkout, request: UpdateRequest
) -> list[PackageResolution]:
    """Resolve every requested package in request order."""
    note(f"Analyzing package versions in {MANIFEST_FILE}...", label=checkout.label)
    if not checkout.manifest.is_file():
        note(f"No {MANIFEST_FILE} found", label=checkout.label)
    return [resolve_package(checkout, pkg, ver) for pkg, ver in request.pairs()]


def remove_install_dir(checkout: Checkout) -> None:
    """Delete node_modules so the next install starts cold."""
    install_dir = checkout.path / INSTALL_DIR
    if not install_dir.exists():
        return
    note(f"Removing {INSTALL_DIR} for a clean installation...", label=checkout.label)
    try:
        shutil.rmtree(install_dir)
    except OSError as exc:
        warn(f"Could not remove {INSTALL_DIR}: {exc}", label=checkout.label)


def verify_install(checkout: Checkout) -> None:
    """Regenerate the lockfile with a forced install, then re-verify plainly.

    ``--force`` alone can paper over real peer conflicts, so a second,
    unforced install from a clean node_modules must also pass.

    Raises:
        InstallError: With phase "force" or "regular".
    """
    label = checkout.label

    remove_install_dir(checkout)
    note("Updating package-lock.json with npm install --force...", label=label)
    if not _npm(checkout, "install", "--force").ok:
        raise InstallError("force", "force installation failed")

    remove_install_dir(checkout)
    note("Verifying installation with regular npm install...", label=label)
    if not _npm(checkout, "install").ok:
        raise InstallError("regular", "regular installation failed after forced install")

    success("Package installation verified.", label=label)


def has_changes(checkout: Checkout, *, new_lockfile: bool = False) -> bool:
    """Check package.json and package-lock.json against HEAD.

    Uses the exit status of ``git diff --quiet`` (1 means differences).
    An untracked lockfile only counts when ``new_lockfile`` says this run's
    install created it; one left behind by an earlier local install does not.

    Raises:
        NavigationError: If git can't compute the diff or list untracked files.
    """
    result = _git(checkout, "diff", "--quiet", "HEAD", "--", MANIFEST_FILE, LOCKFILE)
    if result.returncode == 1:
        return True
    if result.returncode != 0:
        raise NavigationError(f"could not diff {MANIFEST_FILE}: {result.stderr.strip()}")
    if not new_lockfile:
        return False

    untracked = _git(checkout, "ls-files", "--others", "--exclude-standard", "--", LOCKFILE)
    if not untracked.ok:
        raise NavigationError(f"could not list untracked files: {untracked.stderr.strip()}")
    return bool(untracked.stdout.strip())


def discard_branch(checkout: Checkout, branch: str) -> None:
    """Switch back to trunk and delete the now-empty batch branch."""
    if not _git(checkout, "checkout", TRUNK_BRANCH).ok:
        warn(f"Could not switch back to {TRUNK_BRANCH}", label=checkout.label)
        return
    if not _git(checkout, "branch", "-D", branch).ok:
        warn(f"Could not delete branch {branch}", label=checkout.label)


def commit_changes(checkout: Checkout, title: str, body: str) -> None:
    """Stage exactly package.json and package-lock.json and commit them."""
    paths = [MANIFEST_FILE]
    if checkout.lockfile.exists():
        paths.append(LOCKFILE)
    if not _git(checkout, "add", "--", *paths).ok:
        raise CommitError(f"could not stage {', '.join(paths)}")
    if not _git(checkout, "commit", "-m", title, "-m", body).ok:
        raise CommitError("could not commit changes")


def push_branch(checkout: Checkout, branch: str) -> None:
    note("Pushing changes...", label=checkout.label)
    if not _git(checkout, "push", "--set-upstream", REMOTE, branch).ok:
        raise PushError("could not push changes")


def _find_url(text: str) -> str | None:
    for line in reversed(text.splitlines()):
        line = line.strip()
        if line.startswith(("https://", "http://")):
            return line
    return None


def open_pull_request(checkout: Checkout, branch: str, title: str, body: str) -> str:
    """Create a PR against trunk and return its URL.

    ``gh pr create`` prints the new PR's URL; if it didn't, the PR is
    looked up through ``gh pr view --json url``.

    Raises:
        PublishError: If the PR couldn't be created.
    """
    note("Creating pull request...", label=checkout.label)

    created = _gh(
        checkout,
        "pr", "create",
        "--title", title,
        "--body", body,
        "--base", TRUNK_BRANCH,
        "--head", branch,
    )  # fmt: skip
    if not created.ok:
        raise PublishError("could not create pull request")

    url = _find_url(created.stdout)
    if url:
        return url

    viewed = _gh(checkout, "pr", "view", branch, "--json", "url")
    if viewed.ok:
        try:
            url = json.loads(viewed.stdout).get("url")
        except json.JSONDecodeError:
            url = None
        if url:
            return url
    return created.stdout.strip() or "Pull request created"


def update_repository(
    repo_path: str,
    request: UpdateRequest,
    branch: str,
    *,
    timeout: float | None = None,
    label: str | None = None,
) -> RepositoryOutcome:
    """Run one repository through the full pipeline.

    Never raises: every failure becomes a Failed outcome tagged with the
    stage that failed. Once a commit exists the branch is left on the
    remote for manual recovery.

    Args:
        repo_path: Repository path as supplied by the caller.
        request: The batch request (packages and target versions).
        branch: Branch name shared by every repository in the batch.
        timeout: Per-command deadline in seconds.
        label: Console prefix for parallel runs.
    """
    step(f"Processing repository: {repo_path}")

    try:
        checkout = enter_repository(repo_path, timeout=timeout, label=label)
        reset_worktree(checkout)
        checkout_trunk(checkout)
        sync_trunk(checkout)
        create_branch(checkout, branch)

        resolutions = analyze_and_update(checkout, request)
        updated = [r for r in resolutions if isinstance(r, Updated)]
        lockfile_existed = checkout.lockfile.exists()
        if updated:
            verify_install(checkout)
        else:
            note(f"No packages were updated in {MANIFEST_FILE}", label=label)

        new_lockfile = bool(updated) and not lockfile_existed
        if not has_changes(checkout, new_lockfile=new_lockfile):
            note(
                f"No changes in {MANIFEST_FILE} or {LOCKFILE}. Skipping pull request.",
                label=label,
            )
            discard_branch(checkout, branch)
            return NoChanges(repository=repo_path)

        pairs = [(r.package, r.to_version) for r in updated]
        if pairs:
            title, body = format_pr_title(pairs), format_pr_body(pairs)
        else:
            # Only the reinstall touched the lockfile.
            title = f"Refresh {LOCKFILE}"
            body = f"This PR refreshes {LOCKFILE}.\n\n{PR_FOOTER}"

        note("Changes detected. Committing...", label=label)
        commit_changes(checkout, title, body)
        push_branch(checkout, branch)
        pr_url = open_pull_request(checkout, branch, title, body)
    except UpgradeError as exc:
        error(f"{exc.stage}: {exc} in {repo_path}", label=label)
        return Failed(repository=repo_path, stage=exc.stage, reason=str(exc))
    except Exception as exc:
        error(f"Unexpected error processing {repo_path}: {exc}", label=label)
        return Failed(repository=repo_path, stage="UnexpectedError", reason=str(exc))

    success(f"Pull request created: {pr_url}", label=label)
    return Success(
        repository=repo_path,
        updated_packages=[
            UpdatedPackage(name=r.package, from_version=r.from_version, to_version=r.to_version)
            for r in updated
        ],
        pr_url=pr_url,
    )
