"""Decide which workspace packages need a new version.

The pipeline runs in stages, each returning its result instead of storing
it: pick the history point to compare against, find packages changed since
then, find packages already on a prerelease, walk the dependency graph for
their dependents, then keep every package that landed in one of those sets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Protocol

from releasetrace.graph import DependencyGraph, Package
from releasetrace.options import UpdateOptions
from releasetrace.traverse import ClosureCache, collect_dependents
from releasetrace.version import is_prerelease_increment, prerelease

logger = logging.getLogger(__name__)


class Repository(Protocol):
    root_path: Path

    def has_tags(self) -> bool: ...

    def get_current_sha(self) -> str: ...

    def get_last_tag(self) -> str: ...

    def diff_since_in(self, since: str, location: Path) -> list[str]: ...

    def relative_location(self, location: Path) -> str: ...


@dataclass(frozen=True)
class Update:
    package: Package


@dataclass
class RunContext:
    packages: list[Package]
    graph: DependencyGraph
    repository: Repository
    options: UpdateOptions = field(default_factory=UpdateOptions)


@dataclass
class UpdateReport:
    since: str | None
    updated: dict[str, Package]
    prereleased: dict[str, Package]
    dependents: dict[str, Package]
    updates: list[Update]

    @property
    def names(self) -> list[str]:
        return [update.package.name for update in self.updates]


def get_associated_commits(sha: str) -> str:
    """Range covering every commit a (merge) commit introduced.

    Both ends use the first 8 characters of ``sha``: ``ab7533e1^..ab7533e1``.
    For a merge commit this spans the merged commits plus the merge itself.
    """
    short = sha[:8]
    return f"{short}^..{short}"


def select_since(repository: Repository, options: UpdateOptions) -> str | None:
    """Pick the history point changes are measured against.

    Returns None when the repository has no tags and no ``since`` was
    given, meaning every package counts as new.
    """
    since = options.since
    if repository.has_tags():
        if options.canary:
            since = get_associated_commits(repository.get_current_sha())
        elif not since:
            since = repository.get_last_tag()

    logger.info("Comparing with %s.", since or "initial commit")
    return since


def _is_ignored(file: str, patterns: tuple[str, ...]) -> bool:
    """Glob match with ``**`` spanning directories.

    Patterns without a ``/`` also match the basename alone.
    """
    path = PurePosixPath(file)
    return any(
        path.full_match(pattern) or ("/" not in pattern and path.match(pattern))
        for pattern in patterns
    )


def has_diff_since_that_isnt_ignored(
    repository: Repository,
    pkg: Package,
    since: str,
    ignore: tuple[str, ...] = (),
) -> bool:
    """True if ``pkg`` has a changed file since ``since`` not matched by ``ignore``."""
    diff = repository.diff_since_in(since, pkg.location)
    if not diff:
        return False

    folder = repository.relative_location(pkg.location)
    prefix = "" if folder in ("", ".") else folder.rstrip("/") + "/"
    changed_files = [
        file.replace("\\", "/").removeprefix(prefix) for file in diff
    ]

    if ignore:
        changed_files = [f for f in changed_files if not _is_ignored(f, ignore)]
        if not changed_files:
            logger.debug("All changes in %s match ignore patterns", pkg.name)

    return bool(changed_files)


def collect_updated_packages(
    context: RunContext,
    since: str | None,
) -> dict[str, Package]:
    """Packages with a qualifying change since ``since``, or forced ones."""
    logger.info("Checking for updated packages...")
    options = context.options
    updated: dict[str, Package] = {}

    if not since or options.forces_all:
        for pkg in context.packages:
            logger.debug("updated %s", pkg.name)
            updated[pkg.name] = pkg
        return updated

    for pkg in context.packages:
        if pkg.name in options.force_publish or has_diff_since_that_isnt_ignored(
            context.repository, pkg, since, options.ignore
        ):
            logger.debug("updated %s", pkg.name)
            updated[pkg.name] = pkg

    return updated


def collect_prereleased_packages(
    packages: list[Package],
    cd_version: str | None = None,
) -> dict[str, Package]:
    """Packages already on a prerelease, unless bumping to a prerelease."""
    logger.info("Checking for prereleased packages...")
    if is_prerelease_increment(cd_version):
        return {}

    prereleased: dict[str, Package] = {}
    for pkg in packages:
        if prerelease(pkg.version):
            logger.debug("prereleased %s", pkg.name)
            prereleased[pkg.name] = pkg
    return prereleased


def collect_updates(
    packages: list[Package],
    updated: dict[str, Package],
    prereleased: dict[str, Package],
    dependents: dict[str, Package],
    *,
    canary: bool = False,
) -> list[Update]:
    """Wrap every package needing a new version as an Update.

    A package is kept if it is in ``updated``, ``prereleased`` or
    ``dependents``, or always when ``canary`` is set. Output follows the
    order of ``packages``.
    """
    updates = []
    for pkg in packages:
        if (
            pkg.name in updated
            or pkg.name in prereleased
            or pkg.name in dependents
            or canary
        ):
            logger.debug("has filtered update %s", pkg.name)
            updates.append(Update(pkg))
    return updates


def get_updates(context: RunContext) -> UpdateReport:
    """Run the full pipeline: since -> updated -> prereleased -> dependents -> updates."""
    since = select_since(context.repository, context.options)
    updated = collect_updated_packages(context, since)
    prereleased = collect_prereleased_packages(
        context.packages, context.options.cd_version
    )
    dependents = collect_dependents(
        context.packages,
        context.graph,
        [*updated, *prereleased],
        cache=ClosureCache(),
    )
    updates = collect_updates(
        context.packages,
        updated,
        prereleased,
        dependents,
        canary=context.options.canary,
    )
    return UpdateReport(
        since=since,
        updated=updated,
        prereleased=prereleased,
        dependents=dependents,
        updates=updates,
    )
