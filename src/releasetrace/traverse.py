from __future__ import annotations

import enum
import logging
from collections.abc import Iterable

from releasetrace.graph import DependencyGraph, Package

logger = logging.getLogger(__name__)


class ClosureState(enum.Enum):
    UNMARKED = "unmarked"
    VISITING = "visiting"
    DEPENDENT = "dependent"


class ClosureCache:
    """Memo of (package, target) pairs explored by one dependents run."""

    def __init__(self) -> None:
        self._states: dict[tuple[str, str], ClosureState] = {}

    def get(self, package_name: str, target: str) -> ClosureState:
        return self._states.get((package_name, target), ClosureState.UNMARKED)

    def mark_visiting(self, package_name: str, target: str) -> None:
        # DEPENDENT is final
        if self.get(package_name, target) is not ClosureState.DEPENDENT:
            self._states[(package_name, target)] = ClosureState.VISITING

    def mark_dependent(self, package_name: str, target: str) -> None:
        self._states[(package_name, target)] = ClosureState.DEPENDENT

    def __len__(self) -> int:
        return len(self._states)


def is_package_dependent_of(
    graph: DependencyGraph,
    cache: ClosureCache,
    package_name: str,
    target: str,
) -> bool:
    """DFS: does ``package_name`` reach ``target`` over one or more dependency edges?

    Pairs are marked VISITING before recursing so cycles terminate. A pair
    reached again while still VISITING answers False, and it keeps that mark
    if no other route is found, so later queries of the same pair in a
    cyclic graph also answer False.
    """
    state = cache.get(package_name, target)
    if state is ClosureState.DEPENDENT:
        return True
    if state is ClosureState.VISITING:
        return False

    dependencies = graph.dependencies_of(package_name)

    if target in dependencies:
        cache.mark_dependent(package_name, target)
        return True

    cache.mark_visiting(package_name, target)

    has_sub_dependents = False
    # No short circuit: every route is explored so the cache fills up.
    for dep in dependencies:
        if is_package_dependent_of(graph, cache, dep, target):
            cache.mark_dependent(package_name, target)
            has_sub_dependents = True

    return has_sub_dependents


def collect_dependents(
    packages: Iterable[Package],
    graph: DependencyGraph,
    targets: Iterable[str],
    *,
    cache: ClosureCache | None = None,
) -> dict[str, Package]:
    """Find the packages that transitively depend on any of ``targets``.

    Args:
        packages: Packages to check, in output order.
        graph: Workspace dependency graph.
        targets: Names of changed or prereleased packages.
        cache: Closure memo; a fresh one is used when omitted.

    Returns:
        Mapping of dependent package name to package, in ``packages`` order.
    """
    if cache is None:
        cache = ClosureCache()
    targets = list(dict.fromkeys(targets))

    dependents: dict[str, Package] = {}
    for pkg in packages:
        for target in targets:
            if is_package_dependent_of(graph, cache, pkg.name, target):
                logger.debug("%s depends on %s", pkg.name, target)
                dependents[pkg.name] = pkg
                break

    logger.debug(
        "Found %d dependents of %d targets (%d pairs explored)",
        len(dependents),
        len(targets),
        len(cache),
    )
    return dependents
