from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

SUPPORTED_LOCK_VERSIONS = {1}


@dataclass(frozen=True)
class Package:
    name: str
    version: str
    location: Path


@dataclass
class PackageNode:
    package: Package
    dependencies: list[str] = field(default_factory=list)


@dataclass
class DependencyGraph:
    nodes: dict[str, PackageNode] = field(default_factory=dict)

    @property
    def packages(self) -> list[Package]:
        """Packages in lock file order."""
        return [node.package for node in self.nodes.values()]

    def get(self, name: str) -> PackageNode | None:
        return self.nodes.get(name)

    def dependencies_of(self, name: str) -> list[str]:
        """Direct dependencies of ``name``; unknown packages have none."""
        node = self.nodes.get(name)
        if node is None:
            return []
        return node.dependencies


def _extract_dep_names(deps: list[dict], members: set[str]) -> list[str]:
    """Extract dependency names that are workspace members."""
    result = []
    for dep in deps:
        name = dep.get("name", "")
        if name in members and name not in result:
            result.append(name)
    return result


def _get_source_path(source: dict) -> str | None:
    """Extract source path from a package source entry."""
    for key in ("editable", "directory", "virtual"):
        if key in source:
            return source[key]
    return None


def parse_lock_file(
    lock_path: Path,
    *,
    include_dev: bool = True,
    include_optional: bool = True,
) -> DependencyGraph:
    """Parse a uv.lock file and build the workspace dependency graph.

    Package locations are resolved against the directory holding the lock
    file. Dependencies keep the order they appear in the lock file, with
    optional and dev groups appended after the main dependencies.

    Args:
        lock_path: Path to the uv.lock file.
        include_dev: Whether to include dev dependencies in the graph.
        include_optional: Whether to include optional dependencies in the graph.

    Returns:
        A DependencyGraph keyed by workspace package name.

    Raises:
        FileNotFoundError: If the lock file doesn't exist.
        ValueError: If the lock file has no [manifest] section (not a workspace).
    """
    try:
        data = tomllib.loads(lock_path.read_text())
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"{lock_path} is not valid TOML: {exc}") from exc
    except FileNotFoundError:
        raise
    except (PermissionError, OSError) as exc:
        raise RuntimeError(f"Cannot read {lock_path}: {exc}") from exc

    lock_version = data.get("version")
    if lock_version not in SUPPORTED_LOCK_VERSIONS:
        logger.warning(
            "uv.lock version %s is not recognized (supported: %s). "
            "Results may be unreliable.",
            lock_version,
            SUPPORTED_LOCK_VERSIONS,
        )

    manifest = data.get("manifest")
    if manifest is None:
        raise ValueError(
            f"{lock_path} has no [manifest] section, is this a uv workspace?"
        )

    raw_members = manifest.get("members", [])
    if not isinstance(raw_members, list):
        member_type = type(raw_members).__name__
        raise ValueError(
            f"{lock_path} [manifest] members must be a list, got {member_type}"
        )
    members = set(raw_members)
    if len(raw_members) != len(members):
        logger.warning(
            "Duplicate members in %s: %s",
            lock_path,
            [m for m in raw_members if raw_members.count(m) > 1],
        )
    if not members:
        raise ValueError(f"{lock_path} has no workspace members in [manifest]")

    workspace_root = lock_path.parent
    graph = DependencyGraph()

    for pkg_data in data.get("package", []):
        name = pkg_data.get("name", "")
        if name not in members:
            continue
        if name in graph.nodes:
            logger.warning("Package %r listed twice in %s, keeping first", name, lock_path)
            continue

        source = pkg_data.get("source", {})
        source_path = _get_source_path(source)
        if source_path is None:
            logger.warning("Package %r has no recognized source path, skipping", name)
            continue
        source_path = source_path.rstrip("/") or "."

        version = pkg_data.get("version")
        if version is None:
            logger.warning("Package %r has no version, assuming 0.0.0", name)
            version = "0.0.0"

        deps = _extract_dep_names(pkg_data.get("dependencies", []), members)

        if include_optional:
            for group_deps in pkg_data.get("optional-dependencies", {}).values():
                for dep in _extract_dep_names(group_deps, members):
                    if dep not in deps:
                        deps.append(dep)

        if include_dev:
            for group_deps in pkg_data.get("dev-dependencies", {}).values():
                for dep in _extract_dep_names(group_deps, members):
                    if dep not in deps:
                        deps.append(dep)

        package = Package(
            name=name,
            version=str(version),
            location=workspace_root / source_path,
        )
        graph.nodes[name] = PackageNode(package=package, dependencies=deps)

    logger.debug("Parsed %d workspace members from %s", len(graph.nodes), lock_path)
    return graph
