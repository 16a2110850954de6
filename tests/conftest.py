import os
from pathlib import Path

import pytest

from releasetrace.graph import DependencyGraph, Package, PackageNode

# Simple 3-package workspace: api → shared, worker → shared
SIMPLE_LOCK = """\
version = 1

[manifest]
members = ["api", "shared", "worker"]

[[package]]
name = "api"
version = "0.1.0"
source = { editable = "packages/api" }
dependencies = [
    { name = "shared" },
    { name = "requests" },
]

[[package]]
name = "shared"
version = "0.1.0"
source = { editable = "packages/shared" }
dependencies = []

[[package]]
name = "worker"
version = "0.1.0"
source = { editable = "packages/worker" }
dependencies = [
    { name = "shared" },
]

[[package]]
name = "requests"
version = "2.31.0"
source = { registry = "https://pypi.org/simple" }
"""

# Diamond dependency: app → api → shared, app → worker → shared
DIAMOND_LOCK = """\
version = 1

[manifest]
members = ["app", "api", "shared", "worker"]

[[package]]
name = "app"
version = "1.0.0"
source = { editable = "packages/app" }
dependencies = [
    { name = "api" },
    { name = "worker" },
]

[[package]]
name = "api"
version = "1.0.0"
source = { editable = "packages/api" }
dependencies = [
    { name = "shared" },
]

[[package]]
name = "shared"
version = "1.0.0"
source = { editable = "packages/shared" }
dependencies = []

[[package]]
name = "worker"
version = "1.0.0"
source = { editable = "packages/worker" }
dependencies = [
    { name = "shared" },
]
"""

# Virtual root workspace (root package is virtual)
VIRTUAL_ROOT_LOCK = """\
version = 1

[manifest]
members = ["myproject", "api", "lib"]

[[package]]
name = "myproject"
version = "0.1.0"
source = { virtual = "." }
dependencies = [
    { name = "api" },
    { name = "lib" },
]

[[package]]
name = "api"
version = "0.1.0"
source = { directory = "packages/api" }
dependencies = [
    { name = "lib" },
]

[[package]]
name = "lib"
version = "0.1.0"
source = { directory = "packages/lib" }
dependencies = []
"""

# Lock with optional and dev dependencies
OPTIONAL_DEV_LOCK = """\
version = 1

[manifest]
members = ["api", "shared", "worker", "tools"]

[[package]]
name = "api"
version = "0.1.0"
source = { editable = "packages/api" }
dependencies = [
    { name = "shared" },
]

[package.optional-dependencies]
extra = [
    { name = "worker" },
]

[package.dev-dependencies]
dev = [
    { name = "tools" },
]

[[package]]
name = "shared"
version = "0.1.0"
source = { editable = "packages/shared" }
dependencies = []

[[package]]
name = "worker"
version = "0.1.0"
source = { editable = "packages/worker" }
dependencies = []

[[package]]
name = "tools"
version = "0.1.0"
source = { editable = "packages/tools" }
dependencies = []
"""

# One member already on a prerelease
PRERELEASE_LOCK = """\
version = 1

[manifest]
members = ["core", "cli", "docs"]

[[package]]
name = "core"
version = "2.0.0rc1"
source = { editable = "packages/core" }
dependencies = []

[[package]]
name = "cli"
version = "1.4.0"
source = { editable = "packages/cli" }
dependencies = [
    { name = "core" },
]

[[package]]
name = "docs"
version = "1.0.0"
source = { editable = "packages/docs" }
dependencies = []
"""


class FakeRepository:
    """In-memory stand-in for GitRepository.

    ``changed_files`` are repository-relative paths, filtered by package
    folder the way ``git diff -- <folder>`` would.
    """

    def __init__(
        self,
        root_path,
        *,
        tags=("v1.0.0",),
        sha="0123456789abcdef0123456789abcdef01234567",
        changed_files=(),
    ):
        self.root_path = Path(root_path)
        self.tags = list(tags)
        self.sha = sha
        self.changed_files = list(changed_files)
        self.diff_calls = []

    def has_tags(self):
        return bool(self.tags)

    def get_current_sha(self):
        return self.sha

    def get_last_tag(self):
        return self.tags[-1]

    def relative_location(self, location):
        return Path(os.path.relpath(location, self.root_path)).as_posix()

    def diff_since_in(self, since, location):
        self.diff_calls.append((since, Path(location)))
        folder = self.relative_location(location) + "/"
        return [f for f in self.changed_files if f.startswith(folder)]


def make_graph(root, edges, versions=None):
    """Build a DependencyGraph from ``{name: [deps]}`` with packages under root/packages."""
    versions = versions or {}
    graph = DependencyGraph()
    for name, deps in edges.items():
        package = Package(
            name=name,
            version=versions.get(name, "1.0.0"),
            location=Path(root) / "packages" / name,
        )
        graph.nodes[name] = PackageNode(package=package, dependencies=list(deps))
    return graph


@pytest.fixture
def simple_lock(tmp_path):
    lock_file = tmp_path / "uv.lock"
    lock_file.write_text(SIMPLE_LOCK)
    return lock_file


@pytest.fixture
def diamond_lock(tmp_path):
    lock_file = tmp_path / "uv.lock"
    lock_file.write_text(DIAMOND_LOCK)
    return lock_file


@pytest.fixture
def virtual_root_lock(tmp_path):
    lock_file = tmp_path / "uv.lock"
    lock_file.write_text(VIRTUAL_ROOT_LOCK)
    return lock_file


@pytest.fixture
def optional_dev_lock(tmp_path):
    lock_file = tmp_path / "uv.lock"
    lock_file.write_text(OPTIONAL_DEV_LOCK)
    return lock_file


@pytest.fixture
def prerelease_lock(tmp_path):
    lock_file = tmp_path / "uv.lock"
    lock_file.write_text(PRERELEASE_LOCK)
    return lock_file


@pytest.fixture
def fake_repo(tmp_path):
    return FakeRepository(tmp_path)
