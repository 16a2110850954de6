from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 30


def _run_git(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            cwd=cwd,
            timeout=GIT_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        raise RuntimeError(f"git command timed out after {GIT_TIMEOUT} seconds")


def _check_ref(ref: str, name: str) -> None:
    if not ref or not ref.strip():
        raise ValueError(f"{name} must not be empty")
    if "\x00" in ref:
        raise ValueError(f"{name} must not contain null bytes")


def get_git_root(cwd: Path | None = None) -> Path:
    """Get the git repository root directory."""
    result = _run_git(["rev-parse", "--show-toplevel"], cwd=cwd)
    if result.returncode != 0:
        raise ValueError(
            "Not a git repository. Run releasetrace from within a git repo."
        )
    logger.debug("Git root: %s", result.stdout.strip())
    return Path(result.stdout.strip())


class GitRepository:
    """Read-only view of the history of a git checkout.

    Every method runs a single ``git`` subprocess in ``root_path``.
    """

    def __init__(self, root_path: Path):
        self.root_path = Path(root_path)

    def has_tags(self) -> bool:
        result = _run_git(["tag"], cwd=self.root_path)
        if result.returncode != 0:
            raise RuntimeError(f"git tag failed: {result.stderr.strip()}")
        has_tags = bool(result.stdout.strip())
        logger.debug("Repository has tags: %s", has_tags)
        return has_tags

    def get_current_sha(self) -> str:
        result = _run_git(["rev-parse", "HEAD"], cwd=self.root_path)
        if result.returncode != 0:
            raise RuntimeError(f"git rev-parse failed: {result.stderr.strip()}")
        sha = result.stdout.strip()
        logger.debug("Current SHA: %s", sha)
        return sha

    def get_last_tag(self) -> str:
        result = _run_git(["describe", "--tags", "--abbrev=0"], cwd=self.root_path)
        if result.returncode != 0:
            raise RuntimeError(f"git describe failed: {result.stderr.strip()}")
        tag = result.stdout.strip()
        logger.debug("Last tagged release: %s", tag)
        return tag

    def relative_location(self, location: Path) -> str:
        """Path of ``location`` relative to the repository root, '/'-separated."""
        location = Path(location)
        if not location.is_absolute():
            return location.as_posix()
        return Path(os.path.relpath(location, self.root_path)).as_posix()

    def diff_since_in(self, since: str, location: Path) -> list[str]:
        """List files changed under ``location`` between ``since`` and the work tree.

        Returns paths relative to the repository root.
        """
        _check_ref(since, "since")
        folder = self.relative_location(location)
        result = _run_git(
            ["diff", "--name-only", since, "--", folder],
            cwd=self.root_path,
        )
        if result.returncode != 0:
            stderr = result.stderr.strip()
            if "unknown revision" in stderr or "bad revision" in stderr:
                msg = (
                    f"Could not resolve '{since}'. "
                    "Does the tag/ref exist? "
                    "Try 'git fetch --tags' or pass --since with a valid ref."
                )
                if "unknown revision" in stderr:
                    msg += "\nIf running in CI, ensure you checkout with fetch-depth: 0."
                raise ValueError(msg)
            raise RuntimeError(f"git diff failed: {stderr}")
        files = [f for f in result.stdout.strip().splitlines() if f]
        logger.debug("Changed files in %s (%d): %s", folder, len(files), files)
        return files
