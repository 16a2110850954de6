from __future__ import annotations

import argparse
import json
import logging
import os
import subprocess
import sys
from pathlib import Path

from releasetrace import __version__
from releasetrace.collect import RunContext, get_updates
from releasetrace.config import load_config
from releasetrace.git import GitRepository, get_git_root
from releasetrace.graph import parse_lock_file
from releasetrace.options import UpdateOptions

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="releasetrace",
        description="Find the packages of a uv monorepo that need a new version",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--since",
        metavar="REF",
        help="Compare against REF instead of the latest tag",
    )
    parser.add_argument(
        "--canary",
        action="store_true",
        help=(
            "Canary mode: release every package and compare against the "
            "commits introduced by HEAD"
        ),
    )
    parser.add_argument(
        "--force-publish",
        action="append",
        nargs="?",
        const="*",
        metavar="PACKAGES",
        help=(
            "Treat packages as changed regardless of diff "
            "(comma-separated, repeatable; no value means all packages)"
        ),
    )
    parser.add_argument(
        "--cd-version",
        metavar="TYPE",
        help=(
            "Requested bump type (e.g. patch, minor, prerelease). "
            "Prerelease bumps skip prerelease detection"
        ),
    )
    parser.add_argument(
        "--ignore",
        action="append",
        metavar="GLOB",
        help="Ignore changed files matching GLOB (repeatable)",
    )
    output_group = parser.add_mutually_exclusive_group()
    output_group.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Output results as JSON",
    )
    output_group.add_argument(
        "--names",
        action="store_true",
        help="Output names of packages to release, one per line",
    )
    output_group.add_argument(
        "--paths",
        action="store_true",
        help="Output source paths of packages to release, one per line",
    )
    parser.add_argument(
        "--lock-file",
        default="uv.lock",
        help="Path to uv.lock file (default: uv.lock)",
    )
    parser.add_argument(
        "--no-dev",
        action="store_true",
        help="Exclude dev dependencies from the dependency graph",
    )
    parser.add_argument(
        "--no-optional",
        action="store_true",
        help="Exclude optional dependencies from the dependency graph",
    )
    parser.add_argument(
        "--detailed",
        action="store_true",
        help="Show why each package needs a new version",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose/debug logging to stderr",
    )
    return parser


def _build_options(args: argparse.Namespace, config: dict) -> UpdateOptions:
    """Merge CLI flags over ``[tool.releasetrace]`` settings."""
    if args.force_publish:
        force_publish = ",".join(args.force_publish)
    else:
        force_publish = config.get("force-publish")

    ignore = [*config.get("ignore", []), *(args.ignore or [])]

    return UpdateOptions.from_raw(
        since=args.since,
        canary=args.canary,
        force_publish=force_publish,
        cd_version=args.cd_version or config.get("cd-version"),
        ignore=ignore,
    )


def _reason(name: str, result: dict) -> str:
    if name in result["updated"]:
        return "changed"
    if name in result["prereleased"]:
        return "prerelease"
    if name in result["dependents"]:
        return "dependent"
    return "canary"


def run(args: argparse.Namespace) -> dict:
    """Orchestrate the full pipeline: lock -> since -> diff -> closure."""
    lock_path = Path(args.lock_file).resolve()
    workspace_root = lock_path.parent

    config = load_config(workspace_root)
    options = _build_options(args, config)

    graph = parse_lock_file(
        lock_path,
        include_dev=not (args.no_dev or config.get("no-dev", False)),
        include_optional=not (args.no_optional or config.get("no-optional", False)),
    )

    # Virtual root packages have nothing to release
    packages = [pkg for pkg in graph.packages if pkg.location != workspace_root]

    repository = GitRepository(get_git_root(cwd=workspace_root))
    report = get_updates(
        RunContext(
            packages=packages,
            graph=graph,
            repository=repository,
            options=options,
        )
    )

    return {
        "since": report.since,
        "updates": report.names,
        "updated": list(report.updated),
        "prereleased": list(report.prereleased),
        "dependents": list(report.dependents),
        "canary": options.canary,
        "packages": {pkg.name: pkg for pkg in packages},
        "workspace_root": workspace_root,
    }


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(name)s: %(message)s",
    )

    try:
        result = run(args)
    except (
        FileNotFoundError,
        ValueError,
        RuntimeError,
        subprocess.CalledProcessError,
        subprocess.TimeoutExpired,
        OSError,
    ) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    internal_keys = {"packages", "workspace_root"}

    if args.json_output:
        out = {k: v for k, v in result.items() if k not in internal_keys}
        if args.detailed:
            out["reasons"] = {name: _reason(name, result) for name in result["updates"]}
        print(json.dumps(out))
    elif args.names:
        for name in result["updates"]:
            print(name)
    elif args.paths:
        packages = result["packages"]
        for name in result["updates"]:
            print(
                Path(
                    os.path.relpath(packages[name].location, result["workspace_root"])
                ).as_posix()
            )
    else:
        _print_human(result, detailed=args.detailed)


def _print_human(result: dict, *, detailed: bool = False) -> None:
    updates = result["updates"]

    print(f"Comparing with {result['since'] or 'initial commit'}")
    if result["canary"]:
        print("Canary mode: releasing all packages")
    print()

    if not updates:
        print("No packages need a new version.")
        return

    packages = result["packages"]
    print(f"Packages to release ({len(updates)}):")
    for name in updates:
        line = f"  - {name}"
        if name in packages:
            line += f" {packages[name].version}"
        if detailed:
            line += f" ({_reason(name, result)})"
        print(line)
