from __future__ import annotations

import re

# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
SEMVER_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*)?$"
)

# PEP 440 pre-release and dev segments, e.g. 1.0.0a1, 2.0rc1, 1.0.dev3
PEP440_PRE_RE = re.compile(
    r"^v?\d+(?:\.\d+)*"
    r"(?P<pre>[-_.]?(?:a|b|c|rc|alpha|beta|pre|preview)[-_.]?\d*)?"
    r"(?:(?:-\d+)|(?:[-_.]?(?:post|rev|r)[-_.]?\d*))?"
    r"(?P<dev>[-_.]?dev[-_.]?\d*)?"
    r"(?:\+[a-z0-9]+(?:[-_.][a-z0-9]+)*)?$",
    re.IGNORECASE,
)

PRERELEASE_BUMP_PREFIX = "pre"


def prerelease(version: str) -> tuple[str, ...] | None:
    """Return the prerelease identifiers of ``version``, or None.

    ``1.0.0-alpha.1`` gives ``("alpha", "1")``. PEP 440 versions such as
    ``1.0.0rc1`` or ``1.0.0.dev2`` give a single identifier built from the
    pre/dev segment. Final releases and unparseable strings give None.
    """
    version = version.strip()
    match = SEMVER_RE.match(version)
    if match:
        pre = match.group("prerelease")
        return tuple(pre.split(".")) if pre else None

    match = PEP440_PRE_RE.match(version)
    if match:
        parts = [
            seg.strip("-_.")
            for seg in (match.group("pre"), match.group("dev"))
            if seg
        ]
        return tuple(parts) if parts else None

    return None


def is_prerelease_increment(cd_version: str | None) -> bool:
    """True for bump types like ``prerelease``, ``premajor`` or ``prepatch``."""
    return bool(cd_version) and cd_version.startswith(PRERELEASE_BUMP_PREFIX)
