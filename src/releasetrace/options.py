from __future__ import annotations

from dataclasses import dataclass, field

ALL_PACKAGES = "*"


def resolve_forced_packages(force_publish: object) -> frozenset[str]:
    """Normalize a force-publish option into a set of package names.

    ``True`` means every package (``{"*"}``), a string is split on commas,
    a list of names is taken as is. Anything else forces nothing.
    """
    if force_publish is True:
        return frozenset({ALL_PACKAGES})
    if isinstance(force_publish, str):
        return frozenset(force_publish.split(","))
    if isinstance(force_publish, (list, tuple, set, frozenset)):
        return frozenset(force_publish)
    return frozenset()


@dataclass(frozen=True)
class UpdateOptions:
    since: str | None = None
    canary: bool = False
    force_publish: frozenset[str] = field(default_factory=frozenset)
    cd_version: str | None = None
    ignore: tuple[str, ...] = ()

    @classmethod
    def from_raw(
        cls,
        *,
        since: str | None = None,
        canary: bool = False,
        force_publish: object = None,
        cd_version: str | None = None,
        ignore: list[str] | tuple[str, ...] | None = None,
    ) -> UpdateOptions:
        """Build options from loosely-typed user input."""
        return cls(
            since=since or None,
            canary=bool(canary),
            force_publish=resolve_forced_packages(force_publish),
            cd_version=cd_version or None,
            ignore=tuple(ignore or ()),
        )

    @property
    def forces_all(self) -> bool:
        return ALL_PACKAGES in self.force_publish
