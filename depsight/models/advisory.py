"""Security advisories and the in-memory advisory database."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from depsight.models.crates import CrateName
from depsight.models.version import Version


@dataclass(frozen=True)
class AffectedRange:
    """``introduced <= v < fixed`` (or ``<= last_affected``); ``None`` is unbounded."""

    introduced: Version | None = None
    fixed: Version | None = None
    last_affected: Version | None = None

    def contains(self, version: Version) -> bool:
        if self.introduced is not None and version < self.introduced:
            return False
        if self.fixed is not None and not version < self.fixed:
            return False
        if self.last_affected is not None and version > self.last_affected:
            return False
        return True


@dataclass(frozen=True)
class Advisory:
    id: str
    package: str
    summary: str = ""
    aliases: tuple[str, ...] = ()
    url: str | None = None
    ranges: tuple[AffectedRange, ...] = ()
    versions: frozenset[str] = field(default_factory=frozenset)
    withdrawn: bool = False

    def is_vulnerable(self, version: Version) -> bool:
        if str(version) in self.versions:
            return True
        return any(affected.contains(version) for affected in self.ranges)


class AdvisoryDatabase:
    """Advisories indexed by normalized crate name."""

    def __init__(self, advisories: Iterable[Advisory] = ()) -> None:
        self._by_package: dict[CrateName, list[Advisory]] = {}
        for advisory in advisories:
            self._by_package.setdefault(CrateName(advisory.package), []).append(advisory)

    def __len__(self) -> int:
        return sum(len(items) for items in self._by_package.values())

    def query(self, name: CrateName, version: Version) -> list[Advisory]:
        """Non-withdrawn advisories for *name* that affect *version*."""
        return [
            advisory
            for advisory in self._by_package.get(name, ())
            if not advisory.withdrawn and advisory.is_vulnerable(version)
        ]
