"""Crate-level value types: names, releases, manifests and analysis results."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import total_ordering
from typing import TYPE_CHECKING, Union

from depsight.errors import ValidationError
from depsight.models.version import Version, VersionReq, parse_version

if TYPE_CHECKING:
    from depsight.models.advisory import Advisory

_CRATE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


@total_ordering
class CrateName:
    """A validated crate name.

    Equality, hashing and ordering use the normalized form (lower-case,
    ``_`` folded to ``-``), so ``Serde_JSON`` and ``serde-json`` are the
    same crate. ``str()`` returns the name as written.
    """

    __slots__ = ("_name", "_normalized")

    def __init__(self, name: str) -> None:
        if not isinstance(name, str) or not _CRATE_NAME_RE.match(name):
            raise ValidationError(f"failed to validate crate name: {name!r}")
        self._name = name
        self._normalized = name.lower().replace("_", "-")

    @property
    def normalized(self) -> str:
        return self._normalized

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"CrateName({self._name!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CrateName):
            return self._normalized == other._normalized
        if isinstance(other, str):
            return self._normalized == other.lower().replace("_", "-")
        return NotImplemented

    def __lt__(self, other: CrateName) -> bool:
        if not isinstance(other, CrateName):
            return NotImplemented
        return self._normalized < other._normalized

    def __hash__(self) -> int:
        return hash(self._normalized)

    def __setattr__(self, key: str, value: object) -> None:
        if hasattr(self, "_normalized"):
            raise AttributeError("CrateName is immutable")
        object.__setattr__(self, key, value)


@dataclass(frozen=True)
class CratePath:
    """One concrete published release: ``(name, version)``."""

    name: CrateName
    version: Version

    @classmethod
    def from_parts(cls, name: str, version: str) -> CratePath:
        return cls(CrateName(name), parse_version(version))

    def __str__(self) -> str:
        return f"{self.name}/{self.version}"


# ── dependencies ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExternalDep:
    """Resolved from the registry; the only kind that gets analyzed."""

    required: VersionReq


@dataclass(frozen=True)
class InternalDep:
    """Resolved by following a sibling manifest at a relative path."""

    path: str


CrateDep = Union[ExternalDep, InternalDep]


@dataclass
class CrateDeps:
    """Main, dev and build dependencies; dicts keep declaration order."""

    main: dict[CrateName, CrateDep] = field(default_factory=dict)
    dev: dict[CrateName, CrateDep] = field(default_factory=dict)
    build: dict[CrateName, CrateDep] = field(default_factory=dict)

    def buckets(self) -> tuple[dict[CrateName, CrateDep], ...]:
        return (self.main, self.dev, self.build)

    def external_names(self) -> list[CrateName]:
        """Unique external dependency names across all buckets, in order."""
        names: dict[CrateName, None] = {}
        for bucket in self.buckets():
            for name, dep in bucket.items():
                if isinstance(dep, ExternalDep):
                    names.setdefault(name, None)
        return list(names)


@dataclass(frozen=True)
class CrateRelease:
    """One historical publish record of a crate."""

    name: CrateName
    version: Version
    deps: CrateDeps = field(default_factory=CrateDeps, compare=False)
    yanked: bool = False


# ── manifests ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PackageManifest:
    name: CrateName
    deps: CrateDeps


@dataclass(frozen=True)
class WorkspaceManifest:
    members: list[str]


@dataclass(frozen=True)
class MixedManifest:
    """A manifest with both ``[package]`` and ``[workspace]``."""

    name: CrateName
    deps: CrateDeps
    members: list[str]


CrateManifest = Union[PackageManifest, WorkspaceManifest, MixedManifest]


# ── analysis results ─────────────────────────────────────────────────────


@dataclass
class AnalyzedDependency:
    """What the analyzer learned about one declared dependency."""

    required: VersionReq
    latest_that_matches: Version | None = None
    latest: Version | None = None
    vulnerabilities: list[Advisory] = field(default_factory=list)

    def is_outdated(self) -> bool:
        if self.latest is None:
            return False
        if self.latest_that_matches is None:
            return True
        return self.latest > self.latest_that_matches

    def is_insecure(self) -> bool:
        return bool(self.vulnerabilities)

    def is_always_insecure(self) -> bool:
        """Even upgrading to the latest release would not fix it."""
        if self.latest is None:
            return self.is_insecure()
        return any(advisory.is_vulnerable(self.latest) for advisory in self.vulnerabilities)


@dataclass
class AnalyzedDependencies:
    main: dict[CrateName, AnalyzedDependency] = field(default_factory=dict)
    dev: dict[CrateName, AnalyzedDependency] = field(default_factory=dict)
    build: dict[CrateName, AnalyzedDependency] = field(default_factory=dict)

    @classmethod
    def from_deps(cls, deps: CrateDeps) -> AnalyzedDependencies:
        def _bucket(bucket: dict[CrateName, CrateDep]) -> dict[CrateName, AnalyzedDependency]:
            return {
                name: AnalyzedDependency(required=dep.required)
                for name, dep in bucket.items()
                if isinstance(dep, ExternalDep)
            }

        return cls(main=_bucket(deps.main), dev=_bucket(deps.dev), build=_bucket(deps.build))

    def _headline(self) -> list[AnalyzedDependency]:
        return [*self.main.values(), *self.build.values()]

    def count_total(self) -> int:
        return len(self.main) + len(self.build)

    def count_outdated(self) -> int:
        return sum(1 for dep in self._headline() if dep.is_outdated())

    def count_insecure(self) -> int:
        return sum(1 for dep in self._headline() if dep.is_insecure())

    def count_always_insecure(self) -> int:
        return sum(1 for dep in self._headline() if dep.is_always_insecure())

    def count_dev_outdated(self) -> int:
        return sum(1 for dep in self.dev.values() if dep.is_outdated())

    def count_dev_insecure(self) -> int:
        return sum(1 for dep in self.dev.values() if dep.is_insecure())

    def any_outdated(self) -> bool:
        return self.count_outdated() > 0

    def any_dev_issues(self) -> bool:
        return self.count_dev_outdated() > 0 or self.count_dev_insecure() > 0
