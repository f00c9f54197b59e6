"""DependencyAnalyzer: folds registry release history into per-dependency results."""

from __future__ import annotations

from collections.abc import Iterable

from depsight.models.advisory import AdvisoryDatabase
from depsight.models.crates import (
    AnalyzedDependencies,
    AnalyzedDependency,
    CrateDeps,
    CrateRelease,
)
from depsight.models.version import Version, is_prerelease


class DependencyAnalyzer:
    """Accumulates release batches for one crate's declared dependencies.

    ``process`` may be called any number of times. Latest versions do not
    depend on batch order; vulnerabilities reflect the last matching release
    whose advisory lookup was non-empty.
    """

    def __init__(self, deps: CrateDeps, advisory_db: AdvisoryDatabase | None = None) -> None:
        self._deps = AnalyzedDependencies.from_deps(deps)
        self._advisory_db = advisory_db

    def process(self, releases: Iterable[CrateRelease]) -> None:
        for release in releases:
            if release.yanked:
                continue
            for bucket in (self._deps.main, self._deps.dev, self._deps.build):
                dep = bucket.get(release.name)
                if dep is not None:
                    self._process_single(dep, release)

    def finalize(self) -> AnalyzedDependencies:
        return self._deps

    def _process_single(self, dep: AnalyzedDependency, release: CrateRelease) -> None:
        version = release.version
        matches = dep.required.matches(version)
        if matches:
            dep.latest_that_matches = _max(dep.latest_that_matches, version)
        if not is_prerelease(version):
            dep.latest = _max(dep.latest, version)
        if matches and self._advisory_db is not None:
            found = self._advisory_db.query(release.name, version)
            if found:
                dep.vulnerabilities = found


def _max(current: Version | None, candidate: Version) -> Version:
    if current is None or current < candidate:
        return candidate
    return current
