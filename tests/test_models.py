"""Tests for value types: crate names, repository paths, advisories, analysis results."""

from __future__ import annotations

import pytest

from depsight.errors import ValidationError
from depsight.models.advisory import Advisory, AdvisoryDatabase, AffectedRange
from depsight.models.crates import (
    AnalyzedDependencies,
    AnalyzedDependency,
    CrateDeps,
    CrateName,
    CratePath,
    ExternalDep,
    InternalDep,
)
from depsight.models.repo import RepoPath, RepoSite
from depsight.models.version import Version, VersionReq

# ── TestCrateName ─────────────────────────────────────────────────────────


class TestCrateName:
    def test_normalized_equality(self):
        assert CrateName("Serde_JSON") == CrateName("serde-json")
        assert hash(CrateName("Serde_JSON")) == hash(CrateName("serde-json"))
        assert CrateName("serde_json") == "serde-json"

    def test_str_keeps_spelling(self):
        assert str(CrateName("Serde_JSON")) == "Serde_JSON"
        assert CrateName("Serde_JSON").normalized == "serde-json"

    @pytest.mark.parametrize("name", ["", "foo bar", "foo/bar", "crate!", "..", "naïve"])
    def test_invalid(self, name):
        with pytest.raises(ValidationError):
            CrateName(name)

    def test_immutable(self):
        name = CrateName("serde")
        with pytest.raises(AttributeError):
            name._name = "other"

    def test_ordering(self):
        assert sorted([CrateName("tokio"), CrateName("anyhow")]) == [
            CrateName("anyhow"),
            CrateName("tokio"),
        ]

    def test_crate_path(self):
        path = CratePath.from_parts("serde", "1.0.0")
        assert path.name == CrateName("serde")
        assert path.version == Version("1.0.0")
        assert str(path) == "serde/1.0.0"

    def test_crate_path_invalid_version(self):
        with pytest.raises(ValidationError):
            CratePath.from_parts("serde", "1.0")


# ── TestRepoPath ──────────────────────────────────────────────────────────


class TestRepoPath:
    def test_from_parts(self):
        path = RepoPath.from_parts("GitHub", "rust-lang", "cargo")
        assert path.site is RepoSite.GITHUB
        assert str(path) == "github/rust-lang/cargo"
        assert path.url == "https://github.com/rust-lang/cargo"

    def test_sourcehut_qualifier_prefix(self):
        path = RepoPath.from_parts("sourcehut", "sircmpwn", "scdoc")
        assert path.qual == "~sircmpwn"
        assert path.url == "https://git.sr.ht/~sircmpwn/scdoc"
        assert RepoPath.from_parts("sourcehut", "~sircmpwn", "scdoc") == path

    def test_unknown_site(self):
        with pytest.raises(ValidationError):
            RepoPath.from_parts("example", "foo", "bar")

    @pytest.mark.parametrize("qual,name", [("foo/bar", "baz"), ("foo", ".."), ("", "x")])
    def test_invalid_segments(self, qual, name):
        with pytest.raises(ValidationError):
            RepoPath.from_parts("github", qual, name)


# ── TestCrateDeps ─────────────────────────────────────────────────────────


class TestCrateDeps:
    def test_external_names_unique_in_order(self):
        deps = CrateDeps(
            main={
                CrateName("serde"): ExternalDep(VersionReq.parse("1")),
                CrateName("local"): InternalDep("../local"),
            },
            dev={CrateName("serde"): ExternalDep(VersionReq.parse("1"))},
            build={CrateName("cc"): ExternalDep(VersionReq.parse("1"))},
        )
        assert deps.external_names() == [CrateName("serde"), CrateName("cc")]

    def test_analyzed_from_deps_drops_internal(self):
        deps = CrateDeps(
            main={
                CrateName("serde"): ExternalDep(VersionReq.parse("1")),
                CrateName("local"): InternalDep("../local"),
            }
        )
        analyzed = AnalyzedDependencies.from_deps(deps)
        assert list(analyzed.main) == [CrateName("serde")]
        assert analyzed.count_total() == 1


# ── TestAdvisory ──────────────────────────────────────────────────────────


def _advisory(package="smallvec", **kwargs) -> Advisory:
    kwargs.setdefault("ranges", (AffectedRange(fixed=Version("1.2.0")),))
    return Advisory(id="RUSTSEC-2021-0003", package=package, **kwargs)


class TestAdvisory:
    def test_range_bounds(self):
        affected = AffectedRange(introduced=Version("1.0.0"), fixed=Version("1.2.0"))
        assert affected.contains(Version("1.0.0"))
        assert affected.contains(Version("1.1.9"))
        assert not affected.contains(Version("1.2.0"))
        assert not affected.contains(Version("0.9.0"))

    def test_last_affected_is_inclusive(self):
        affected = AffectedRange(last_affected=Version("0.3.0"))
        assert affected.contains(Version("0.3.0"))
        assert not affected.contains(Version("0.3.1"))

    def test_explicit_versions(self):
        advisory = _advisory(ranges=(), versions=frozenset({"0.5.1"}))
        assert advisory.is_vulnerable(Version("0.5.1"))
        assert not advisory.is_vulnerable(Version("0.5.2"))

    def test_database_query_normalizes_names(self):
        db = AdvisoryDatabase([_advisory(package="Small_Vec")])
        assert len(db) == 1
        assert db.query(CrateName("small-vec"), Version("1.1.0"))
        assert db.query(CrateName("small-vec"), Version("1.2.0")) == []
        assert db.query(CrateName("other"), Version("1.1.0")) == []

    def test_database_skips_withdrawn(self):
        db = AdvisoryDatabase([_advisory(withdrawn=True)])
        assert db.query(CrateName("smallvec"), Version("1.0.0")) == []


# ── TestAnalyzedDependency ────────────────────────────────────────────────


class TestAnalyzedDependency:
    def _dep(self, ltm, latest, vulns=()):
        return AnalyzedDependency(
            required=VersionReq.parse("^1.0.0"),
            latest_that_matches=Version(ltm) if ltm else None,
            latest=Version(latest) if latest else None,
            vulnerabilities=list(vulns),
        )

    def test_outdated(self):
        assert self._dep("1.2.0", "2.0.0").is_outdated()
        assert not self._dep("1.2.0", "1.2.0").is_outdated()
        assert self._dep(None, "2.0.0").is_outdated()
        assert not self._dep(None, None).is_outdated()

    def test_insecure_but_fixable(self):
        dep = self._dep("1.1.0", "1.3.0", [_advisory()])
        assert dep.is_insecure()
        assert not dep.is_always_insecure()

    def test_always_insecure(self):
        unfixed = _advisory(ranges=(AffectedRange(),))
        dep = self._dep("1.1.0", "1.3.0", [unfixed])
        assert dep.is_always_insecure()

    def test_always_insecure_without_latest(self):
        assert self._dep(None, None, [_advisory()]).is_always_insecure()
        assert not self._dep(None, None).is_always_insecure()

    def test_counters_exclude_dev(self):
        outdated = self._dep("1.0.0", "2.0.0")
        insecure = self._dep("1.3.0", "1.3.0", [_advisory()])
        analyzed = AnalyzedDependencies(
            main={CrateName("a"): outdated},
            dev={CrateName("b"): self._dep("1.0.0", "2.0.0"), CrateName("c"): insecure},
            build={CrateName("d"): self._dep("1.0.0", "1.0.0")},
        )
        assert analyzed.count_total() == 2
        assert analyzed.count_outdated() == 1
        assert analyzed.count_insecure() == 0
        assert analyzed.count_dev_outdated() == 1
        assert analyzed.count_dev_insecure() == 1
        assert analyzed.any_outdated()
        assert analyzed.any_dev_issues()
