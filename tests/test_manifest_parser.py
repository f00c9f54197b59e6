"""Tests for the Cargo.toml manifest parser."""

from __future__ import annotations

import pytest

from depsight.errors import DecodeError, ManifestParseError
from depsight.models.crates import (
    CrateName,
    ExternalDep,
    InternalDep,
    MixedManifest,
    PackageManifest,
    WorkspaceManifest,
)
from depsight.models.version import VersionReq
from depsight.parsers.manifest import parse_manifest_toml


class TestParseManifest:
    def test_package(self):
        manifest = parse_manifest_toml(
            """
[package]
name = "more-complex"
[dependencies]
foo = "0.30.0"
bar = { version = "1.2.0", optional = true }
[dev-dependencies]
quickcheck = "0.5"
[build-dependencies]
codegen = "0.0.1"
"""
        )
        assert isinstance(manifest, PackageManifest)
        assert manifest.name == CrateName("more-complex")
        assert manifest.deps.main == {
            CrateName("foo"): ExternalDep(VersionReq.parse("0.30.0")),
            CrateName("bar"): ExternalDep(VersionReq.parse("1.2.0")),
        }
        assert list(manifest.deps.dev) == [CrateName("quickcheck")]
        assert list(manifest.deps.build) == [CrateName("codegen")]

    def test_workspace_without_members_declaration(self):
        manifest = parse_manifest_toml(
            """
[package]
name = "symbolic"

[workspace]

[dependencies]
symbolic-common = { version = "2.0.6", path = "common" }
"""
        )
        assert isinstance(manifest, MixedManifest)
        assert manifest.members == []
        assert manifest.deps.main == {CrateName("symbolic-common"): InternalDep("common")}
        assert manifest.deps.dev == {}
        assert manifest.deps.build == {}

    def test_workspace_only(self):
        manifest = parse_manifest_toml('[workspace]\nmembers = ["lib/", "tests/*"]\n')
        assert manifest == WorkspaceManifest(members=["lib/", "tests/*"])

    def test_renamed_dependency(self):
        manifest = parse_manifest_toml(
            """
[package]
name = "symbolic"

[dependencies]
symbolic-common_crate = { version = "2.0.6", package = "symbolic-common" }
"""
        )
        assert list(manifest.deps.main) == [CrateName("symbolic-common")]

    def test_target_dependencies_are_merged(self):
        manifest = parse_manifest_toml(
            """
[package]
name = "platform-specific"

[dependencies]
serde = "1.0"

[target.'cfg(unix)'.dependencies]
nix = { version = "0.28", features = ["sched"] }

[target.'cfg(windows)'.dev-dependencies]
winapi = "0.3"

[target.'cfg(target_os = "linux")'.build-dependencies]
cc = "1.0"
"""
        )
        assert list(manifest.deps.main) == [CrateName("serde"), CrateName("nix")]
        assert list(manifest.deps.dev) == [CrateName("winapi")]
        assert list(manifest.deps.build) == [CrateName("cc")]

    def test_underscore_table_spellings(self):
        manifest = parse_manifest_toml(
            """
[package]
name = "old-style"

[dev_dependencies]
tempfile = "3"

[build_dependencies]
cc = "1"
"""
        )
        assert list(manifest.deps.dev) == [CrateName("tempfile")]
        assert list(manifest.deps.build) == [CrateName("cc")]

    def test_skipped_dependencies(self):
        manifest = parse_manifest_toml(
            """
[package]
name = "skips"

[dependencies]
from-git = { git = "https://github.com/foo/bar", version = "1.0" }
inherited = { workspace = true }
kept = "1"
"""
        )
        assert list(manifest.deps.main) == [CrateName("kept")]


class TestParseManifestErrors:
    def test_invalid_toml(self):
        with pytest.raises(ManifestParseError):
            parse_manifest_toml("[package\nname = ")

    def test_neither_package_nor_workspace(self):
        with pytest.raises(ManifestParseError, match="neither workspace nor package"):
            parse_manifest_toml('[dependencies]\nserde = "1"\n')

    def test_invalid_crate_name(self):
        with pytest.raises(ManifestParseError):
            parse_manifest_toml('[package]\nname = "not a crate"\n')

    def test_invalid_requirement(self):
        with pytest.raises(ManifestParseError):
            parse_manifest_toml('[package]\nname = "x"\n[dependencies]\nserde = "one point oh"\n')

    def test_is_a_decode_error(self):
        with pytest.raises(DecodeError):
            parse_manifest_toml("")
