"""Parser for Rust Cargo.toml manifests."""

from __future__ import annotations

import sys
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from depsight.errors import ManifestParseError, ValidationError
from depsight.models.crates import (
    CrateDep,
    CrateDeps,
    CrateManifest,
    CrateName,
    ExternalDep,
    InternalDep,
    MixedManifest,
    PackageManifest,
    WorkspaceManifest,
)
from depsight.models.version import VersionReq

# bucket -> accepted table spellings
_DEP_SECTIONS = {
    "main": ("dependencies",),
    "dev": ("dev-dependencies", "dev_dependencies"),
    "build": ("build-dependencies", "build_dependencies"),
}


def _table(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ManifestParseError(f"expected a table for {key!r}")
    return value


def _convert_dependency(name: str, spec: Any) -> tuple[CrateName, CrateDep] | None:
    """Map one ``name = spec`` entry to a dependency, or ``None`` to skip it."""
    if isinstance(spec, str):
        return CrateName(name), ExternalDep(VersionReq.parse(spec))
    if not isinstance(spec, dict):
        raise ManifestParseError(f"invalid dependency specification for {name!r}")

    if spec.get("git") is not None:
        return None
    path = spec.get("path")
    if path is not None:
        if not isinstance(path, str):
            raise ManifestParseError(f"invalid path for dependency {name!r}")
        return CrateName(name), InternalDep(path)
    version = spec.get("version")
    if version is None:
        # e.g. `{ workspace = true }`
        return None
    if not isinstance(version, str):
        raise ManifestParseError(f"invalid version for dependency {name!r}")
    package = spec.get("package", name)
    return CrateName(package), ExternalDep(VersionReq.parse(version))


def _collect_raw(data: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Gather the raw dependency tables, merging every ``[target.<cfg>]`` section."""
    sources = [data]
    for cfg, target in _table(data, "target").items():
        if not isinstance(target, dict):
            raise ManifestParseError(f"expected a table for target {cfg!r}")
        sources.append(target)

    raw: dict[str, dict[str, Any]] = {bucket: {} for bucket in _DEP_SECTIONS}
    for source in sources:
        for bucket, keys in _DEP_SECTIONS.items():
            for key in keys:
                raw[bucket].update(_table(source, key))
    return raw


def _parse_deps(data: dict[str, Any]) -> CrateDeps:
    deps = CrateDeps()
    raw = _collect_raw(data)
    for bucket, entries in raw.items():
        target = getattr(deps, bucket)
        for name, spec in entries.items():
            converted = _convert_dependency(name, spec)
            if converted is not None:
                crate_name, dep = converted
                target[crate_name] = dep
    return deps


def _parse_members(workspace: Any) -> list[str]:
    if not isinstance(workspace, dict):
        raise ManifestParseError("expected a table for 'workspace'")
    members = workspace.get("members", [])
    if not isinstance(members, list) or not all(isinstance(m, str) for m in members):
        raise ManifestParseError("workspace members must be a list of strings")
    return list(members)


def parse_manifest_toml(text: str) -> CrateManifest:
    """Parse the text of a ``Cargo.toml`` into a package, workspace or mixed manifest.

    Raises ``ManifestParseError`` on TOML syntax errors, invalid crate names
    or requirements, and manifests with neither ``[package]`` nor ``[workspace]``.
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestParseError(f"invalid TOML: {exc}") from exc

    package = data.get("package")
    workspace = data.get("workspace")
    if package is None and workspace is None:
        raise ManifestParseError("neither workspace nor package found in manifest")

    members = _parse_members(workspace) if workspace is not None else None
    if package is None:
        return WorkspaceManifest(members=members or [])

    if not isinstance(package, dict) or not isinstance(package.get("name"), str):
        raise ManifestParseError("package table has no name")
    try:
        name = CrateName(package["name"])
        deps = _parse_deps(data)
    except ValidationError as exc:
        raise ManifestParseError(str(exc)) from exc

    if members is None:
        return PackageManifest(name=name, deps=deps)
    return MixedManifest(name=name, deps=deps, members=members)
