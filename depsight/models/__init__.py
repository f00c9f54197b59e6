"""Value types, one module per concern, with no I/O."""

from depsight.models.advisory import Advisory, AdvisoryDatabase, AffectedRange
from depsight.models.crates import (
    AnalyzedDependencies,
    AnalyzedDependency,
    CrateDep,
    CrateDeps,
    CrateManifest,
    CrateName,
    CratePath,
    CrateRelease,
    ExternalDep,
    InternalDep,
    MixedManifest,
    PackageManifest,
    WorkspaceManifest,
)
from depsight.models.repo import RepoPath, RepoSite, Repository
from depsight.models.version import Version, VersionReq

__all__ = [
    "Advisory",
    "AdvisoryDatabase",
    "AffectedRange",
    "AnalyzedDependencies",
    "AnalyzedDependency",
    "CrateDep",
    "CrateDeps",
    "CrateManifest",
    "CrateName",
    "CratePath",
    "CrateRelease",
    "ExternalDep",
    "InternalDep",
    "MixedManifest",
    "PackageManifest",
    "RepoPath",
    "RepoSite",
    "Repository",
    "Version",
    "VersionReq",
]
