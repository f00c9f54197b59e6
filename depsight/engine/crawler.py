"""ManifestCrawler: discovers every leaf crate reachable from an entry manifest."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog

from depsight.models.crates import (
    CrateDeps,
    CrateName,
    InternalDep,
    MixedManifest,
    PackageManifest,
    WorkspaceManifest,
)
from depsight.models.repo import RepoPath
from depsight.parsers.manifest import parse_manifest_toml

log = structlog.get_logger("depsight.engine.crawler")

RetrieveManifest = Callable[[RepoPath, str], Awaitable[str]]

_GLOB_CHARS = frozenset("*?[")


def join_normalized(base: str, member: str) -> str:
    """Join *member* onto *base*, resolving ``.`` and ``..`` without leaving the root."""
    parts: list[str] = []
    for segment in f"{base}/{member}".split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts:
                parts.pop()
            continue
        parts.append(segment)
    return "/".join(parts)


def is_glob(member: str) -> bool:
    return any(ch in _GLOB_CHARS for ch in member)


@dataclass
class ManifestCrawlerStepOutput:
    paths_of_interest: list[str] = field(default_factory=list)


@dataclass
class ManifestCrawlerOutput:
    crates: dict[CrateName, CrateDeps] = field(default_factory=dict)


class ManifestCrawler:
    """Folds fetched manifests into a set of leaf crates.

    Every path carries a breadth-first sort key ``(parent key..., index)`` so
    the output order does not depend on the order fetches complete in.
    """

    def __init__(self) -> None:
        self._fetched: set[str] = set()
        self._requested: set[str] = set()
        self._keys: dict[str, tuple[int, ...]] = {}
        self._leaves: dict[str, tuple[CrateName, CrateDeps]] = {}

    def register_entry(self, path: str) -> str:
        """Mark the entry point as requested and return its normalized form."""
        entry = join_normalized("", path)
        self._requested.add(entry)
        self._keys.setdefault(entry, ())
        return entry

    def step(self, path: str, raw_manifest: str) -> ManifestCrawlerStepOutput:
        path = join_normalized("", path)
        manifest = parse_manifest_toml(raw_manifest)
        self._fetched.add(path)
        self._requested.add(path)
        self._keys.setdefault(path, ())

        output = ManifestCrawlerStepOutput()
        if isinstance(manifest, (PackageManifest, MixedManifest)):
            self._process_package(path, manifest.name, manifest.deps, output)
        if isinstance(manifest, (WorkspaceManifest, MixedManifest)):
            self._process_workspace(path, manifest.members, output)
        return output

    def finalize(self) -> ManifestCrawlerOutput:
        crates: dict[CrateName, CrateDeps] = {}
        for path in sorted(self._leaves, key=self._sort_key):
            name, deps = self._leaves[path]
            crates[name] = deps
        return ManifestCrawlerOutput(crates=crates)

    # ── internals ────────────────────────────────────────────────────────

    def _sort_key(self, path: str) -> tuple[int, tuple[int, ...]]:
        key = self._keys[path]
        return len(key), key

    def _register_interest(
        self, base_path: str, member: str, output: ManifestCrawlerStepOutput
    ) -> None:
        full_path = join_normalized(base_path, member)
        if full_path in self._fetched or full_path in self._requested:
            return
        parent_key = self._keys[base_path]
        self._keys[full_path] = (*parent_key, len(output.paths_of_interest))
        self._requested.add(full_path)
        output.paths_of_interest.append(full_path)

    def _process_package(
        self,
        path: str,
        name: CrateName,
        deps: CrateDeps,
        output: ManifestCrawlerStepOutput,
    ) -> None:
        for bucket in deps.buckets():
            for dep in bucket.values():
                if isinstance(dep, InternalDep):
                    self._register_interest(path, dep.path, output)
        self._leaves[path] = (name, deps)

    def _process_workspace(
        self, path: str, members: list[str], output: ManifestCrawlerStepOutput
    ) -> None:
        for member in members:
            if is_glob(member):
                log.debug("crawler.skip_glob", path=path, member=member)
                continue
            self._register_interest(path, member, output)


async def crawl_manifest(
    retrieve: RetrieveManifest,
    repo_path: RepoPath,
    entry_point: str = "",
) -> ManifestCrawlerOutput:
    """Fetch and fold manifests until no new paths of interest remain.

    *retrieve* is called with a directory and returns the text of the
    ``Cargo.toml`` inside it. Any failure cancels outstanding fetches and
    propagates.
    """
    crawler = ManifestCrawler()
    pending: set[asyncio.Task[tuple[str, str]]] = set()

    async def _fetch(path: str) -> tuple[str, str]:
        log.debug("crawler.fetch", repo=str(repo_path), path=path)
        return path, await retrieve(repo_path, path)

    def _schedule(path: str) -> None:
        pending.add(asyncio.ensure_future(_fetch(path)))

    _schedule(crawler.register_entry(entry_point))
    try:
        while pending:
            done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            pending.difference_update(done)
            for task in done:
                path, raw_manifest = task.result()
                output = crawler.step(path, raw_manifest)
                for child in output.paths_of_interest:
                    _schedule(child)
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    result = crawler.finalize()
    log.info("crawler.done", repo=str(repo_path), crates=len(result.crates))
    return result
