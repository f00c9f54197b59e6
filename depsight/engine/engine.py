"""Engine: orchestrates crawling, registry lookups, advisories and analysis."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta

import structlog

from depsight.core.config import Settings
from depsight.engine.analyzer import DependencyAnalyzer
from depsight.engine.cache import Cache
from depsight.engine.crawler import crawl_manifest, join_normalized
from depsight.errors import NotFoundError
from depsight.interactors.crates import GetPopularCrates, QueryCrate, QueryCrateResponse
from depsight.interactors.github import GetPopularRepos
from depsight.interactors.http import HttpClient
from depsight.interactors.repos import RetrieveFileAtPath
from depsight.interactors.rustsec import FetchAdvisoryDatabase
from depsight.models.advisory import AdvisoryDatabase
from depsight.models.crates import (
    AnalyzedDependencies,
    CrateDeps,
    CrateName,
    CratePath,
    CrateRelease,
)
from depsight.models.repo import RepoPath, Repository
from depsight.models.version import VersionReq

log = structlog.get_logger("depsight.engine")

RetrieveFile = Callable[[RepoPath, str], Awaitable[str]]
QueryCrateFn = Callable[[CrateName], Awaitable[QueryCrateResponse]]
FetchAdvisoryDbFn = Callable[[], Awaitable[AdvisoryDatabase]]
GetPopularReposFn = Callable[[], Awaitable[list[Repository]]]
GetPopularCratesFn = Callable[[], Awaitable[list[CratePath]]]

MANIFEST_FILE = "Cargo.toml"

# (owner, name) pairs kept out of the popular feed
POPULAR_REPO_BLOCK_LIST: frozenset[tuple[str, str]] = frozenset(
    {
        ("rust-lang", "rust"),
        ("google", "xi-editor"),
        ("lk-geimfari", "awesomo"),
        ("redox-os", "tfs"),
        ("carols10cents", "rustlings"),
        ("rust-unofficial", "awesome-rust"),
    }
)


@dataclass
class AnalyzeDependenciesOutcome:
    """Per-crate analysis results plus how long the whole request took."""

    crates: list[tuple[CrateName, AnalyzedDependencies]] = field(default_factory=list)
    duration: timedelta = field(default_factory=timedelta)

    def any_outdated(self) -> bool:
        return any(deps.any_outdated() for _, deps in self.crates)

    def any_insecure(self) -> bool:
        return any(deps.count_insecure() > 0 for _, deps in self.crates)

    def any_always_insecure(self) -> bool:
        return any(deps.count_always_insecure() > 0 for _, deps in self.crates)

    def any_dev_issues(self) -> bool:
        return any(deps.any_dev_issues() for _, deps in self.crates)

    def outdated_ratio(self) -> tuple[int, int]:
        """``(outdated, total)`` over main and build dependencies."""
        outdated = sum(deps.count_outdated() for _, deps in self.crates)
        total = sum(deps.count_total() for _, deps in self.crates)
        return outdated, total


def is_blocked(repo: Repository) -> bool:
    return (repo.path.qual.lower(), repo.path.name.lower()) in POPULAR_REPO_BLOCK_LIST


class Engine:
    """Answers dependency-status questions for repositories and crates.

    Capabilities are injected as async callables; registry queries, the
    advisory database and both popular feeds are cached per engine.
    Manifest retrieval is never cached.
    """

    def __init__(
        self,
        *,
        retrieve_file: RetrieveFile,
        query_crate: QueryCrateFn,
        fetch_advisory_db: FetchAdvisoryDbFn,
        get_popular_repos: GetPopularReposFn,
        get_popular_crates: GetPopularCratesFn,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._retrieve_file = retrieve_file
        self._crates = Cache(
            query_crate,
            ttl=self._settings.crate_cache_ttl,
            capacity=self._settings.crate_cache_capacity,
            name="crates",
        )
        self._advisory_db = Cache(
            lambda _: fetch_advisory_db(),
            ttl=self._settings.advisory_cache_ttl,
            capacity=1,
            name="advisory_db",
        )
        self._popular_repos = Cache(
            lambda _: get_popular_repos(),
            ttl=self._settings.popular_repos_cache_ttl,
            capacity=1,
            name="popular_repos",
        )
        self._popular_crates = Cache(
            lambda _: get_popular_crates(),
            ttl=self._settings.popular_crates_cache_ttl,
            capacity=1,
            name="popular_crates",
        )

    @classmethod
    def from_settings(cls, settings: Settings, http: HttpClient) -> Engine:
        """Wire the production interactors onto one shared HTTP client."""
        return cls(
            retrieve_file=RetrieveFileAtPath(http),
            query_crate=QueryCrate(http, settings.crates_index_url),
            fetch_advisory_db=FetchAdvisoryDatabase(http, settings.advisory_db_url),
            get_popular_repos=GetPopularRepos(http, settings.github_api_url),
            get_popular_crates=GetPopularCrates(http, settings.crates_api_url),
            settings=settings,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    # ── analysis ─────────────────────────────────────────────────────────

    async def analyze_repo_dependencies(
        self, repo_path: RepoPath, sub_path: str | None = None
    ) -> AnalyzeDependenciesOutcome:
        """Crawl the repository from *sub_path* (default: root) and analyze every leaf crate."""
        start = time.monotonic()
        log.info("engine.analyze_repo.start", repo=str(repo_path), sub_path=sub_path or "")

        crawled = await crawl_manifest(self.retrieve_manifest_at_path, repo_path, sub_path or "")
        names = list(crawled.crates)
        results = await self._analyze_many(list(crawled.crates.values()))

        outcome = AnalyzeDependenciesOutcome(
            crates=list(zip(names, results)),
            duration=timedelta(seconds=time.monotonic() - start),
        )
        log.info(
            "engine.analyze_repo.done",
            repo=str(repo_path),
            crates=len(outcome.crates),
            duration_ms=int(outcome.duration.total_seconds() * 1000),
        )
        return outcome

    async def analyze_crate_dependencies(self, crate_path: CratePath) -> AnalyzeDependenciesOutcome:
        """Analyze the declared dependencies of one published release.

        Raises ``NotFoundError`` when the registry has no release with that
        exact version.
        """
        start = time.monotonic()
        releases = await self.fetch_releases(crate_path.name)
        release = next((r for r in releases if r.version == crate_path.version), None)
        if release is None:
            raise NotFoundError(f"crate release not found: {crate_path}")

        analyzed = await self.analyze_dependencies(release.deps)
        outcome = AnalyzeDependenciesOutcome(
            crates=[(crate_path.name, analyzed)],
            duration=timedelta(seconds=time.monotonic() - start),
        )
        log.info(
            "engine.analyze_crate.done",
            crate=str(crate_path),
            duration_ms=int(outcome.duration.total_seconds() * 1000),
        )
        return outcome

    async def analyze_dependencies(self, deps: CrateDeps) -> AnalyzedDependencies:
        """Fetch release history for every external dependency and fold it in.

        At most ``fetch_releases_concurrency`` registry queries run at once;
        batches are processed as they complete.
        """
        advisory_db = await self.fetch_advisory_db()
        analyzer = DependencyAnalyzer(deps, advisory_db)
        semaphore = asyncio.Semaphore(self._settings.fetch_releases_concurrency)

        async def _fetch(name: CrateName) -> list[CrateRelease]:
            async with semaphore:
                return await self.fetch_releases(name)

        tasks = [asyncio.ensure_future(_fetch(name)) for name in deps.external_names()]
        try:
            for next_done in asyncio.as_completed(tasks):
                analyzer.process(await next_done)
        finally:
            await _cancel_pending(tasks)
        return analyzer.finalize()

    async def _analyze_many(self, crates: list[CrateDeps]) -> list[AnalyzedDependencies]:
        tasks = [asyncio.ensure_future(self.analyze_dependencies(deps)) for deps in crates]
        try:
            return list(await asyncio.gather(*tasks))
        finally:
            await _cancel_pending(tasks)

    # ── lookups ──────────────────────────────────────────────────────────

    async def find_latest_crate_release(
        self, name: CrateName, req: VersionReq = VersionReq.STAR
    ) -> CrateRelease | None:
        """Highest non-yanked release satisfying *req*, or ``None``."""
        candidates = [
            release
            for release in await self.fetch_releases(name)
            if not release.yanked and req.matches(release.version)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda release: release.version)

    async def fetch_releases(self, name: CrateName) -> list[CrateRelease]:
        response = await self._crates.get(name)
        return response.releases

    async def fetch_advisory_db(self) -> AdvisoryDatabase:
        return await self._advisory_db.get(None)

    async def get_popular_repos(self) -> list[Repository]:
        repos = await self._popular_repos.get(None)
        return [repo for repo in repos if not is_blocked(repo)]

    async def get_popular_crates(self) -> list[CratePath]:
        return await self._popular_crates.get(None)

    async def retrieve_manifest_at_path(self, repo_path: RepoPath, path: str) -> str:
        """Text of ``<path>/Cargo.toml``; *path* is a directory relative to the repository root."""
        return await self._retrieve_file(repo_path, join_normalized(path, MANIFEST_FILE))


async def _cancel_pending(tasks: list[asyncio.Future]) -> None:
    pending = [task for task in tasks if not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
