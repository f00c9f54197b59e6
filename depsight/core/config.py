"""Runtime settings read from ``DEPSIGHT_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_USER_AGENT = "depsight (+https://github.com/depsight/depsight)"
DEFAULT_ADVISORY_DB_URL = "https://osv-vulnerabilities.storage.googleapis.com/crates.io/all.zip"


def _env_str(key: str, default: str) -> str:
    return os.environ.get(key) or default


def _env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


@dataclass(frozen=True)
class Settings:
    """Explicit configuration handed to the engine and interactors at startup.

    Cache TTLs are in seconds. ``base_url`` is the public URL of the
    service, used by the presentation layer for self links.
    """

    base_url: str = "http://localhost:8080"
    github_token: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    http_timeout: float = 30.0

    crates_index_url: str = "https://index.crates.io"
    crates_api_url: str = "https://crates.io/api/v1"
    github_api_url: str = "https://api.github.com"
    advisory_db_url: str = DEFAULT_ADVISORY_DB_URL

    fetch_releases_concurrency: int = 10

    crate_cache_ttl: float = 600.0
    crate_cache_capacity: int = 500
    advisory_cache_ttl: float = 1800.0
    popular_repos_cache_ttl: float = 600.0
    popular_crates_cache_ttl: float = 900.0

    @classmethod
    def from_env(cls) -> Settings:
        defaults = cls()
        return cls(
            base_url=_env_str("DEPSIGHT_BASE_URL", defaults.base_url).rstrip("/"),
            github_token=os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN"),
            user_agent=_env_str("DEPSIGHT_USER_AGENT", defaults.user_agent),
            http_timeout=_env_float("DEPSIGHT_HTTP_TIMEOUT", defaults.http_timeout),
            crates_index_url=_env_str(
                "DEPSIGHT_CRATES_INDEX_URL", defaults.crates_index_url
            ).rstrip("/"),
            crates_api_url=_env_str("DEPSIGHT_CRATES_API_URL", defaults.crates_api_url).rstrip("/"),
            github_api_url=_env_str("DEPSIGHT_GITHUB_API_URL", defaults.github_api_url).rstrip("/"),
            advisory_db_url=_env_str("DEPSIGHT_ADVISORY_DB_URL", defaults.advisory_db_url),
            fetch_releases_concurrency=_env_int(
                "DEPSIGHT_FETCH_RELEASES_CONCURRENCY", defaults.fetch_releases_concurrency
            ),
            crate_cache_ttl=_env_float("DEPSIGHT_CRATE_CACHE_TTL", defaults.crate_cache_ttl),
            crate_cache_capacity=_env_int(
                "DEPSIGHT_CRATE_CACHE_CAPACITY", defaults.crate_cache_capacity
            ),
            advisory_cache_ttl=_env_float(
                "DEPSIGHT_ADVISORY_CACHE_TTL", defaults.advisory_cache_ttl
            ),
            popular_repos_cache_ttl=_env_float(
                "DEPSIGHT_POPULAR_REPOS_CACHE_TTL", defaults.popular_repos_cache_ttl
            ),
            popular_crates_cache_ttl=_env_float(
                "DEPSIGHT_POPULAR_CRATES_CACHE_TTL", defaults.popular_crates_cache_ttl
            ),
        )
