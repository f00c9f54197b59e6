"""GitHub: the popular Rust repositories feed."""

from __future__ import annotations

import pydantic
import structlog
from pydantic import BaseModel

from depsight.errors import DecodeError, ValidationError
from depsight.interactors.http import HttpClient
from depsight.models.repo import RepoPath, RepoSite, Repository

log = structlog.get_logger("depsight.interactors")


class _GithubOwner(BaseModel):
    login: str


class _GithubRepo(BaseModel):
    name: str
    owner: _GithubOwner
    description: str | None = None


class _GithubSearchResponse(BaseModel):
    items: list[_GithubRepo] = []


class GetPopularRepos:
    """Most-starred Rust repositories from the GitHub search API."""

    def __init__(self, http: HttpClient, api_url: str = "https://api.github.com") -> None:
        self._http = http
        self._api_url = api_url.rstrip("/")

    async def __call__(self) -> list[Repository]:
        data = await self._http.get_json(
            f"{self._api_url}/search/repositories",
            params={"q": "language:rust", "sort": "stars"},
            headers=self._http.github_headers(),
        )
        try:
            body = _GithubSearchResponse.model_validate(data)
            repos = [
                Repository(
                    path=RepoPath.from_parts(RepoSite.GITHUB, item.owner.login, item.name),
                    description=item.description or "",
                )
                for item in body.items
            ]
        except (pydantic.ValidationError, ValidationError) as exc:
            raise DecodeError(f"malformed GitHub search response: {exc}") from exc
        log.debug("github.popular_repos", count=len(repos))
        return repos
