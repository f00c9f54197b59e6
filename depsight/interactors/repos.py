"""Raw file retrieval from hosted repositories."""

from __future__ import annotations

import structlog

from depsight.interactors.http import HttpClient
from depsight.models.repo import RepoPath

log = structlog.get_logger("depsight.interactors")


def raw_file_url(repo_path: RepoPath, path: str) -> str:
    """URL of the raw contents of *path* on the default branch."""
    return repo_path.site.raw_file_template.format(
        qual=repo_path.qual,
        name=repo_path.name,
        path=path.strip("/"),
    )


class RetrieveFileAtPath:
    """``await retrieve(repo_path, path) -> str``."""

    def __init__(self, http: HttpClient) -> None:
        self._http = http

    async def __call__(self, repo_path: RepoPath, path: str) -> str:
        url = raw_file_url(repo_path, path)
        log.debug("repo.retrieve_file", repo=str(repo_path), path=path, url=url)
        return await self._http.get_text(url)
