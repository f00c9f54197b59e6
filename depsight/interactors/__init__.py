"""Production capabilities backed by httpx; the engine only sees async callables."""

from depsight.interactors.crates import GetPopularCrates, QueryCrate, QueryCrateResponse
from depsight.interactors.github import GetPopularRepos
from depsight.interactors.http import HttpClient
from depsight.interactors.repos import RetrieveFileAtPath, raw_file_url
from depsight.interactors.rustsec import FetchAdvisoryDatabase

__all__ = [
    "FetchAdvisoryDatabase",
    "GetPopularCrates",
    "GetPopularRepos",
    "HttpClient",
    "QueryCrate",
    "QueryCrateResponse",
    "RetrieveFileAtPath",
    "raw_file_url",
]
