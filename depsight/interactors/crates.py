"""crates.io: sparse index lookups and the most-downloaded feed."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

import pydantic
import structlog
from pydantic import BaseModel

from depsight.errors import DecodeError, ValidationError
from depsight.interactors.http import HttpClient
from depsight.models.crates import CrateDeps, CrateName, CratePath, CrateRelease, ExternalDep
from depsight.models.version import VersionReq, parse_version

log = structlog.get_logger("depsight.interactors")


# ── wire models ──────────────────────────────────────────────────────────


class _IndexDep(BaseModel):
    name: str
    req: str
    kind: str | None = None
    package: str | None = None


class _IndexRecord(BaseModel):
    name: str
    vers: str
    deps: list[_IndexDep] = []
    yanked: bool = False


class _SummaryCrate(BaseModel):
    id: str
    max_version: str


class _Summary(BaseModel):
    most_downloaded: list[_SummaryCrate] = []


# ── helpers ──────────────────────────────────────────────────────────────


def index_path(name: CrateName) -> str:
    """Relative path of a crate's file in the registry index.

    1- and 2-character names live under ``1/`` and ``2/``, 3-character
    names under ``3/{first char}/``, everything else under
    ``{chars 0-2}/{chars 2-4}/``.
    """
    lower = str(name).lower()
    if len(lower) <= 2:
        return f"{len(lower)}/{lower}"
    if len(lower) == 3:
        return f"3/{lower[0]}/{lower}"
    return f"{lower[0:2]}/{lower[2:4]}/{lower}"


def _convert_record(record: _IndexRecord) -> CrateRelease:
    deps = CrateDeps()
    for dep in record.deps:
        bucket = {"dev": deps.dev, "build": deps.build}.get(dep.kind or "normal", deps.main)
        bucket[CrateName(dep.package or dep.name)] = ExternalDep(VersionReq.parse(dep.req))
    return CrateRelease(
        name=CrateName(record.name),
        version=parse_version(record.vers),
        deps=deps,
        yanked=record.yanked,
    )


def parse_index_file(text: str) -> list[CrateRelease]:
    """Decode a newline-delimited index file; any bad line raises ``DecodeError``."""
    releases = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            record = _IndexRecord.model_validate(json.loads(line))
            releases.append(_convert_record(record))
        except (json.JSONDecodeError, pydantic.ValidationError, ValidationError) as exc:
            raise DecodeError(f"malformed index line {lineno}: {exc}") from exc
    return releases


# ── interactors ──────────────────────────────────────────────────────────


@dataclass
class QueryCrateResponse:
    releases: list[CrateRelease] = field(default_factory=list)


class QueryCrate:
    """``await query(name) -> QueryCrateResponse`` with the full release history."""

    def __init__(self, http: HttpClient, index_url: str = "https://index.crates.io") -> None:
        self._http = http
        self._index_url = index_url.rstrip("/")

    async def __call__(self, name: CrateName) -> QueryCrateResponse:
        url = f"{self._index_url}/{index_path(name)}"
        text = await self._http.get_text(url)
        releases = parse_index_file(text)
        log.debug("crates.query", crate=str(name), releases=len(releases))
        return QueryCrateResponse(releases=releases)


class GetPopularCrates:
    """``await get() -> list[CratePath]`` from the crates.io summary endpoint."""

    def __init__(self, http: HttpClient, api_url: str = "https://crates.io/api/v1") -> None:
        self._http = http
        self._api_url = api_url.rstrip("/")

    async def __call__(self) -> list[CratePath]:
        data = await self._http.get_json(f"{self._api_url}/summary")
        try:
            summary = _Summary.model_validate(data)
            crates = [
                CratePath.from_parts(item.id, item.max_version) for item in summary.most_downloaded
            ]
        except (pydantic.ValidationError, ValidationError) as exc:
            raise DecodeError(f"malformed crates.io summary: {exc}") from exc
        log.debug("crates.popular", count=len(crates))
        return crates
