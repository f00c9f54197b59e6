"""RustSec advisory database, downloaded as the OSV ``crates.io`` export."""

from __future__ import annotations

import asyncio
import io
import json
import zipfile

import pydantic
import structlog
from pydantic import BaseModel

from depsight.errors import DecodeError, ValidationError
from depsight.interactors.http import HttpClient
from depsight.models.advisory import Advisory, AdvisoryDatabase, AffectedRange
from depsight.models.version import Version, parse_version

log = structlog.get_logger("depsight.interactors")

_ECOSYSTEM = "crates.io"
_RANGE_TYPES = ("SEMVER", "ECOSYSTEM")


# ── OSV wire models ──────────────────────────────────────────────────────


class _OsvEvent(BaseModel):
    introduced: str | None = None
    fixed: str | None = None
    last_affected: str | None = None


class _OsvRange(BaseModel):
    type: str
    events: list[_OsvEvent] = []


class _OsvPackage(BaseModel):
    ecosystem: str
    name: str


class _OsvAffected(BaseModel):
    package: _OsvPackage
    ranges: list[_OsvRange] = []
    versions: list[str] = []


class _OsvReference(BaseModel):
    type: str
    url: str


class _OsvRecord(BaseModel):
    id: str
    summary: str = ""
    aliases: list[str] = []
    withdrawn: str | None = None
    affected: list[_OsvAffected] = []
    references: list[_OsvReference] = []


# ── conversion ───────────────────────────────────────────────────────────


def _bound(value: str | None) -> Version | None:
    if value is None or value == "0":
        return None
    return parse_version(value)


def _convert_ranges(ranges: list[_OsvRange]) -> list[AffectedRange]:
    """Turn ordered OSV events into closed or half-open ranges."""
    result: list[AffectedRange] = []
    for osv_range in ranges:
        if osv_range.type not in _RANGE_TYPES:
            continue
        opened = False
        introduced: Version | None = None
        for event in osv_range.events:
            if event.introduced is not None:
                if opened:
                    result.append(AffectedRange(introduced=introduced))
                introduced = _bound(event.introduced)
                opened = True
            elif event.fixed is not None and opened:
                result.append(AffectedRange(introduced=introduced, fixed=_bound(event.fixed)))
                opened = False
            elif event.last_affected is not None and opened:
                result.append(
                    AffectedRange(introduced=introduced, last_affected=_bound(event.last_affected))
                )
                opened = False
        if opened:
            result.append(AffectedRange(introduced=introduced))
    return result


def _advisory_url(record: _OsvRecord) -> str | None:
    for kind in ("ADVISORY", "WEB"):
        for reference in record.references:
            if reference.type == kind:
                return reference.url
    return None


def _convert_record(record: _OsvRecord) -> list[Advisory]:
    """One advisory per affected crates.io package in *record*."""
    advisories = []
    for affected in record.affected:
        if affected.package.ecosystem != _ECOSYSTEM:
            continue
        advisories.append(
            Advisory(
                id=record.id,
                package=affected.package.name,
                summary=record.summary,
                aliases=tuple(record.aliases),
                url=_advisory_url(record),
                ranges=tuple(_convert_ranges(affected.ranges)),
                versions=frozenset(affected.versions),
                withdrawn=record.withdrawn is not None,
            )
        )
    return advisories


def parse_osv_archive(content: bytes) -> AdvisoryDatabase:
    """Decode a zip of OSV JSON records; any bad member raises ``DecodeError``."""
    advisories: list[Advisory] = []
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            for member in archive.namelist():
                if not member.endswith(".json"):
                    continue
                try:
                    record = _OsvRecord.model_validate(json.loads(archive.read(member)))
                    advisories.extend(_convert_record(record))
                except (
                    json.JSONDecodeError,
                    UnicodeDecodeError,
                    pydantic.ValidationError,
                    ValidationError,
                ) as exc:
                    raise DecodeError(f"malformed advisory {member}: {exc}") from exc
    except zipfile.BadZipFile as exc:
        raise DecodeError(f"advisory archive is not a zip file: {exc}") from exc
    return AdvisoryDatabase(advisories)


class FetchAdvisoryDatabase:
    """``await fetch() -> AdvisoryDatabase``."""

    def __init__(self, http: HttpClient, url: str) -> None:
        self._http = http
        self._url = url

    async def __call__(self) -> AdvisoryDatabase:
        content = await self._http.get_bytes(self._url)
        database = await asyncio.to_thread(parse_osv_archive, content)
        log.info("rustsec.fetched", advisories=len(database), bytes=len(content))
        return database
