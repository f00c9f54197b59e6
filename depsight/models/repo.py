"""Hosted source repositories."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from depsight.errors import ValidationError

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9._-]+$")


class RepoSite(str, Enum):
    """Supported source hosts, each with its raw-file URL template."""

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"
    SOURCEHUT = "sourcehut"
    CODEBERG = "codeberg"

    @property
    def base_uri(self) -> str:
        return _BASE_URIS[self]

    @property
    def raw_file_template(self) -> str:
        return _RAW_FILE_TEMPLATES[self]

    @classmethod
    def parse(cls, value: str) -> RepoSite:
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValidationError(f"unsupported repository site: {value!r}") from None


_BASE_URIS: dict[RepoSite, str] = {
    RepoSite.GITHUB: "https://github.com",
    RepoSite.GITLAB: "https://gitlab.com",
    RepoSite.BITBUCKET: "https://bitbucket.org",
    RepoSite.SOURCEHUT: "https://git.sr.ht",
    RepoSite.CODEBERG: "https://codeberg.org",
}

_RAW_FILE_TEMPLATES: dict[RepoSite, str] = {
    RepoSite.GITHUB: "https://raw.githubusercontent.com/{qual}/{name}/HEAD/{path}",
    RepoSite.GITLAB: "https://gitlab.com/{qual}/{name}/raw/HEAD/{path}",
    RepoSite.BITBUCKET: "https://bitbucket.org/{qual}/{name}/raw/HEAD/{path}",
    RepoSite.SOURCEHUT: "https://git.sr.ht/{qual}/{name}/blob/HEAD/{path}",
    RepoSite.CODEBERG: "https://codeberg.org/{qual}/{name}/raw/branch/HEAD/{path}",
}


def _validate_segment(kind: str, value: str) -> str:
    if not isinstance(value, str) or not _SEGMENT_RE.match(value) or value in (".", ".."):
        raise ValidationError(f"invalid repository {kind}: {value!r}")
    return value


@dataclass(frozen=True)
class RepoPath:
    """``(site, qualifier, name)``, e.g. ``github / rust-lang / cargo``."""

    site: RepoSite
    qual: str
    name: str

    @classmethod
    def from_parts(cls, site: str, qual: str, name: str) -> RepoPath:
        parsed_site = site if isinstance(site, RepoSite) else RepoSite.parse(site)
        if parsed_site is RepoSite.SOURCEHUT:
            # sourcehut owners are addressed as ~user
            qual = qual if qual.startswith("~") else f"~{qual}"
            _validate_segment("qualifier", qual[1:])
        else:
            _validate_segment("qualifier", qual)
        return cls(site=parsed_site, qual=qual, name=_validate_segment("name", name))

    @property
    def url(self) -> str:
        return f"{self.site.base_uri}/{self.qual}/{self.name}"

    def __str__(self) -> str:
        return f"{self.site.value}/{self.qual}/{self.name}"


@dataclass(frozen=True)
class Repository:
    """An entry of the popular-repository feed."""

    path: RepoPath
    description: str = ""
