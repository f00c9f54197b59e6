"""Versions and Cargo-style version requirements.

Versions are plain ``semantic_version.Version`` objects. Requirements follow
Cargo's rules, which differ from the npm/pip dialects:

* a bare version (``1.2.3``) is a caret requirement;
* ``^0.2.3`` only allows ``0.2.x`` and ``^0.0.3`` only ``0.0.3``;
* partial versions (``1``, ``1.2``) and wildcards (``*``, ``1.*``, ``1.2.x``)
  are allowed;
* a pre-release version only matches when some comparator carries a
  pre-release on the same ``major.minor.patch``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar

from semantic_version import Version

from depsight.errors import ValidationError

__all__ = ["Comparator", "Version", "VersionReq", "is_prerelease", "parse_version"]

_WILDCARDS = {"*", "x", "X"}

_COMPARATOR_RE = re.compile(
    r"""
    ^(?P<op>=|>=|<=|>|<|~|\^)?\s*
    (?P<major>\d+|[*xX])
    (?:\.(?P<minor>\d+|[*xX]))?
    (?:\.(?P<patch>\d+|[*xX]))?
    (?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?
    (?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$
    """,
    re.VERBOSE,
)


def parse_version(text: str) -> Version:
    """Parse a strict SemVer string, raising ``ValidationError`` on failure."""
    try:
        return Version(text.strip())
    except ValueError as exc:
        raise ValidationError(f"invalid version {text!r}: {exc}") from exc


def is_prerelease(version: Version) -> bool:
    return bool(version.prerelease)


@dataclass(frozen=True)
class Comparator:
    """One ``op major[.minor[.patch[-pre]]]`` clause of a requirement."""

    op: str
    major: int
    minor: int | None = None
    patch: int | None = None
    pre: tuple[str, ...] = ()

    def __str__(self) -> str:
        text = str(self.major)
        if self.minor is not None:
            text += f".{self.minor}"
            if self.patch is not None:
                text += f".{self.patch}"
                if self.pre:
                    text += "-" + ".".join(self.pre)
            elif self.op == "=":
                text += ".*"
        elif self.op == "=":
            text += ".*"
        return f"{self.op}{text}"

    def _version(self) -> Version:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += "-" + ".".join(self.pre)
        return Version(text)

    def matches(self, version: Version) -> bool:
        if self.op == "=":
            return self._matches_exact(version)
        if self.op == ">":
            return self._matches_greater(version)
        if self.op == ">=":
            return self._matches_exact(version) or self._matches_greater(version)
        if self.op == "<":
            return self._matches_less(version)
        if self.op == "<=":
            return self._matches_exact(version) or self._matches_less(version)
        if self.op == "~":
            return self._matches_tilde(version)
        return self._matches_caret(version)

    def _matches_exact(self, v: Version) -> bool:
        if v.major != self.major:
            return False
        if self.minor is None:
            return True
        if v.minor != self.minor:
            return False
        if self.patch is None:
            return True
        if v.patch != self.patch:
            return False
        return tuple(v.prerelease) == self.pre

    def _matches_greater(self, v: Version) -> bool:
        if v.major != self.major:
            return v.major > self.major
        if self.minor is None:
            return False
        if v.minor != self.minor:
            return v.minor > self.minor
        if self.patch is None:
            return False
        if v.patch != self.patch:
            return v.patch > self.patch
        return _strip_build(v) > self._version()

    def _matches_less(self, v: Version) -> bool:
        if v.major != self.major:
            return v.major < self.major
        if self.minor is None:
            return False
        if v.minor != self.minor:
            return v.minor < self.minor
        if self.patch is None:
            return False
        if v.patch != self.patch:
            return v.patch < self.patch
        return _strip_build(v) < self._version()

    def _matches_tilde(self, v: Version) -> bool:
        if v.major != self.major:
            return False
        if self.minor is not None and v.minor != self.minor:
            return False
        if self.patch is not None and v.patch != self.patch:
            return v.patch > self.patch
        return self._pre_at_least(v)

    def _matches_caret(self, v: Version) -> bool:
        if v.major != self.major:
            return False
        if self.minor is None:
            return True
        if self.patch is None:
            if self.major > 0:
                return v.minor >= self.minor
            return v.minor == self.minor
        if self.major > 0:
            if v.minor != self.minor:
                return v.minor > self.minor
            if v.patch != self.patch:
                return v.patch > self.patch
        elif self.minor > 0:
            if v.minor != self.minor:
                return False
            if v.patch != self.patch:
                return v.patch > self.patch
        elif v.minor != self.minor or v.patch != self.patch:
            return False
        return self._pre_at_least(v)

    def _pre_at_least(self, v: Version) -> bool:
        if self.patch is None:
            return True
        return not _strip_build(v) < self._version()

    @classmethod
    def parse(cls, text: str) -> Comparator | None:
        """Parse one clause; returns ``None`` for a bare ``*``."""
        match = _COMPARATOR_RE.match(text.strip())
        if match is None:
            raise ValidationError(f"invalid version requirement clause {text!r}")

        op = match.group("op") or "^"
        parts = [match.group("major"), match.group("minor"), match.group("patch")]
        pre = match.group("pre")

        numbers: list[int | None] = []
        seen_wildcard = False
        for part in parts:
            if part is None or part in _WILDCARDS:
                seen_wildcard = seen_wildcard or part is not None
                numbers.append(None)
            elif seen_wildcard or (numbers and numbers[-1] is None):
                raise ValidationError(f"invalid version requirement clause {text!r}")
            else:
                numbers.append(int(part))

        major, minor, patch = numbers
        if pre is not None and patch is None:
            raise ValidationError(f"pre-release requires a full version in {text!r}")

        if seen_wildcard:
            if match.group("op") not in (None, "="):
                raise ValidationError(f"wildcard not allowed with operator in {text!r}")
            if major is None:
                return None
            op = "="

        return cls(
            op=op,
            major=major,  # type: ignore[arg-type]
            minor=minor,
            patch=patch,
            pre=tuple(pre.split(".")) if pre else (),
        )


def _strip_build(version: Version) -> Version:
    if not version.build:
        return version
    text = f"{version.major}.{version.minor}.{version.patch}"
    if version.prerelease:
        text += "-" + ".".join(version.prerelease)
    return Version(text)


@dataclass(frozen=True)
class VersionReq:
    """A comma-separated conjunction of comparators."""

    comparators: tuple[Comparator, ...] = ()

    STAR: ClassVar[VersionReq]

    @classmethod
    def parse(cls, text: str) -> VersionReq:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError(f"empty version requirement {text!r}")
        comparators = []
        for clause in text.split(","):
            comparator = Comparator.parse(clause)
            if comparator is not None:
                comparators.append(comparator)
        return cls(tuple(comparators))

    def matches(self, version: Version) -> bool:
        if not all(comparator.matches(version) for comparator in self.comparators):
            return False
        if not version.prerelease:
            return True
        return any(
            comparator.pre
            and comparator.major == version.major
            and comparator.minor == version.minor
            and comparator.patch == version.patch
            for comparator in self.comparators
        )

    def __str__(self) -> str:
        if not self.comparators:
            return "*"
        return ", ".join(str(comparator) for comparator in self.comparators)


VersionReq.STAR = VersionReq()
