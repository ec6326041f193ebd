"""Tag sorters. Sorting is pure and stable; the input list is never mutated."""

from __future__ import annotations

import functools
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from re import Pattern

from docker_hub_cleaner.base import Tag
from docker_hub_cleaner.exceptions import ConfigurationError

_SEMVER_RE = re.compile(
    r"^v(?P<major>0|[1-9]\d*)"
    r"\.(?P<minor>0|[1-9]\d*)"
    r"\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$",
    re.ASCII,
)


@functools.total_ordering
@dataclass(frozen=True)
class SemVer:
    """Semantic version whose natural ordering is precedence.

    Build metadata is ignored. A release ranks above any of its
    pre-releases; pre-release identifiers compare numerically when numeric,
    lexically otherwise, numeric ones ranking lower.
    """

    major: int
    minor: int
    patch: int
    prerelease: tuple[tuple[int, int | str], ...] | None = None

    @property
    def _precedence(self) -> tuple:
        # (1,) sorts after any (0, ...), so releases outrank pre-releases
        pre = (1,) if self.prerelease is None else (0, self.prerelease)
        return (self.major, self.minor, self.patch, pre)

    def __lt__(self, other: SemVer) -> bool:
        return self._precedence < other._precedence

    @classmethod
    def parse(cls, version: str) -> SemVer | None:
        """Parse ``vMAJOR.MINOR.PATCH[-pre][+build]``; None if not valid."""
        m = _SEMVER_RE.match(version)
        if not m:
            return None
        prerelease = None
        if m.group("prerelease"):
            prerelease = tuple(
                (0, int(part)) if part.isdigit() else (1, part)
                for part in m.group("prerelease").split(".")
            )
        return cls(
            int(m.group("major")), int(m.group("minor")), int(m.group("patch")), prerelease
        )


class TagSorter(ABC):
    @abstractmethod
    def sort(self, tags: Sequence[Tag]) -> list[Tag]:
        pass


class LexicographicalSorter(TagSorter):
    """Descending raw string order of tag names."""

    def sort(self, tags: Sequence[Tag]) -> list[Tag]:
        return sorted(tags, key=lambda t: t.name, reverse=True)


class SemverSorter(TagSorter):
    """Newest semantic version first, then everything else lexicographically.

    ``strip_prefix`` is removed from each name before parsing, so
    ``develop-1.2.3`` with ``^develop-`` sorts as version 1.2.3. A missing
    ``v`` is added before validation.
    """

    def __init__(self, strip_prefix: str | Pattern[str] | None = None):
        if isinstance(strip_prefix, str):
            try:
                strip_prefix = re.compile(strip_prefix) if strip_prefix else None
            except re.error as e:
                raise ConfigurationError(
                    f"Invalid strip-prefix pattern '{strip_prefix}': {e}"
                ) from e
        self.strip_prefix = strip_prefix

    def normalize(self, tag_name: str) -> str:
        name = self.strip_prefix.sub("", tag_name) if self.strip_prefix else tag_name
        return name if name.startswith("v") else f"v{name}"

    def version_of(self, tag_name: str) -> SemVer | None:
        return SemVer.parse(self.normalize(tag_name))

    def sort(self, tags: Sequence[Tag]) -> list[Tag]:
        versioned: list[tuple[SemVer, Tag]] = []
        others: list[Tag] = []
        for tag in tags:
            version = self.version_of(tag.name)
            if version is None:
                others.append(tag)
            else:
                versioned.append((version, tag))

        versioned.sort(key=lambda pair: pair[0], reverse=True)
        return [tag for _, tag in versioned] + LexicographicalSorter().sort(others)


def get_sorter(method: str, strip_prefix: str | Pattern[str] | None = None) -> TagSorter:
    if method == "lexicographical":
        return LexicographicalSorter()
    if method == "semver":
        return SemverSorter(strip_prefix)
    raise ConfigurationError(
        f"sort method must be 'lexicographical' or 'semver', got '{method}'"
    )
