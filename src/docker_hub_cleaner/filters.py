"""Tag name filters.

A filter answers ``matches(name)``. Filters are combined with logical AND by
``CompositeFilter``; "no filter" is simply ``None`` and passes every tag
through ``apply_filter`` unchanged.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from re import Pattern

from docker_hub_cleaner.base import Tag
from docker_hub_cleaner.exceptions import ConfigurationError


class TagFilter(ABC):
    @abstractmethod
    def matches(self, tag_name: str) -> bool:
        pass


class PatternFilter(TagFilter):
    """Regular expression filter; ``invert=True`` excludes matches instead."""

    def __init__(self, pattern: str | Pattern[str], invert: bool = False):
        if isinstance(pattern, str):
            try:
                pattern = re.compile(pattern)
            except re.error as e:
                raise ConfigurationError(
                    f"Invalid filter pattern '{pattern}': {e}"
                ) from e
        self.pattern = pattern
        self.invert = invert

    def matches(self, tag_name: str) -> bool:
        return (self.pattern.search(tag_name) is not None) != self.invert

    def __repr__(self) -> str:
        return f"PatternFilter({self.pattern.pattern!r}, invert={self.invert})"


class CompositeFilter(TagFilter):
    """Logical AND of its members. An empty composite matches everything."""

    def __init__(self, filters: Iterable[TagFilter] = ()):
        self.filters = tuple(filters)

    def matches(self, tag_name: str) -> bool:
        return all(f.matches(tag_name) for f in self.filters)


def build_filter(
    tag_pattern: str | Pattern[str] | None = None,
    exclude_pattern: str | Pattern[str] | None = None,
) -> TagFilter | None:
    """Build the include/exclude filter chain, or ``None`` when neither is set."""
    filters: list[TagFilter] = []
    if tag_pattern:
        filters.append(PatternFilter(tag_pattern))
    if exclude_pattern:
        filters.append(PatternFilter(exclude_pattern, invert=True))
    if not filters:
        return None
    return filters[0] if len(filters) == 1 else CompositeFilter(filters)


def apply_filter(tags: Sequence[Tag], tag_filter: TagFilter | None) -> list[Tag]:
    """Return the tags whose names satisfy ``tag_filter``, keeping their order."""
    if tag_filter is None:
        return list(tags)
    return [tag for tag in tags if tag_filter.matches(tag.name)]
