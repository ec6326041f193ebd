"""Retention policies deciding, tag by tag, what to keep."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from loguru import logger

from docker_hub_cleaner.base import Tag


class RetentionPolicy(ABC):
    @abstractmethod
    def should_keep(self, tag: Tag) -> bool:
        pass

    @abstractmethod
    def describe(self) -> str:
        pass


class CountPolicy(RetentionPolicy):
    """Keep the first ``count`` tags of a list that is already sorted.

    The keep-set is fixed at construction; later calls only look names up in
    it, so the list given here must be the same snapshot that is classified.
    """

    def __init__(self, count: int, sorted_tags: Sequence[Tag]):
        self.count = count
        self.keep_names = frozenset(t.name for t in sorted_tags[: max(count, 0)])

    def should_keep(self, tag: Tag) -> bool:
        return tag.name in self.keep_names

    def describe(self) -> str:
        return "count"


class DaysPolicy(RetentionPolicy):
    """Keep tags updated strictly after ``now - days``. ``days == 0`` keeps nothing."""

    def __init__(self, days: int, now: datetime | None = None):
        self.days = days
        self.now = now or datetime.now(UTC)
        self.cutoff = self.now - timedelta(days=days)

    def should_keep(self, tag: Tag) -> bool:
        if self.days <= 0:
            return False
        return tag.last_updated > self.cutoff

    def describe(self) -> str:
        return "days"


class PolicyMode(str, Enum):
    OR = "or"
    AND = "and"


class CompositePolicy(RetentionPolicy):
    """Combine sub-policies with OR (any keeps) or AND (all keep).

    With no sub-policies every tag is kept, so an empty configuration can
    never delete anything.
    """

    def __init__(
        self, mode: PolicyMode | str = PolicyMode.OR, policies: Iterable[RetentionPolicy] = ()
    ):
        self.mode = PolicyMode(mode)
        self.policies = tuple(policies)

    def should_keep(self, tag: Tag) -> bool:
        if not self.policies:
            return True
        if self.mode is PolicyMode.OR:
            return any(p.should_keep(tag) for p in self.policies)
        return all(p.should_keep(tag) for p in self.policies)

    def describe(self) -> str:
        if not self.policies:
            return "keep-all"
        names = [
            f"({p.describe()})"
            if isinstance(p, CompositePolicy) and len(p.policies) > 1
            else p.describe()
            for p in self.policies
        ]
        return f" {self.mode.value.upper()} ".join(names)


@dataclass(frozen=True)
class RetentionConfig:
    """Retention knobs, turned into a policy once the sorted snapshot exists.

    Building the count keep-set from the very list that is about to be
    classified keeps both in agreement.
    """

    keep_days: int = 0
    keep_count: int = 0
    mode: PolicyMode = PolicyMode.OR
    now: datetime | None = None

    def build(self, sorted_tags: Sequence[Tag]) -> RetentionPolicy:
        policies: list[RetentionPolicy] = []
        if self.keep_days > 0:
            policies.append(DaysPolicy(self.keep_days, now=self.now))
            logger.info(f"Days retention policy enabled: {self.keep_days}d")
        if self.keep_count > 0:
            policies.append(CountPolicy(self.keep_count, sorted_tags))
            logger.info(f"Count retention policy enabled: {self.keep_count}")

        if len(policies) == 1:
            return policies[0]
        policy = CompositePolicy(self.mode, policies)
        if policies:
            logger.info(
                f"Using {self.mode.value.upper()} policy mode: {policy.describe()}"
            )
        return policy
