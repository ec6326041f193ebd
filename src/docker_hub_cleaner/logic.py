"""Core logic for Docker Hub tag cleanup."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from loguru import logger

from docker_hub_cleaner.base import RegistryClient, RepositoryRef, Tag
from docker_hub_cleaner.exceptions import Cancelled, TagDeletionError
from docker_hub_cleaner.filters import TagFilter, apply_filter
from docker_hub_cleaner.policy import RetentionConfig, RetentionPolicy
from docker_hub_cleaner.registry.catalog import list_tags
from docker_hub_cleaner.settings import Settings
from docker_hub_cleaner.sorting import TagSorter


@dataclass(frozen=True)
class CleanResult:
    """Outcome of one cleaning run.

    ``deleted_tags`` holds the tags actually deleted, or in dry-run mode the
    tags that would have been.
    """

    total_tags: int = 0
    filtered_tags: int = 0
    kept_tags: int = 0
    deleted_tags: tuple[str, ...] = ()
    errors: tuple[TagDeletionError, ...] = ()
    total_size: int = 0
    reclaimed_size: int = 0
    dry_run: bool = False

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_tags)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def delete_candidates(self) -> int:
        return self.filtered_tags - self.kept_tags


@dataclass
class RetentionDecision:
    keep: list[Tag] = field(default_factory=list)
    delete: list[Tag] = field(default_factory=list)


def classify(tags: Sequence[Tag], policy: RetentionPolicy) -> RetentionDecision:
    """Partition ``tags`` into keep and delete lists, preserving order."""
    decision = RetentionDecision()
    for tag in tags:
        if policy.should_keep(tag):
            decision.keep.append(tag)
        else:
            decision.delete.append(tag)
    return decision


class Cleaner:
    """Runs fetch, filter, sort, classify and delete for one repository.

    ``policy`` is either a ready policy or a ``RetentionConfig``; the latter
    is built from the filtered and sorted tags of this run's single fetch.
    """

    def __init__(
        self,
        client: RegistryClient,
        policy: RetentionPolicy | RetentionConfig,
        sorter: TagSorter | None = None,
        tag_filter: TagFilter | None = None,
        dry_run: bool = False,
        verbose: bool = False,
    ):
        self.client = client
        self.policy = policy
        self.sorter = sorter
        self.tag_filter = tag_filter
        self.dry_run = dry_run
        self.verbose = verbose

    def _resolve_policy(self, sorted_tags: Sequence[Tag]) -> RetentionPolicy:
        if isinstance(self.policy, RetentionConfig):
            return self.policy.build(sorted_tags)
        return self.policy

    def run(self, repo: RepositoryRef) -> CleanResult:
        logger.info(f"Fetching tags from repository {repo}")
        tags = list_tags(self.client, repo)
        total_tags = len(tags)
        total_size = sum(t.full_size for t in tags)
        logger.info(f"Found {total_tags} tag(s)")

        if not tags:
            logger.info("No tags found in repository")
            return CleanResult(dry_run=self.dry_run)

        tags = apply_filter(tags, self.tag_filter)
        filtered_tags = len(tags)
        if self.tag_filter is not None:
            logger.info(f"Applied filters: {filtered_tags} of {total_tags} tag(s) matched")

        if not tags:
            logger.info("No tags match the filter")
            return CleanResult(
                total_tags=total_tags, total_size=total_size, dry_run=self.dry_run
            )

        if self.sorter is not None:
            tags = self.sorter.sort(tags)
            logger.debug(f"Sorted {len(tags)} tag(s) with {type(self.sorter).__name__}")

        policy = self._resolve_policy(tags)
        decision = classify(tags, policy)
        reclaimed_size = sum(t.full_size for t in decision.delete)

        logger.info(
            f"Retention ({policy.describe()}): {len(decision.keep)} to keep, "
            f"{len(decision.delete)} to delete"
        )
        if self.verbose:
            for tag in decision.keep:
                logger.debug(f"  Keep {tag.name} (updated {tag.last_updated:%Y-%m-%d})")

        deleted: list[str] = []
        errors: list[TagDeletionError] = []

        if not decision.delete:
            logger.info("No tags to delete")
        elif self.dry_run:
            logger.info(f"DRY RUN: Would delete {len(decision.delete)} tag(s)")
            for tag in decision.delete:
                deleted.append(tag.name)
                logger.info(
                    f"  Would delete {tag.name} (updated {tag.last_updated:%Y-%m-%d}, "
                    f"{format_size(tag.full_size)})"
                )
        else:
            deleted, errors = self._delete_tags(repo, decision.delete)

        return CleanResult(
            total_tags=total_tags,
            filtered_tags=filtered_tags,
            kept_tags=len(decision.keep),
            deleted_tags=tuple(deleted),
            errors=tuple(errors),
            total_size=total_size,
            reclaimed_size=reclaimed_size,
            dry_run=self.dry_run,
        )

    def _delete_tags(
        self, repo: RepositoryRef, tags: Sequence[Tag]
    ) -> tuple[list[str], list[TagDeletionError]]:
        logger.info(f"Deleting {len(tags)} tag(s)...")
        deleted: list[str] = []
        errors: list[TagDeletionError] = []

        for tag in tags:
            try:
                self.client.delete_tag(repo, tag.name)
            except Cancelled:
                raise
            except Exception as e:
                logger.error(f"Failed to delete tag {tag.name}: {e}")
                errors.append(TagDeletionError(tag.name, e))
            else:
                deleted.append(tag.name)
                logger.info(f"  Deleted {tag.name} ({format_size(tag.full_size)})")

        logger.info(f"Deleted: {len(deleted)} tag(s), {len(errors)} error(s)")
        return deleted, errors


def format_size(size: int) -> str:
    """Render a byte count with binary units, e.g. ``1.5 KB``."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}B"


def log_summary(result: CleanResult, repo: RepositoryRef) -> None:
    action = "would delete" if result.dry_run else "deleted"
    logger.info(f"Repository:       {repo}")
    logger.info(f"Total tags:       {result.total_tags}")
    logger.info(f"After filtering:  {result.filtered_tags}")
    logger.info(f"Tags to keep:     {result.kept_tags}")
    logger.info(f"Tags {action}: {result.deleted_count}")
    if result.deleted_tags:
        logger.info(f"Disk space:       {format_size(result.reclaimed_size)}")
    if result.errors:
        logger.warning(f"Errors:           {result.error_count}")
        for error in result.errors:
            logger.warning(f"  - {error}")
    if result.dry_run and result.deleted_tags:
        logger.info("Run without --dry-run to execute deletion.")


def write_summary(result: CleanResult, repo: RepositoryRef, settings: Settings) -> None:
    """Write cleanup summary to GitHub Actions step summary."""
    if not settings.github_step_summary:
        return

    action = "To delete" if result.dry_run else "Deleted"
    mode = "Dry Run" if result.dry_run else "Live"

    with open(settings.github_step_summary, "w") as f:
        f.write(
            f"### Docker Hub Tag Cleanup: `{repo}`\n\n"
            f"| Metric | Count |\n"
            f"|--------|-------|\n"
            f"| Tags: total | {result.total_tags} |\n"
            f"| Tags: after filtering | {result.filtered_tags} |\n"
            f"| Tags: kept | {result.kept_tags} |\n"
            f"| Tags: {action.lower()} | {result.deleted_count} |\n"
            f"| Errors | {result.error_count} |\n"
            f"| Reclaimed | {format_size(result.reclaimed_size)} |\n\n"
            f"**Mode:** {mode} | "
            f"**Retention:** Days={settings.keep_days}, Count={settings.keep_count} "
            f"({settings.policy_mode.upper()})\n\n"
        )

        if result.deleted_tags:
            f.write(f"**{action}: {result.deleted_count} tags**\n\n")
            for name in result.deleted_tags:
                f.write(f"- `{name}`\n")
            f.write("\n")

        if result.errors:
            f.write("**Errors**\n\n")
            f.write("| Tag | Error |\n")
            f.write("|-----|-------|\n")
            for error in result.errors:
                f.write(f"| `{error.tag}` | {error.cause} |\n")
