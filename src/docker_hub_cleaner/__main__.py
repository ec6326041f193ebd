import argparse
import signal
import sys
import threading
from typing import Any

from loguru import logger
from pydantic import ValidationError

from docker_hub_cleaner.exceptions import Cancelled, CleanerError
from docker_hub_cleaner.filters import build_filter
from docker_hub_cleaner.logic import Cleaner, log_summary, write_summary
from docker_hub_cleaner.policy import PolicyMode, RetentionConfig
from docker_hub_cleaner.registry import init_client
from docker_hub_cleaner.settings import POLICY_MODES, SORT_METHODS, Settings
from docker_hub_cleaner.sorting import get_sorter


def parse_args(argv: list[str] | None = None) -> dict[str, Any]:
    """Parse command-line flags; only flags actually given override the environment."""
    parser = argparse.ArgumentParser(
        prog="docker-hub-cleaner",
        description="Clean up Docker Hub image tags based on retention policies.",
    )
    auth = parser.add_argument_group("authentication")
    auth.add_argument("-u", "--username", help="Docker Hub username (or DOCKER_HUB_USERNAME)")
    auth.add_argument("-p", "--password", help="Docker Hub password (or DOCKER_HUB_PASSWORD)")
    auth.add_argument("-t", "--token", help="Personal access token (or DOCKER_HUB_TOKEN)")
    parser.add_argument("-r", "--repository", help="Repository as namespace/name")

    retention = parser.add_argument_group("retention")
    retention.add_argument("--keep-days", type=int, help="Keep tags updated within N days")
    retention.add_argument("--keep-count", type=int, help="Keep the first N tags in sort order")
    retention.add_argument(
        "--policy-mode", choices=POLICY_MODES, help="Combine policies with OR or AND"
    )
    retention.add_argument("--sort-method", choices=SORT_METHODS, help="Tag ordering")

    filtering = parser.add_argument_group("filtering")
    filtering.add_argument("--tag-pattern", help="Regex of tags to include")
    filtering.add_argument("--exclude-pattern", help="Regex of tags to exclude")
    filtering.add_argument(
        "--strip-prefix", help="Regex stripped from tags before semver parsing"
    )

    parser.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Report what would be deleted without deleting",
    )
    parser.add_argument("-v", "--verbose", action="store_true", default=None)
    parser.add_argument("--concurrency", type=int, help="Accepted; deletions run sequentially")

    args = parser.parse_args(argv)
    return {k: v for k, v in vars(args).items() if v is not None}


def main(argv: list[str] | None = None) -> int:
    try:
        settings = Settings(**parse_args(argv))
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if settings.verbose else "INFO")

    # Everything that can be rejected locally is checked before the first request
    try:
        settings.validate_for_run()
        repo = settings.repository_ref
        tag_filter = build_filter(
            settings.compiled_tag_pattern, settings.compiled_exclude_pattern
        )
        sorter = get_sorter(settings.sort_method, settings.compiled_strip_prefix)
    except ValueError as e:
        logger.error(f"Error: {e}")
        return 2

    retention = RetentionConfig(
        keep_days=settings.keep_days,
        keep_count=settings.keep_count,
        mode=PolicyMode(settings.policy_mode),
    )
    if settings.concurrency != 1:
        logger.warning(
            f"concurrency={settings.concurrency} ignored: tags are deleted one at a time"
        )

    cancel = threading.Event()
    # SIGTERM wakes any pending rate limit or backoff wait
    previous_handler = signal.signal(signal.SIGTERM, lambda *_: cancel.set())
    try:
        client, registry_info = init_client(settings, cancel=cancel)
        with client:
            repository = client.get_repository(repo)
            logger.info(
                f"Registry: {registry_info} | Days={settings.keep_days}, "
                f"Count={settings.keep_count} ({settings.policy_mode.upper()}) | "
                f"Sort: {settings.sort_method} | Dry run: {settings.dry_run}"
            )
            logger.debug(f"Repository description: {repository.description or '-'}")
            if settings.dry_run:
                logger.info("=== DRY RUN MODE - No tags will be deleted ===")

            cleaner = Cleaner(
                client,
                retention,
                sorter=sorter,
                tag_filter=tag_filter,
                dry_run=settings.dry_run,
                verbose=settings.verbose,
            )
            result = cleaner.run(repo)
    except Cancelled as e:
        logger.warning(f"Stopped: {e}")
        return 130
    except CleanerError as e:
        logger.error(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    finally:
        signal.signal(signal.SIGTERM, previous_handler)

    log_summary(result, repo)
    write_summary(result, repo, settings)

    return 0


if __name__ == "__main__":
    sys.exit(main())
