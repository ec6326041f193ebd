from __future__ import annotations

from loguru import logger

from docker_hub_cleaner.base import RegistryClient, RepositoryRef, Tag

PAGE_SIZE = 100


def list_tags(
    client: RegistryClient, repo: RepositoryRef, page_size: int = PAGE_SIZE
) -> list[Tag]:
    """Fetch every tag of ``repo`` in the order the registry returns them.

    Pages are requested one at a time until the response carries no ``next``
    link. Any failure aborts the whole listing; partial results are never
    returned.
    """
    all_tags: list[Tag] = []
    page = 1

    while True:
        tags_page = client.list_page(repo, page, page_size)
        all_tags.extend(tags_page.results)
        logger.debug(
            f"Fetched page {page} of {repo}: {len(tags_page.results)} tag(s)"
        )

        if not tags_page.next:
            break

        page += 1

    return all_tags
