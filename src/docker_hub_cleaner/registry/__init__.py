from __future__ import annotations

import threading

from loguru import logger

from docker_hub_cleaner.base import RegistryClient
from docker_hub_cleaner.settings import Settings

from .catalog import list_tags
from .dockerhub import DockerHubClient
from .ratelimit import TokenBucket

__all__ = [
    "RegistryClient",
    "DockerHubClient",
    "TokenBucket",
    "init_client",
    "list_tags",
]


def init_client(
    settings: Settings, cancel: threading.Event | None = None
) -> tuple[DockerHubClient, str]:
    """Create a client from settings and authenticate it."""
    repo = settings.repository_ref
    client = DockerHubClient.from_settings(settings, cancel=cancel)
    credentials = settings.credentials
    try:
        client.authenticate(credentials)
    except BaseException:
        client.close()
        raise
    if credentials.token:
        logger.info("Authenticated with access token")
    else:
        logger.info(f"Authenticated as {credentials.username}")
    info = f"DOCKER HUB: {repo}"
    return client, info
