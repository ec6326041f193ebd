from __future__ import annotations

import threading
from typing import Any, TypeVar
from urllib.parse import quote

import requests
from loguru import logger
from pydantic import BaseModel, ValidationError

from docker_hub_cleaner.base import (
    Credentials,
    LoginResponse,
    RegistryClient,
    Repository,
    RepositoryRef,
    TagsPage,
)
from docker_hub_cleaner.exceptions import (
    APIError,
    Cancelled,
    InvalidResponse,
    NetworkError,
    NotFound,
    RateLimited,
    Unauthorized,
)
from docker_hub_cleaner.registry.ratelimit import TokenBucket
from docker_hub_cleaner.settings import Settings

DEFAULT_BASE_URL = "https://hub.docker.com/v2"
DEFAULT_PAGE_SIZE = 100
DEFAULT_RATE_LIMIT = 5.0
MAX_RETRIES = 5

ModelT = TypeVar("ModelT", bound=BaseModel)


class DockerHubClient(RegistryClient):
    """Docker Hub v2 API client.

    Every request first takes a permit from the client's token bucket. HTTP
    429 responses are retried up to ``max_retries`` times with exponential
    backoff (``backoff_base * 2**attempt`` seconds); every other failure is
    raised straight away. The token obtained by ``authenticate`` is sent on
    every later call for the lifetime of the client.
    """

    auth_scheme = "Bearer"

    @classmethod
    def from_settings(
        cls, settings: Settings, cancel: threading.Event | None = None
    ) -> DockerHubClient:
        return cls(
            base_url=settings.base_url, rate_limit=settings.rate_limit, cancel=cancel
        )

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        rate_limit: float = DEFAULT_RATE_LIMIT,
        timeout: float = 30,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = 1.0,
        session: requests.Session | None = None,
        limiter: TokenBucket | None = None,
        cancel: threading.Event | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.session = session or requests.Session()
        self.limiter = limiter or TokenBucket(rate_limit)
        self.cancel = cancel or threading.Event()
        self.token: str | None = None

    def _get_api_url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        headers = {"Accept": "application/json", **kwargs.pop("headers", {})}
        if self.token:
            headers["Authorization"] = f"{self.auth_scheme} {self.token}"
        logger.debug(f"{method} {path}")
        try:
            return self.session.request(
                method,
                self._get_api_url(path),
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"network error on {method} {path}: {e}") from e

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Send one request under the rate limiter, retrying while throttled."""
        self.limiter.acquire(self.cancel)
        response = self._send(method, path, **kwargs)

        attempt = 0
        while response.status_code == 429:
            if attempt >= self.max_retries:
                raise RateLimited(
                    f"rate limit exceeded on {method} {path} after {self.max_retries} retries"
                )
            delay = self.backoff_base * 2**attempt
            attempt += 1
            logger.warning(
                f"Rate limited on {method} {path}; retrying in {delay:g}s "
                f"(attempt {attempt}/{self.max_retries})"
            )
            if self.cancel.wait(delay):
                raise Cancelled(f"cancelled during backoff on {method} {path}")
            response = self._send(method, path, **kwargs)

        return response

    @staticmethod
    def _raise_for_status(
        response: requests.Response, endpoint: str, ok: tuple[int, ...] = (200,)
    ) -> None:
        if response.status_code in ok:
            return
        if response.status_code == 401:
            raise Unauthorized(f"authentication failed at {endpoint}")
        if response.status_code == 404:
            raise NotFound(f"not found: {endpoint}")
        raise APIError(response.status_code, endpoint, response.text)

    @staticmethod
    def _decode(response: requests.Response, model: type[ModelT], endpoint: str) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise InvalidResponse(f"invalid response from {endpoint}: {e}") from e

    def authenticate(self, credentials: Credentials) -> str:
        """Obtain a token and attach it to every later request.

        A pre-issued token is adopted as-is without contacting the registry.
        """
        if credentials.token:
            self.token = credentials.token
            logger.debug("Using pre-issued access token")
            return self.token

        endpoint = "/users/login/"
        response = self._request(
            "POST",
            endpoint,
            json={"username": credentials.username, "password": credentials.password},
        )
        self._raise_for_status(response, endpoint)
        self.token = self._decode(response, LoginResponse, endpoint).token
        logger.debug(f"Authenticated as {credentials.username}")
        return self.token

    def list_page(
        self, repo: RepositoryRef, page: int, page_size: int = DEFAULT_PAGE_SIZE
    ) -> TagsPage:
        endpoint = f"/repositories/{repo.path}/tags/"
        response = self._request(
            "GET", endpoint, params={"page": page, "page_size": page_size}
        )
        self._raise_for_status(response, endpoint)
        return self._decode(response, TagsPage, endpoint)

    def delete_tag(self, repo: RepositoryRef, tag_name: str) -> None:
        endpoint = f"/repositories/{repo.path}/tags/{quote(tag_name, safe='')}/"
        response = self._request("DELETE", endpoint)
        self._raise_for_status(response, endpoint, ok=(200, 204))

    def get_repository(self, repo: RepositoryRef) -> Repository:
        endpoint = f"/repositories/{repo.path}/"
        response = self._request("GET", endpoint)
        self._raise_for_status(response, endpoint)
        return self._decode(response, Repository, endpoint)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> DockerHubClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
