from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from dateutil import parser as date_parser  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from docker_hub_cleaner.settings import Settings

NEVER_UPDATED = datetime.min.replace(tzinfo=UTC)


class Image(BaseModel):
    """Per-platform image behind a tag."""

    model_config = ConfigDict(frozen=True)

    architecture: str = ""
    os: str = ""
    size: int = 0

    @field_validator("architecture", "os", mode="before")
    @classmethod
    def _none_to_empty(cls, v: str | None) -> str:
        return v or ""

    @field_validator("size", mode="before")
    @classmethod
    def _none_to_zero(cls, v: int | None) -> int:
        return v or 0


class Tag(BaseModel):
    """Image tag as listed by the registry.

    Tags are immutable once fetched; the filter, sort and policy stages only
    ever build new lists of them.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    last_updated: datetime
    full_size: int = 0
    images: tuple[Image, ...] = ()

    @field_validator("last_updated", mode="before")
    @classmethod
    def _parse_time(cls, v: str | datetime | None) -> datetime:
        # A tag the registry never stamped counts as infinitely old
        if v is None:
            return NEVER_UPDATED
        if isinstance(v, str):
            try:
                parsed = date_parser.parse(v)
            except OverflowError as e:
                raise ValueError(f"timestamp out of range: {v!r}") from e
        elif isinstance(v, datetime):
            parsed = v
        else:
            raise ValueError(f"expected a timestamp string, got {type(v).__name__}")
        return parsed.replace(tzinfo=UTC) if parsed.tzinfo is None else parsed

    @field_validator("full_size", mode="before")
    @classmethod
    def _none_to_zero(cls, v: int | None) -> int:
        return v or 0

    @field_validator("images", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return v or ()


class TagsPage(BaseModel):
    """One page of ``GET /repositories/{namespace}/{name}/tags/``."""

    model_config = ConfigDict(frozen=True)

    count: int = 0
    next: str | None = None
    previous: str | None = None
    results: tuple[Tag, ...] = ()

    @field_validator("results", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return v or ()


class Repository(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: str = ""
    name: str
    namespace: str
    description: str | None = None


class LoginResponse(BaseModel):
    token: str = Field(min_length=1)


@dataclass(frozen=True)
class RepositoryRef:
    """Repository identifier supplied by the caller (``namespace/name``)."""

    namespace: str
    name: str

    @classmethod
    def parse(cls, value: str) -> RepositoryRef:
        namespace, sep, name = value.strip().strip("/").partition("/")
        if not sep or not namespace or not name or "/" in name:
            raise ValueError(
                f"Repository must be in the form 'namespace/name', got '{value}'"
            )
        return cls(namespace, name)

    @property
    def path(self) -> str:
        return f"{self.namespace}/{self.name}"

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class Credentials:
    """Either a username/password pair or a pre-issued access token."""

    username: str = ""
    password: str = field(default="", repr=False)
    token: str = field(default="", repr=False)


class RegistryClient(ABC):
    """Abstract base class for the registry transport used by the cleaner."""

    @classmethod
    @abstractmethod
    def from_settings(cls, settings: Settings) -> RegistryClient:
        pass

    @abstractmethod
    def authenticate(self, credentials: Credentials) -> str:
        pass

    @abstractmethod
    def list_page(
        self, repo: RepositoryRef, page: int, page_size: int
    ) -> TagsPage:
        pass

    @abstractmethod
    def delete_tag(self, repo: RepositoryRef, tag_name: str) -> None:
        pass

    @abstractmethod
    def get_repository(self, repo: RepositoryRef) -> Repository:
        pass
