import re
from re import Pattern

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docker_hub_cleaner.base import Credentials, RepositoryRef
from docker_hub_cleaner.exceptions import ConfigurationError

SORT_METHODS = ("lexicographical", "semver")
POLICY_MODES = ("or", "and")


def _compile(pattern: str, what: str) -> Pattern[str] | None:
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"Invalid {what} '{pattern}': {e}") from e


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, extra="ignore"
    )

    # DOCKER_HUB_* env names take precedence over the bare ones
    username: str = Field(
        default="", validation_alias=AliasChoices("DOCKER_HUB_USERNAME", "username")
    )
    password: str = Field(
        default="", validation_alias=AliasChoices("DOCKER_HUB_PASSWORD", "password")
    )
    token: str = Field(
        default="", validation_alias=AliasChoices("DOCKER_HUB_TOKEN", "token")
    )
    repository: str = ""

    keep_days: int = Field(default=0, ge=0)
    keep_count: int = Field(default=0, ge=0)
    policy_mode: str = "or"
    sort_method: str = "lexicographical"

    tag_pattern: str = ""
    exclude_pattern: str = ""
    strip_prefix: str = ""

    dry_run: bool = False
    verbose: bool = False
    concurrency: int = Field(default=1, ge=1)

    base_url: str = Field(
        default="https://hub.docker.com/v2",
        validation_alias=AliasChoices("DOCKER_HUB_API_URL", "base_url"),
    )
    rate_limit: float = Field(default=5.0, gt=0)
    github_step_summary: str = ""

    @field_validator("dry_run", "verbose", mode="before")
    @classmethod
    def _parse_bool(cls, v: str | bool) -> bool:
        return v if isinstance(v, bool) else v.lower() == "true"

    @field_validator("sort_method", "policy_mode", mode="before")
    @classmethod
    def _normalize_choice(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("sort_method")
    @classmethod
    def _check_sort_method(cls, v: str) -> str:
        if v not in SORT_METHODS:
            raise ValueError(f"sort_method must be one of {list(SORT_METHODS)}")
        return v

    @field_validator("policy_mode")
    @classmethod
    def _check_policy_mode(cls, v: str) -> str:
        if v not in POLICY_MODES:
            raise ValueError(f"policy_mode must be one of {list(POLICY_MODES)}")
        return v

    def validate_for_run(self) -> None:
        """Check the settings a cleaning run cannot do without."""
        if not self.token and not (self.username and self.password):
            raise ValueError(
                "Either a token or a username/password pair must be provided"
            )
        if not self.repository:
            raise ValueError("Missing required setting: repository")
        RepositoryRef.parse(self.repository)
        if self.keep_days == 0 and self.keep_count == 0:
            raise ValueError(
                "At least one retention policy (keep_days or keep_count) must be set"
            )

    @property
    def credentials(self) -> Credentials:
        return Credentials(self.username, self.password, self.token)

    @property
    def repository_ref(self) -> RepositoryRef:
        return RepositoryRef.parse(self.repository)

    @property
    def compiled_tag_pattern(self) -> Pattern[str] | None:
        return _compile(self.tag_pattern, "tag pattern")

    @property
    def compiled_exclude_pattern(self) -> Pattern[str] | None:
        return _compile(self.exclude_pattern, "exclude pattern")

    @property
    def compiled_strip_prefix(self) -> Pattern[str] | None:
        return _compile(self.strip_prefix, "strip-prefix pattern")
