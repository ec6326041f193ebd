"""Tests for main module."""

import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from docker_hub_cleaner import __main__ as cli
from docker_hub_cleaner.base import Repository, Tag, TagsPage
from docker_hub_cleaner.exceptions import APIError, NotFound, Unauthorized

BASE_ARGS = ["--token", "pat-1", "--repository", "acme/app"]


def fake_client(*names: str) -> MagicMock:
    client = MagicMock()
    client.get_repository.return_value = Repository(name="app", namespace="acme")
    client.list_page.return_value = TagsPage(
        results=tuple(
            Tag(name=n, last_updated=datetime(2020, 1, 1, tzinfo=UTC), full_size=10)
            for n in names
        )
    )
    return client


@pytest.fixture
def registry(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    client = fake_client("1.0.0", "1.1.0", "2.0.0", "latest")
    init_client = MagicMock(return_value=(client, "DOCKER HUB: acme/app"))
    monkeypatch.setattr(cli, "init_client", init_client)
    monkeypatch.delenv("GITHUB_STEP_SUMMARY", raising=False)
    return client


class TestParseArgs:
    def test_only_given_flags(self) -> None:
        assert cli.parse_args(["--keep-days", "5"]) == {"keep_days": 5}

    def test_all_flags(self) -> None:
        args = cli.parse_args(
            BASE_ARGS
            + [
                "--keep-count", "3",
                "--policy-mode", "and",
                "--sort-method", "semver",
                "--tag-pattern", "^v",
                "--exclude-pattern", "rc",
                "--strip-prefix", "^release-",
                "--dry-run",
                "-v",
                "--concurrency", "4",
            ]
        )
        assert args == {
            "token": "pat-1",
            "repository": "acme/app",
            "keep_count": 3,
            "policy_mode": "and",
            "sort_method": "semver",
            "tag_pattern": "^v",
            "exclude_pattern": "rc",
            "strip_prefix": "^release-",
            "dry_run": True,
            "verbose": True,
            "concurrency": 4,
        }

    def test_no_dry_run(self) -> None:
        assert cli.parse_args(["--no-dry-run"]) == {"dry_run": False}


class TestMainFunction:
    def test_dry_run(self, registry: MagicMock) -> None:
        args = BASE_ARGS + ["--keep-count", "2", "--sort-method", "semver", "--dry-run"]
        assert cli.main(args) == 0
        registry.delete_tag.assert_not_called()

    def test_live_run(self, registry: MagicMock) -> None:
        args = BASE_ARGS + ["--keep-count", "2", "--sort-method", "semver"]
        assert cli.main(args) == 0
        deleted = [c.args[1] for c in registry.delete_tag.call_args_list]
        assert deleted == ["1.0.0", "latest"]

    def test_deletion_errors_do_not_fail_run(self, registry: MagicMock) -> None:
        registry.delete_tag.side_effect = APIError(500, "/x", "boom")
        assert cli.main(BASE_ARGS + ["--keep-count", "1"]) == 0
        assert registry.delete_tag.call_count == 3

    def test_missing_policy(self, registry: MagicMock) -> None:
        assert cli.main(BASE_ARGS) == 2
        cli.init_client.assert_not_called()  # type: ignore[attr-defined]

    def test_invalid_pattern_before_network(self, registry: MagicMock) -> None:
        assert cli.main(BASE_ARGS + ["--keep-days", "1", "--tag-pattern", "(["]) == 2
        cli.init_client.assert_not_called()  # type: ignore[attr-defined]

    def test_invalid_strip_prefix_before_network(self, registry: MagicMock) -> None:
        args = BASE_ARGS + ["--keep-days", "1", "--sort-method", "semver", "--strip-prefix", "("]
        assert cli.main(args) == 2
        cli.init_client.assert_not_called()  # type: ignore[attr-defined]

    def test_invalid_setting_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RATE_LIMIT", "-1")
        assert cli.main(BASE_ARGS + ["--keep-days", "1"]) == 2

    def test_authentication_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(cli, "init_client", MagicMock(side_effect=Unauthorized()))
        assert cli.main(BASE_ARGS + ["--keep-days", "1"]) == 1

    def test_listing_failure(self, registry: MagicMock) -> None:
        registry.list_page.side_effect = NotFound()
        assert cli.main(BASE_ARGS + ["--keep-days", "1"]) == 1
        registry.delete_tag.assert_not_called()

    def test_missing_repository(self, registry: MagicMock) -> None:
        registry.get_repository.side_effect = NotFound()
        assert cli.main(BASE_ARGS + ["--keep-days", "1"]) == 1
        registry.list_page.assert_not_called()

    def test_writes_step_summary(
        self, registry: MagicMock, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        summary_file = tmp_path / "summary.md"
        monkeypatch.setenv("GITHUB_STEP_SUMMARY", str(summary_file))
        assert cli.main(BASE_ARGS + ["--keep-count", "3", "--dry-run"]) == 0
        content = summary_file.read_text()
        assert "**Mode:** Dry Run" in content
        assert "- `1.0.0`" in content

    def test_concurrency_is_accepted(self, registry: MagicMock) -> None:
        args: list[Any] = BASE_ARGS + ["--keep-days", "1", "--concurrency", "8"]
        assert cli.main(args) == 0

    def test_cancelled_run(self, registry: MagicMock) -> None:
        from docker_hub_cleaner.exceptions import Cancelled

        registry.list_page.side_effect = Cancelled()
        assert cli.main(BASE_ARGS + ["--keep-days", "1"]) == 130
