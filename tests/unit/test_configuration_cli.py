"""Unit tests for the Typer command line interface."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from github_mirror.configuration.cli import typer_app
from github_mirror.synchronize.models import ObjectKind, StreamName
from github_mirror.synchronize.results import SyncMode, SyncRunResult
from github_mirror.synchronize.state import SyncStateStore
from tests.unit.utils import RUN_STARTED_AT

runner = CliRunner()

ENVIRONMENT_VARIABLES = ("DEBUG", "GITHUB_API_URL", "REPO", "GITHUB_PAT_TOKEN", "GITHUB_USERNAME", "MIRROR_DIR", "RATE_LIMIT_SAFETY_MARGIN")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run without configuration from the environment or a .env file."""
    for name in ENVIRONMENT_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_sync_without_repository_exits_with_configuration_error() -> None:
    """Test that a missing repository is reported as invalid configuration."""
    result = runner.invoke(typer_app, ["sync"])
    assert result.exit_code == 2
    assert "Missing required configuration element: Repository" in result.output


def test_sync_with_malformed_repository_exits_with_configuration_error() -> None:
    """Test that a malformed repository is reported as invalid configuration."""
    result = runner.invoke(typer_app, ["sync", "owner/repo/extra"])
    assert result.exit_code == 2


def test_sync_prints_summary(tmp_path: Path) -> None:
    """Test that a committed run exits cleanly and prints its summary."""
    run_result = SyncRunResult(mode=SyncMode.EVENTS, objects_refreshed=2, committed=True)
    with patch("github_mirror.configuration.cli.run_sync_workflow", AsyncMock(return_value=run_result)) as mock_workflow:
        result = runner.invoke(typer_app, ["sync", "owner/repo", "--mirror-dir", str(tmp_path / "mirror"), "--full-scan"])

    assert result.exit_code == 0
    assert "Mode: events" in result.output
    assert "2 refreshed" in result.output
    config = mock_workflow.await_args.args[0]
    assert config.repo == "owner/repo"
    assert config.full_scan is True
    assert config.mirror_dir == tmp_path / "mirror"


def test_sync_with_partial_failure_still_succeeds() -> None:
    """Test that failures after which state was committed do not fail the command."""
    run_result = SyncRunResult(committed=True)
    run_result.record_failure("refresh object", "GitHub 502 error", number=3)
    with patch("github_mirror.configuration.cli.run_sync_workflow", AsyncMock(return_value=run_result)):
        result = runner.invoke(typer_app, ["sync", "owner/repo"])

    assert result.exit_code == 0
    assert "refresh object #3: GitHub 502 error" in result.output


def test_sync_failure_before_commit_exits_with_error() -> None:
    """Test that a run dying before commit exits non-zero."""
    with patch("github_mirror.configuration.cli.run_sync_workflow", AsyncMock(side_effect=RuntimeError("network down"))):
        result = runner.invoke(typer_app, ["sync", "owner/repo"])

    assert result.exit_code == 1
    assert "failed before committing state" in result.output


def test_status_of_empty_mirror(tmp_path: Path) -> None:
    """Test that a mirror that never synced reports no watermarks."""
    result = runner.invoke(typer_app, ["status", "--mirror-dir", str(tmp_path / "mirror")])

    assert result.exit_code == 0
    assert "issues: never" in result.output
    assert "Tracked objects: 0" in result.output


def test_status_shows_committed_watermarks(tmp_path: Path) -> None:
    """Test that committed watermarks and object counts are shown."""
    state = SyncStateStore.load(tmp_path)
    state.stage_watermark(StreamName.EVENTS, RUN_STARTED_AT, 'W/"feed"')
    state.stage_object(1, ObjectKind.ISSUE, None)
    state.stage_object(2, ObjectKind.PULL_REQUEST, None)
    state.commit()

    result = runner.invoke(typer_app, ["status", "--mirror-dir", str(tmp_path)])

    assert result.exit_code == 0
    assert "events: 2024-01-01T23:59:59+00:00" in result.output
    assert 'feed token W/"feed"' in result.output
    assert "Tracked objects: 2 (1 issues, 1 pull requests)" in result.output
