"""Fixtures for unit tests."""

from pathlib import Path
from typing import Generator

import pytest
import structlog

from github_mirror.synchronize.context import RunContext
from github_mirror.synchronize.state import SyncStateStore
from tests.unit.utils import RUN_STARTED_AT, FakeGitHubRemote, RecordingStorage


@pytest.fixture(autouse=True)
def configure_structlog_for_caplog() -> Generator[None, None, None]:
    """Configure structlog for use with caplog."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def remote() -> FakeGitHubRemote:
    """An empty in-memory GitHub repository."""
    return FakeGitHubRemote()


@pytest.fixture
def mirror_dir(tmp_path: Path) -> Path:
    """Directory holding the mirror under test."""
    return tmp_path / "mirror"


@pytest.fixture
def run_context(remote: FakeGitHubRemote, mirror_dir: Path) -> RunContext:
    """Run context over the fake remote and an empty mirror."""
    return RunContext(
        client=remote,
        state=SyncStateStore.load(mirror_dir),
        storage=RecordingStorage(mirror_dir),
        run_started_at=RUN_STARTED_AT,
    )
