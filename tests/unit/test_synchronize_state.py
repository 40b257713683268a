"""Unit tests for the two-phase sync state store."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from github_mirror.synchronize.exceptions import StorageError
from github_mirror.synchronize.models import ObjectKind, StreamName
from github_mirror.synchronize.state import SyncStateStore

T1 = datetime(2024, 1, 1, 23, 59, 59, tzinfo=timezone.utc)
T2 = datetime(2024, 1, 2, 23, 59, 59, tzinfo=timezone.utc)


def test_load_missing_state_is_first_run(tmp_path: Path) -> None:
    """Test that a mirror without a state record starts from scratch."""
    state = SyncStateStore.load(tmp_path)
    assert state.is_first_run is True
    assert state.last_checked_at(StreamName.ISSUES) is None
    assert state.watermark(StreamName.EVENTS).last_feed_token is None
    assert state.etag(1) is None
    assert state.comments_checked_at(1) is None


def test_staged_values_are_invisible_until_commit(tmp_path: Path) -> None:
    """Test that readers keep seeing committed values while changes are staged."""
    state = SyncStateStore.load(tmp_path)
    state.stage_watermark(StreamName.ISSUES, T1)
    state.stage_object(3, ObjectKind.PULL_REQUEST, 'W/"abc"')
    state.stage_thread_watermark(3, T1)

    assert state.has_pending is True
    assert state.last_checked_at(StreamName.ISSUES) is None
    assert state.etag(3) is None
    assert not (tmp_path / "state.json").exists()

    state.commit()

    assert state.has_pending is False
    assert state.last_checked_at(StreamName.ISSUES) == T1
    assert state.etag(3) == 'W/"abc"'
    assert state.kind(3) == ObjectKind.PULL_REQUEST
    assert state.comments_checked_at(3) == T1


def test_commit_persists_state(tmp_path: Path) -> None:
    """Test that committed state is read back by a fresh store."""
    state = SyncStateStore.load(tmp_path)
    state.stage_watermark(StreamName.EVENTS, T1, 'W/"feed"')
    state.stage_object(12, ObjectKind.ISSUE, 'W/"12"')
    state.commit()

    reloaded = SyncStateStore.load(tmp_path)
    assert reloaded.watermark(StreamName.EVENTS).last_checked_at == T1
    assert reloaded.watermark(StreamName.EVENTS).last_feed_token == 'W/"feed"'
    assert reloaded.etag(12) == 'W/"12"'
    assert reloaded.kind(12) == ObjectKind.ISSUE


def test_run_without_commit_leaves_previous_state(tmp_path: Path) -> None:
    """Test that abandoning a run keeps the previously committed state on disk."""
    state = SyncStateStore.load(tmp_path)
    state.stage_watermark(StreamName.ISSUES, T1)
    state.commit()
    before = (tmp_path / "state.json").read_text()

    interrupted = SyncStateStore.load(tmp_path)
    interrupted.stage_watermark(StreamName.ISSUES, T2)
    interrupted.stage_object(1, ObjectKind.ISSUE, 'W/"1"')
    del interrupted

    assert (tmp_path / "state.json").read_text() == before
    assert SyncStateStore.load(tmp_path).last_checked_at(StreamName.ISSUES) == T1


def test_unstage_watermark_keeps_committed_value(tmp_path: Path) -> None:
    """Test that an unstaged watermark is not committed."""
    state = SyncStateStore.load(tmp_path)
    state.stage_watermark(StreamName.EVENTS, T1, "token-1")
    state.commit()

    state.stage_watermark(StreamName.EVENTS, T2, "token-2")
    state.unstage_watermark(StreamName.EVENTS)
    state.unstage_watermark(StreamName.ISSUES)
    state.commit()

    assert state.watermark(StreamName.EVENTS).last_feed_token == "token-1"
    assert state.last_checked_at(StreamName.EVENTS) == T1


def test_commit_merges_object_changes(tmp_path: Path) -> None:
    """Test that staging a thread watermark keeps the committed freshness token."""
    state = SyncStateStore.load(tmp_path)
    state.stage_object(5, ObjectKind.PULL_REQUEST, "etag-5")
    state.commit()

    state.stage_thread_watermark(5, T2, ObjectKind.ISSUE)
    state.commit()

    assert state.etag(5) == "etag-5"
    assert state.kind(5) == ObjectKind.PULL_REQUEST
    assert state.comments_checked_at(5) == T2


def test_state_record_is_json(tmp_path: Path) -> None:
    """Test the layout of the persisted state record."""
    state = SyncStateStore.load(tmp_path)
    state.stage_watermark(StreamName.PULL_REQUESTS, T1)
    state.stage_object(2, ObjectKind.ISSUE, None)
    state.commit()

    record = json.loads((tmp_path / "state.json").read_text())
    assert record["watermarks"]["pull_requests"]["last_checked_at"] == "2024-01-01T23:59:59Z"
    assert record["objects"]["2"]["kind"] == "issue"


def test_load_corrupt_state_raises_storage_error(tmp_path: Path) -> None:
    """Test that an unreadable state record is not silently replaced."""
    (tmp_path / "state.json").write_text("{")
    with pytest.raises(StorageError):
        SyncStateStore.load(tmp_path)
