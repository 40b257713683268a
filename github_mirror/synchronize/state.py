"""Sync state store: stream watermarks and per-object freshness tokens.

Readers always see the committed state. Everything learnt during a run is staged
and only becomes committed, and persisted, in a single ``commit()`` at the end of
the run, after the data it vouches for has been written. A run that dies before
``commit()`` leaves the previous state in place, so the next run repeats the work.
"""

from datetime import datetime
from pathlib import Path

import structlog

from github_mirror.synchronize.models import ObjectKind, ObjectRecord, StreamName, SyncStateRecord, SyncWatermark
from github_mirror.synchronize.storage import read_json, write_file_atomically
from github_mirror.utils.constants import STATE_FILENAME

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class SyncStateStore:
    """Committed state plus a staging area for the current run."""

    def __init__(self, path: Path, committed: SyncStateRecord | None = None) -> None:
        self.path = Path(path)
        self.committed = committed or SyncStateRecord()
        self.pending_watermarks: dict[StreamName, SyncWatermark] = {}
        self.pending_objects: dict[int, dict[str, object]] = {}

    @classmethod
    def load(cls, mirror_dir: Path) -> "SyncStateStore":
        """Load the committed state from the mirror directory (empty if absent)."""
        path = Path(mirror_dir) / STATE_FILENAME
        data = read_json(path)
        committed = SyncStateRecord.model_validate(data) if data is not None else SyncStateRecord()
        logger.info("Loaded sync state", path=str(path), tracked_objects=len(committed.objects))
        return cls(path, committed)

    # Committed reads

    @property
    def is_first_run(self) -> bool:
        """True until an issue scan has been committed."""
        return self.last_checked_at(StreamName.ISSUES) is None

    def watermark(self, stream: StreamName) -> SyncWatermark:
        return self.committed.watermarks.get(stream, SyncWatermark())

    def last_checked_at(self, stream: StreamName) -> datetime | None:
        return self.watermark(stream).last_checked_at

    def object_record(self, number: int) -> ObjectRecord | None:
        return self.committed.objects.get(number)

    def etag(self, number: int) -> str | None:
        record = self.object_record(number)
        return record.etag if record else None

    def kind(self, number: int) -> ObjectKind | None:
        record = self.object_record(number)
        return record.kind if record else None

    def comments_checked_at(self, number: int) -> datetime | None:
        record = self.object_record(number)
        return record.comments_checked_at if record else None

    # Staging

    def stage_watermark(self, stream: StreamName, checked_at: datetime, feed_token: str | None = None) -> None:
        """Stage a new watermark for ``stream``."""
        self.pending_watermarks[stream] = SyncWatermark(last_checked_at=checked_at, last_feed_token=feed_token)
        logger.debug("Staged watermark", stream=stream.value, checked_at=checked_at.isoformat(), feed_token=feed_token)

    def unstage_watermark(self, stream: StreamName) -> None:
        """Drop a staged watermark so the committed one stays in place."""
        if self.pending_watermarks.pop(stream, None) is not None:
            logger.info("Discarded staged watermark", stream=stream.value)

    def stage_object(self, number: int, kind: ObjectKind, etag: str | None) -> None:
        """Stage the kind and freshness token of an object whose payload was written."""
        pending = self.pending_objects.setdefault(number, {})
        pending["kind"] = kind
        pending["etag"] = etag

    def stage_thread_watermark(self, number: int, checked_at: datetime, kind: ObjectKind | None = None) -> None:
        """Stage the watermark of an object's comment thread."""
        pending = self.pending_objects.setdefault(number, {})
        pending["comments_checked_at"] = checked_at
        if kind is not None and self.kind(number) is None:
            pending.setdefault("kind", kind)

    @property
    def has_pending(self) -> bool:
        return bool(self.pending_watermarks or self.pending_objects)

    # Commit

    def commit(self) -> None:
        """Apply every staged change to the committed state and persist it in one write."""
        record = self.committed.model_copy(deep=True)
        record.watermarks.update(self.pending_watermarks)
        for number, changes in self.pending_objects.items():
            current = record.objects.get(number, ObjectRecord())
            record.objects[number] = current.model_copy(update=changes)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        write_file_atomically(self.path, record.model_dump_json(indent=2) + "\n")

        logger.info(
            "Committed sync state",
            path=str(self.path),
            watermarks=sorted(stream.value for stream in self.pending_watermarks),
            objects=len(self.pending_objects),
        )
        self.committed = record
        self.pending_watermarks = {}
        self.pending_objects = {}
