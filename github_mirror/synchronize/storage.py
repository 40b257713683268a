"""Sharded on-disk storage of mirrored issues, pull requests and comment threads.

Layout under the mirror root::

    issues/list.json                   summary list, indexed by number - 1
    issues/4xx/456.json                full payload of object 456
    issues/4xx/456.comments.json       comment thread of object 456
"""

import json
import os
from pathlib import Path
from typing import Any

import structlog

from github_mirror.synchronize.exceptions import StorageError
from github_mirror.synchronize.models import Comment, MirroredObject
from github_mirror.utils.constants import COMMENTS_SUFFIX, ISSUES_DIRECTORY, SHARD_SIZE, SUMMARY_LIST_FILENAME

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def shard_for(number: int) -> str:
    """Return the bucket holding ``number``, e.g. 456 -> "4xx"."""
    if number < 1:
        raise ValueError(f"Object numbers are positive, got {number}")
    return f"{number // SHARD_SIZE}xx"


def dump_json(data: Any) -> str:
    """Serialize ``data`` canonically: pretty-printed with sorted keys."""
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def write_file_atomically(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` through a temporary file and a rename."""
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError as exc:
        raise StorageError(f"Failed to write {path}: {exc}", path=path) from exc


def read_json(path: Path) -> Any:
    """Read a JSON file, returning None when it does not exist."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as exc:
        raise StorageError(f"Failed to read {path}: {exc}", path=path) from exc


class ShardedStorage:
    """Maps object numbers to bounded-size bucket directories under the mirror root."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.issues_dir = self.root / ISSUES_DIRECTORY

    @property
    def summary_path(self) -> Path:
        return self.issues_dir / SUMMARY_LIST_FILENAME

    def bucket_path(self, bucket: str) -> Path:
        return self.issues_dir / bucket

    def object_path(self, number: int) -> Path:
        return self.bucket_path(shard_for(number)) / f"{number}.json"

    def thread_path(self, number: int) -> Path:
        return self.bucket_path(shard_for(number)) / f"{number}{COMMENTS_SUFFIX}"

    def ensure_bucket(self, bucket: str) -> Path:
        """Create the bucket directory if needed. Safe to call repeatedly."""
        path = self.bucket_path(bucket)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create bucket {path}: {exc}", path=path) from exc
        return path

    def write_object(self, mirrored_object: MirroredObject) -> Path:
        """Persist the full payload of an issue or pull request."""
        self.ensure_bucket(shard_for(mirrored_object.number))
        path = self.object_path(mirrored_object.number)
        write_file_atomically(path, dump_json(mirrored_object.payload))
        logger.debug("Wrote object payload", number=mirrored_object.number, path=str(path))
        return path

    def read_object(self, number: int) -> dict[str, Any] | None:
        """Return the stored payload of an object, or None if it was never mirrored."""
        return read_json(self.object_path(number))

    def load_thread(self, number: int) -> list[Comment]:
        """Load the stored comment thread of an object (empty if none)."""
        records = read_json(self.thread_path(number))
        if records is None:
            return []
        return [Comment.model_validate(record) for record in records]

    def write_thread(self, number: int, comments: list[Comment]) -> Path:
        """Persist a comment thread."""
        self.ensure_bucket(shard_for(number))
        path = self.thread_path(number)
        write_file_atomically(path, dump_json([comment.model_dump(mode="json") for comment in comments]))
        return path

    def load_summary(self) -> list[dict[str, Any] | None]:
        """Load the summary list. Index ``n - 1`` holds object ``n``; holes are None."""
        summary = read_json(self.summary_path)
        if summary is None:
            return []
        return summary

    def update_summary(self, entries: list[dict[str, Any]]) -> int:
        """Merge issue-listing entries into the summary list, writing it only if it changed.

        Returns the number of entries that were added or changed.
        """
        summary = self.load_summary()
        changed = 0
        for entry in entries:
            index = int(entry["number"]) - 1
            if index >= len(summary):
                summary.extend([None] * (index + 1 - len(summary)))
            if summary[index] != entry:
                summary[index] = entry
                changed += 1
        if not changed:
            logger.info("Summary list is up to date", issue_count=sum(1 for entry in summary if entry is not None))
            return 0
        # If these numbers do not match on a first run, upstream deleted some issues.
        logger.info(f"Writing {len(summary)} issues ({changed} updated)", path=str(self.summary_path))
        try:
            self.issues_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create {self.issues_dir}: {exc}", path=self.issues_dir) from exc
        write_file_atomically(self.summary_path, dump_json(summary))
        return changed
