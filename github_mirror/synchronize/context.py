"""Explicit per-run context threaded through every synchronization step."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from github_mirror.github.abc import MirrorClientBase
from github_mirror.synchronize.models import ObjectKind
from github_mirror.synchronize.results import SyncRunResult
from github_mirror.synchronize.state import SyncStateStore
from github_mirror.synchronize.storage import ShardedStorage


@dataclass
class RunContext:
    """Mutable state of one run: collaborators, capture time, kind hints and the result."""

    client: MirrorClientBase
    state: SyncStateStore
    storage: ShardedStorage
    run_started_at: datetime
    result: SyncRunResult = field(default_factory=SyncRunResult)
    kinds: dict[int, ObjectKind] = field(default_factory=dict)
    summary_entries: dict[int, dict[str, Any]] = field(default_factory=dict)

    def note_kind(self, number: int, kind: ObjectKind) -> None:
        """Remember the kind of an object seen during detection. Pull request wins over issue."""
        if self.kinds.get(number) != ObjectKind.PULL_REQUEST:
            self.kinds[number] = kind

    def queue_summary_entry(self, entry: dict[str, Any]) -> None:
        """Queue an issue listing entry for the summary list; later entries for the same number win."""
        self.summary_entries[int(entry["number"])] = entry

    def kind_of(self, number: int, default: ObjectKind = ObjectKind.ISSUE) -> ObjectKind:
        """Best known kind of an object: this run's hints, then the committed state."""
        if number in self.kinds:
            return self.kinds[number]
        return self.state.kind(number) or default
