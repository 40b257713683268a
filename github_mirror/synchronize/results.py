"""Contains results of a synchronization run."""

from dataclasses import dataclass, field
from enum import Enum


class SyncMode(str, Enum):
    """How the stale sets of a run were computed."""

    EVENTS = "events"
    FALLBACK = "fallback"
    FULL_SCAN = "full_scan"


@dataclass
class SyncFailure:
    """One object or stream that could not be processed."""

    operation: str
    error: str
    number: int | None = None


@dataclass
class SyncRunResult:
    """Aggregate outcome of one synchronization run."""

    mode: SyncMode = SyncMode.EVENTS
    first_run: bool = False
    objects_refreshed: int = 0
    objects_not_modified: int = 0
    objects_missing: int = 0
    threads_written: int = 0
    threads_unchanged: int = 0
    summary_entries_updated: int = 0
    requests_made: int = 0
    rate_limit_wait: float = 0.0
    committed: bool = False
    failures: list[SyncFailure] = field(default_factory=list)

    def record_failure(self, operation: str, error: Exception | str, number: int | None = None) -> None:
        self.failures.append(SyncFailure(operation=operation, error=str(error), number=number))

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def partial_failure(self) -> bool:
        return bool(self.failures)

    def summary_lines(self) -> list[str]:
        """Human-readable run summary for the CLI."""
        lines = [
            f"Mode: {self.mode.value}{' (first run)' if self.first_run else ''}",
            f"Objects: {self.objects_refreshed} refreshed, {self.objects_not_modified} not modified, {self.objects_missing} missing upstream",
            f"Comment threads: {self.threads_written} written, {self.threads_unchanged} unchanged",
            f"Summary list entries updated: {self.summary_entries_updated}",
            f"Requests made: {self.requests_made} (waited {round(self.rate_limit_wait, 1)}s for rate limit)",
        ]
        if self.failures:
            lines.append(f"Failures: {self.failed}")
            for failure in self.failures:
                target = f" #{failure.number}" if failure.number is not None else ""
                lines.append(f"  {failure.operation}{target}: {failure.error}")
        return lines
