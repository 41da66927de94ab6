"""Retained step logs, keyed by process_id.

Runs are kept in insertion order and dropped when older than the retention
window or when more than max_runs are held. Entries are append-only;
once a run is sealed its sequence never changes, so a snapshot taken after
completion is final.

A process_id can be reused (a retried order, a Temporal workflow id): start()
replaces a sealed sequence with an empty one, and refuses while a run with
that id is still open.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, List, Optional, Tuple

from core.models.saga import StepLogEntry


@dataclass
class _RetainedRun:
    entries: List[StepLogEntry] = field(default_factory=list)
    sealed: bool = False
    updated_at: float = 0.0


class RunInProgress(RuntimeError):
    """Another run with the same process_id has not finished yet."""

    def __init__(self, process_id: str):
        super().__init__(f"A run with process_id {process_id} is still in progress")
        self.process_id = process_id


class RetainedLogStore:
    """Bounded, time-evicted map of process_id -> step log entries."""

    def __init__(
        self,
        max_runs: int = 500,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_runs = max_runs
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._runs: "OrderedDict[str, _RetainedRun]" = OrderedDict()
        self._lock = Lock()

    def start(self, process_id: str) -> None:
        """Open a fresh sequence for a new run.

        Raises:
            RunInProgress: The id belongs to a run that is not sealed yet
        """
        with self._lock:
            now = self._clock()
            self._evict(now)
            run = self._runs.get(process_id)
            if run is not None and not run.sealed:
                raise RunInProgress(process_id)
            self._runs.pop(process_id, None)
            self._runs[process_id] = _RetainedRun(updated_at=now)
            self._evict(now)

    def append(self, process_id: str, entry: StepLogEntry) -> bool:
        """Append an entry to a run. Returns False if the run is already sealed."""
        with self._lock:
            now = self._clock()
            self._evict(now)
            run = self._runs.get(process_id)
            if run is None:
                run = _RetainedRun(updated_at=now)
                self._runs[process_id] = run
                self._evict(now)
            if run.sealed:
                return False
            run.entries.append(entry)
            run.updated_at = now
            return True

    def seal(self, process_id: str) -> None:
        """Mark a run complete; later appends are rejected."""
        with self._lock:
            run = self._runs.get(process_id)
            if run is not None:
                run.sealed = True
                run.updated_at = self._clock()

    def snapshot(self, process_id: str) -> Optional[Tuple[StepLogEntry, ...]]:
        """Immutable copy of a run's entries, or None if unknown or expired."""
        with self._lock:
            self._evict(self._clock())
            run = self._runs.get(process_id)
            if run is None:
                return None
            return tuple(run.entries)

    def is_sealed(self, process_id: str) -> bool:
        with self._lock:
            run = self._runs.get(process_id)
            return bool(run and run.sealed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)

    def _evict(self, now: float) -> None:
        expired = [pid for pid, run in self._runs.items() if now - run.updated_at > self.ttl_seconds]
        for pid in expired:
            del self._runs[pid]
        while len(self._runs) > self.max_runs:
            self._runs.popitem(last=False)
