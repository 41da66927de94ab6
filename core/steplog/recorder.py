"""Per-run step logger used by the sagas.

Each emitted entry is, in this order, appended to the retained store,
handed to the live hub and mirrored to the process logger.
"""

import logging
from typing import List, Optional

from core.models.saga import LogLevel, StepLogEntry
from core.observability.logging import get_logger
from core.steplog.hub import StepLogHub
from core.steplog.store import RetainedLogStore

_PY_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class StepLogger:
    """Ordered step log of a single saga run."""

    def __init__(
        self,
        process_id: str,
        store: RetainedLogStore,
        hub: Optional[StepLogHub] = None,
        logger_name: str = "integration",
    ):
        """Open the retained sequence for this run.

        Raises:
            RunInProgress: A run with the same process_id is still open
        """
        store.start(process_id)
        self.process_id = process_id
        self._store = store
        self._hub = hub
        self._logger = get_logger(logger_name)
        self._entries: List[StepLogEntry] = []

    @property
    def entries(self) -> List[StepLogEntry]:
        return list(self._entries)

    def emit(self, level: LogLevel, step: str, message: str) -> StepLogEntry:
        entry = StepLogEntry(level=level, step=step, message=message, process_id=self.process_id)
        self._entries.append(entry)
        if not self._store.append(self.process_id, entry):
            self._logger.warning(f"Run {self.process_id} is sealed; {step} entry not retained")
        if self._hub is not None:
            self._hub.publish(entry)

        self._logger.log(
            _PY_LEVELS[level],
            f"{step}: {message}",
            extra_fields={"step": step, "step_level": level.value},
        )
        return entry

    def info(self, step: str, message: str) -> StepLogEntry:
        return self.emit(LogLevel.INFO, step, message)

    def success(self, step: str, message: str) -> StepLogEntry:
        return self.emit(LogLevel.SUCCESS, step, message)

    def warning(self, step: str, message: str) -> StepLogEntry:
        return self.emit(LogLevel.WARNING, step, message)

    def error(self, step: str, message: str) -> StepLogEntry:
        return self.emit(LogLevel.ERROR, step, message)

    def close(self) -> None:
        """Seal the run; its retained sequence is final from here on."""
        self._store.seal(self.process_id)
