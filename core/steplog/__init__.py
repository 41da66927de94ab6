"""Step logs: retained per process_id and broadcast live to subscribers."""

from core.steplog.hub import StepLogHub, Subscription, DEFAULT_BUFFER_SIZE
from core.steplog.store import RetainedLogStore, RunInProgress
from core.steplog.recorder import StepLogger

__all__ = [
    "StepLogHub",
    "Subscription",
    "DEFAULT_BUFFER_SIZE",
    "RetainedLogStore",
    "RunInProgress",
    "StepLogger",
]
