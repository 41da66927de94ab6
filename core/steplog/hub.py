"""Live fan-out of step log entries.

A single owner task holds the subscriber registry. subscribe, unsubscribe
and broadcast are commands sent to it through one queue, so the registry is
only ever touched by that task and needs no lock.

Publishing never waits: the command is put_nowait'ed and every subscriber
has its own bounded buffer. A subscriber whose buffer is full is evicted
(its stream ends) instead of slowing down the saga that is logging.
"""

import asyncio
import itertools
import logging
from typing import AsyncIterator, Dict, Optional

from core.models.saga import StepLogEntry

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 256

_SUBSCRIBE = "subscribe"
_UNSUBSCRIBE = "unsubscribe"
_BROADCAST = "broadcast"
_STOP = "stop"

_ids = itertools.count(1)


class Subscription:
    """One live subscriber. Iterate it to receive entries in emission order.

    Attributes:
        process_id: When set, only entries of that run are delivered
        evicted: True once the hub dropped this subscriber for falling behind
    """

    def __init__(self, buffer_size: int, process_id: Optional[str] = None):
        self.id = next(_ids)
        self.process_id = process_id
        self.evicted = False
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=buffer_size)

    def wants(self, entry: StepLogEntry) -> bool:
        return self.process_id is None or entry.process_id == self.process_id

    def _offer(self, entry: StepLogEntry) -> bool:
        try:
            self._queue.put_nowait(entry)
            return True
        except asyncio.QueueFull:
            return False

    def _close(self, evicted: bool = False) -> None:
        if self.closed:
            return
        self.closed = True
        self.evicted = evicted
        # Drop the backlog so the end-of-stream marker always fits
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def get(self) -> Optional[StepLogEntry]:
        """Next entry, or None once the stream has ended."""
        if self.closed and self._queue.empty():
            return None
        return await self._queue.get()

    async def __aiter__(self) -> AsyncIterator[StepLogEntry]:
        while True:
            entry = await self.get()
            if entry is None:
                return
            yield entry


class StepLogHub:
    """Owner-task fan-out of StepLogEntry values to live subscribers."""

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE):
        self.buffer_size = buffer_size
        self._commands: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        # Owned by the _run task only
        self._subscribers: Dict[int, Subscription] = {}

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._commands = asyncio.Queue()
        self._task = asyncio.create_task(self._run(), name="step-log-hub")

    async def stop(self) -> None:
        if not self.running:
            return
        self._commands.put_nowait((_STOP, None))
        await self._task
        self._task = None

    def subscribe(self, process_id: Optional[str] = None) -> Subscription:
        """Register a subscriber; entries published after this call reach it."""
        if not self.running:
            raise RuntimeError("StepLogHub is not running")
        subscription = Subscription(self.buffer_size, process_id)
        self._commands.put_nowait((_SUBSCRIBE, subscription))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if self.running:
            self._commands.put_nowait((_UNSUBSCRIBE, subscription))

    def publish(self, entry: StepLogEntry) -> None:
        """Queue an entry for broadcast. Never blocks; a stopped hub drops it."""
        if self.running:
            self._commands.put_nowait((_BROADCAST, entry))

    async def _run(self) -> None:
        while True:
            command, payload = await self._commands.get()

            if command == _SUBSCRIBE:
                self._subscribers[payload.id] = payload

            elif command == _UNSUBSCRIBE:
                subscription = self._subscribers.pop(payload.id, None)
                if subscription is not None:
                    subscription._close()

            elif command == _BROADCAST:
                self._broadcast(payload)

            elif command == _STOP:
                for subscription in self._subscribers.values():
                    subscription._close()
                self._subscribers.clear()
                return

    def _broadcast(self, entry: StepLogEntry) -> None:
        evicted = []
        for subscription in self._subscribers.values():
            if subscription.wants(entry) and not subscription._offer(entry):
                evicted.append(subscription)

        for subscription in evicted:
            logger.warning(f"Evicting step log subscriber {subscription.id}: buffer full")
            del self._subscribers[subscription.id]
            subscription._close(evicted=True)
