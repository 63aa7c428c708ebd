import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional

from loguru import logger

from hookrelay.utilities import (
    MAX_BUFFER_SIZE,
    MAX_CLIENT_IDLE_MS,
    MAX_EVENT_AGE_MS,
    ms_to_seconds,
)

Clock = Callable[[], float]

# epoch for clients that never polled
UNSEEN = 0.0


# ------------ In-memory structures ------------
@dataclass(frozen=True)
class Event:
    timestamp: float
    payload: Optional[str] = None


class EventBuffer:
    ''' Ordered, oldest-first events for one identifier.'''

    def __init__(self, identifier: str, max_size: int = MAX_BUFFER_SIZE):
        self.identifier = identifier
        self.max_size = max_size
        self.events: Deque[Event] = deque()
        self.lock = asyncio.Lock()
        # stats
        self.events_ingested = 0
        self.events_evicted = 0
        self.events_expired = 0

    def append(self, event: Event):
        self.events.append(event)
        self.events_ingested += 1
        self._enforce_capacity()

    def _enforce_capacity(self):
        # FIFO: oldest entries go first
        while len(self.events) > self.max_size:
            self.events.popleft()
            self.events_evicted += 1

    def sweep(self, now: float, max_age: float) -> int:
        """Drop events whose age reached max_age. Returns how many were dropped."""
        before = len(self.events)
        self.events = deque(e for e in self.events if now - e.timestamp < max_age)
        dropped = before - len(self.events)
        self.events_expired += dropped
        return dropped

    def first_after(self, cursor: float) -> Optional[Event]:
        for event in self.events:
            if event.timestamp > cursor:
                return event
        return None

    def __len__(self) -> int:
        return len(self.events)


class CursorTable:
    ''' Last poll time per remote client.'''

    def __init__(self, max_idle: float):
        self.max_idle = max_idle
        self.cursors: Dict[str, float] = {}

    def get(self, client: str) -> float:
        return self.cursors.get(client, UNSEEN)

    def advance(self, client: str, now: float):
        self.cursors[client] = now

    def purge_idle(self, now: float) -> int:
        idle = [c for c, seen in self.cursors.items() if now - seen >= self.max_idle]
        for client in idle:
            del self.cursors[client]
        return len(idle)

    def __len__(self) -> int:
        return len(self.cursors)


class Broker:
    '''
    Owns the per-identifier event buffers and the client cursor table.

    read() surfaces at most one event per call and always moves the caller's
    cursor to "now", so events that arrived between two polls after the first
    match are skipped.
    '''

    def __init__(
        self,
        max_size: int = MAX_BUFFER_SIZE,
        max_event_age_ms: float = MAX_EVENT_AGE_MS,
        max_client_idle_ms: float = MAX_CLIENT_IDLE_MS,
        clock: Clock = time.monotonic,
    ):
        self.max_size = max_size
        self.max_event_age = ms_to_seconds(max_event_age_ms)
        self.clock = clock
        self.buffers: Dict[str, EventBuffer] = {}
        self.cursors = CursorTable(ms_to_seconds(max_client_idle_ms))
        # guards buffers and cursors; each buffer guards its own sequence
        self.lock = asyncio.Lock()

    async def ingest(self, identifier: str, payload: Optional[str] = None):
        async with self.lock:
            now = self.clock()
            buffer = self.buffers.get(identifier)
            if buffer is None:
                buffer = EventBuffer(identifier, self.max_size)
                self.buffers[identifier] = buffer
                logger.debug(f"Created event buffer for '{identifier}'")

        async with buffer.lock:
            buffer.sweep(now, self.max_event_age)
            buffer.append(Event(now, payload))

    async def read(self, identifier: str, client: str) -> Optional[str]:
        async with self.lock:
            now = self.clock()
            purged = self.cursors.purge_idle(now)
            if purged:
                logger.debug(f"Purged {purged} idle client cursor(s)")
            cursor = self.cursors.get(client)
            self.cursors.advance(client, now)
            buffer = self.buffers.get(identifier)

        if buffer is None:
            return None
        async with buffer.lock:
            buffer.sweep(now, self.max_event_age)
            event = buffer.first_after(cursor)
        return event.payload if event else None

    # -------------- Introspection --------------
    async def identifiers(self) -> List[str]:
        async with self.lock:
            return list(self.buffers)

    async def buffered(self, identifier: str) -> List[Event]:
        async with self.lock:
            buffer = self.buffers.get(identifier)
        if buffer is None:
            return []
        async with buffer.lock:
            return list(buffer.events)

    async def cursor(self, client: str) -> Optional[float]:
        async with self.lock:
            return self.cursors.cursors.get(client)

    async def client_count(self) -> int:
        async with self.lock:
            return len(self.cursors)

    async def stats(self) -> Dict[str, Dict[str, int]]:
        async with self.lock:
            buffer_items = list(self.buffers.items())
        out = {}
        for identifier, buffer in buffer_items:
            async with buffer.lock:
                out[identifier] = {
                    "buffered": len(buffer),
                    "ingested": buffer.events_ingested,
                    "evicted": buffer.events_evicted,
                    "expired": buffer.events_expired,
                }
        return out
