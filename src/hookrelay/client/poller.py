"""Client side of the relay: polls identifiers and dispatches events to handlers."""
from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from hookrelay.client.handlers import EventHandler, HandlerFunc, as_handler
from hookrelay.config import get_settings
from hookrelay.utilities import GET_EVENTS_PREFIX, ms_to_seconds

Handler = Union[EventHandler, HandlerFunc]


@dataclass
class Subscription:
    identifier: str
    period_ms: int
    job_id: str


class Poller:
    """
    Polls the relay for new events, one scheduled job per identifier.

    Every tick drains the identifier: it keeps reading until the relay answers
    with an empty body, handing each payload to the global handler first and
    then to the identifier's own handler.
    """

    def __init__(
        self,
        host: str,
        port: int,
        url_suffix: Optional[str] = None,
        *,
        drain_pause_ms: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self.host = host
        self.port = port
        self.url_suffix = (url_suffix or settings.url_suffix).strip("/")
        self.drain_pause = ms_to_seconds(
            settings.drain_pause_ms if drain_pause_ms is None else drain_pause_ms
        )
        self._client = httpx.AsyncClient(
            timeout=timeout or settings.client_timeout_seconds,
            transport=transport,
        )
        self.scheduler = AsyncIOScheduler()
        self._subscriptions: Dict[str, Subscription] = {}
        self._handler: Optional[EventHandler] = None
        self._handlers: Dict[str, EventHandler] = {}
        self._handlers_lock = threading.Lock()

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/{self.url_suffix}"

    # -------------- Handlers --------------
    @property
    def handler(self) -> Optional[EventHandler]:
        return self._handler

    def set_handler(self, handler: Optional[Handler]) -> "Poller":
        """Set the handler that receives events of every identifier."""
        self._handler = as_handler(handler)
        return self

    def get_handler(self, identifier: str) -> Optional[EventHandler]:
        with self._handlers_lock:
            return self._handlers.get(identifier)

    def add_handler(self, identifier: str, handler: Handler) -> "Poller":
        wrapped = as_handler(handler)
        with self._handlers_lock:
            self._handlers[identifier] = wrapped
        return self

    def remove_handler(self, identifier: str) -> Optional[EventHandler]:
        with self._handlers_lock:
            return self._handlers.pop(identifier, None)

    def handler_identifiers(self) -> List[str]:
        with self._handlers_lock:
            return list(self._handlers)

    # -------------- Polling --------------
    async def grab_event(self, identifier: str) -> Optional[str]:
        """Ask the relay for the next new event of ``identifier``."""
        response = await self._client.post(self.url, content=GET_EVENTS_PREFIX + identifier)
        response.raise_for_status()
        return response.text or None

    def _dispatch(self, identifier: str, payload: str) -> None:
        specific = self.get_handler(identifier)
        if self._handler is not None:
            self._handler.handle(identifier, payload)
        if specific is not None:
            specific.handle(identifier, payload)

    async def _tick(self, identifier: str) -> None:
        try:
            while True:
                payload = await self.grab_event(identifier)
                if payload is None:
                    break
                self._dispatch(identifier, payload)
                await asyncio.sleep(self.drain_pause)
        except httpx.HTTPError as e:
            logger.warning(f"Polling '{identifier}' at {self.url} failed: {e}")
        except Exception:
            logger.exception(f"Handler for '{identifier}' failed, tick aborted")

    # -------------- Subscriptions --------------
    def running(self, identifier: str) -> bool:
        return identifier in self._subscriptions

    def subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions.values())

    def start(self, identifier: str, period_ms: int) -> bool:
        """Start polling ``identifier`` every ``period_ms``. False if already running."""
        if identifier in self._subscriptions:
            return False
        if not self.scheduler.running:
            self.scheduler.start()
        job_id = f"poll:{identifier}"
        self.scheduler.add_job(
            self._tick,
            "interval",
            seconds=ms_to_seconds(period_ms),
            args=[identifier],
            id=job_id,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
        )
        self._subscriptions[identifier] = Subscription(identifier, period_ms, job_id)
        logger.debug(f"Started polling '{identifier}' every {period_ms} ms")
        return True

    def start_many(self, period_ms: int, *identifiers: str) -> bool:
        """Start several identifiers; with none given, every handler identifier."""
        if not identifiers:
            identifiers = tuple(self.handler_identifiers())
            if not identifiers:
                return False
        for identifier in identifiers:
            self.start(identifier, period_ms)
        return True

    def stop(self, identifier: str) -> bool:
        """Stop polling ``identifier``; a tick already running finishes on its own."""
        subscription = self._subscriptions.pop(identifier, None)
        if subscription is None:
            return False
        self.scheduler.remove_job(subscription.job_id)
        logger.debug(f"Stopped polling '{identifier}'")
        return True

    def stop_all(self) -> bool:
        if not self._subscriptions:
            return False
        for identifier in list(self._subscriptions):
            self.stop(identifier)
        return True

    async def aclose(self) -> None:
        self.stop_all()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        await self._client.aclose()

    async def __aenter__(self) -> "Poller":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
