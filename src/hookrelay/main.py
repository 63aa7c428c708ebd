from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from loguru import logger

from hookrelay.config import Settings, get_settings
from hookrelay.models import Broker
from hookrelay.schemas import HealthResponse, IngestCommand
from hookrelay.utilities import make_ack, make_not_recognized, make_reply, parse_command


def build_broker(settings: Settings) -> Broker:
    return Broker(
        max_size=settings.max_size,
        max_event_age_ms=settings.max_event_age_ms,
        max_client_idle_ms=settings.max_client_idle_ms,
    )


def caller_address(request: Request) -> str:
    # cursors are keyed by host; the source port changes per connection
    return request.client.host if request.client else "unknown"


def create_app(settings: Optional[Settings] = None, broker: Optional[Broker] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Webhook relay")
    app.state.settings = settings
    app.state.broker = broker or build_broker(settings)
    app.state.debug = settings.debug
    app.state.started = datetime.now(timezone.utc)

    # -------------- Request endpoint --------------
    @app.post("/" + settings.url_suffix.strip("/"), response_class=PlainTextResponse)
    async def relay_request(request: Request):
        raw = (await request.body()).decode("utf-8", errors="replace")
        # line breaks are dropped, webhook senders often append one
        body = "".join(raw.splitlines())
        caller = caller_address(request)
        broker: Broker = request.app.state.broker

        command = parse_command(body)
        if command is None:
            status, text = make_not_recognized()
        elif isinstance(command, IngestCommand):
            await broker.ingest(command.identifier, command.payload)
            status, text = make_ack(body)
        else:
            payload = await broker.read(command.identifier, caller)
            status, text = make_reply(payload)

        if request.app.state.debug:
            logger.info(f"[SERVER] Request from '{caller}': \"{body}\", response: \"{text}\"")
        return PlainTextResponse(text, status_code=status)

    # -------------- Status endpoints --------------
    @app.get("/health", response_model=HealthResponse)
    async def rest_health(request: Request):
        broker: Broker = request.app.state.broker
        now = datetime.now(timezone.utc)
        uptime_sec = int((now - request.app.state.started).total_seconds())
        return HealthResponse(
            uptime_sec=uptime_sec,
            identifiers=len(await broker.identifiers()),
            clients=await broker.client_count(),
        )

    @app.get("/stats")
    async def rest_stats(request: Request):
        broker: Broker = request.app.state.broker
        return {"identifiers": await broker.stats()}

    return app
