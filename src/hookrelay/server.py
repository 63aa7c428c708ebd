"""Running the relay: the HTTP server lifecycle, the operator console and the CLI."""
from __future__ import annotations

import argparse
import asyncio
import sys
import threading
import time
from concurrent import futures
from typing import Iterable, List, Optional, TextIO, Tuple

import uvicorn
from fastapi import FastAPI
from loguru import logger

from hookrelay.config import Settings, get_settings
from hookrelay.errors import InvalidPort
from hookrelay.main import create_app
from hookrelay.outbound import public_ip
from hookrelay.utilities import configure_logging


class RelayServer:
    """
    Serves one app with start/stop/restart.

    All servers run on a single background event loop so the broker's asyncio
    locks stay bound to one loop across restarts.
    """

    def __init__(self, app: FastAPI, host: str, port: int, timeout: float = 5.0):
        self.app = app
        self.host = host
        self.port = port
        self.timeout = timeout
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_thread: Optional[threading.Thread] = None
        self._server: Optional[uvicorn.Server] = None
        self._serving: Optional[futures.Future] = None

    @property
    def running(self) -> bool:
        return self._serving is not None and not self._serving.done()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.new_event_loop()
            self._loop_thread = threading.Thread(
                target=self._loop.run_forever, name="hookrelay-loop", daemon=True
            )
            self._loop_thread.start()
        return self._loop

    async def _serve(self, server: uvicorn.Server) -> None:
        # uvicorn exits the process when it cannot bind; keep the loop alive instead
        try:
            await server.serve()
        except SystemExit as e:
            logger.error(f"Relay could not serve on {self.host}:{self.port} (exit code {e.code})")

    def _wait_started(self) -> bool:
        deadline = time.monotonic() + self.timeout
        while time.monotonic() < deadline:
            if self._server.started:
                return True
            if self._serving.done():
                return False
            time.sleep(0.01)
        return self._server.started

    def start(self) -> bool:
        if self.running:
            return False
        config = uvicorn.Config(self.app, host=self.host, port=self.port, log_level="warning")
        self._server = uvicorn.Server(config)
        self._serving = asyncio.run_coroutine_threadsafe(self._serve(self._server), self._ensure_loop())
        if not self._wait_started():
            logger.error(f"Relay failed to start on {self.host}:{self.port}")
            self._server.should_exit = True
            self._finish()
            self._server = None
            self._serving = None
            return False
        logger.info(f"Relay listening on {self.host}:{self.port}")
        return True

    def _finish(self) -> None:
        try:
            self._serving.result(timeout=self.timeout)
        except futures.TimeoutError:
            logger.warning(f"Relay on {self.host}:{self.port} did not shut down within {self.timeout}s")

    def stop(self) -> bool:
        if not self.running:
            return False
        self._server.should_exit = True
        self._finish()
        self._server = None
        self._serving = None
        logger.info("Relay stopped")
        return True

    def restart(self) -> bool:
        self.stop()
        return self.start()

    def wait(self) -> None:
        if self._serving is not None:
            self._serving.result()

    def close(self) -> None:
        self.stop()
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._loop_thread.join()
            self._loop.close()
            self._loop = None
            self._loop_thread = None


# -------------- Operator console --------------
QUIT = ("q", "quit", "exit")
STOP = ("stop", "shutdown")
START = ("start", "boot")
RESTART = ("restart", "reboot")
DEBUG = ("d", "debug")


def run_console(server: RelayServer, lines: Iterable[str], out: TextIO = sys.stdout) -> None:
    """Apply operator commands until 'quit' or the input ends."""
    for line in lines:
        command = line.strip().lower()
        if not command:
            continue
        if command in QUIT:
            server.stop()
            print("Server stopped!", file=out)
            return
        elif command in STOP:
            server.stop()
            print("Server stopped!", file=out)
        elif command in START:
            print("Server started!" if server.start() else "Server could not be started!", file=out)
        elif command in RESTART:
            print("Server restarted!" if server.restart() else "Server could not be restarted!", file=out)
        elif command in DEBUG:
            server.app.state.debug = not server.app.state.debug
            print(f"Toggled Debug Mode to {server.app.state.debug}", file=out)
        else:
            print(f"Input not recognized: {line.strip()}", file=out)


def banner(settings: Settings, address: str) -> str:
    url = f"http://{address}:{settings.port}/{settings.url_suffix}"
    return "\n".join(
        [
            f"Running as a webhook relay (IP: {address} Port: {settings.port}).",
            f"Point the webhook caller at {url} using POST (content type does not matter).",
            "Body 'TRIGGER_<id> [text]' stores an event, 'GET_EVENTS_<id>' polls for the next one.",
            "Console: start|stop|restart|debug|quit",
        ]
    )


# -------------- CLI --------------
def parse_legacy_args(tokens: List[str]) -> Tuple[Optional[int], bool]:
    """Read the positional 'PORT' and 'debug' tokens, in any order."""
    port = None
    debug = False
    for token in tokens:
        try:
            value = int(token)
        except ValueError:
            if token.lower() == "debug":
                debug = True
            continue
        if value < 0 or value > 65535:
            raise InvalidPort(value)
        port = value
    return port, debug


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Webhook-to-poll relay server")
    parser.add_argument("args", nargs="*", help="Port number and/or 'debug'")
    parser.add_argument("--host", default=None, help="Interface to bind (default from settings)")
    parser.add_argument(
        "--no-console",
        action="store_true",
        help="Do not read operator commands from stdin; run until interrupted",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    try:
        port, debug = parse_legacy_args(args.args)
    except InvalidPort as e:
        print(e, file=sys.stderr)
        return 1

    update = {"debug": settings.debug or debug}
    if port is not None:
        update["port"] = port
    if args.host:
        update["host"] = args.host
    settings = settings.model_copy(update=update)

    configure_logging(settings.log_level)
    address = public_ip(settings)
    if address is None:
        logger.warning("No public IP address found, showing the bind address instead")
        address = settings.host
    print(banner(settings, address))

    server = RelayServer(create_app(settings), settings.host, settings.port)
    if not server.start():
        server.close()
        return 1
    try:
        if args.no_console:
            server.wait()
        else:
            run_console(server, sys.stdin)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    finally:
        server.close()
    return 0
