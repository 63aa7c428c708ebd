import asyncio

import httpx
import pytest

from hookrelay.client import CallbackHandler, Poller, as_handler
from hookrelay.config import Settings
from hookrelay.main import create_app
from hookrelay.models import Broker


def scripted_transport(bodies, seen=None):
    """Answer poll requests with ``bodies`` in order, then with empty bodies."""
    remaining = list(bodies)

    async def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request.content.decode())
        text = remaining.pop(0) if remaining else ""
        return httpx.Response(200, text=text)

    return httpx.MockTransport(handler)


class Recorder:
    def __init__(self, calls, name):
        self.calls = calls
        self.name = name

    def handle(self, identifier, payload):
        self.calls.append((self.name, identifier, payload))


@pytest.mark.asyncio
async def test_grab_event_posts_read_command():
    seen = []
    poller = Poller("relay.test", 8080, drain_pause_ms=0, transport=scripted_transport(["hello"], seen))

    assert poller.url == "http://relay.test:8080/requests"
    assert await poller.grab_event("abc") == "hello"
    assert await poller.grab_event("abc") is None
    assert seen == ["GET_EVENTS_abc", "GET_EVENTS_abc"]
    await poller.aclose()


@pytest.mark.asyncio
async def test_tick_drains_until_empty_global_handler_first():
    calls = []
    seen = []
    poller = Poller("relay.test", 8080, drain_pause_ms=0, transport=scripted_transport(["a", "b"], seen))
    poller.set_handler(Recorder(calls, "global"))
    poller.add_handler("abc", Recorder(calls, "abc"))

    await poller._tick("abc")

    assert calls == [
        ("global", "abc", "a"),
        ("abc", "abc", "a"),
        ("global", "abc", "b"),
        ("abc", "abc", "b"),
    ]
    assert len(seen) == 3
    await poller.aclose()


@pytest.mark.asyncio
async def test_handler_failure_aborts_only_the_current_tick():
    calls = []

    def flaky(identifier, payload):
        calls.append(payload)
        if payload == "boom":
            raise ValueError("handler broke")

    poller = Poller("relay.test", 8080, drain_pause_ms=0, transport=scripted_transport(["boom", "later", "", "next"]))
    poller.add_handler("abc", flaky)

    await poller._tick("abc")
    assert calls == ["boom"]

    # the next tick resumes with what the relay has queued
    await poller._tick("abc")
    await poller._tick("abc")
    assert calls == ["boom", "later", "next"]
    await poller.aclose()


@pytest.mark.asyncio
async def test_transport_failure_is_contained():
    async def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    calls = []
    poller = Poller("relay.test", 8080, transport=httpx.MockTransport(refuse))
    poller.set_handler(lambda identifier, payload: calls.append(payload))

    await poller._tick("abc")

    assert calls == []
    await poller.aclose()


@pytest.mark.asyncio
async def test_error_status_is_contained():
    async def not_found(request):
        return httpx.Response(404, text="Not recognized any commands!")

    calls = []
    poller = Poller("relay.test", 8080, transport=httpx.MockTransport(not_found))
    poller.set_handler(lambda identifier, payload: calls.append(payload))

    await poller._tick("abc")

    assert calls == []
    await poller.aclose()


@pytest.mark.asyncio
async def test_start_and_stop_lifecycle():
    poller = Poller("relay.test", 8080, transport=scripted_transport([]))

    assert poller.start("abc", 1000) is True
    assert poller.start("abc", 1000) is False
    assert poller.start("def", 1000) is True
    assert poller.running("abc")

    assert poller.stop("ghost") is False
    assert poller.running("abc") and poller.running("def")

    assert poller.stop("abc") is True
    assert not poller.running("abc")
    assert poller.running("def")
    assert [s.identifier for s in poller.subscriptions()] == ["def"]
    assert poller.subscriptions()[0].period_ms == 1000
    # a stopped identifier can be started again
    assert poller.start("abc", 500) is True
    assert poller.running("abc")

    assert poller.stop_all() is True
    assert poller.stop_all() is False
    await poller.aclose()


@pytest.mark.asyncio
async def test_start_many_uses_registered_handlers():
    poller = Poller("relay.test", 8080, transport=scripted_transport([]))

    assert poller.start_many(1000) is False

    poller.add_handler("abc", lambda i, p: None)
    poller.add_handler("def", lambda i, p: None)
    assert poller.start_many(1000) is True
    assert poller.running("abc") and poller.running("def")

    assert poller.start_many(1000, "xyz") is True
    assert poller.running("xyz")
    await poller.aclose()
    assert poller.subscriptions() == []


def test_handler_registry():
    poller = Poller("relay.test", 8080)
    func = lambda identifier, payload: None  # noqa: E731

    poller.add_handler("abc", func)
    handler = poller.get_handler("abc")

    assert isinstance(handler, CallbackHandler)
    assert handler.func is func
    assert poller.remove_handler("abc") is handler
    assert poller.remove_handler("abc") is None
    assert poller.handler is None


def test_as_handler_rejects_non_callables():
    with pytest.raises(TypeError):
        as_handler(42)


@pytest.mark.asyncio
async def test_subscription_delivers_event_to_both_handlers_once():
    broker = Broker()
    app = create_app(Settings(_env_file=None), broker)
    poller = Poller("relay.test", 80, drain_pause_ms=0, transport=httpx.ASGITransport(app=app))
    calls = []
    poller.set_handler(Recorder(calls, "global"))
    poller.add_handler("abc", Recorder(calls, "abc"))

    assert poller.start("abc", 100)
    await asyncio.sleep(0.05)
    await broker.ingest("abc", "hello")

    for _ in range(40):
        if len(calls) >= 2:
            break
        await asyncio.sleep(0.05)
    # a few more ticks must not repeat the event
    await asyncio.sleep(0.3)
    await poller.aclose()

    assert calls == [("global", "abc", "hello"), ("abc", "abc", "hello")]
