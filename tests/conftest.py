import httpx
import pytest
import pytest_asyncio

from hookrelay.config import Settings
from hookrelay.main import create_app
from hookrelay.models import Broker


class FakeClock:
    """Monotonic clock the tests move by hand, in milliseconds."""

    def __init__(self, start: float = 1.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000.0


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def broker(clock):
    return Broker(max_size=100, max_event_age_ms=5000, max_client_idle_ms=60000, clock=clock)


@pytest.fixture
def app(settings, broker):
    return create_app(settings, broker)


@pytest_asyncio.fixture
async def relay(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://relay.test") as client:
        yield client
