import asyncio
from typing import List, Optional

import pytest

from provider_dispatch.config.settings import DispatchConfig
from provider_dispatch.devices.audio import AudioPlayer
from provider_dispatch.devices.background import BackgroundAlertBridge
from provider_dispatch.devices.haptics import Vibrator
from provider_dispatch.exceptions import ResourceUnavailableError
from provider_dispatch.models.enums import JobStatus
from provider_dispatch.models.schemas import JobRecord
from provider_dispatch.services.alert_backends import BackgroundServiceBackend, InProcessAlertBackend
from provider_dispatch.services.callback_registry import OfferCallbackRegistry
from provider_dispatch.services.claim_resolver import ClaimResolver
from provider_dispatch.services.offer_announcer import OfferAnnouncer
from provider_dispatch.services.realtime_transport import RealtimeTransport
from provider_dispatch.stores.memory_store import InMemoryJobStore


class FakeSocket:
    """Stand-in for socketio.AsyncClient with the same handler table."""

    def __init__(self, fail_connects: int = 0):
        self.handlers = {}
        self.connected = False
        self.fail_connects = fail_connects
        self.connect_calls = []
        self.emitted = []
        self.disconnect_calls = 0

    def on(self, event, handler=None, namespace=None):
        self.handlers.setdefault(namespace or "/", {})[event] = handler

    async def connect(self, url, **kwargs):
        self.connect_calls.append((url, kwargs))
        if self.fail_connects > 0:
            self.fail_connects -= 1
            raise ConnectionError("Connection refused")
        self.connected = True
        await self.trigger("connect")

    async def emit(self, event, data=None):
        self.emitted.append((event, data))

    async def disconnect(self):
        self.disconnect_calls += 1
        was_connected = self.connected
        self.connected = False
        if was_connected:
            await self.trigger("disconnect", "client disconnect")

    async def trigger(self, event, *args):
        handler = self.handlers.get("/", {}).get(event)
        if handler is not None:
            return await handler(*args)

    async def drop(self):
        """Simulate the server closing the connection."""
        self.connected = False
        await self.trigger("disconnect", "transport close")

    def joins(self):
        return [data for event, data in self.emitted if event == "join-provider-room"]


class SocketFactory:
    def __init__(self):
        self.sockets: List[FakeSocket] = []
        self.fail_connects = 0

    def __call__(self):
        sock = FakeSocket(fail_connects=self.fail_connects)
        self.sockets.append(sock)
        return sock

    @property
    def last(self) -> Optional[FakeSocket]:
        return self.sockets[-1] if self.sockets else None


class FakeAudioPlayer(AudioPlayer):
    def __init__(self, fail_load: bool = False, play_delay: float = 0.0):
        self.fail_load = fail_load
        self.play_delay = play_delay
        self.ready = False
        self.loads = 0
        self.plays = 0
        self.stops = 0
        self.released = False

    async def load(self):
        self.loads += 1
        if self.fail_load:
            raise ResourceUnavailableError("alert sound")
        self.ready = True

    def is_ready(self):
        return self.ready

    async def play(self):
        if self.play_delay:
            await asyncio.sleep(self.play_delay)
        self.plays += 1

    async def stop(self):
        self.stops += 1

    async def release(self):
        self.released = True
        self.ready = False


class FakeVibrator(Vibrator):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.patterns = []

    async def vibrate(self, pattern):
        self.patterns.append(list(pattern))
        if self.fail:
            raise RuntimeError("vibrator unavailable")


class FakeBridge(BackgroundAlertBridge):
    def __init__(self, available: bool = True, fail_start: bool = False, fail_stop: bool = False):
        self.available = available
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.starts = 0
        self.stops = 0
        self.ringing = False

    def is_available(self):
        return self.available

    async def start_alert(self, offer=None):
        self.starts += 1
        if self.fail_start:
            raise RuntimeError("foreground service refused to start")
        self.ringing = True

    async def stop_alert(self):
        self.stops += 1
        if self.fail_stop:
            raise RuntimeError("foreground service refused to stop")
        self.ringing = False


def make_config(**overrides) -> DispatchConfig:
    values = dict(
        socket_url="http://dispatch.test",
        reconnect_attempts=3,
        reconnect_base_delay=0.01,
        reconnect_max_delay=0.02,
        alert_interval=0.05,
        alert_load_poll_interval=0.01,
        alert_load_timeout=0.05,
        late_offer_ttl=1.0,
    )
    values.update(overrides)
    return DispatchConfig(_env_file=None, **values)


def booking(job_id="job-1", **extra):
    payload = {
        "consultationId": job_id,
        "patientId": "cust-1",
        "patientName": "Asha",
        "serviceType": "plumbing",
        "consultationFee": "450",
    }
    payload.update(extra)
    return payload


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def store():
    store = InMemoryJobStore()
    store.add(JobRecord(id="job-1", status=JobStatus.PENDING.value, customer_id="cust-1", service_type="plumbing"))
    return store


@pytest.fixture
def player():
    return FakeAudioPlayer()


@pytest.fixture
def vibrator():
    return FakeVibrator()


@pytest.fixture
def registry():
    return OfferCallbackRegistry()


@pytest.fixture
def in_process(player, vibrator):
    return InProcessAlertBackend(
        player, vibrator, interval=0.05, load_poll_interval=0.01, load_timeout=0.05
    )


@pytest.fixture
def announcer(in_process):
    return OfferAnnouncer(in_process)


@pytest.fixture
def socket_factory():
    return SocketFactory()


@pytest.fixture
def transport(config, registry, announcer, socket_factory):
    return RealtimeTransport(config, registry, announcer, socket_factory=socket_factory)


@pytest.fixture
def resolver(store):
    return ClaimResolver(store)


@pytest.fixture
def bridge():
    return FakeBridge()


@pytest.fixture
def background(bridge):
    return BackgroundServiceBackend(bridge)
