from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.alerts.services.notification_dispatcher import NotificationDispatcher
from src.api.inventory.models import CreateInventorySchema
from src.config.constants import Channels
from src.config.settings import Settings
from src.database.connection import create_all_tables, create_engine, create_session_factory
from src.dependencies.services import ServiceContainer


class FakeClock:
    """Controllable clock. Every reading moves time forward by a millisecond so rows keep their insertion order."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(milliseconds=1)
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class NotificationRecorder:
    def __init__(self):
        self.sent = []
        self.dispatcher = NotificationDispatcher(
            email=self._sender("email"),
            sms=self._sender("sms"),
            push=self._sender("push"),
            in_app=self._sender("in_app"),
            admin=self._sender("admin"),
        )

    def _sender(self, channel):
        async def send(recipient, product_name, message):
            self.sent.append((channel, recipient, product_name, message))

        return send

    def to(self, recipient):
        return [n for n in self.sent if n[1] == recipient]

    def on(self, channel):
        return [n for n in self.sent if n[0] == channel]


class EventRecorder:
    def __init__(self, broadcaster):
        self.messages = []
        for channel in Channels:
            broadcaster.subscribe(channel.value, self._handler(channel.value))

    def _handler(self, channel):
        async def handle(message):
            self.messages.append((channel, message))

        return handle

    def on(self, channel: Channels):
        return [m for c, m in self.messages if c == channel.value]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    settings = Settings()
    settings.ENABLE_BACKGROUND_JOBS = False
    return settings


@pytest.fixture
def notifications():
    return NotificationRecorder()


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'inventory.db'}")
    await create_all_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def services(engine, clock, test_settings, notifications):
    container = ServiceContainer(
        create_session_factory(engine),
        dispatcher=notifications.dispatcher,
        settings=test_settings,
        clock=clock,
    )
    await container.start()
    yield container
    await container.shutdown()


@pytest.fixture
def events(services):
    return EventRecorder(services.broadcaster)


@pytest.fixture
def inventory_service(services):
    return services.inventory_service


@pytest.fixture
def alert_service(services):
    return services.alert_service


@pytest.fixture
def seed(inventory_service):
    async def create(product_id: str, quantity: int, **kwargs):
        return await inventory_service.create_inventory(
            CreateInventorySchema(product_id=product_id, quantity=quantity, **kwargs)
        )

    return create


@pytest.fixture
async def client(services):
    from main import create_app

    app = create_app(lifespan_handler=None)
    app.state.services = services
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
