import os

# must be set before liveroom.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./liveroom_test.db")
os.environ.setdefault("ENVIRONMENT", "dev")

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from liveroom import Base
from liveroom.core import database
from liveroom.core.config import NotifyBackend, settings
from liveroom.core.notifications import notifier
from liveroom.core.redis import RedisManager
from liveroom.domains.activations.logic import ActivationKind
from liveroom.domains.activations.repository import create_template
from liveroom.domains.activations.schemas import OptionIn, TemplateCreate
from liveroom.domains.rooms.repository import create_participant, create_room
from liveroom.main import app
from liveroom.shared.utils.security import create_access_token


@pytest_asyncio.fixture
async def db(tmp_path):
    engine = database.init_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
    client = FakeRedis(decode_responses=True)
    RedisManager.set_client(client)
    try:
        yield client
    finally:
        await client.flushall()
        RedisManager.set_client(None)


@pytest.fixture(autouse=True)
def local_notifier(monkeypatch):
    monkeypatch.setattr(settings, "NOTIFY_BACKEND", NotifyBackend.LOCAL)
    notifier.subscriptions.clear()
    yield notifier
    notifier.subscriptions.clear()


@pytest.fixture
def events(local_notifier):
    """Collect every event published on the given channels"""
    received = []

    def listen(*channels):
        for channel in channels:
            async def handler(payload, channel=channel):
                received.append((channel, payload))

            local_notifier.subscribe(channel, handler)
        return received

    return listen


@pytest_asyncio.fixture
async def room(db):
    return await create_room("Test room", "ROOM01")


@pytest_asyncio.fixture
async def participants(room):
    return [await create_participant(room.id, name) for name in ("Ann", "Ben", "Cat")]


@pytest_asyncio.fixture
async def poll_template(room):
    template = await create_template(
        TemplateCreate(
            room_id=room.id,
            kind=ActivationKind.POLL,
            question="Favourite colour?",
            options=[OptionIn(text="Red"), OptionIn(text="Blue"), OptionIn(text="Green")],
        )
    )
    return template


@pytest_asyncio.fixture
async def quiz_template(room):
    return await create_template(
        TemplateCreate(
            room_id=room.id,
            kind=ActivationKind.MULTIPLE_CHOICE,
            question="2 + 2?",
            options=[OptionIn(text="4"), OptionIn(text="5")],
            correct_answer="4",
            time_limit=30,
        )
    )


@pytest.fixture
def operator_headers(room):
    token = create_access_token({"sub": "op-1", "rooms": [room.id]})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    token = create_access_token({"sub": "admin-1", "role": settings.ADMIN_ROLE})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def api_client(db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
