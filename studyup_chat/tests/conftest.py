# studyup_chat/tests/conftest.py
import logging
import random
import string
from unittest.mock import AsyncMock, Mock

import pytest
from fakeredis import aioredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from studyup_chat.config import AppConfig
from studyup_chat.infrastructure import models
from studyup_chat.infrastructure.database import Base, create_database
from studyup_chat.infrastructure.unit_of_work import StoreTransaction
from studyup_chat.main import Application


@pytest.fixture(scope="function")
def app_config():
    return AppConfig(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        REDIS_HOST="localhost",
        REDIS_PORT=6379,
        SECRET_KEY="test_secret_key",
        PROJECT_NAME="Test StudyUp Realtime",
        API_V1_STR="/api/v1",
        ALGORITHM="HS256",
        ACCESS_TOKEN_EXPIRE_MINUTES=5,
        MESSAGE_PERSIST_TIMEOUT_SECONDS=5.0,
        CHAT_JOIN_REQUIRES_PARTICIPANT=True,
    )


@pytest.fixture
def test_logger():
    logger = logging.getLogger("test_realtime")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture(scope="function")
async def mock_redis():
    """Provide a fake Redis client for testing."""
    redis = aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture(scope="function")
async def engine(app_config):
    """In-memory SQLite shared by every session of a test."""
    engine = create_async_engine(
        app_config.DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def database(engine):
    return create_database(engine)


@pytest.fixture(scope="function")
async def application(app_config, engine, mock_redis):
    application = Application(config=app_config, engine=engine)
    application.redis_client.client = mock_redis
    return application


@pytest.fixture(scope="function")
async def app(application):
    return application.create_app()


@pytest.fixture(scope="function")
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def create_user(database, prefix: str, email: str | None = None) -> models.User:
    """Seeds a row as the identity service would; this service never creates users."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))
    async with database.session() as session:
        user = models.User(
            username=f"{prefix}_{suffix}",
            email=email or f"{prefix}_{suffix}@example.com",
        )
        session.add(user)
        await session.commit()
        return user


@pytest.fixture(scope="function")
async def alice(database):
    return await create_user(database, "alice")


@pytest.fixture(scope="function")
async def bob(database):
    return await create_user(database, "bob")


@pytest.fixture(scope="function")
async def carol(database):
    return await create_user(database, "carol")


@pytest.fixture(scope="function")
async def chat(database, alice, bob):
    """The conversation between alice and bob."""
    async with StoreTransaction(database) as store:
        return await store.chats.get_or_create_chat(alice.id, bob.id)


@pytest.fixture
def auth_header(application):
    def _auth_header(user: models.User) -> dict:
        token, _ = application.security_service.create_access_token(user.id)
        return {"Authorization": f"Bearer {token}"}

    return _auth_header


def make_websocket():
    websocket = Mock()
    websocket.send_json = AsyncMock()
    return websocket


def sent_frames(websocket) -> list[dict]:
    return [call.args[0] for call in websocket.send_json.call_args_list]


def sent_events(websocket, event: str) -> list:
    return [frame["data"] for frame in sent_frames(websocket) if frame["event"] == event]


@pytest.fixture
def handler(application):
    return application.connection_handler


@pytest.fixture
def open_connection(handler):
    """Opens a connection on the handler backed by a fake websocket."""

    def _open():
        return handler.connect(make_websocket())

    return _open


@pytest.fixture
def authenticated(handler, open_connection):
    async def _authenticated(user: models.User):
        connection = open_connection()
        assert await handler.authenticate(connection, user.id)
        return connection

    return _authenticated
