"""
Centralized Test Configuration.
"""

import asyncio
from collections import defaultdict

import pytest
from httpx import AsyncClient, ASGITransport
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from ridesafe.app.main import app
from ridesafe.app.db.session import get_db, Base
from ridesafe.app.core.jwt import create_access_token
import ridesafe.app.core.redis_client as redis_client_module
from ridesafe.app.models.enums import UserRole
from ridesafe.app.models.user import User
from ridesafe.app.models.emergency_contact import EmergencyContact
from ridesafe.app.realtime.change_feed import ChangeFeed
from ridesafe.app.services.fanout_invoker import LocalFanoutInvoker, get_fanout_invoker
from ridesafe.app.tracking.registry import TrackingRegistry, get_tracking_registry

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis (key/value + pub/sub) for reliability in CI/CD
class MockPubSub:
    def __init__(self, broker, ignore_subscribe_messages=False):
        self._broker = broker
        self.channels = set()
        self._queue = asyncio.Queue()
        self.closed = False

    async def subscribe(self, *channels):
        if self._broker.fail_subscribe:
            raise RedisConnectionError("subscribe refused")
        for channel in channels:
            self.channels.add(channel)
            self._broker.subscribers[channel].add(self)

    async def unsubscribe(self, *channels):
        for channel in channels or list(self.channels):
            self.channels.discard(channel)
            self._broker.subscribers[channel].discard(self)

    def deliver(self, message):
        self._queue.put_nowait(message)

    async def listen(self):
        while not self.closed:
            message = await self._queue.get()
            if message is None:
                break
            yield message

    async def aclose(self):
        await self.unsubscribe()
        self.closed = True
        self._queue.put_nowait(None)


class MockRedis:
    def __init__(self):
        self.store = {}
        self.subscribers = defaultdict(set)
        self.published = []
        self.fail_publish = False
        self.fail_subscribe = False
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def publish(self, channel, data):
        if self.fail_publish:
            raise RedisConnectionError("publish refused")
        self.published.append((channel, data))
        receivers = list(self.subscribers[channel])
        for pubsub in receivers:
            pubsub.deliver({"type": "message", "channel": channel, "data": data})
        return len(receivers)

    def pubsub(self, **kwargs):
        return MockPubSub(self, **kwargs)

    def subscriber_count(self, channel):
        return len(self.subscribers[channel])

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def feed(mock_redis):
    return ChangeFeed(mock_redis)


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
async def registry(feed):
    reg = TrackingRegistry(TestingSessionLocal, feed)
    yield reg
    await reg.stop_all()


@pytest.fixture(autouse=True)
def apply_overrides(mock_redis, registry):
    """Point the app at the test database, the mock Redis and the test registry."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_tracking_registry] = lambda: registry
    app.dependency_overrides[get_fanout_invoker] = lambda: LocalFanoutInvoker(TestingSessionLocal)
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    """Factory creating a user row."""
    async def _make_user(email: str, full_name: str = None, role: UserRole = UserRole.PASSENGER, is_active: bool = True) -> User:
        user = User(email=email, full_name=full_name, role=role, is_active=is_active)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return _make_user


@pytest.fixture
def make_contact(db_session):
    """Factory creating an emergency contact row."""
    async def _make_contact(user_id: int, name: str, phone: str, priority: int = 1, email: str = None) -> EmergencyContact:
        contact = EmergencyContact(user_id=user_id, name=name, phone=phone, priority=priority, email=email)
        db_session.add(contact)
        await db_session.commit()
        await db_session.refresh(contact)
        return contact
    return _make_contact


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        token = create_access_token(data={"sub": user.email, "user_id": user.id, "role": user.role.value})
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers


@pytest.fixture
def wait_until():
    """Poll a condition while letting background tasks run."""
    async def _wait_until(predicate, timeout: float = 1.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.01)
    return _wait_until
