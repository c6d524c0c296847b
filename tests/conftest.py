import os
import tempfile
from datetime import timedelta

_db_dir = tempfile.mkdtemp()
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["FRONTEND_BASE_URL"] = "http://localhost:5173"
os.environ["REDIS_URL"] = "redis://localhost:6379/0"

import fakeredis
import pytest
from httpx import ASGITransport, AsyncClient

from app.core.database import Base, SessionLocal, engine
from app.core.init_db import init_db
from app.core.redis_lifecyle import get_redis_client
from app.core.security import create_access_token
from app.main import app
from app.models import Trip, TripParticipant, User
from app.utils.clock import utcnow


class FakeClock:
    def __init__(self, start=None):
        self.now = start or utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def _auth_headers(user) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
async def database():
    await init_db()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def seed():
    """Session used only to create fixture rows."""
    async with SessionLocal() as db:
        yield db


@pytest.fixture
async def db():
    """Session handed to the code under test."""
    async with SessionLocal() as session:
        yield session


@pytest.fixture
def make_user(seed):
    async def _make(username: str) -> User:
        user = User(email=f"{username}@example.com", username=username)
        seed.add(user)
        await seed.commit()
        await seed.refresh(user)
        return user
    return _make


@pytest.fixture
def make_trip(seed):
    async def _make(owner: User, title: str = "Lisbon long weekend") -> Trip:
        trip = Trip(title=title, destination="Lisbon", description="Pasteis and trams", owner_id=owner.id)
        seed.add(trip)
        await seed.commit()
        await seed.refresh(trip)
        return trip
    return _make


@pytest.fixture
def add_participant(seed):
    async def _add(trip: Trip, user: User) -> TripParticipant:
        participant = TripParticipant(trip_id=trip.id, user_id=user.id)
        seed.add(participant)
        await seed.commit()
        return participant
    return _add


@pytest.fixture
async def owner(make_user):
    return await make_user("owner")


@pytest.fixture
async def trip(make_trip, owner):
    return await make_trip(owner)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def fake_redis():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    await client.flushall()
    yield client


@pytest.fixture
async def client(fake_redis):
    async def _redis():
        yield fake_redis

    app.dependency_overrides[get_redis_client] = _redis
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return _auth_headers
