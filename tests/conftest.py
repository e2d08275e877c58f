import itertools
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789-abcdefghijklmnop")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from family_taxi.core.database import Base, get_db
from family_taxi.core.security import create_access_token
from family_taxi.main import app
from family_taxi.models.user import UserRole
from family_taxi.repositories.users import UserRepository
from family_taxi.services.accounts import create_account

PASSWORD = "secret123"

# Hoan Kiem -> West Lake, about 5 km
PICKUP = (21.03, 105.85)
DESTINATION = (21.05, 105.90)

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

@pytest.fixture
def create_user(session_factory):
    """Factory creating a user directly in the database."""
    counter = itertools.count(1)

    async def _create(role=UserRole.PASSENGER, latitude=None, longitude=None, is_online=False, username=None):
        n = next(counter)
        async with session_factory() as session:
            user = await create_account(
                session,
                username=username or f"{role.value}{n}",
                password=PASSWORD,
                role=role,
                full_name=f"Test {role.value.title()} {n}",
                email=f"{role.value}{n}@example.com",
                phone="0123456789"
            )
            users = UserRepository(session)
            if latitude is not None and longitude is not None:
                user = await users.update_location(user.id, latitude, longitude)
            if is_online:
                user = await users.set_online(user.id, True)
            await session.commit()
        return user

    return _create

@pytest.fixture
def auth():
    """Build Authorization headers for a user."""
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers

@pytest.fixture
def passenger_factory(create_user):
    async def _create(**kwargs):
        return await create_user(UserRole.PASSENGER, **kwargs)
    return _create

@pytest.fixture
def driver_factory(create_user):
    """Online driver parked next to the default pickup unless told otherwise."""
    async def _create(latitude=21.031, longitude=105.851, is_online=True, **kwargs):
        return await create_user(
            UserRole.DRIVER, latitude=latitude, longitude=longitude, is_online=is_online, **kwargs
        )
    return _create

@pytest.fixture
def trip_payload():
    def _payload(pickup=PICKUP, destination=DESTINATION, **overrides):
        payload = {
            "pickup_address": "12 Trang Tien, Hoan Kiem",
            "pickup_latitude": pickup[0],
            "pickup_longitude": pickup[1],
            "destination_address": "614 Lac Long Quan, Tay Ho",
            "destination_latitude": destination[0],
            "destination_longitude": destination[1],
            "distance": 5.0,
            "base_fare": 5.0,
            "per_km_rate": 1.5,
        }
        payload.update(overrides)
        return payload
    return _payload

@pytest.fixture
def request_trip(client, auth, trip_payload):
    """Create a trip as ``passenger`` through the API and return its JSON."""
    async def _request(passenger, **kwargs):
        response = await client.post("/api/v1/trips", json=trip_payload(**kwargs), headers=auth(passenger))
        assert response.status_code == 201, response.text
        return response.json()
    return _request
