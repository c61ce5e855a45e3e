import asyncio
import os
import tempfile

_tmpdir = tempfile.mkdtemp(prefix="qrify-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmpdir}/test.db"
os.environ["GEOLOCATION_ENABLED"] = "false"
os.environ["PUBLIC_BASE_URL"] = "http://qr.test"

import pytest
from httpx import ASGITransport, AsyncClient

from app.db.postgres import engine, Base, AsyncSessionLocal
from app.main import app
from app.models.user import User
from app.security import get_password_hash
from app.services.geolocation import LocationData
from app.services.scan_recorder import ScanRecorder


@pytest.fixture
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def db(database):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def client(database):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://qr.test") as ac:
        yield ac


class FakeGeolocator:
    """Stands in for GeolocationResolver; optionally blocks until released."""

    def __init__(self, location: LocationData | None = None, block: bool = False):
        self.location = location or LocationData(country="Germany", city="Berlin", region="Berlin")
        self.release = asyncio.Event()
        if not block:
            self.release.set()
        self.calls: list[str | None] = []

    async def resolve(self, ip):
        self.calls.append(ip)
        await self.release.wait()
        return self.location


@pytest.fixture
async def recorder(database):
    rec = ScanRecorder(AsyncSessionLocal, FakeGeolocator())
    app.state.scan_recorder = rec
    yield rec
    await rec.stop()
    del app.state.scan_recorder


async def make_user(db, email: str, role: str = "admin", invited_by: User | None = None, user_id: str | None = None) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash("password123"),
        role=role,
        invited_by_id=invited_by.id if invited_by else None,
        email_verified=True,
    )
    if user_id:
        user.id = user_id
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def register(client: AsyncClient, email: str, password: str = "password123") -> dict:
    resp = await client.post("/api/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
