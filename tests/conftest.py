import os

# Must be in place before any stall module reads settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("OPT_LOCK_BASE_DELAY_MS", "1")
os.environ.setdefault("OPT_LOCK_MAX_DELAY_MS", "5")
os.environ.setdefault("OPT_LOCK_JITTER_MS", "1")

import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from stall.core.redis_client import set_redis
from stall.core.slot_allocator import SlotAllocator, TimeSlot
from stall.db.database import Base, get_db
from stall.main import app
from stall.models.product import Product

STUDENT_ID = "student-001"

MENU = [
    {"id": "katsudon", "name": "Katsudon", "price": 550},
    {"id": "curry", "name": "Curry rice", "price": 480},
    {"id": "miso", "name": "Miso soup", "price": 100, "category": "side"},
    {"id": "tendon", "name": "Tendon", "price": 600, "is_active": False},
]


class FakePaymentGateway:
    """Answers payment lookups from a dict; unknown payments are still CREATED."""

    def __init__(self):
        self.statuses: dict[str, str] = {}
        self.lookups: list[str] = []
        self.failure: Exception | None = None

    async def get_payment_status(self, merchant_payment_id: str) -> str:
        self.lookups.append(merchant_payment_id)
        if self.failure is not None:
            raise self.failure
        return self.statuses.get(merchant_payment_id, "CREATED")


def make_token(sub: str, is_admin: bool = False) -> str:
    return jwt.encode({"sub": sub, "is_admin": is_admin}, "test-secret", algorithm="HS256")


@pytest.fixture
def allocator() -> SlotAllocator:
    return SlotAllocator([
        TimeSlot(id="slot-1210", time="12:10", capacity=3, available=3),
        TimeSlot(id="slot-1220", time="12:20", capacity=1, available=1),
    ])


@pytest_asyncio.fixture
async def sessionmaker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/stall.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(sessionmaker):
    async with sessionmaker() as session:
        yield session


@pytest_asyncio.fixture
async def menu(sessionmaker):
    async with sessionmaker() as session:
        session.add_all([Product(**entry) for entry in MENU])
        await session.commit()
    return MENU


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest_asyncio.fixture
async def fake_redis():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    set_redis(client)
    yield client
    set_redis(None)


@pytest_asyncio.fixture
async def client(sessionmaker, menu, allocator, payment_gateway, fake_redis):
    async def _session():
        async with sessionmaker() as session:
            yield session

    app.dependency_overrides[get_db] = _session
    app.state.allocator = allocator
    app.state.payment_gateway = payment_gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def token_for():
    return make_token


@pytest.fixture
def student_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(STUDENT_ID)}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token('staff-01', is_admin=True)}"}
