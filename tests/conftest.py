"""
Pytest Configuration and Fixtures.

Tüm testlerde kullanılan ortak fixture'lar burada tanımlanır.
Testler dosya tabanlı SQLite (aiosqlite) üzerinde çalışır; her test temiz şema ile başlar.
"""
import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Test environment variables - app import edilmeden önce ayarlanmalı
_DB_FILE = os.path.join(tempfile.gettempdir(), f"cagri_test_{os.getpid()}.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_FILE}"
os.environ["SECRET_KEY"] = "test-secret-key-for-hs256-signing"
os.environ["ENVIRONMENT"] = "testing"
os.environ["DEBUG"] = "false"
os.environ["SENTRY_DSN"] = ""
os.environ["RUN_DB_INIT"] = "false"
os.environ["DB_RETRY_WAIT_MIN"] = "0"
os.environ["DB_RETRY_WAIT_MULTIPLIER"] = "0"

import pytest
from httpx import ASGITransport, AsyncClient

from src.core.database import async_session_maker, drop_db, init_db
from src.core.security import create_access_token
from src.modules.balance.schemas import TopUpRequest
from src.modules.balance.service import BalanceService
from src.modules.marketplace.schemas import JobCreate
from src.modules.marketplace.service import JobService, MarketplaceSettingsService


@pytest.fixture(autouse=True)
async def database():
    """Create tables and seed marketplace settings for every test."""
    await drop_db()
    await init_db()
    async with async_session_maker() as session:
        await MarketplaceSettingsService(session).seed_defaults()
    yield
    await drop_db()


@pytest.fixture
async def db_session():
    """Async database session."""
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def job_service(db_session) -> JobService:
    return JobService(db_session)


@pytest.fixture
def balance_service(db_session) -> BalanceService:
    return BalanceService(db_session)


@pytest.fixture
def seller_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def buyer_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def other_buyer_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def admin_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def fund():
    """Top up a user's balance in its own session."""

    async def _fund(user_id: uuid.UUID, amount: Decimal | str | int) -> None:
        async with async_session_maker() as session:
            await BalanceService(session).top_up(
                TopUpRequest(user_id=user_id, amount=Decimal(str(amount)))
            )

    return _fund


@pytest.fixture
def job_data():
    """Factory for job creation payloads (scenario 1 pricing by default)."""

    def _job_data(**overrides) -> JobCreate:
        data = {
            "from_location": "İstanbul Havalimanı",
            "to_location": "Taksim",
            "vehicle_type": "vito",
            "job_datetime": datetime.now(timezone.utc) + timedelta(days=1),
            "customer_total": Decimal("2500"),
            "buyer_profit": Decimal("1500"),
            "payment_type": "cash",
            "buyer_phone": "+90 532 123 45 67",
        }
        data.update(overrides)
        return JobCreate(**data)

    return _job_data


def auth_headers_for(user_id: uuid.UUID, role: str = "authenticated") -> dict[str, str]:
    """Bearer token the identity provider would issue for this user."""
    token = create_access_token(
        subject=str(user_id),
        extra_claims={"email": f"{user_id.hex[:8]}@example.com", "app_metadata": {"role": role}},
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers_for


@pytest.fixture
def seller_headers(seller_id) -> dict[str, str]:
    return auth_headers_for(seller_id)


@pytest.fixture
def buyer_headers(buyer_id) -> dict[str, str]:
    return auth_headers_for(buyer_id)


@pytest.fixture
def admin_headers(admin_id) -> dict[str, str]:
    return auth_headers_for(admin_id, role="admin")


@pytest.fixture
async def client():
    from src.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
