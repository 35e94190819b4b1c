import asyncio
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.database import get_db, Base
from app.core.security import create_access_token, hash_pin
from app.database_model.profile import Profile
from app.database_model.transaction import Transaction
from app.database_model.beneficiary import Beneficiary  # noqa: F401
from app.database_model.admin_setting import AdminSetting
from app.database_model.store import Product
from app.database_model.referral_reward import ReferralReward  # noqa: F401
from app.dependencies.gateway import get_service_gateway
from app.payment_model.abstract_gateway import AbstractServiceGateway, GatewayResult, GatewayErrorKind

# In-memory database shared by every session of a test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_PIN = "1234"


class FakeGateway(AbstractServiceGateway):
    """Gateway returning queued results and recording every request.

    A queued exception is raised instead of returned; ``on_submit`` runs
    before the result is handed back.
    """

    def __init__(self, results=None, on_submit=None, delay: float = 0):
        super().__init__({"name": "Fake Provider"})
        self.results = list(results or [])
        self.requests = []
        self.on_submit = on_submit
        self.delay = delay

    def queue(self, *results):
        self.results.extend(results)

    async def submit(self, request):
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.on_submit:
            await self.on_submit(request)
        if self.results:
            result = self.results.pop(0)
        else:
            result = GatewayResult.ok(reference=f"PROV-{request.reference}")
        if isinstance(result, Exception):
            raise result
        return result


def failed_result(kind: GatewayErrorKind, message: str = "Provider error") -> GatewayResult:
    return GatewayResult.failed(kind, message)


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest_asyncio.fixture
async def client(session_factory, fake_gateway):
    """Create a test client; every request gets its own session."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_service_gateway] = lambda: fake_gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_profile(db_session: AsyncSession):
    """Factory creating profiles directly in the database."""
    counter = {"n": 0}

    async def _make_profile(
        balance: float = 0.0,
        pin: str = TEST_PIN,
        referred_by: int = None,
        phone_number: str = "08031234567",
        is_admin: bool = False,
        **kwargs
    ) -> Profile:
        counter["n"] += 1
        n = counter["n"]
        pin_hash, pin_salt = hash_pin(pin) if pin else (None, None)
        profile = Profile(
            email=kwargs.pop("email", f"user{n}@example.com"),
            name=kwargs.pop("name", f"User {n}"),
            phone_number=phone_number,
            wallet_balance=balance,
            referral_code=kwargs.pop("referral_code", f"REF{n:05d}"),
            referred_by=referred_by,
            pin_hash=pin_hash,
            pin_salt=pin_salt,
            is_admin=is_admin,
            **kwargs
        )
        db_session.add(profile)
        await db_session.commit()
        await db_session.refresh(profile)
        return profile

    return _make_profile


@pytest_asyncio.fixture
async def test_profile(make_profile):
    """Profile with 1000 in the wallet and PIN 1234."""
    return await make_profile(balance=1000.0, email="test@example.com", name="Test User")


@pytest_asyncio.fixture
async def admin_profile(make_profile):
    return await make_profile(email="admin@example.com", name="Admin User", is_admin=True)


@pytest.fixture
def auth_headers(test_profile: Profile):
    """Create authorization headers for the test profile."""
    token = create_access_token(data={"sub": str(test_profile.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_auth_headers(admin_profile: Profile):
    token = create_access_token(data={"sub": str(admin_profile.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def set_setting(db_session: AsyncSession):
    """Write an admin setting straight to the database."""
    async def _set_setting(key: str, value: str):
        db_session.add(AdminSetting(key=key, value=value))
        await db_session.commit()

    return _set_setting


@pytest_asyncio.fixture
async def test_product(db_session: AsyncSession):
    product = Product(name="Haaman Power Bank", price=250.0, category="gadgets", in_stock=True, is_active=True)
    db_session.add(product)
    await db_session.commit()
    await db_session.refresh(product)
    return product


@pytest.fixture
def airtime_payload():
    return {"network": "MTN", "phone": "08031234567"}


async def add_transaction(db_session: AsyncSession, **values) -> Transaction:
    """Insert a ledger row directly."""
    values.setdefault("details", {})
    transaction = Transaction(**values)
    db_session.add(transaction)
    await db_session.commit()
    await db_session.refresh(transaction)
    return transaction
