"""Test configuration and fixtures"""

from datetime import datetime, timedelta
from typing import Any, Dict, List

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tablebook.api.deps import get_clock, get_notifier, get_payment_gateway
from tablebook.config import Settings
from tablebook.database import Base, get_db
from tablebook.engine.booking import BookingService
from tablebook.engine.errors import PaymentProcessorError
from tablebook.engine.notifier import Notifier
from tablebook.engine.settings_store import save_restaurant_config
from tablebook.engine.waitlist import WaitlistManager
from tablebook.gateways.base import PaymentGateway, ProcessorIntent, ProcessorRefund
from tablebook.models.table import RestaurantTable
from tablebook.schemas.settings import RestaurantConfig
import tablebook.models  # noqa: F401


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Monday 2026-06-01, 12:00 in New York
NOW = datetime(2026, 6, 1, 16, 0)

WEBHOOK_SECRET = "whsec_test"


class FrozenClock:
    """Clock that only moves when a test advances it"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int = 1) -> None:
        self.now = self.now + timedelta(minutes=minutes)


class FakeGateway(PaymentGateway):
    """In-memory processor with the same intent states as Stripe"""

    def __init__(self):
        self.intents: Dict[str, ProcessorIntent] = {}
        self.manual: Dict[str, bool] = {}
        self.calls: List[tuple] = []
        self.failing: set = set()
        self._counter = 0

    def _fail(self, operation: str) -> None:
        if operation in self.failing:
            raise PaymentProcessorError(f"Payment processor error during {operation}", operation=operation)

    def authorize(self, intent_id: str) -> ProcessorIntent:
        """Simulate the guest completing payment client-side"""
        intent = self.intents[intent_id]
        if intent.status != "requires_payment_method":
            return intent
        if self.manual[intent_id]:
            intent.status = "requires_capture"
            intent.amount_capturable = intent.amount
        else:
            intent.status = "succeeded"
            intent.amount_received = intent.amount
        return intent

    async def create_intent(self, amount, currency, manual_capture, metadata, idempotency_key):
        self.calls.append(("create", idempotency_key))
        self._fail("create_intent")
        self._counter += 1
        intent_id = f"pi_test_{self._counter}"
        intent = ProcessorIntent(
            id=intent_id,
            status="requires_payment_method",
            amount=amount,
            currency=currency,
            client_secret=f"{intent_id}_secret",
        )
        self.intents[intent_id] = intent
        self.manual[intent_id] = manual_capture
        return intent.model_copy()

    async def retrieve_intent(self, intent_id):
        self.calls.append(("retrieve", intent_id))
        self._fail("retrieve_intent")
        return self.intents[intent_id].model_copy()

    async def capture_intent(self, intent_id, amount, idempotency_key):
        self.calls.append(("capture", idempotency_key))
        intent = self.intents[intent_id]
        if "capture_intent" in self.failing:
            raise PaymentProcessorError("Payment processor error during capture_intent")
        if intent.status != "requires_capture":
            raise PaymentProcessorError("Intent is not capturable", processor_status=intent.status)
        intent.status = "succeeded"
        intent.amount_received = amount or intent.amount
        intent.amount_capturable = 0
        return intent.model_copy()

    async def cancel_intent(self, intent_id):
        self.calls.append(("cancel", intent_id))
        intent = self.intents[intent_id]
        if "cancel_intent" in self.failing:
            raise PaymentProcessorError("Payment processor error during cancel_intent")
        intent.status = "canceled"
        return intent.model_copy()

    async def refund_intent(self, intent_id, amount, idempotency_key):
        self.calls.append(("refund", idempotency_key))
        self._fail("refund_intent")
        intent = self.intents[intent_id]
        return ProcessorRefund(id=f"re_{intent_id}", status="succeeded", amount=amount or intent.amount_received)

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)


class RecordingNotifier(Notifier):
    """Collects notifications instead of queueing them"""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    def send(self, template, to, variables, reservation_id=None, waitlist_entry_id=None):
        self.sent.append({"template": template, "to": to, "variables": variables})

    @property
    def templates(self) -> List[str]:
        return [message["template"] for message in self.sent]


def make_config(**overrides) -> RestaurantConfig:
    data: Dict[str, Any] = {
        "restaurant_name": "Test Bistro",
        "timezone": "America/New_York",
        "open_time": "17:00",
        "close_time": "22:00",
        "slot_interval": 30,
        "last_seating_buffer_min": 30,
        "max_covers_per_slot": 20,
        "max_party_size": 10,
        "dining_durations": {2: 90, 4: 120, 6: 150},
        "default_duration_min": 90,
    }
    data.update(overrides)
    return RestaurantConfig.model_validate(data)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def config() -> RestaurantConfig:
    return make_config()


@pytest.fixture
async def session_factory():
    """Create test database"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def booking(test_db, config, gateway, notifier, clock) -> BookingService:
    return BookingService(test_db, config, gateway, notifier, clock)


@pytest.fixture
def waitlist(test_db, config, notifier, clock) -> WaitlistManager:
    return WaitlistManager(test_db, config, notifier, clock)


@pytest.fixture
async def tables(test_db) -> Dict[str, RestaurantTable]:
    """Create test tables"""
    rows = {
        "T2": RestaurantTable(name="T2", min_capacity=1, max_capacity=2, sort_order=1),
        "T4": RestaurantTable(name="T4", min_capacity=2, max_capacity=4, sort_order=2),
        "T6": RestaurantTable(name="T6", min_capacity=4, max_capacity=6, sort_order=3),
    }
    test_db.add_all(rows.values())
    await test_db.commit()
    return rows


@pytest.fixture
def settings() -> Settings:
    return Settings(stripe_webhook_secret=WEBHOOK_SECRET, twilio_auth_token="", log_format="console")


@pytest.fixture
def app(settings, session_factory, gateway, notifier, clock):
    """Application wired to the test database and in-memory collaborators"""
    from tablebook.main import create_app

    application = create_app(settings)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_clock] = lambda: clock
    application.dependency_overrides[get_payment_gateway] = lambda: gateway
    application.dependency_overrides[get_notifier] = lambda: notifier
    return application


@pytest.fixture
async def stored_config(test_db, config) -> RestaurantConfig:
    """Persist the restaurant configuration the API loads"""
    return await save_restaurant_config(test_db, config, updated_by="fixture")


@pytest.fixture
async def client(app, stored_config):
    """Create unauthenticated test client"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def staff_token(settings) -> str:
    return jwt.encode(
        {"sub": "staff-1", "name": "Host Stand", "role": "host", "type": "access"},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


@pytest.fixture
async def authenticated_client(app, stored_config, staff_token):
    """Create authenticated test client"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {staff_token}"},
    ) as ac:
        yield ac


def request_payload(
    day: str = "2026-06-05",
    time: str = "19:00",
    party_size: int = 2,
    phone: str = "+1 (555) 123-4567",
    name: str = "Ada Guest",
    **extra,
) -> Dict[str, Any]:
    return {
        "guest_name": name,
        "guest_phone": phone,
        "party_size": party_size,
        "date": day,
        "time": time,
        **extra,
    }
