"""
Shared fixtures: an in-memory database, fake external services and
factories for the objects most tests need.
"""

from datetime import datetime, date, time, timedelta
from decimal import Decimal
from typing import Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import detailing.models  # noqa: F401  register models on Base.metadata
from detailing.database import Base, get_db, get_redis
from detailing.integrations.paypal_client import PayPalClient
from detailing.integrations.resend_client import ResendClient
from detailing.main import app
from detailing.models.booking import (
    Booking,
    BookingStatus,
    PaymentStatus,
    BookingServiceItem,
)
from detailing.models.customer import CustomerVehicle, CustomerAddress
from detailing.models.service import Service, ServiceCategory, ServicePricing
from detailing.models.time_slot import TimeSlot
from detailing.models.user import UserProfile, UserRole
from detailing.utils.security import create_access_token, hash_password
from detailing.utils.time_validation import local_now

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "correct-horse-battery"


# =============================================================================
# Fakes
# =============================================================================

class FakePipeline:
    """Buffers commands and runs them together on execute()."""

    def __init__(self, redis):
        self.redis = redis
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.commands = []
        return False

    def set(self, *args, **kwargs):
        self.commands.append(("set", args, kwargs))
        return self

    def incr(self, *args, **kwargs):
        self.commands.append(("incr", args, kwargs))
        return self

    async def execute(self):
        results = [await getattr(self.redis, name)(*args, **kwargs) for name, args, kwargs in self.commands]
        self.commands = []
        self.redis.transactions += 1
        return results


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the rate limiter."""

    def __init__(self):
        self.values = {}
        self.ttls = {}
        self.transactions = 0

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.values:
            return None
        self.values[key] = int(value)
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def incr(self, key):
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def ttl(self, key):
        return self.ttls.get(key, -1)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.values.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


class SentEmails(list):
    """Emails captured instead of going to Resend."""

    def to(self, recipient: str):
        return [e for e in self if e["to"] == recipient]

    def subjects(self):
        return [e["subject"] for e in self]


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db(engine):
    """Session shared by the test and the app under test."""
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture outgoing email for every test."""
    sent = SentEmails()

    async def fake_send_email(self, to, subject, html, text=None, reply_to=None):
        sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return {"id": f"test_{len(sent)}"}

    monkeypatch.setattr(ResendClient, "send_email", fake_send_email)
    return sent


@pytest.fixture
def failing_resend(monkeypatch):
    """Every Resend call fails."""

    async def fail(self, to, subject, html, text=None, reply_to=None):
        raise RuntimeError("Resend unavailable")

    monkeypatch.setattr(ResendClient, "send_email", fail)


@pytest.fixture
def paypal(monkeypatch):
    """PayPal configured, with signature checks controlled by the test."""
    state = {"valid": True, "calls": 0}

    async def fake_verify(self, headers, event):
        state["calls"] += 1
        return state["valid"]

    monkeypatch.setattr(PayPalClient, "is_configured", property(lambda self: True))
    monkeypatch.setattr(PayPalClient, "verify_webhook_signature", fake_verify)
    return state


@pytest.fixture
async def client(db, fake_redis):
    """HTTP client for the app, wired to the test session and fake Redis."""

    async def override_get_db():
        yield db

    async def override_get_redis():
        return fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# =============================================================================
# Factories
# =============================================================================

def future_date(days: int = 3) -> date:
    return local_now().date() + timedelta(days=days)


@pytest.fixture
def make_user(db):
    async def factory(
        email: str = "jane@example.com",
        role: UserRole = UserRole.CUSTOMER,
        password: Optional[str] = TEST_PASSWORD,
        **kwargs,
    ) -> UserProfile:
        user = UserProfile(
            email=email,
            password_hash=hash_password(password) if password else None,
            first_name=kwargs.pop("first_name", "Jane"),
            last_name=kwargs.pop("last_name", "Doe"),
            role=role,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db.add(user)
        await db.commit()
        return user

    return factory


@pytest.fixture
async def customer(make_user):
    return await make_user()


@pytest.fixture
async def admin(make_user):
    return await make_user(email="admin@love4detailing.com", role=UserRole.ADMIN, first_name="Zell")


def auth_headers(user: UserProfile) -> dict:
    token = create_access_token(str(user.id), user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
async def service(db):
    """'Full Valet' priced for every size."""
    category = ServiceCategory(name="Valeting", display_order=1)
    service = Service(
        name="Full Valet",
        short_description="Inside and out",
        base_duration_minutes=120,
        category=category,
        is_active=True,
    )
    service.pricing = ServicePricing(
        small=Decimal("55.00"),
        medium=Decimal("60.00"),
        large=Decimal("65.00"),
        extra_large=Decimal("70.00"),
        is_active=True,
    )
    db.add(service)
    await db.commit()
    return service


@pytest.fixture
def make_slot(db):
    async def factory(
        slot_date: Optional[date] = None,
        start_time: time = time(10, 0),
        is_available: bool = True,
        booking_reference: Optional[str] = None,
    ) -> TimeSlot:
        slot = TimeSlot(
            slot_date=slot_date or future_date(),
            start_time=start_time,
            is_available=is_available,
            booking_reference=booking_reference,
        )
        db.add(slot)
        await db.commit()
        return slot

    return factory


@pytest.fixture
async def slot(make_slot):
    return await make_slot()


@pytest.fixture
def make_vehicle(db):
    async def factory(user: UserProfile, make: str = "Ford", model: str = "Focus", size: str = "M"):
        vehicle = CustomerVehicle(
            user_id=user.id, make=make, model=model, vehicle_size=size, is_primary=True, is_active=True
        )
        db.add(vehicle)
        await db.commit()
        return vehicle

    return factory


@pytest.fixture
def make_address(db):
    async def factory(user: UserProfile, postal_code: str = "SW9 8AB"):
        address = CustomerAddress(
            user_id=user.id,
            name="Home",
            address_line_1="1 Test Street",
            city="London",
            postal_code=postal_code,
            is_primary=True,
        )
        db.add(address)
        await db.commit()
        return address

    return factory


_reference_counter = iter(range(1000, 100000))


@pytest.fixture
def make_booking(db, service):
    """
    Insert a booking directly. When a slot is given it is marked booked
    against the booking's reference.
    """

    async def factory(
        customer: UserProfile,
        slot: Optional[TimeSlot] = None,
        status: BookingStatus = BookingStatus.PENDING,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        scheduled_date: Optional[date] = None,
        start_time: Optional[time] = None,
        total_price: Decimal = Decimal("60.00"),
        created_at: Optional[datetime] = None,
        payment_deadline: Optional[datetime] = None,
        **kwargs,
    ) -> Booking:
        reference = kwargs.pop("booking_reference", f"L4D-TEST-{next(_reference_counter)}")
        if slot is not None:
            scheduled_date = slot.slot_date
            start_time = slot.start_time
            slot.is_available = False
            slot.booking_reference = reference

        booking = Booking(
            booking_reference=reference,
            customer_id=customer.id,
            time_slot_id=slot.id if slot else None,
            scheduled_date=scheduled_date or future_date(),
            scheduled_start_time=start_time or time(10, 0),
            estimated_duration=120,
            status=status,
            payment_status=payment_status,
            payment_deadline=payment_deadline or datetime.utcnow() + timedelta(hours=48),
            payment_reminder_count=kwargs.pop("payment_reminder_count", 0),
            vehicle_size="M",
            base_price=total_price,
            distance_surcharge=Decimal("0.00"),
            total_price=total_price,
            vehicle_details={"make": "Ford", "model": "Focus", "size": "M"},
            service_address={"address_line_1": "1 Test Street", "postal_code": "SW9 8AB"},
            created_at=created_at or datetime.utcnow(),
            **kwargs,
        )
        booking.services = [
            BookingServiceItem(
                service_id=service.id,
                service_details={"name": service.name},
                price=total_price,
                estimated_duration=120,
            )
        ]
        db.add(booking)
        await db.commit()
        return booking

    return factory
