"""Shared fixtures: in-memory database, seeded tenant and patched notifications."""

from datetime import date, datetime, time, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from appointease.models import (
    Base,
    Business,
    Customer,
    CustomerAccessToken,
    Service,
    ServiceType,
    Staff,
    StaffAvailabilityWindow,
)
from appointease.schemas.scheduling import BookingIdentity, BookingRequest

MONDAY = 1


def upcoming_monday(weeks_ahead: int = 2) -> date:
    """A Monday safely in the future, so real-clock API calls still see it as bookable."""
    today = date.today()
    return today + timedelta(days=(7 - today.weekday()) % 7 + 7 * weeks_ahead)


@pytest.fixture
async def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def notifications():
    """Stand-in for the Celery task so no broker is contacted."""
    with patch(
        "appointease.services.notification.notification_service.send_appointment_notification"
    ) as task:
        yield task


@pytest.fixture
async def seeded(db):
    """
    One business with:
      - stylist: Monday 09:00-17:00
      - instructor: Monday 17:00-20:00
      - haircut: individual, 60 minutes
      - yoga: class, capacity 3, Mondays at 18:00
      - two customers, the first with an access token
    """
    monday = upcoming_monday()

    business = Business(name="Studio Uno", timezone="UTC")
    db.add(business)
    await db.flush()

    stylist = Staff(business_id=business.id, name="Ana Rojas", email="ana@example.com")
    instructor = Staff(business_id=business.id, name="Luis Soto")
    db.add_all([stylist, instructor])
    await db.flush()

    db.add_all([
        StaffAvailabilityWindow(
            staff_id=stylist.id, day_of_week=MONDAY,
            start_time=time(9, 0), end_time=time(17, 0), is_available=True,
        ),
        StaffAvailabilityWindow(
            staff_id=instructor.id, day_of_week=MONDAY,
            start_time=time(17, 0), end_time=time(20, 0), is_available=True,
        ),
    ])

    haircut = Service(
        business_id=business.id, name="Haircut", duration_minutes=60,
        capacity=1, service_type=ServiceType.INDIVIDUAL,
    )
    yoga = Service(
        business_id=business.id, name="Evening Yoga", duration_minutes=60,
        capacity=3, service_type=ServiceType.CLASS,
        recurring_days=[MONDAY], recurring_times=["18:00"], sessions_per_month=4,
    )
    db.add_all([haircut, yoga])

    customer = Customer(
        business_id=business.id, first_name="Carla", last_name="Diaz", email="carla@example.com"
    )
    other_customer = Customer(
        business_id=business.id, first_name="Pedro", last_name="Vega", email="pedro@example.com"
    )
    db.add_all([customer, other_customer])
    await db.flush()

    token = CustomerAccessToken(
        token="carla-token",
        customer_id=customer.id,
        business_id=business.id,
        expires_at=datetime.now(timezone.utc) + timedelta(days=1),
    )
    db.add(token)
    await db.commit()

    return SimpleNamespace(
        business=business,
        stylist=stylist,
        instructor=instructor,
        haircut=haircut,
        yoga=yoga,
        customer=customer,
        other_customer=other_customer,
        token=token,
        monday=monday,
        # Sunday morning before the seeded Monday
        now=datetime.combine(monday - timedelta(days=1), time(9, 0)),
    )


@pytest.fixture
def customer_identity(seeded):
    return BookingIdentity(
        business_id=seeded.business.id, customer_id=seeded.customer.id, actor="customer"
    )


@pytest.fixture
def business_identity(seeded):
    return BookingIdentity(business_id=seeded.business.id, user_id="owner-1", actor="business")


@pytest.fixture
def make_request(seeded):
    """Build a BookingRequest for the stylist's haircut at HH:MM on the seeded Monday."""

    # Plain ids, so the helper still works after a rollback expires the seeded rows
    business_id, haircut_id, stylist_id = seeded.business.id, seeded.haircut.id, seeded.stylist.id

    def _make(hhmm: str, service=None, staff=None, **kwargs):
        hour, minute = (int(part) for part in hhmm.split(":"))
        return BookingRequest(
            business_id=business_id,
            service_id=service.id if service is not None else haircut_id,
            staff_id=staff.id if staff is not None else stylist_id,
            start=datetime.combine(seeded.monday, time(hour, minute)),
            **kwargs,
        )

    return _make
