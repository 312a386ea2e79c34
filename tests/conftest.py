"""Shared fixtures: in-memory database, app client, fake payment gateway."""
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional

import pytest
import pytz
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import turfbook.models  # noqa: F401
from turfbook.core.database import Base, get_db
from turfbook.core.errors import PaymentGatewayError
from turfbook.main import app
from turfbook.models.booking import Booking
from turfbook.models.pending_payment import PendingPayment
from turfbook.models.station import Station
from turfbook.services.reconciler import PaymentReconciler
from turfbook.services.scheduler import MaintenanceScheduler, get_scheduler

# Far enough ahead that no slot is elapsed
BOOKING_DATE = date.today() + timedelta(days=30)


class FakeGateway:
    """Stands in for RazorpayClient; responses are keyed by payment/order id."""

    def __init__(self):
        self.payments = {}
        self.orders = {}
        self.order_payments = {}
        self.failing = set()
        self.calls = []

    async def fetch_payment(self, payment_id):
        self.calls.append(("payment", payment_id))
        if payment_id in self.failing:
            raise PaymentGatewayError(f"Razorpay request failed for {payment_id}")
        return self.payments[payment_id]

    async def fetch_order(self, order_id):
        self.calls.append(("order", order_id))
        if order_id in self.failing:
            raise PaymentGatewayError(f"Razorpay request failed for {order_id}")
        return self.orders.get(order_id, {"id": order_id, "status": "created"})

    async def fetch_order_payments(self, order_id):
        self.calls.append(("order_payments", order_id))
        return self.order_payments.get(order_id, [])


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def reconciler(gateway):
    return PaymentReconciler(gateway=gateway, delay_seconds=0)


@pytest.fixture
def scheduler(session_factory, reconciler):
    return MaintenanceScheduler(session_factory=session_factory, reconciler=reconciler)


@pytest.fixture
async def client(session_factory, scheduler):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scheduler] = lambda: scheduler

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def add_station(db, name="Turf A", type="turf") -> Station:
    station = Station(name=name, type=type, hourly_rate=Decimal("1000"))
    db.add(station)
    await db.commit()
    await db.refresh(station)
    # Detached so a rollback in the code under test doesn't expire it
    db.expunge(station)
    return station


async def add_booking(
    db,
    station: Station,
    start: time,
    end: time,
    status: str = "confirmed",
    booking_date: date = BOOKING_DATE,
    created_at: Optional[datetime] = None,
    payment_txn_id: Optional[str] = None,
    booking_id: Optional[str] = None,
) -> Booking:
    booking = Booking(
        station_id=station.id,
        booking_date=booking_date,
        start_time=start,
        end_time=end,
        duration=60,
        status=status,
        original_price=Decimal("1000"),
        final_price=Decimal("1000"),
        payment_txn_id=payment_txn_id,
    )
    if booking_id is not None:
        booking.id = booking_id
    if created_at is not None:
        booking.created_at = created_at
    db.add(booking)
    await db.commit()
    return booking


async def add_pending_payment(
    db,
    order_id: str,
    booking_data: dict,
    payment_id: Optional[str] = None,
    age: timedelta = timedelta(minutes=5),
) -> PendingPayment:
    pending = PendingPayment(
        razorpay_order_id=order_id,
        razorpay_payment_id=payment_id,
        booking_data=booking_data,
        created_at=datetime.now(pytz.UTC) - age,
    )
    db.add(pending)
    await db.commit()
    return pending
