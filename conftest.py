# conftest.py
import os

os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("APP_SECRET", "test-secret")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import rentdesk.models  # noqa: F401  (registers tables)
from rentdesk.db import Base, get_db
from rentdesk.deps import get_notifier, get_payment, get_reservations
from rentdesk.main import app
from rentdesk.models.common import utcnow
from rentdesk.services.avizo import AvizoService
from rentdesk.services.booking import BookingService
from rentdesk.services.confirmation import BookingConfirmationService
from rentdesk.services.discrepancy import DiscrepancyService
from rentdesk.services.gateways import Availability, PaymentResult
from rentdesk.services.receipt import ReceiptService
from rentdesk.util.security import create_token

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"
USER = "user-1"


# ── Fake collaborators ──────────────────────────────────────────────────────

class FakeEquipment:
    def __init__(self):
        self.busy: dict[str, list[str]] = {}
        self.calls = []

    def check_availability(self, tenant_id, equipment_id, start, end):
        self.calls.append((tenant_id, equipment_id, start, end))
        conflicts = self.busy.get(equipment_id, [])
        return Availability(available=not conflicts, conflicting_bookings=list(conflicts))


class FakePayment:
    def __init__(self):
        self.result = PaymentResult(success=True, transaction_id="txn-1")
        self.calls = []

    def process_deposit(self, booking_id, amount, reference=None):
        self.calls.append((booking_id, amount, reference))
        return self.result


class FakeReservations:
    def __init__(self):
        self.created = []
        self.cancelled = []

    def create_reservation(self, tenant_id, booking, items):
        self.created.append(booking.id)
        return f"res-{len(self.created)}"

    def cancel_reservation(self, reservation_id):
        self.cancelled.append(reservation_id)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def names(self):
        return [e[0] for e in self.events]

    def booking_created(self, booking, items):
        self.events.append(("booking_created", booking.booking_number))

    def booking_confirmed(self, booking, items):
        self.events.append(("booking_confirmed", booking.booking_number))

    def booking_cancelled(self, booking):
        self.events.append(("booking_cancelled", booking.booking_number))

    def supplier_discrepancy(self, supplier_id, supplier_name, discrepancy, receipt_number):
        self.events.append(("supplier_discrepancy", discrepancy.id))


class RecordingInventory:
    def __init__(self):
        self.increases = []
        self.receipt_refs = []

    def increase_stock(self, tenant_id, product_id, quantity, location_code=None, ref_receipt_id=None):
        self.increases.append((tenant_id, product_id, quantity, location_code))
        self.receipt_refs.append(ref_receipt_id)


# ── Database ────────────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


# ── Services wired with fakes ───────────────────────────────────────────────

@pytest.fixture
def equipment():
    return FakeEquipment()


@pytest.fixture
def payment():
    return FakePayment()


@pytest.fixture
def reservations():
    return FakeReservations()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def inventory():
    return RecordingInventory()


@pytest.fixture
def bookings(db, equipment, notifier):
    return BookingService(db, equipment, notifier)


@pytest.fixture
def confirmations(db, payment, reservations, notifier):
    return BookingConfirmationService(db, payment, reservations, notifier)


@pytest.fixture
def receipts(db, inventory):
    return ReceiptService(db, inventory)


@pytest.fixture
def discrepancies(db, notifier):
    return DiscrepancyService(db, notifier)


@pytest.fixture
def avizos(db):
    return AvizoService(db)


# ── Payload builders ────────────────────────────────────────────────────────

def booking_body(**overrides):
    start = utcnow() + timedelta(days=3)
    body = {
        "type": "RENTAL",
        "customer_name": "Kovács Anna",
        "customer_email": "anna@example.com",
        "start_date": start,
        "end_date": start + timedelta(days=3),
        "items": [
            {"equipment_id": "eq-1", "equipment_code": "EXC-01", "equipment_name": "Mini excavator",
             "quantity": 1, "daily_rate": 100.0},
        ],
    }
    body.update(overrides)
    return body


def avizo_body(**overrides):
    body = {
        "supplier_id": "sup-1",
        "supplier_name": "Acme Kft.",
        "expected_date": utcnow() + timedelta(days=2),
        "items": [
            {"product_id": "p-1", "product_code": "SCR-10", "product_name": "Screws 10mm",
             "expected_quantity": 100, "unit_price": 2.5},
            {"product_id": "p-2", "product_code": "NUT-10", "product_name": "Nuts 10mm",
             "expected_quantity": 50, "unit_price": 1.0},
        ],
    }
    body.update(overrides)
    return body


def receipt_line(product_id="p-1", expected=100, received=100, **extra):
    line = {
        "product_id": product_id,
        "product_code": f"CODE-{product_id}",
        "product_name": f"Product {product_id}",
        "expected_quantity": expected,
        "received_quantity": received,
    }
    line.update(extra)
    return line


def receipt_body(items, **overrides):
    body = {"supplier_id": "sup-1", "supplier_name": "Acme Kft.", "items": items}
    body.update(overrides)
    return body


# ── HTTP ────────────────────────────────────────────────────────────────────

@pytest.fixture
def client(session_factory, payment, reservations, notifier):
    def _db():
        s = session_factory()
        try:
            yield s
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_payment] = lambda: payment
    app.dependency_overrides[get_reservations] = lambda: reservations
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_token(USER, TENANT)}"}


@pytest.fixture
def other_auth_headers():
    return {"Authorization": f"Bearer {create_token('user-2', OTHER_TENANT)}"}
