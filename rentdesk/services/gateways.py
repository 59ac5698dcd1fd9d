"""
Collaborators the booking and receiving services talk to.

Each concern has a Protocol plus the default implementation wired in
`rentdesk.deps`. Local ones (availability, stock) work off our own tables;
remote ones (payment, reservation, notifications) POST JSON over httpx to
the URL from settings and fall back to a no-network variant when unset.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

import httpx
from sqlalchemy import func, or_, and_
from sqlalchemy.orm import Session

from rentdesk.errors import ExternalDependencyFailure
from rentdesk.models.common import utcnow
from rentdesk.models.core import (
    Booking, BookingItem, BookingStatus, StockMove, StockMoveType,
)

logger = logging.getLogger(__name__)


@dataclass
class Availability:
    available: bool
    conflicting_bookings: list[str] = field(default_factory=list)


@dataclass
class PaymentResult:
    success: bool
    transaction_id: str | None = None
    error: str | None = None


class EquipmentService(Protocol):
    def check_availability(self, tenant_id: str, equipment_id: str,
                           start: datetime, end: datetime) -> Availability: ...


class InventoryService(Protocol):
    def increase_stock(self, tenant_id: str, product_id: str, quantity: float,
                       location_code: str | None = None, ref_receipt_id: str | None = None) -> None: ...


class PaymentService(Protocol):
    def process_deposit(self, booking_id: str, amount: float,
                        reference: str | None = None) -> PaymentResult: ...


class ReservationService(Protocol):
    def create_reservation(self, tenant_id: str, booking: Booking,
                           items: list[BookingItem]) -> str | None: ...

    def cancel_reservation(self, reservation_id: str) -> None: ...


class Notifier(Protocol):
    def booking_created(self, booking: Booking, items: list[BookingItem]) -> None: ...
    def booking_confirmed(self, booking: Booking, items: list[BookingItem]) -> None: ...
    def booking_cancelled(self, booking: Booking) -> None: ...
    def supplier_discrepancy(self, supplier_id: str, supplier_name: str,
                             discrepancy, receipt_number: str) -> None: ...


# ── Local implementations ───────────────────────────────────────────────────

class BookingCalendar:
    """Equipment availability from our own booking table."""

    def __init__(self, db: Session):
        self.db = db

    def check_availability(self, tenant_id, equipment_id, start, end) -> Availability:
        now = utcnow()
        booking_end = func.coalesce(Booking.end_date, Booking.start_date)
        rows = (
            self.db.query(Booking.booking_number)
              .join(BookingItem, BookingItem.booking_id == Booking.id)
              .filter(
                  Booking.tenant_id == tenant_id,
                  BookingItem.equipment_id == equipment_id,
                  or_(
                      Booking.status == BookingStatus.CONFIRMED,
                      and_(Booking.status == BookingStatus.PENDING, Booking.expires_at > now),
                  ),
                  Booking.start_date <= end,
                  booking_end >= start,
              )
              .distinct()
              .all()
        )
        conflicts = [r[0] for r in rows]
        return Availability(available=not conflicts, conflicting_bookings=conflicts)


class StockLedger:
    """Stock increases recorded as stock_move rows; committed by the caller."""

    def __init__(self, db: Session):
        self.db = db

    def increase_stock(self, tenant_id, product_id, quantity, location_code=None, ref_receipt_id=None):
        self.db.add(StockMove(
            tenant_id=tenant_id, product_id=product_id, location_code=location_code,
            type=StockMoveType.RECEIPT, qty_change=quantity, ref_receipt_id=ref_receipt_id,
        ))


# ── HTTP implementations ────────────────────────────────────────────────────

def _post(url: str, payload: dict, timeout: float) -> dict:
    with httpx.Client(timeout=timeout) as client:
        r = client.post(url, json=payload)
        r.raise_for_status()
        return r.json() if r.content else {}


class HttpPaymentGateway:
    def __init__(self, base_url: str | None, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout

    def process_deposit(self, booking_id, amount, reference=None) -> PaymentResult:
        if not self.base_url:
            return PaymentResult(success=False, error="payment gateway not configured")
        try:
            data = _post(f"{self.base_url}/deposits",
                         {"booking_id": booking_id, "amount": amount, "reference": reference},
                         self.timeout)
        except httpx.HTTPError as e:
            logger.warning("deposit capture for %s failed: %s", booking_id, e)
            return PaymentResult(success=False, error=f"gateway error: {e}")
        return PaymentResult(
            success=bool(data.get("success")),
            transaction_id=data.get("transaction_id"),
            error=data.get("error"),
        )


class HttpReservationService:
    def __init__(self, base_url: str | None, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout

    def create_reservation(self, tenant_id, booking, items) -> str | None:
        if not self.base_url:
            logger.info("no reservation service configured; %s confirmed without reservation",
                        booking.booking_number)
            return None
        payload = {
            "tenant_id": tenant_id,
            "booking_id": booking.id,
            "booking_number": booking.booking_number,
            "start_date": booking.start_date.isoformat(),
            "end_date": booking.end_date.isoformat() if booking.end_date else None,
            "items": [
                {"equipment_id": i.equipment_id, "quantity": i.quantity, "daily_rate": i.daily_rate}
                for i in items
            ],
        }
        try:
            data = _post(f"{self.base_url}/reservations", payload, self.timeout)
        except httpx.HTTPError as e:
            raise ExternalDependencyFailure(f"Reservation failed: {e}") from e
        return data.get("reservation_id")

    def cancel_reservation(self, reservation_id) -> None:
        if not self.base_url:
            return
        try:
            _post(f"{self.base_url}/reservations/{reservation_id}/cancel", {}, self.timeout)
        except httpx.HTTPError as e:
            raise ExternalDependencyFailure(f"Reservation cancel failed: {e}") from e


def _booking_payload(booking: Booking, items: list[BookingItem] | None = None) -> dict:
    out = {
        "booking_id": booking.id,
        "booking_number": booking.booking_number,
        "status": booking.status.value,
        "customer_name": booking.customer_name,
        "customer_email": booking.customer_email,
        "start_date": booking.start_date.isoformat(),
        "end_date": booking.end_date.isoformat() if booking.end_date else None,
        "total_amount": booking.total_amount,
        "confirmation_token": booking.confirmation_token,
        "expires_at": booking.expires_at.isoformat() if booking.expires_at else None,
    }
    if items is not None:
        out["items"] = [
            {"equipment_name": i.equipment_name, "quantity": i.quantity, "item_total": i.item_total}
            for i in items
        ]
    return out


def _discrepancy_payload(supplier_id, supplier_name, d, receipt_number) -> dict:
    return {
        "supplier_id": supplier_id,
        "supplier_name": supplier_name,
        "receipt_number": receipt_number,
        "discrepancy_id": d.id,
        "type": d.type.value,
        "expected_quantity": d.expected_quantity,
        "actual_quantity": d.actual_quantity,
        "difference": d.difference,
        "reason": d.reason,
    }


class WebhookNotifier:
    """Posts {"event", "payload"} to one webhook; the mail/SMS side fans out from there."""

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    def _send(self, event: str, payload: dict):
        try:
            _post(self.url, {"event": event, "payload": payload}, self.timeout)
        except httpx.HTTPError as e:
            raise ExternalDependencyFailure(f"Notification {event} failed: {e}") from e

    def booking_created(self, booking, items):
        self._send("booking_created", _booking_payload(booking, items))

    def booking_confirmed(self, booking, items):
        self._send("booking_confirmed", _booking_payload(booking, items))

    def booking_cancelled(self, booking):
        self._send("booking_cancelled", _booking_payload(booking))

    def supplier_discrepancy(self, supplier_id, supplier_name, discrepancy, receipt_number):
        self._send("supplier_discrepancy",
                   _discrepancy_payload(supplier_id, supplier_name, discrepancy, receipt_number))


class LogNotifier:
    def booking_created(self, booking, items):
        logger.info("notify booking_created %s -> %s", booking.booking_number, booking.customer_email)

    def booking_confirmed(self, booking, items):
        logger.info("notify booking_confirmed %s -> %s", booking.booking_number, booking.customer_email)

    def booking_cancelled(self, booking):
        logger.info("notify booking_cancelled %s -> %s", booking.booking_number, booking.customer_email)

    def supplier_discrepancy(self, supplier_id, supplier_name, discrepancy, receipt_number):
        logger.info("notify supplier %s (%s) about %s on %s",
                    supplier_name, supplier_id, discrepancy.type.value, receipt_number)
