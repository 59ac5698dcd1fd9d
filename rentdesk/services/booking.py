"""
Online booking: creation, availability and time slots, lookups and the
expiry sweep. Confirmation/cancellation lives in `services.confirmation`.
"""
import logging
import math
import secrets
from datetime import datetime, time, timedelta, timezone

from sqlalchemy.orm import Session

from rentdesk.config import settings
from rentdesk.errors import validate, ValidationFailed, ExternalDependencyFailure
from rentdesk.models.common import utcnow, as_utc
from rentdesk.models.core import Booking, BookingItem, BookingStatus, BookingType, PaymentStatus
from rentdesk.schemas.booking import CreateBookingIn, CheckAvailabilityIn, TimeSlotsIn
from rentdesk.services.gateways import EquipmentService, Notifier
from rentdesk.services.lookup import ensure_owned, get_owned
from rentdesk.services.numbering import next_number
from rentdesk.util.audit import log_audit

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)
BUSINESS_HOURS = (8, 18)
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def compute_total_days(start: datetime, end: datetime | None) -> int:
    """Whole days billed, rounded up, never less than one."""
    end = end or start
    return max(1, math.ceil((end - start) / DAY))


def booking_items(db: Session, booking_id: str) -> list[BookingItem]:
    return (
        db.query(BookingItem)
          .filter(BookingItem.booking_id == booking_id)
          .order_by(BookingItem.line_no.asc())
          .all()
    )


def find_by_token(db: Session, token: str) -> Booking | None:
    return db.query(Booking).filter(Booking.confirmation_token == token).first()


class BookingService:
    def __init__(self, db: Session, equipment: EquipmentService, notifier: Notifier,
                 expiration_hours: int | None = None, daily_capacity: int | None = None):
        self.db = db
        self.equipment = equipment
        self.notifier = notifier
        self.expiration_hours = (
            expiration_hours if expiration_hours is not None else settings.BOOKING_EXPIRATION_HOURS
        )
        self.daily_capacity = daily_capacity if daily_capacity is not None else settings.DAILY_BOOKING_CAPACITY

    def create_booking(self, body, tenant_id: str) -> dict:
        data = validate(CreateBookingIn, body)
        start = as_utc(data.start_date)
        end = as_utc(data.end_date)
        if end is not None and end <= start:
            raise ValidationFailed("End date must be after start date")

        for item in data.items:
            if not item.equipment_id:
                continue
            availability = self.equipment.check_availability(tenant_id, item.equipment_id, start, end or start)
            if not availability.available:
                raise ExternalDependencyFailure(
                    f"Equipment {item.equipment_name} is not available for the selected dates"
                )

        now = utcnow()
        total_days = compute_total_days(start, end)
        booking = Booking(
            tenant_id=tenant_id,
            booking_number=next_number(self.db, tenant_id, "booking", now.year),
            type=BookingType(data.type),
            status=BookingStatus.PENDING,
            customer_name=data.customer_name,
            customer_email=data.customer_email,
            customer_phone=data.customer_phone,
            start_date=start,
            end_date=end,
            notes=data.notes,
            deposit_amount=data.deposit_amount,
            payment_status=PaymentStatus.PENDING,
            confirmation_token=secrets.token_hex(32),
            expires_at=now + timedelta(hours=self.expiration_hours),
        )
        self.db.add(booking)
        self.db.flush()

        items: list[BookingItem] = []
        total = 0.0
        for n, line in enumerate(data.items, start=1):
            item_total = line.daily_rate * line.quantity * total_days
            total += item_total
            items.append(BookingItem(
                booking_id=booking.id,
                line_no=n,
                tenant_id=tenant_id,
                equipment_id=line.equipment_id,
                equipment_code=line.equipment_code,
                equipment_name=line.equipment_name,
                quantity=line.quantity,
                daily_rate=line.daily_rate,
                total_days=total_days,
                item_total=item_total,
            ))
        booking.total_amount = total
        self.db.add_all(items)
        # booking is authoritative from here on, whatever the notifier does
        self.db.commit()
        logger.info("booking %s created for tenant %s (total %.2f)", booking.booking_number, tenant_id, total)

        self.notifier.booking_created(booking, items)
        log_audit(self.db, "online", "booking", booking.id, "booking_created", tenant_id, meta={
            "booking_number": booking.booking_number,
            "customer_email": booking.customer_email,
            "total_amount": total,
            "item_count": len(items),
        })
        self.db.commit()
        return {"booking": booking, "items": items, "confirmation_token": booking.confirmation_token}

    def check_availability(self, body, tenant_id: str) -> list[dict]:
        data = validate(CheckAvailabilityIn, body)
        start, end = as_utc(data.start_date), as_utc(data.end_date)
        results = []
        for equipment_id in data.equipment_ids:
            a = self.equipment.check_availability(tenant_id, equipment_id, start, end)
            results.append({
                "equipment_id": equipment_id,
                "start_date": start,
                "end_date": end,
                "available": a.available,
                "conflicting_bookings": a.conflicting_bookings,
            })
        return results

    def get_time_slots(self, body, tenant_id: str) -> list[dict]:
        """
        Fixed business-hour slots for one day. Capacity is a daily cap shared
        by every slot, so all slots report the same `booked` figure.
        """
        data = validate(TimeSlotsIn, body)
        day_start = datetime.combine(data.date, time.min, tzinfo=timezone.utc)
        booked = (
            self.db.query(Booking)
              .filter(
                  Booking.tenant_id == tenant_id,
                  Booking.start_date >= day_start,
                  Booking.start_date < day_start + DAY,
                  Booking.status.in_(ACTIVE_STATUSES),
              )
              .count()
        )
        step = 1 if data.type == "SERVICE" else 2
        first, last = BUSINESS_HOURS
        return [
            {
                "date": data.date,
                "start_time": f"{hour:02d}:00",
                "end_time": f"{hour + step:02d}:00",
                "available": booked < self.daily_capacity,
                "capacity": self.daily_capacity,
                "booked": booked,
            }
            for hour in range(first, last, step)
        ]

    def get_booking_by_number(self, booking_number: str, tenant_id: str) -> dict:
        # numbers repeat across tenants; prefer the caller's own booking
        matches = self.db.query(Booking).filter(Booking.booking_number == booking_number).all()
        booking = next((b for b in matches if b.tenant_id == tenant_id), matches[0] if matches else None)
        ensure_owned(booking, tenant_id, "Booking")
        return {"booking": booking, "items": booking_items(self.db, booking.id)}

    def get_booking(self, booking_id: str, tenant_id: str) -> dict:
        booking = get_owned(self.db, Booking, booking_id, tenant_id, "Booking")
        return {"booking": booking, "items": booking_items(self.db, booking.id)}

    def list_bookings(self, tenant_id: str, status: BookingStatus | None = None) -> list[Booking]:
        q = self.db.query(Booking).filter(Booking.tenant_id == tenant_id)
        if status:
            q = q.filter(Booking.status == status)
        return q.order_by(Booking.created_at.desc(), Booking.booking_number.desc()).all()

    def expire_pending_bookings(self, tenant_id: str | None = None) -> int:
        """
        Flip PENDING bookings past `expires_at` to EXPIRED. Sweeps every tenant
        unless `tenant_id` is given. Safe to re-run.
        """
        now = utcnow()
        q = self.db.query(Booking).filter(Booking.status == BookingStatus.PENDING, Booking.expires_at < now)
        if tenant_id is not None:
            q = q.filter(Booking.tenant_id == tenant_id)
        expired = q.all()
        for booking in expired:
            booking.status = BookingStatus.EXPIRED
            log_audit(self.db, "system", "booking", booking.id, "booking_expired", booking.tenant_id, meta={
                "booking_number": booking.booking_number,
                "customer_email": booking.customer_email,
                "expires_at": as_utc(booking.expires_at).isoformat(),
            })
        self.db.commit()
        if expired:
            logger.info("expired %d pending bookings", len(expired))
        return len(expired)
