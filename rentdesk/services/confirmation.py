"""
Booking confirmation state machine.

    PENDING   -> CONFIRMED | CANCELLED | EXPIRED
    CONFIRMED -> CANCELLED
    CANCELLED, EXPIRED, COMPLETED are terminal

Guards raise before anything is written, so a rejected call leaves the
booking exactly as it was. Expiry is also detected lazily on confirm.
"""
import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from rentdesk.config import settings
from rentdesk.errors import (
    validate, NotFound, InvalidStateTransition, ExternalDependencyFailure,
)
from rentdesk.models.common import utcnow, as_utc
from rentdesk.models.core import Booking, BookingStatus, PaymentStatus
from rentdesk.schemas.booking import ConfirmBookingIn, CancelBookingIn
from rentdesk.services.booking import booking_items, find_by_token
from rentdesk.services.gateways import PaymentService, ReservationService, Notifier
from rentdesk.services.lookup import ensure_owned, get_owned
from rentdesk.util.audit import log_audit

logger = logging.getLogger(__name__)


class BookingConfirmationService:
    def __init__(self, db: Session, payment: PaymentService, reservations: ReservationService,
                 notifier: Notifier, expiration_hours: int | None = None):
        self.db = db
        self.payment = payment
        self.reservations = reservations
        self.notifier = notifier
        self.expiration_hours = (
            expiration_hours if expiration_hours is not None else settings.BOOKING_EXPIRATION_HOURS
        )

    def confirm_booking(self, body, tenant_id: str) -> dict:
        data = validate(ConfirmBookingIn, body)
        booking = find_by_token(self.db, data.confirmation_token)
        if booking is None:
            raise NotFound("Invalid confirmation token")
        ensure_owned(booking, tenant_id, "Booking")
        if booking.status != BookingStatus.PENDING:
            raise InvalidStateTransition(f"Booking cannot be confirmed (status: {booking.status.value})")

        now = utcnow()
        if as_utc(booking.expires_at) < now:
            booking.status = BookingStatus.EXPIRED
            log_audit(self.db, "system", "booking", booking.id, "booking_expired", booking.tenant_id, meta={
                "booking_number": booking.booking_number,
                "expires_at": as_utc(booking.expires_at).isoformat(),
                "detected_on": "confirm",
            })
            self.db.commit()
            logger.warning("booking %s expired before confirmation", booking.booking_number)
            raise InvalidStateTransition("Booking has expired")

        deposit = booking.deposit_amount or 0
        transaction_id = None
        if deposit > 0:
            result = self.payment.process_deposit(booking.id, deposit, data.payment_reference)
            if not result.success:
                logger.warning("deposit declined for %s: %s", booking.booking_number, result.error)
                raise ExternalDependencyFailure(f"Payment failed: {result.error or 'unknown error'}")
            transaction_id = result.transaction_id

        items = booking_items(self.db, booking.id)
        reservation_id = self.reservations.create_reservation(tenant_id, booking, items)

        booking.status = BookingStatus.CONFIRMED
        booking.confirmed_at = now
        booking.reservation_id = reservation_id
        if deposit > 0:
            booking.payment_status = PaymentStatus.PAID
            booking.payment_transaction_id = transaction_id
        self.db.commit()
        logger.info("booking %s confirmed", booking.booking_number)

        self.notifier.booking_confirmed(booking, items)
        log_audit(self.db, "online", "booking", booking.id, "booking_confirmed", tenant_id, meta={
            "booking_number": booking.booking_number,
            "reservation_id": reservation_id,
            "deposit_paid": deposit if deposit > 0 else None,
        })
        self.db.commit()
        return {
            "booking_id": booking.id,
            "booking_number": booking.booking_number,
            "confirmation_token": booking.confirmation_token,
            "confirmed_at": now,
            "estimated_total": booking.total_amount,
        }

    def cancel_booking(self, booking_id: str, body, tenant_id: str, user_id: str) -> Booking:
        data = validate(CancelBookingIn, body)
        booking = get_owned(self.db, Booking, booking_id, tenant_id, "Booking")
        if booking.status == BookingStatus.CANCELLED:
            raise InvalidStateTransition("Booking is already cancelled")
        if booking.status == BookingStatus.COMPLETED:
            raise InvalidStateTransition("Cannot cancel completed booking")
        if booking.status == BookingStatus.EXPIRED:
            raise InvalidStateTransition("Cannot cancel expired booking")

        if booking.reservation_id:
            self.reservations.cancel_reservation(booking.reservation_id)

        # the refund itself is handled by finance; only the status moves here
        refunded = booking.payment_status == PaymentStatus.PAID
        if refunded:
            booking.payment_status = PaymentStatus.REFUNDED
        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = utcnow()
        booking.cancellation_reason = data.reason
        self.db.commit()
        logger.info("booking %s cancelled by %s", booking.booking_number, user_id)

        self.notifier.booking_cancelled(booking)
        log_audit(self.db, user_id, "booking", booking.id, "booking_cancelled", tenant_id, meta={
            "booking_number": booking.booking_number,
            "reason": data.reason,
            "refunded": refunded,
        })
        self.db.commit()
        return booking

    def resend_confirmation(self, booking_id: str, tenant_id: str, user_id: str) -> Booking:
        booking = get_owned(self.db, Booking, booking_id, tenant_id, "Booking")
        if booking.status != BookingStatus.PENDING:
            raise InvalidStateTransition("Can only resend confirmation for pending bookings")

        # a fresh window from now, not added on top of the old one
        booking.expires_at = utcnow() + timedelta(hours=self.expiration_hours)
        self.db.commit()

        items = booking_items(self.db, booking.id)
        self.notifier.booking_confirmed(booking, items)
        log_audit(self.db, user_id, "booking", booking.id, "booking_confirmation_resent", tenant_id, meta={
            "booking_number": booking.booking_number,
            "expires_at": as_utc(booking.expires_at).isoformat(),
        })
        self.db.commit()
        return booking

    def get_booking_status(self, token: str, tenant_id: str) -> dict:
        booking = find_by_token(self.db, token)
        ensure_owned(booking, tenant_id, "Booking")
        return {"booking": booking, "items": booking_items(self.db, booking.id)}
