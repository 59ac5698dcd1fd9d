from datetime import date
from typing import List

from fastapi import APIRouter, Depends

from rentdesk.deps import Principal, require_auth, booking_service, confirmation_service
from rentdesk.models.core import BookingStatus
from rentdesk.schemas.booking import (
    BookingOut, BookingWithItemsOut, BookingCreatedOut, AvailabilityOut, TimeSlotOut,
    BookingConfirmationOut,
)
from rentdesk.schemas.common import Count
from rentdesk.services.booking import BookingService
from rentdesk.services.confirmation import BookingConfirmationService

router = APIRouter(prefix="/bookings", tags=["bookings"])


# ── Public (customer facing, tenant from the query string) ─────────────────

@router.post("", response_model=BookingCreatedOut)
def create_booking(tenant_id: str, body: dict, svc: BookingService = Depends(booking_service)):
    return svc.create_booking(body, tenant_id)


@router.post("/availability", response_model=List[AvailabilityOut])
def check_availability(tenant_id: str, body: dict, svc: BookingService = Depends(booking_service)):
    return svc.check_availability(body, tenant_id)


@router.get("/time-slots", response_model=List[TimeSlotOut])
def time_slots(tenant_id: str, date: date, type: str = "RENTAL",
               svc: BookingService = Depends(booking_service)):
    return svc.get_time_slots({"date": date, "type": type}, tenant_id)


@router.post("/confirm", response_model=BookingConfirmationOut)
def confirm_booking(tenant_id: str, body: dict,
                    svc: BookingConfirmationService = Depends(confirmation_service)):
    return svc.confirm_booking(body, tenant_id)


@router.get("/status/{token}", response_model=BookingWithItemsOut)
def booking_status(token: str, tenant_id: str,
                   svc: BookingConfirmationService = Depends(confirmation_service)):
    return svc.get_booking_status(token, tenant_id)


@router.get("/number/{booking_number}", response_model=BookingWithItemsOut)
def booking_by_number(booking_number: str, tenant_id: str, svc: BookingService = Depends(booking_service)):
    return svc.get_booking_by_number(booking_number, tenant_id)


# ── Back office ─────────────────────────────────────────────────────────────

@router.post("/expire", response_model=Count)
def expire_pending(svc: BookingService = Depends(booking_service), me: Principal = Depends(require_auth)):
    """Cron hook: flips the caller tenant's overdue PENDING bookings to EXPIRED."""
    return {"count": svc.expire_pending_bookings(me.tenant_id)}


@router.get("", response_model=List[BookingOut])
def list_bookings(status: BookingStatus | None = None,
                  svc: BookingService = Depends(booking_service),
                  me: Principal = Depends(require_auth)):
    return svc.list_bookings(me.tenant_id, status)


@router.get("/{booking_id}", response_model=BookingWithItemsOut)
def get_booking(booking_id: str, svc: BookingService = Depends(booking_service),
                me: Principal = Depends(require_auth)):
    return svc.get_booking(booking_id, me.tenant_id)


@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(booking_id: str, body: dict,
                   svc: BookingConfirmationService = Depends(confirmation_service),
                   me: Principal = Depends(require_auth)):
    return svc.cancel_booking(booking_id, body, me.tenant_id, me.user_id)


@router.post("/{booking_id}/resend-confirmation", response_model=BookingOut)
def resend_confirmation(booking_id: str,
                        svc: BookingConfirmationService = Depends(confirmation_service),
                        me: Principal = Depends(require_auth)):
    return svc.resend_confirmation(booking_id, me.tenant_id, me.user_id)
