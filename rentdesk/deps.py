from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from sqlalchemy.orm import Session

from rentdesk.config import settings
from rentdesk.db import get_db
from rentdesk.util.security import decode_token
from rentdesk.services.gateways import (
    BookingCalendar, StockLedger, HttpPaymentGateway, HttpReservationService,
    WebhookNotifier, LogNotifier,
)
from rentdesk.services.booking import BookingService
from rentdesk.services.confirmation import BookingConfirmationService
from rentdesk.services.receipt import ReceiptService
from rentdesk.services.discrepancy import DiscrepancyService
from rentdesk.services.avizo import AvizoService

auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class Principal:
    user_id: str
    tenant_id: str


def require_auth(creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> Principal:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        data = decode_token(creds.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if not data.get("sub") or not data.get("tid"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return Principal(user_id=data["sub"], tenant_id=data["tid"])


# ── Collaborators (overridden in tests) ─────────────────────────────────────

def get_notifier():
    if settings.NOTIFY_URL:
        return WebhookNotifier(settings.NOTIFY_URL, settings.HTTP_TIMEOUT)
    return LogNotifier()


def get_payment():
    return HttpPaymentGateway(settings.PAYMENT_URL, settings.HTTP_TIMEOUT)


def get_reservations():
    return HttpReservationService(settings.RESERVATION_URL, settings.HTTP_TIMEOUT)


def get_equipment(db: Session = Depends(get_db)):
    return BookingCalendar(db)


def get_inventory(db: Session = Depends(get_db)):
    return StockLedger(db)


# ── Services ────────────────────────────────────────────────────────────────

def booking_service(db: Session = Depends(get_db), equipment=Depends(get_equipment),
                    notifier=Depends(get_notifier)) -> BookingService:
    return BookingService(db, equipment, notifier)


def confirmation_service(db: Session = Depends(get_db), payment=Depends(get_payment),
                         reservations=Depends(get_reservations),
                         notifier=Depends(get_notifier)) -> BookingConfirmationService:
    return BookingConfirmationService(db, payment, reservations, notifier)


def receipt_service(db: Session = Depends(get_db), inventory=Depends(get_inventory)) -> ReceiptService:
    return ReceiptService(db, inventory)


def discrepancy_service(db: Session = Depends(get_db), notifier=Depends(get_notifier)) -> DiscrepancyService:
    return DiscrepancyService(db, notifier)


def avizo_service(db: Session = Depends(get_db)) -> AvizoService:
    return AvizoService(db)
