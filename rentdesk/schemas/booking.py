from pydantic import BaseModel, Field
from typing import Optional, Literal, List
from datetime import date, datetime

from rentdesk.models.core import BookingType, BookingStatus, PaymentStatus
from rentdesk.schemas.common import ORMModel

BookingTypeLiteral = Literal["RENTAL", "SERVICE"]
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# ── Input ───────────────────────────────────────────────────────────────────
class BookingItemIn(BaseModel):
    equipment_id: Optional[str] = None
    equipment_code: Optional[str] = None
    equipment_name: str = Field(min_length=1, max_length=200)
    quantity: int = Field(1, ge=1)
    daily_rate: float = Field(ge=0)

class CreateBookingIn(BaseModel):
    type: BookingTypeLiteral = "RENTAL"
    customer_name: str = Field(min_length=2, max_length=160)
    customer_email: str = Field(pattern=EMAIL_PATTERN, max_length=160)
    customer_phone: Optional[str] = Field(None, max_length=30)
    start_date: datetime
    end_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)
    items: List[BookingItemIn] = Field(min_length=1)
    deposit_amount: Optional[float] = Field(None, ge=0)

class CheckAvailabilityIn(BaseModel):
    equipment_ids: List[str] = Field(min_length=1)
    start_date: datetime
    end_date: datetime

class TimeSlotsIn(BaseModel):
    date: date
    type: BookingTypeLiteral = "RENTAL"

class ConfirmBookingIn(BaseModel):
    confirmation_token: str = Field(min_length=1)
    payment_reference: Optional[str] = None

class CancelBookingIn(BaseModel):
    reason: str = Field(min_length=1, max_length=500)

# ── Output ──────────────────────────────────────────────────────────────────
class BookingItemOut(ORMModel):
    id: str
    equipment_id: Optional[str] = None
    equipment_code: Optional[str] = None
    equipment_name: str
    quantity: int
    daily_rate: float
    total_days: int
    item_total: float

class BookingOut(ORMModel):
    id: str
    tenant_id: str
    booking_number: str
    type: BookingType
    status: BookingStatus
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    notes: Optional[str] = None
    total_amount: float
    deposit_amount: Optional[float] = None
    payment_status: PaymentStatus
    expires_at: datetime
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

class BookingWithItemsOut(BaseModel):
    booking: BookingOut
    items: List[BookingItemOut]

class BookingCreatedOut(BookingWithItemsOut):
    confirmation_token: str

class AvailabilityOut(BaseModel):
    equipment_id: str
    start_date: datetime
    end_date: datetime
    available: bool
    conflicting_bookings: List[str] = []

class TimeSlotOut(BaseModel):
    date: date
    start_time: str
    end_time: str
    available: bool
    capacity: int
    booked: int

class BookingConfirmationOut(BaseModel):
    booking_id: str
    booking_number: str
    confirmation_token: str
    confirmed_at: datetime
    estimated_total: float
