from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Integer, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum as PyEnum
from datetime import datetime
from rentdesk.db import Base
from rentdesk.models.common import IdMixin, TSMMixin

# ── Enums ───────────────────────────────────────────────────────────────────
class BookingType(PyEnum):
    RENTAL = "RENTAL"
    SERVICE = "SERVICE"

class BookingStatus(PyEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    COMPLETED = "COMPLETED"  # set by the rental side, never here

class PaymentStatus(PyEnum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

class AvizoStatus(PyEnum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"

class ReceiptStatus(PyEnum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    DISCREPANCY = "DISCREPANCY"

class DiscrepancyType(PyEnum):
    SHORTAGE = "SHORTAGE"
    SURPLUS = "SURPLUS"
    DAMAGED = "DAMAGED"
    WRONG_ITEM = "WRONG_ITEM"

class StockMoveType(PyEnum):
    RECEIPT = "RECEIPT"

# ── Booking ─────────────────────────────────────────────────────────────────
class Booking(Base, IdMixin, TSMMixin):
    __tablename__ = "booking"
    tenant_id: Mapped[str] = mapped_column(String(36), index=True)
    booking_number: Mapped[str] = mapped_column(String(20), index=True)  # FOG-2026-00001, per tenant
    type: Mapped[BookingType] = mapped_column(Enum(BookingType), default=BookingType.RENTAL)
    status: Mapped[BookingStatus] = mapped_column(Enum(BookingStatus), default=BookingStatus.PENDING)
    customer_name: Mapped[str] = mapped_column(String(160))
    customer_email: Mapped[str] = mapped_column(String(160))
    customer_phone: Mapped[str | None] = mapped_column(String(30))
    notes: Mapped[str | None] = mapped_column(Text)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    total_amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0)
    deposit_amount: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False))
    payment_status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus), default=PaymentStatus.PENDING)
    payment_transaction_id: Mapped[str | None] = mapped_column(String(120))
    confirmation_token: Mapped[str] = mapped_column(String(64), unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    reservation_id: Mapped[str | None] = mapped_column(String(60))  # returned by the rental side
    __table_args__ = (
        UniqueConstraint("tenant_id", "booking_number", name="uq_booking_tenant_number"),
    )

class BookingItem(Base, IdMixin, TSMMixin):
    __tablename__ = "booking_item"
    booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("booking.id"), index=True)
    line_no: Mapped[int] = mapped_column(Integer, default=0)
    tenant_id: Mapped[str] = mapped_column(String(36))
    equipment_id: Mapped[str | None] = mapped_column(String(36), index=True)
    equipment_code: Mapped[str | None] = mapped_column(String(60))
    equipment_name: Mapped[str] = mapped_column(String(200))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    daily_rate: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False))
    total_days: Mapped[int] = mapped_column(Integer, default=1)
    item_total: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False))

# ── Avizo (advance shipment notice) ─────────────────────────────────────────
class Avizo(Base, IdMixin, TSMMixin):
    __tablename__ = "avizo"
    tenant_id: Mapped[str] = mapped_column(String(36), index=True)
    avizo_number: Mapped[str] = mapped_column(String(20))  # AV-2026-0001
    supplier_id: Mapped[str] = mapped_column(String(36))
    supplier_name: Mapped[str] = mapped_column(String(200))
    expected_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    status: Mapped[AvizoStatus] = mapped_column(Enum(AvizoStatus), default=AvizoStatus.PENDING)
    total_items: Mapped[int] = mapped_column(Integer, default=0)
    total_quantity: Mapped[float] = mapped_column(Numeric(12, 3, asdecimal=False), default=0)
    pdf_url: Mapped[str | None] = mapped_column(String(400))
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(36))

class AvizoItem(Base, IdMixin, TSMMixin):
    __tablename__ = "avizo_item"
    avizo_id: Mapped[str] = mapped_column(String(36), ForeignKey("avizo.id"), index=True)
    line_no: Mapped[int] = mapped_column(Integer, default=0)
    tenant_id: Mapped[str] = mapped_column(String(36))
    product_id: Mapped[str] = mapped_column(String(36))
    product_code: Mapped[str] = mapped_column(String(60))
    product_name: Mapped[str] = mapped_column(String(200))
    expected_quantity: Mapped[float] = mapped_column(Numeric(12, 3, asdecimal=False))
    received_quantity: Mapped[float] = mapped_column(Numeric(12, 3, asdecimal=False), default=0)
    unit_price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0)

# ── Goods receipt ───────────────────────────────────────────────────────────
class Receipt(Base, IdMixin, TSMMixin):
    __tablename__ = "receipt"
    tenant_id: Mapped[str] = mapped_column(String(36), index=True)
    receipt_number: Mapped[str] = mapped_column(String(20))  # BEV-2026-0001
    avizo_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("avizo.id"))
    supplier_id: Mapped[str] = mapped_column(String(36))
    supplier_name: Mapped[str] = mapped_column(String(200))
    received_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    status: Mapped[ReceiptStatus] = mapped_column(Enum(ReceiptStatus), default=ReceiptStatus.DRAFT)
    total_items: Mapped[int] = mapped_column(Integer, default=0)
    total_quantity: Mapped[float] = mapped_column(Numeric(12, 3, asdecimal=False), default=0)
    has_discrepancy: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text)
    processed_by: Mapped[str | None] = mapped_column(String(36))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

class ReceiptItem(Base, IdMixin, TSMMixin):
    __tablename__ = "receipt_item"
    receipt_id: Mapped[str] = mapped_column(String(36), ForeignKey("receipt.id"), index=True)
    line_no: Mapped[int] = mapped_column(Integer, default=0)
    tenant_id: Mapped[str] = mapped_column(String(36))
    avizo_item_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("avizo_item.id"))
    product_id: Mapped[str] = mapped_column(String(36))
    product_code: Mapped[str] = mapped_column(String(60))
    product_name: Mapped[str] = mapped_column(String(200))
    expected_quantity: Mapped[float] = mapped_column(Numeric(12, 3, asdecimal=False))
    received_quantity: Mapped[float] = mapped_column(Numeric(12, 3, asdecimal=False))
    unit_price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0)
    location_code: Mapped[str | None] = mapped_column(String(40))  # e.g. A-01-01

class Discrepancy(Base, IdMixin, TSMMixin):
    __tablename__ = "discrepancy"
    receipt_id: Mapped[str] = mapped_column(String(36), ForeignKey("receipt.id"), index=True)
    receipt_item_id: Mapped[str] = mapped_column(String(36), ForeignKey("receipt_item.id"))
    tenant_id: Mapped[str] = mapped_column(String(36))
    type: Mapped[DiscrepancyType] = mapped_column(Enum(DiscrepancyType))
    expected_quantity: Mapped[float] = mapped_column(Numeric(12, 3, asdecimal=False))
    actual_quantity: Mapped[float] = mapped_column(Numeric(12, 3, asdecimal=False))
    difference: Mapped[float] = mapped_column(Numeric(12, 3, asdecimal=False))  # actual - expected
    reason: Mapped[str | None] = mapped_column(Text)
    supplier_notified: Mapped[bool] = mapped_column(Boolean, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    resolved_by: Mapped[str | None] = mapped_column(String(36))
    resolution_note: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(36))

# ── Inventory ───────────────────────────────────────────────────────────────
class StockMove(Base, IdMixin, TSMMixin):
    __tablename__ = "stock_move"
    tenant_id: Mapped[str] = mapped_column(String(36), index=True)
    product_id: Mapped[str] = mapped_column(String(36), index=True)
    location_code: Mapped[str | None] = mapped_column(String(40))
    type: Mapped[StockMoveType] = mapped_column(Enum(StockMoveType))
    qty_change: Mapped[float] = mapped_column(Numeric(12, 3, asdecimal=False))
    ref_receipt_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("receipt.id"), index=True)

# ── Numbering & audit ───────────────────────────────────────────────────────
class DocumentSequence(Base, TSMMixin):
    __tablename__ = "document_sequence"
    # one row per (tenant, kind, year); numbers restart every year
    tenant_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), primary_key=True)  # booking | receipt | avizo
    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, default=0)

class AuditLog(Base, IdMixin, TSMMixin):
    __tablename__ = "audit_log"
    tenant_id: Mapped[str] = mapped_column(String(36), index=True)
    actor_user_id: Mapped[str] = mapped_column(String(36))  # user id, "online" or "system"
    entity: Mapped[str] = mapped_column(String(60))
    entity_id: Mapped[str] = mapped_column(String(36))
    action: Mapped[str] = mapped_column(String(60))
    meta: Mapped[str | None] = mapped_column(Text)  # JSON
