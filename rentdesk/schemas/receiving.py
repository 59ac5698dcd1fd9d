from pydantic import BaseModel, Field
from typing import Optional, Literal, List
from datetime import datetime

from rentdesk.models.core import AvizoStatus, ReceiptStatus, DiscrepancyType
from rentdesk.schemas.common import ORMModel

DiscrepancyTypeLiteral = Literal["SHORTAGE", "SURPLUS", "DAMAGED", "WRONG_ITEM"]

# ── Avizo ───────────────────────────────────────────────────────────────────
class AvizoItemIn(BaseModel):
    product_id: str = Field(min_length=1)
    product_code: str = Field(min_length=1, max_length=60)
    product_name: str = Field(min_length=1, max_length=200)
    expected_quantity: float = Field(gt=0)
    unit_price: float = Field(0, ge=0)

class CreateAvizoIn(BaseModel):
    supplier_id: str = Field(min_length=1)
    supplier_name: str = Field(min_length=1, max_length=200)
    expected_date: datetime
    notes: Optional[str] = Field(None, max_length=1000)
    pdf_url: Optional[str] = Field(None, max_length=400)
    items: List[AvizoItemIn] = Field(min_length=1)

class UpdateAvizoIn(BaseModel):
    expected_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)
    pdf_url: Optional[str] = Field(None, max_length=400)

class AvizoOut(ORMModel):
    id: str
    tenant_id: str
    avizo_number: str
    supplier_id: str
    supplier_name: str
    expected_date: datetime
    status: AvizoStatus
    total_items: int
    total_quantity: float
    pdf_url: Optional[str] = None
    notes: Optional[str] = None

class AvizoItemOut(ORMModel):
    id: str
    avizo_id: str
    product_id: str
    product_code: str
    product_name: str
    expected_quantity: float
    received_quantity: float
    unit_price: float

class AvizoWithItemsOut(BaseModel):
    avizo: AvizoOut
    items: List[AvizoItemOut]

# ── Receipt ─────────────────────────────────────────────────────────────────
class ReceiptItemIn(BaseModel):
    avizo_item_id: Optional[str] = None
    product_id: str = Field(min_length=1)
    product_code: str = Field(min_length=1, max_length=60)
    product_name: str = Field(min_length=1, max_length=200)
    expected_quantity: float = Field(ge=0)
    received_quantity: float = Field(ge=0)
    unit_price: float = Field(0, ge=0)
    location_code: Optional[str] = Field(None, max_length=40)

class CreateReceiptIn(BaseModel):
    avizo_id: Optional[str] = None
    supplier_id: str = Field(min_length=1)
    supplier_name: str = Field(min_length=1, max_length=200)
    notes: Optional[str] = Field(None, max_length=1000)
    items: List[ReceiptItemIn] = Field(min_length=1)

class ReceiptOut(ORMModel):
    id: str
    tenant_id: str
    receipt_number: str
    avizo_id: Optional[str] = None
    supplier_id: str
    supplier_name: str
    received_date: datetime
    status: ReceiptStatus
    total_items: int
    total_quantity: float
    has_discrepancy: bool
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None

class ReceiptItemOut(ORMModel):
    id: str
    receipt_id: str
    avizo_item_id: Optional[str] = None
    product_id: str
    product_code: str
    product_name: str
    expected_quantity: float
    received_quantity: float
    unit_price: float
    location_code: Optional[str] = None

class ReceiptWithItemsOut(BaseModel):
    receipt: ReceiptOut
    items: List[ReceiptItemOut]

# ── Discrepancy ─────────────────────────────────────────────────────────────
class CreateDiscrepancyIn(BaseModel):
    receipt_item_id: str = Field(min_length=1)
    type: DiscrepancyTypeLiteral
    expected_quantity: float = Field(ge=0)
    actual_quantity: float = Field(ge=0)
    reason: Optional[str] = Field(None, max_length=1000)

class ResolveDiscrepancyIn(BaseModel):
    resolution_note: str = Field(min_length=1, max_length=1000)
    notify_supplier: bool = False

class DiscrepancyOut(ORMModel):
    id: str
    receipt_id: str
    receipt_item_id: str
    type: DiscrepancyType
    expected_quantity: float
    actual_quantity: float
    difference: float
    reason: Optional[str] = None
    supplier_notified: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolution_note: Optional[str] = None
