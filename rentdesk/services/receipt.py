"""
Goods receipt (bevételezés) workflow.

A receipt is created IN_PROGRESS, or DISCREPANCY as soon as one line falls
outside the receiving tolerance. It can only be completed once every
discrepancy is resolved; completion books the stock and rolls the linked
avizo forward to PARTIAL or RECEIVED.
"""
import logging

from sqlalchemy.orm import Session

from rentdesk.config import settings
from rentdesk.errors import validate, ValidationFailed, NotFound, InvalidStateTransition
from rentdesk.models.common import utcnow
from rentdesk.models.core import (
    Avizo, AvizoItem, AvizoStatus, Receipt, ReceiptItem, ReceiptStatus,
    Discrepancy, DiscrepancyType,
)
from rentdesk.schemas.receiving import CreateReceiptIn
from rentdesk.services.gateways import InventoryService
from rentdesk.services.lookup import get_owned
from rentdesk.services.numbering import next_number
from rentdesk.util.audit import log_audit

logger = logging.getLogger(__name__)

TOLERANCE_PERCENT = 0.5


def check_tolerance(expected: float, actual: float, tolerance_percent: float = TOLERANCE_PERCENT) -> bool:
    """True when `actual` is within ±tolerance_percent of `expected`; zero expects exactly zero."""
    if expected == 0:
        return actual == 0
    return abs(actual - expected) <= expected * tolerance_percent / 100


def receipt_items(db: Session, receipt_id: str) -> list[ReceiptItem]:
    return (
        db.query(ReceiptItem)
          .filter(ReceiptItem.receipt_id == receipt_id)
          .order_by(ReceiptItem.line_no.asc())
          .all()
    )


def avizo_items(db: Session, avizo_id: str) -> list[AvizoItem]:
    return (
        db.query(AvizoItem)
          .filter(AvizoItem.avizo_id == avizo_id)
          .order_by(AvizoItem.line_no.asc())
          .all()
    )


class ReceiptService:
    def __init__(self, db: Session, inventory: InventoryService, tolerance_percent: float | None = None):
        self.db = db
        self.inventory = inventory
        self.tolerance_percent = (
            tolerance_percent if tolerance_percent is not None else settings.RECEIPT_TOLERANCE_PERCENT
        )

    def _within_tolerance(self, expected, actual) -> bool:
        return check_tolerance(expected, actual, self.tolerance_percent)

    def create_receipt(self, body, tenant_id: str, user_id: str) -> dict:
        data = validate(CreateReceiptIn, body)

        avizo = None
        targets: dict[int, AvizoItem] = {}
        if data.avizo_id:
            avizo = get_owned(self.db, Avizo, data.avizo_id, tenant_id, "Avizo")
            if avizo.status == AvizoStatus.RECEIVED:
                raise InvalidStateTransition("Avizo is already fully received")
            if avizo.status == AvizoStatus.CANCELLED:
                raise InvalidStateTransition("Cannot receive cancelled avizo")
            lines = avizo_items(self.db, avizo.id)
            by_id = {a.id: a for a in lines}
            by_product = {a.product_id: a for a in lines}
            for n, line in enumerate(data.items):
                if line.avizo_item_id:
                    if line.avizo_item_id not in by_id:
                        raise NotFound("Avizo item not found")
                    targets[n] = by_id[line.avizo_item_id]
                elif line.product_id in by_product:
                    targets[n] = by_product[line.product_id]
        elif any(line.avizo_item_id for line in data.items):
            raise ValidationFailed("Validation failed: avizo_item_id requires avizo_id")

        off = [not self._within_tolerance(l.expected_quantity, l.received_quantity) for l in data.items]
        has_discrepancy = any(off)
        now = utcnow()

        receipt = Receipt(
            tenant_id=tenant_id,
            receipt_number=next_number(self.db, tenant_id, "receipt", now.year),
            avizo_id=avizo.id if avizo else None,
            supplier_id=data.supplier_id,
            supplier_name=data.supplier_name,
            received_date=now,
            status=ReceiptStatus.DISCREPANCY if has_discrepancy else ReceiptStatus.IN_PROGRESS,
            total_items=len(data.items),
            total_quantity=sum(l.received_quantity for l in data.items),
            has_discrepancy=has_discrepancy,
            notes=data.notes,
            processed_by=user_id,
        )
        self.db.add(receipt)
        self.db.flush()

        items = []
        for n, line in enumerate(data.items):
            target = targets.get(n)
            items.append(ReceiptItem(
                receipt_id=receipt.id,
                line_no=n + 1,
                tenant_id=tenant_id,
                avizo_item_id=target.id if target else None,
                product_id=line.product_id,
                product_code=line.product_code,
                product_name=line.product_name,
                expected_quantity=line.expected_quantity,
                received_quantity=line.received_quantity,
                unit_price=line.unit_price,
                location_code=line.location_code,
            ))
        self.db.add_all(items)
        self.db.flush()

        # one open discrepancy per line outside tolerance, so there is something to resolve
        for item, is_off in zip(items, off):
            if not is_off:
                continue
            short = item.received_quantity < item.expected_quantity
            self.db.add(Discrepancy(
                receipt_id=receipt.id,
                receipt_item_id=item.id,
                tenant_id=tenant_id,
                type=DiscrepancyType.SHORTAGE if short else DiscrepancyType.SURPLUS,
                expected_quantity=item.expected_quantity,
                actual_quantity=item.received_quantity,
                difference=item.received_quantity - item.expected_quantity,
                reason="Outside receiving tolerance",
                created_by=user_id,
            ))

        # avizo status is settled on completion, only the running totals move now
        for n, target in targets.items():
            target.received_quantity = (target.received_quantity or 0) + data.items[n].received_quantity

        log_audit(self.db, user_id, "receipt", receipt.id, "receipt_created", tenant_id, meta={
            "receipt_number": receipt.receipt_number,
            "avizo_id": receipt.avizo_id,
            "item_count": len(items),
            "has_discrepancy": has_discrepancy,
        })
        self.db.commit()
        logger.info("receipt %s created (%s)", receipt.receipt_number, receipt.status.value)
        return {"receipt": receipt, "items": items}

    def complete_receipt(self, receipt_id: str, tenant_id: str, user_id: str) -> Receipt:
        receipt = get_owned(self.db, Receipt, receipt_id, tenant_id, "Receipt")
        if receipt.status == ReceiptStatus.COMPLETED:
            raise InvalidStateTransition("Receipt is already completed")
        if receipt.status == ReceiptStatus.DISCREPANCY:
            raise InvalidStateTransition("Receipt has unresolved discrepancies")

        items = receipt_items(self.db, receipt.id)
        for item in items:
            if item.received_quantity > 0:
                self.inventory.increase_stock(tenant_id, item.product_id, item.received_quantity,
                                              item.location_code, ref_receipt_id=receipt.id)

        receipt.status = ReceiptStatus.COMPLETED
        receipt.completed_at = utcnow()

        avizo_status = None
        if receipt.avizo_id:
            avizo = self.db.get(Avizo, receipt.avizo_id)
            lines = avizo_items(self.db, avizo.id)
            if all(a.received_quantity >= a.expected_quantity for a in lines):
                avizo.status = AvizoStatus.RECEIVED
            else:
                avizo.status = AvizoStatus.PARTIAL
            avizo_status = avizo.status.value

        log_audit(self.db, user_id, "receipt", receipt.id, "receipt_completed", tenant_id, meta={
            "receipt_number": receipt.receipt_number,
            "item_count": len(items),
            "total_quantity": receipt.total_quantity,
            "avizo_status": avizo_status,
        })
        self.db.commit()
        logger.info("receipt %s completed", receipt.receipt_number)
        return receipt

    def get_receipt(self, receipt_id: str, tenant_id: str) -> dict:
        receipt = get_owned(self.db, Receipt, receipt_id, tenant_id, "Receipt")
        return {"receipt": receipt, "items": receipt_items(self.db, receipt.id)}

    def get_receipt_items(self, receipt_id: str, tenant_id: str) -> list[ReceiptItem]:
        receipt = get_owned(self.db, Receipt, receipt_id, tenant_id, "Receipt")
        return receipt_items(self.db, receipt.id)
