import logging

from sqlalchemy.orm import Session

from rentdesk.errors import validate, NotFound, InvalidStateTransition
from rentdesk.models.common import utcnow
from rentdesk.models.core import (
    Receipt, ReceiptItem, ReceiptStatus, Discrepancy, DiscrepancyType,
)
from rentdesk.schemas.receiving import CreateDiscrepancyIn, ResolveDiscrepancyIn
from rentdesk.services.gateways import Notifier
from rentdesk.services.lookup import get_owned
from rentdesk.util.audit import log_audit

logger = logging.getLogger(__name__)


def unresolved_for_receipt(db: Session, receipt_id: str) -> list[Discrepancy]:
    return (
        db.query(Discrepancy)
          .filter(Discrepancy.receipt_id == receipt_id, Discrepancy.resolved_at.is_(None))
          .all()
    )


class DiscrepancyService:
    def __init__(self, db: Session, notifier: Notifier):
        self.db = db
        self.notifier = notifier

    def create_discrepancy(self, receipt_id: str, body, tenant_id: str, user_id: str) -> Discrepancy:
        data = validate(CreateDiscrepancyIn, body)
        receipt = get_owned(self.db, Receipt, receipt_id, tenant_id, "Receipt")
        if receipt.status == ReceiptStatus.COMPLETED:
            raise InvalidStateTransition("Cannot add discrepancy to completed receipt")
        item = self.db.get(ReceiptItem, data.receipt_item_id)
        if item is None or item.receipt_id != receipt.id:
            raise NotFound("Receipt item not found")

        d = Discrepancy(
            receipt_id=receipt.id,
            receipt_item_id=item.id,
            tenant_id=tenant_id,
            type=DiscrepancyType(data.type),
            expected_quantity=data.expected_quantity,
            actual_quantity=data.actual_quantity,
            difference=data.actual_quantity - data.expected_quantity,
            reason=data.reason,
            created_by=user_id,
        )
        self.db.add(d)
        if not receipt.has_discrepancy:
            receipt.has_discrepancy = True
            receipt.status = ReceiptStatus.DISCREPANCY
        self.db.flush()

        log_audit(self.db, user_id, "discrepancy", d.id, "discrepancy_created", tenant_id, meta={
            "receipt_number": receipt.receipt_number,
            "product_code": item.product_code,
            "type": d.type.value,
            "difference": d.difference,
        })
        self.db.commit()
        logger.info("discrepancy %s on %s (%s %+g)", d.id, receipt.receipt_number, d.type.value, d.difference)
        return d

    def resolve_discrepancy(self, discrepancy_id: str, body, tenant_id: str, user_id: str,
                            receipt_id: str | None = None) -> Discrepancy:
        data = validate(ResolveDiscrepancyIn, body)
        d = get_owned(self.db, Discrepancy, discrepancy_id, tenant_id, "Discrepancy")
        if receipt_id and d.receipt_id != receipt_id:
            raise NotFound("Discrepancy not found")
        if d.resolved_at is not None:
            raise InvalidStateTransition("Discrepancy is already resolved")

        receipt = self.db.get(Receipt, d.receipt_id)
        if data.notify_supplier and not d.supplier_notified:
            self.notifier.supplier_discrepancy(receipt.supplier_id, receipt.supplier_name, d, receipt.receipt_number)

        d.resolved_at = utcnow()
        d.resolved_by = user_id
        d.resolution_note = data.resolution_note
        d.supplier_notified = bool(d.supplier_notified or data.notify_supplier)
        self.db.flush()

        # last open discrepancy closes the DISCREPANCY state
        if not unresolved_for_receipt(self.db, receipt.id) and receipt.status != ReceiptStatus.COMPLETED:
            receipt.status = ReceiptStatus.IN_PROGRESS
            receipt.has_discrepancy = False

        log_audit(self.db, user_id, "discrepancy", d.id, "discrepancy_resolved", tenant_id, meta={
            "receipt_number": receipt.receipt_number,
            "supplier_notified": d.supplier_notified,
            "receipt_status": receipt.status.value,
        })
        self.db.commit()
        return d

    def list_discrepancies(self, receipt_id: str, tenant_id: str, unresolved_only: bool = False) -> list[Discrepancy]:
        receipt = get_owned(self.db, Receipt, receipt_id, tenant_id, "Receipt")
        if unresolved_only:
            return unresolved_for_receipt(self.db, receipt.id)
        return (
            self.db.query(Discrepancy)
              .filter(Discrepancy.receipt_id == receipt.id)
              .order_by(Discrepancy.created_at.asc())
              .all()
        )
