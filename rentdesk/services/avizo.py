import logging

from sqlalchemy.orm import Session

from rentdesk.errors import validate, InvalidStateTransition
from rentdesk.models.common import utcnow, as_utc
from rentdesk.models.core import Avizo, AvizoItem, AvizoStatus
from rentdesk.schemas.receiving import CreateAvizoIn, UpdateAvizoIn
from rentdesk.services.lookup import get_owned
from rentdesk.services.numbering import next_number
from rentdesk.services.receipt import avizo_items
from rentdesk.util.audit import log_audit

logger = logging.getLogger(__name__)


class AvizoService:
    """Supplier advance notices. Only PENDING avizos can be edited or cancelled."""

    def __init__(self, db: Session):
        self.db = db

    def create_avizo(self, body, tenant_id: str, user_id: str) -> dict:
        data = validate(CreateAvizoIn, body)
        now = utcnow()
        avizo = Avizo(
            tenant_id=tenant_id,
            avizo_number=next_number(self.db, tenant_id, "avizo", now.year),
            supplier_id=data.supplier_id,
            supplier_name=data.supplier_name,
            expected_date=as_utc(data.expected_date),
            status=AvizoStatus.PENDING,
            total_items=len(data.items),
            total_quantity=sum(i.expected_quantity for i in data.items),
            pdf_url=data.pdf_url,
            notes=data.notes,
            created_by=user_id,
        )
        self.db.add(avizo)
        self.db.flush()

        items = [
            AvizoItem(
                avizo_id=avizo.id,
                line_no=n,
                tenant_id=tenant_id,
                product_id=line.product_id,
                product_code=line.product_code,
                product_name=line.product_name,
                expected_quantity=line.expected_quantity,
                received_quantity=0,
                unit_price=line.unit_price,
            )
            for n, line in enumerate(data.items, start=1)
        ]
        self.db.add_all(items)
        log_audit(self.db, user_id, "avizo", avizo.id, "avizo_created", tenant_id, meta={
            "avizo_number": avizo.avizo_number,
            "supplier_id": avizo.supplier_id,
            "item_count": len(items),
        })
        self.db.commit()
        logger.info("avizo %s created for supplier %s", avizo.avizo_number, avizo.supplier_name)
        return {"avizo": avizo, "items": items}

    def update_avizo(self, avizo_id: str, body, tenant_id: str, user_id: str) -> Avizo:
        data = validate(UpdateAvizoIn, body)
        avizo = get_owned(self.db, Avizo, avizo_id, tenant_id, "Avizo")
        if avizo.status != AvizoStatus.PENDING:
            raise InvalidStateTransition("Can only update pending avizos")

        changes = data.model_dump(exclude_unset=True)
        if changes.get("expected_date") is not None:
            changes["expected_date"] = as_utc(changes["expected_date"])
        elif "expected_date" in changes:
            del changes["expected_date"]  # required column
        for k, v in changes.items():
            setattr(avizo, k, v)

        log_audit(self.db, user_id, "avizo", avizo.id, "avizo_updated", tenant_id, meta={
            "avizo_number": avizo.avizo_number,
            "fields": sorted(changes),
        })
        self.db.commit()
        return avizo

    def cancel_avizo(self, avizo_id: str, tenant_id: str, user_id: str) -> Avizo:
        avizo = get_owned(self.db, Avizo, avizo_id, tenant_id, "Avizo")
        if avizo.status != AvizoStatus.PENDING:
            raise InvalidStateTransition("Can only cancel pending avizos")
        avizo.status = AvizoStatus.CANCELLED
        log_audit(self.db, user_id, "avizo", avizo.id, "avizo_cancelled", tenant_id, meta={
            "avizo_number": avizo.avizo_number,
        })
        self.db.commit()
        logger.info("avizo %s cancelled", avizo.avizo_number)
        return avizo

    def get_avizo(self, avizo_id: str, tenant_id: str) -> dict:
        avizo = get_owned(self.db, Avizo, avizo_id, tenant_id, "Avizo")
        return {"avizo": avizo, "items": avizo_items(self.db, avizo.id)}

    def get_avizo_items(self, avizo_id: str, tenant_id: str) -> list[AvizoItem]:
        avizo = get_owned(self.db, Avizo, avizo_id, tenant_id, "Avizo")
        return avizo_items(self.db, avizo.id)

    def list_pending_avizos(self, tenant_id: str) -> list[Avizo]:
        """PENDING and PARTIAL avizos, soonest expected delivery first."""
        return (
            self.db.query(Avizo)
              .filter(
                  Avizo.tenant_id == tenant_id,
                  Avizo.status.in_((AvizoStatus.PENDING, AvizoStatus.PARTIAL)),
              )
              .order_by(Avizo.expected_date.asc())
              .all()
        )
