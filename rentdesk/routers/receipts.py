from typing import List

from fastapi import APIRouter, Depends

from rentdesk.deps import Principal, require_auth, receipt_service, discrepancy_service
from rentdesk.schemas.receiving import (
    ReceiptOut, ReceiptItemOut, ReceiptWithItemsOut, DiscrepancyOut,
)
from rentdesk.services.discrepancy import DiscrepancyService
from rentdesk.services.receipt import ReceiptService

router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.post("", response_model=ReceiptWithItemsOut)
def create_receipt(body: dict, svc: ReceiptService = Depends(receipt_service),
                   me: Principal = Depends(require_auth)):
    return svc.create_receipt(body, me.tenant_id, me.user_id)


@router.get("/{receipt_id}", response_model=ReceiptWithItemsOut)
def get_receipt(receipt_id: str, svc: ReceiptService = Depends(receipt_service),
                me: Principal = Depends(require_auth)):
    return svc.get_receipt(receipt_id, me.tenant_id)


@router.get("/{receipt_id}/items", response_model=List[ReceiptItemOut])
def get_receipt_items(receipt_id: str, svc: ReceiptService = Depends(receipt_service),
                      me: Principal = Depends(require_auth)):
    return svc.get_receipt_items(receipt_id, me.tenant_id)


@router.post("/{receipt_id}/complete", response_model=ReceiptOut)
def complete_receipt(receipt_id: str, svc: ReceiptService = Depends(receipt_service),
                     me: Principal = Depends(require_auth)):
    return svc.complete_receipt(receipt_id, me.tenant_id, me.user_id)


# ── Discrepancies ───────────────────────────────────────────────────────────

@router.get("/{receipt_id}/discrepancies", response_model=List[DiscrepancyOut])
def list_discrepancies(receipt_id: str, unresolved_only: bool = False,
                       svc: DiscrepancyService = Depends(discrepancy_service),
                       me: Principal = Depends(require_auth)):
    return svc.list_discrepancies(receipt_id, me.tenant_id, unresolved_only)


@router.post("/{receipt_id}/discrepancies", response_model=DiscrepancyOut)
def create_discrepancy(receipt_id: str, body: dict,
                       svc: DiscrepancyService = Depends(discrepancy_service),
                       me: Principal = Depends(require_auth)):
    return svc.create_discrepancy(receipt_id, body, me.tenant_id, me.user_id)


@router.post("/{receipt_id}/discrepancies/{discrepancy_id}/resolve", response_model=DiscrepancyOut)
def resolve_discrepancy(receipt_id: str, discrepancy_id: str, body: dict,
                        svc: DiscrepancyService = Depends(discrepancy_service),
                        me: Principal = Depends(require_auth)):
    return svc.resolve_discrepancy(discrepancy_id, body, me.tenant_id, me.user_id, receipt_id=receipt_id)
