from typing import List

from fastapi import APIRouter, Depends

from rentdesk.deps import Principal, require_auth, avizo_service
from rentdesk.schemas.receiving import AvizoOut, AvizoItemOut, AvizoWithItemsOut
from rentdesk.services.avizo import AvizoService

router = APIRouter(prefix="/avizo", tags=["avizo"])


@router.post("", response_model=AvizoWithItemsOut)
def create_avizo(body: dict, svc: AvizoService = Depends(avizo_service), me: Principal = Depends(require_auth)):
    return svc.create_avizo(body, me.tenant_id, me.user_id)


@router.get("/pending", response_model=List[AvizoOut])
def pending_avizos(svc: AvizoService = Depends(avizo_service), me: Principal = Depends(require_auth)):
    return svc.list_pending_avizos(me.tenant_id)


@router.get("/{avizo_id}", response_model=AvizoWithItemsOut)
def get_avizo(avizo_id: str, svc: AvizoService = Depends(avizo_service), me: Principal = Depends(require_auth)):
    return svc.get_avizo(avizo_id, me.tenant_id)


@router.get("/{avizo_id}/items", response_model=List[AvizoItemOut])
def get_avizo_items(avizo_id: str, svc: AvizoService = Depends(avizo_service),
                    me: Principal = Depends(require_auth)):
    return svc.get_avizo_items(avizo_id, me.tenant_id)


@router.patch("/{avizo_id}", response_model=AvizoOut)
def update_avizo(avizo_id: str, body: dict, svc: AvizoService = Depends(avizo_service),
                 me: Principal = Depends(require_auth)):
    return svc.update_avizo(avizo_id, body, me.tenant_id, me.user_id)


@router.post("/{avizo_id}/cancel", response_model=AvizoOut)
def cancel_avizo(avizo_id: str, svc: AvizoService = Depends(avizo_service), me: Principal = Depends(require_auth)):
    return svc.cancel_avizo(avizo_id, me.tenant_id, me.user_id)
