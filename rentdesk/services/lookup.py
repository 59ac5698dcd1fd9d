from sqlalchemy.orm import Session

from rentdesk.errors import NotFound, AccessDenied


def get_owned(db: Session, model, entity_id: str, tenant_id: str, label: str):
    """Fetch `model` by primary key and make sure it belongs to `tenant_id`."""
    return ensure_owned(db.get(model, entity_id), tenant_id, label)


def ensure_owned(entity, tenant_id: str, label: str):
    # missing and foreign are reported separately: callers rely on 404 vs 403
    if entity is None:
        raise NotFound(f"{label} not found")
    if entity.tenant_id != tenant_id:
        raise AccessDenied("Access denied")
    return entity
