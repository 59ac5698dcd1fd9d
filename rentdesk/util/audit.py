import json
import logging
from sqlalchemy.orm import Session
from rentdesk.models.core import AuditLog

logger = logging.getLogger(__name__)

def log_audit(db: Session, actor_user_id: str, entity: str, entity_id: str,
              action: str, tenant_id: str, meta: dict | None = None):
    entry = AuditLog(
        tenant_id=tenant_id,
        actor_user_id=actor_user_id,
        entity=entity, entity_id=entity_id,
        action=action,
        meta=json.dumps(meta, default=str) if meta else None,
    )
    db.add(entry)
    logger.debug("audit %s %s/%s by %s", action, entity, entity_id, actor_user_id)
    return entry
