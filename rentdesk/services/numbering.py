from sqlalchemy.orm import Session

from rentdesk.models.core import DocumentSequence

# kind -> (prefix, zero padding)
FORMATS = {
    "booking": ("FOG", 5),
    "receipt": ("BEV", 4),
    "avizo": ("AV", 4),
}


def next_sequence(db: Session, tenant_id: str, kind: str, year: int) -> int:
    seq = db.get(DocumentSequence, (tenant_id, kind, year))
    if seq is None:
        seq = DocumentSequence(tenant_id=tenant_id, kind=kind, year=year, last_value=0)
        db.add(seq)
    seq.last_value = (seq.last_value or 0) + 1
    db.flush()
    return seq.last_value


def format_number(kind: str, year: int, value: int) -> str:
    prefix, width = FORMATS[kind]
    return f"{prefix}-{year}-{value:0{width}d}"


def next_number(db: Session, tenant_id: str, kind: str, year: int) -> str:
    return format_number(kind, year, next_sequence(db, tenant_id, kind, year))
