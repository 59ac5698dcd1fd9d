# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    BookingType, BookingStatus, PaymentStatus,
    AvizoStatus, ReceiptStatus, DiscrepancyType, StockMoveType,

    # Online booking
    Booking, BookingItem,

    # Goods receipt
    Avizo, AvizoItem, Receipt, ReceiptItem, Discrepancy,

    # Inventory
    StockMove,

    # Numbering & audit
    DocumentSequence, AuditLog,
)

__all__ = [
    # Enums
    "BookingType", "BookingStatus", "PaymentStatus",
    "AvizoStatus", "ReceiptStatus", "DiscrepancyType", "StockMoveType",

    # Online booking
    "Booking", "BookingItem",

    # Goods receipt
    "Avizo", "AvizoItem", "Receipt", "ReceiptItem", "Discrepancy",

    # Inventory
    "StockMove",

    # Numbering & audit
    "DocumentSequence", "AuditLog",
]
