from .inventory import Category, Product, StockMovement, MovementType
from .invoices import Invoice, InvoiceLine, InvoiceStatus
from .documents import DocumentSequence, DocumentType
from .pricing import PriceHistoryEntry

__all__ = [
    'Category', 'Product', 'StockMovement', 'MovementType',
    'Invoice', 'InvoiceLine', 'InvoiceStatus',
    'DocumentSequence', 'DocumentType',
    'PriceHistoryEntry',
]
