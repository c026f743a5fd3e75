from .inventory import InventoryItem, StockMovement, Supplier
from .purchases import Purchase, PurchaseItem, Asset, Expense
from .sales import Sale, SaleItem, Quote, QuoteItem
from .receivables import Invoice, InvoiceItem, InvoicePayment
from .documents import DocumentSequence

__all__ = [
    'InventoryItem', 'StockMovement', 'Supplier',
    'Purchase', 'PurchaseItem', 'Asset', 'Expense',
    'Sale', 'SaleItem', 'Quote', 'QuoteItem',
    'Invoice', 'InvoiceItem', 'InvoicePayment',
    'DocumentSequence',
]
