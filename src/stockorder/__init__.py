"""stockorder - stock ledger and reorder list toolkit"""

__version__ = "0.1.0"

from stockorder.errors import InsufficientStockError, NotFoundError, StockError, ValidationError
from stockorder.inventory.ledger import StockLedger
from stockorder.orders.engine import OrderReconciler

__all__ = [
    "StockLedger",
    "OrderReconciler",
    "StockError",
    "NotFoundError",
    "InsufficientStockError",
    "ValidationError",
]
