"""在庫管理"""

from .catalog import CatalogLookup, LookupResult, NullCatalog, OpenFoodFactsCatalog
from .ledger import StockLedger
from .models import CatalogProduct, MovementType, Product, StockMovement
from .store import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore

__all__ = [
    "CatalogLookup",
    "CatalogProduct",
    "KeyValueStore",
    "LookupResult",
    "MemoryKeyValueStore",
    "MovementType",
    "NullCatalog",
    "OpenFoodFactsCatalog",
    "Product",
    "SQLiteKeyValueStore",
    "StockLedger",
    "StockMovement",
]
