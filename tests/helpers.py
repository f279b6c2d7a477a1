import time
from typing import Optional

from stockorder.inventory.catalog import CatalogLookup, LookupResult
from stockorder.inventory.store import MemoryKeyValueStore


class FakeCatalog(CatalogLookup):
    """メモリ上のカタログ。available=False で到達不可を再現。"""

    def __init__(self, products: Optional[dict] = None, available: bool = True, error: Optional[Exception] = None):
        self.products = products or {}
        self.available = available
        self.error = error
        self.calls: list[str] = []

    def lookup(self, barcode: str) -> LookupResult:
        self.calls.append(barcode)
        if self.error is not None:
            raise self.error
        if not self.available:
            return LookupResult(available=False)
        return LookupResult(product=self.products.get(barcode))


class SlowStore(MemoryKeyValueStore):
    """読み込み後に待つストア。読み込み→保存の間に別スレッドが割り込める。"""

    def __init__(self, delay: float = 0.01):
        super().__init__()
        self.delay = delay

    def get(self, key: str) -> Optional[bytes]:
        value = super().get(key)
        time.sleep(self.delay)
        return value
