from typing import Optional

import pytest

from stockorder.inventory.ledger import StockLedger
from stockorder.inventory.models import CatalogProduct
from stockorder.inventory.store import MemoryKeyValueStore
from stockorder.orders.engine import OrderReconciler

from tests.helpers import FakeCatalog


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def catalog():
    return FakeCatalog({
        "3017620422003": CatalogProduct(
            barcode="3017620422003",
            name="Nutella",
            brand="Ferrero",
            image_url="https://images.example/nutella.jpg",
            category="Pâtes à tartiner",
        ),
    })


@pytest.fixture
def ledger(store, catalog):
    return StockLedger(store, catalog=catalog)


@pytest.fixture
def orders(ledger, store):
    return OrderReconciler(ledger, store)


@pytest.fixture
def make_product(ledger):
    """数量・最低在庫を指定して商品を作る"""

    def _make(barcode: str, quantity: int, min_stock: int = 5, name: Optional[str] = None):
        product = ledger.create_product(
            name or f"Article {barcode}", max(quantity, 1), min_stock=min_stock, barcode=barcode,
        )
        if quantity == 0:
            product = ledger.update_product(product.id, quantity=0)
        return product

    return _make
