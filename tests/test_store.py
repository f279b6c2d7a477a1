import threading

import pytest

from stockorder.inventory.ledger import StockLedger
from stockorder.inventory.store import MemoryKeyValueStore, SQLiteKeyValueStore


@pytest.fixture
def sqlite_store(tmp_path):
    store = SQLiteKeyValueStore(tmp_path / "stock.db")
    yield store
    store.close()


@pytest.mark.parametrize("factory", ["memory", "sqlite"])
def test_get_set_remove(factory, tmp_path):
    store = MemoryKeyValueStore() if factory == "memory" else SQLiteKeyValueStore(tmp_path / "kv.db")

    assert store.get("missing") is None
    store.set("key", b"\x00\x01value")
    assert store.get("key") == b"\x00\x01value"
    store.set("key", b"replaced")
    assert store.get("key") == b"replaced"
    store.remove("key")
    store.remove("key")
    assert store.get("key") is None
    store.close()


def test_json_helpers(sqlite_store):
    sqlite_store.set_json("items", [{"name": "Café crème"}])

    assert sqlite_store.get_json("items") == [{"name": "Café crème"}]
    assert sqlite_store.get_json("missing", []) == []


def test_sqlite_store_persists_across_connections(tmp_path):
    path = tmp_path / "stock.db"
    store = SQLiteKeyValueStore(path)
    ledger = StockLedger(store)
    product = ledger.add_stock("111", 3)
    store.close()

    reopened = SQLiteKeyValueStore(path)
    products = StockLedger(reopened).get_all_products()
    reopened.close()

    assert products == [product]


def test_locked_is_reentrant(tmp_path):
    for store in (MemoryKeyValueStore(), SQLiteKeyValueStore(tmp_path / "kv.db")):
        with store.locked("a"):
            with store.locked("b", "a"):
                store.set("a", b"1")
        assert store.get("a") == b"1"
        store.close()


def test_sqlite_locked_rolls_back_on_error(sqlite_store):
    sqlite_store.set("kept", b"before")

    with pytest.raises(RuntimeError):
        with sqlite_store.locked("kept"):
            sqlite_store.set("kept", b"after")
            sqlite_store.set("other", b"x")
            raise RuntimeError("boom")

    assert sqlite_store.get("kept") == b"before"
    assert sqlite_store.get("other") is None


def test_separate_sqlite_connections_do_not_lose_updates(tmp_path):
    path = tmp_path / "stock.db"
    stores = [SQLiteKeyValueStore(path), SQLiteKeyValueStore(path)]
    ledgers = [StockLedger(s) for s in stores]
    ledgers[0].add_stock("111", 1)

    def scan_many(ledger):
        for _ in range(10):
            ledger.add_stock("111", 1)

    threads = [threading.Thread(target=scan_many, args=(l,)) for l in ledgers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    product = ledgers[1].get_product_by_barcode("111")
    assert product.quantity == 21
    assert len(ledgers[0].get_movements(product.id)) == 21
    for store in stores:
        store.close()
