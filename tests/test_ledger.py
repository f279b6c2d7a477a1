import threading
from datetime import date, timedelta

import pytest

from stockorder.errors import InsufficientStockError, NotFoundError, ValidationError
from stockorder.inventory.ledger import StockLedger
from stockorder.inventory.models import MovementType
from stockorder.inventory.store import MOVEMENTS_KEY, PRODUCTS_KEY, MemoryKeyValueStore

from tests.helpers import FakeCatalog, SlowStore


def test_add_stock_creates_product_from_catalog(ledger, catalog):
    product = ledger.add_stock("3017620422003", 2)

    assert product.name == "Nutella"
    assert product.brand == "Ferrero"
    assert product.category == "Pâtes à tartiner"
    assert product.quantity == 2
    assert product.min_stock == 5
    assert catalog.calls == ["3017620422003"]

    movements = ledger.get_movements(product.id)
    assert len(movements) == 1
    assert movements[0].type is MovementType.IN
    assert movements[0].quantity == 2
    assert movements[0].reason == "Nouveau produit"


def test_add_stock_unknown_barcode_uses_placeholder(ledger):
    product = ledger.add_stock("1234567890123", 1)

    assert product.name == "Produit 1234567890123"
    assert product.brand is None
    assert product.min_stock == 5


def test_add_stock_when_catalog_unavailable(store):
    ledger = StockLedger(store, catalog=FakeCatalog(available=False))

    product = ledger.add_stock("42", 3)

    assert product.name == "Produit 42"
    assert product.quantity == 3


def test_add_stock_when_catalog_raises(store):
    ledger = StockLedger(store, catalog=FakeCatalog(error=RuntimeError("boom")))

    product = ledger.add_stock("42", 1)

    assert product.name == "Produit 42"
    assert len(ledger.get_all_products()) == 1


def test_add_stock_existing_increments_without_lookup(ledger, catalog):
    first = ledger.add_stock("3017620422003", 2)
    catalog.calls.clear()

    second = ledger.add_stock("3017620422003", 3)

    assert second.id == first.id
    assert second.quantity == 5
    assert catalog.calls == []
    assert [m.reason for m in ledger.get_movements(first.id)] == ["Nouveau produit", "Ajout de stock"]


def test_add_stock_expiry_only_used_at_creation(ledger):
    first_expiry = date(2030, 1, 10)
    ledger.add_stock("111", 1, expiry_date=first_expiry)

    product = ledger.add_stock("111", 1, expiry_date=date(2031, 6, 1))

    assert product.expiry_date == first_expiry


def test_add_stock_refreshes_last_updated(ledger):
    product = ledger.add_stock("111", 1)
    before = product.last_updated

    updated = ledger.add_stock("111", 1)

    assert updated.last_updated >= before
    assert updated.added_at == product.added_at


@pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
def test_add_stock_rejects_non_positive_quantity(ledger, quantity):
    with pytest.raises(ValidationError):
        ledger.add_stock("111", quantity)
    assert ledger.get_all_products() == []


def test_add_then_remove_round_trip(ledger):
    ledger.add_stock("111", 4)
    before = ledger.get_product_by_barcode("111").quantity

    ledger.add_stock("111", 3)
    product = ledger.remove_stock("111", 3)

    assert product.quantity == before
    movements = ledger.get_movements(product.id)[-2:]
    assert [(m.type, m.quantity) for m in movements] == [(MovementType.IN, 3), (MovementType.OUT, 3)]
    assert movements[1].reason == "Sortie de stock"


def test_remove_stock_insufficient_leaves_state_unchanged(ledger):
    product = ledger.add_stock("111", 2)
    movement_count = len(ledger.get_movements())

    with pytest.raises(InsufficientStockError) as excinfo:
        ledger.remove_stock("111", 3)

    assert excinfo.value.available == 2
    assert excinfo.value.requested == 3
    assert ledger.get_product(product.id).quantity == 2
    assert len(ledger.get_movements()) == movement_count


def test_remove_stock_to_zero(ledger):
    ledger.add_stock("111", 2)

    product = ledger.remove_stock("111", 2)

    assert product.quantity == 0
    assert ledger.get_out_of_stock() == [product]


def test_remove_stock_unknown_barcode(ledger, store):
    with pytest.raises(NotFoundError):
        ledger.remove_stock("0000", 1)

    assert store.get(MOVEMENTS_KEY) is None
    assert store.get(PRODUCTS_KEY) is None


def test_low_and_out_of_stock(ledger, make_product):
    empty = make_product("A", 0, min_stock=5)
    low = make_product("B", 5, min_stock=5)
    ok = make_product("C", 6, min_stock=5)
    zero_min = make_product("D", 1, min_stock=0)

    low_ids = {p.id for p in ledger.get_low_stock()}
    out_ids = {p.id for p in ledger.get_out_of_stock()}

    assert low_ids == {low.id}
    assert out_ids == {empty.id}
    assert ok.id not in low_ids and zero_min.id not in low_ids


def test_get_expiring(ledger):
    today = date(2026, 10, 19)
    ledger.create_product("Yaourt", 1, barcode="1", expiry_date=today)
    ledger.create_product("Lait", 1, barcode="2", expiry_date=today + timedelta(days=5))
    ledger.create_product("Fromage", 1, barcode="3", expiry_date=today + timedelta(days=6))
    ledger.create_product("Jambon", 1, barcode="4", expiry_date=today - timedelta(days=1))
    ledger.create_product("Sel", 1, barcode="5")

    names = [p.name for p in ledger.get_expiring(today=today)]
    assert names == ["Yaourt", "Lait"]

    names = [p.name for p in ledger.get_expiring(10, today=today)]
    assert names == ["Yaourt", "Lait", "Fromage"]


def test_search_in_stock(ledger):
    ledger.add_stock("3017620422003", 1)
    ledger.create_product("Lait demi-écrémé", 2, barcode="555", brand="Lactel")
    ledger.create_product("Beurre doux", 1, barcode="777", brand="Président")

    assert [p.name for p in ledger.search_in_stock("NUTELLA")] == ["Nutella"]
    assert [p.name for p in ledger.search_in_stock("lactel")] == ["Lait demi-écrémé"]
    assert [p.name for p in ledger.search_in_stock("tartiner")] == ["Nutella"]
    assert [p.name for p in ledger.search_in_stock("77")] == ["Beurre doux"]
    assert len(ledger.search_in_stock("  ")) == 3
    assert ledger.search_in_stock("e") == ledger.search_in_stock("e")


def test_create_product_manual_barcode(ledger):
    product = ledger.create_product("Pain maison", 3, min_stock=2, brand="  ", unit="pièce")

    assert product.barcode.startswith("MANUAL")
    assert product.brand is None
    assert product.unit == "pièce"
    assert ledger.get_movements(product.id)[0].quantity == 3


def test_create_product_validation(ledger):
    with pytest.raises(ValidationError) as excinfo:
        ledger.create_product("  ", 1)
    assert excinfo.value.field == "name"

    with pytest.raises(ValidationError):
        ledger.create_product("Pain", 0)

    with pytest.raises(ValidationError) as excinfo:
        ledger.create_product("Pain", 1, min_stock=-1)
    assert excinfo.value.field == "min_stock"

    ledger.create_product("Pain", 1, barcode="999")
    with pytest.raises(ValidationError) as excinfo:
        ledger.create_product("Autre", 1, barcode="999")
    assert excinfo.value.field == "barcode"


def test_find_similar(ledger):
    ledger.create_product("Pain", 1, brand="Harrys")

    assert len(ledger.find_similar(" pain ")) == 1
    assert len(ledger.find_similar("Pain", "harrys")) == 1
    assert ledger.find_similar("Pain", "Jacquet") == []


def test_update_product_does_not_log_movement(ledger):
    product = ledger.add_stock("111", 2)

    updated = ledger.update_product(
        product.id, name=" Café ", quantity=10, min_stock=3, expiry_date="2030-01-01", brand="",
    )

    assert updated.name == "Café"
    assert updated.quantity == 10
    assert updated.min_stock == 3
    assert updated.expiry_date == date(2030, 1, 1)
    assert updated.brand is None
    assert len(ledger.get_movements(product.id)) == 1
    assert ledger.get_product(product.id).quantity == 10


def test_update_product_validation(ledger):
    product = ledger.add_stock("111", 2)

    with pytest.raises(ValidationError):
        ledger.update_product(product.id, quantity=-1)
    with pytest.raises(ValidationError):
        ledger.update_product(product.id, name="")
    with pytest.raises(ValidationError):
        ledger.update_product(product.id, barcode="222")
    with pytest.raises(NotFoundError):
        ledger.update_product("missing", quantity=1)

    assert ledger.get_product(product.id).quantity == 2


def test_delete_product_keeps_movements(ledger):
    product = ledger.add_stock("111", 2)

    ledger.delete_product(product.id)

    assert ledger.get_all_products() == []
    assert len(ledger.get_movements(product.id)) == 1
    with pytest.raises(NotFoundError):
        ledger.delete_product(product.id)


def test_corrupt_blob_is_treated_as_empty():
    store = MemoryKeyValueStore()
    store.set(PRODUCTS_KEY, b"{not json")
    ledger = StockLedger(store)

    assert ledger.get_all_products() == []
    product = ledger.add_stock("111", 1)
    assert ledger.get_all_products() == [product]


def test_barcode_is_trimmed_on_every_path(ledger):
    product = ledger.add_stock(" 111 ", 2)

    assert product.barcode == "111"
    assert ledger.get_product_by_barcode(" 111 ").id == product.id
    assert ledger.remove_stock(" 111 ", 1).quantity == 1
    assert ledger.add_stock("111", 1).quantity == 2
    assert ledger.get_product_by_barcode("  ") is None
    with pytest.raises(ValidationError):
        ledger.remove_stock("  ", 1)


def test_ledgers_sharing_a_store_do_not_lose_updates():
    store = SlowStore()
    first, second = StockLedger(store), StockLedger(store)
    first.add_stock("111", 1)

    threads = [
        threading.Thread(target=ledger.add_stock, args=("111", 1))
        for ledger in (first, second, first, second)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    product = second.get_product_by_barcode("111")
    assert product.quantity == 5
    assert len(first.get_movements(product.id)) == 5


def test_concurrent_first_scans_create_one_product():
    store = SlowStore()
    ledgers = [StockLedger(store), StockLedger(store)]

    threads = [threading.Thread(target=l.add_stock, args=("222", 2)) for l in ledgers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    [product] = ledgers[0].get_all_products()
    assert product.quantity == 4
    assert [m.reason for m in ledgers[0].get_movements()] == ["Nouveau produit", "Ajout de stock"]
