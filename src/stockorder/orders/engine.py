"""発注リストの統合エンジン

自動発注提案は毎回在庫から再計算し、保存しない。
保存するのはユーザーの調整（オーバーライド）と手動発注行のみ。
"""

import logging
from datetime import datetime
from typing import Optional

from stockorder.inventory.ledger import StockLedger
from stockorder.inventory.models import Product
from stockorder.inventory.store import ORDER_ITEMS_KEY, OVERRIDES_KEY, KeyValueStore
from stockorder.validation import blank_to_none, require_name, require_non_negative, require_positive

from .models import (
    AutoLine,
    ManualLine,
    OrderItem,
    OverrideTable,
    auto_item_id,
    parse_line_id,
    suggested_quantity,
)

logger = logging.getLogger(__name__)


class OrderReconciler:
    """自動提案・オーバーライド・手動発注を1つの発注リストに統合する

    存在しない行への操作は何もしない（UIが古い参照を持つのは想定内）。
    """

    def __init__(self, ledger: StockLedger, store: Optional[KeyValueStore] = None):
        self.ledger = ledger
        self.store = store or ledger.store

    # ── 永続化 ──

    def _locked(self):
        return self.store.locked(ORDER_ITEMS_KEY, OVERRIDES_KEY)

    def _product_exists(self, product_id: str) -> bool:
        return any(p.id == product_id for p in self.ledger.get_all_products())

    def _load_manual(self) -> list[OrderItem]:
        return [OrderItem.from_dict(d) for d in self.store.get_json(ORDER_ITEMS_KEY, [])]

    def _save_manual(self, items: list[OrderItem]):
        self.store.set_json(ORDER_ITEMS_KEY, [i.to_dict() for i in items])

    def _load_overrides(self) -> OverrideTable:
        return OverrideTable.from_dict(self.store.get_json(OVERRIDES_KEY, {}))

    def _save_overrides(self, overrides: OverrideTable):
        if len(overrides):
            self.store.set_json(OVERRIDES_KEY, overrides.to_dict())
        else:
            self.store.remove(OVERRIDES_KEY)

    # ── 照会 ──

    def get_order_items(self) -> list[OrderItem]:
        """自動提案 + 手動発注"""
        with self._locked():
            return self.get_auto_order_items() + self._load_manual()

    def get_manual_order_items(self) -> list[OrderItem]:
        return self._load_manual()

    def get_auto_order_items(self) -> list[OrderItem]:
        return [item for _, item in self._auto_items()]

    def _auto_items(self) -> list[tuple[Product, OrderItem]]:
        overrides = self._load_overrides()
        now = datetime.now()
        result = []
        for product in self.ledger.get_all_products():
            quantity = suggested_quantity(product)
            override = overrides.get(product.id)
            if override:
                quantity = override.apply(quantity)
            if quantity <= 0:
                continue
            result.append((product, OrderItem(
                id=auto_item_id(product.id),
                name=product.name,
                quantity=quantity,
                brand=product.brand,
                barcode=product.barcode,
                image_url=product.image_url,
                added_at=now,
            )))
        return result

    def get_hidden_auto_order_items(self) -> list[Product]:
        """非表示にされた自動提案の商品（削除済み商品は除く）"""
        hidden = set(self._load_overrides().hidden_ids())
        return [p for p in self.ledger.get_all_products() if p.id in hidden]

    # ── 変更 ──

    def add_order_item(self, item: OrderItem) -> OrderItem:
        """発注行を追加する。バーコードがあれば重複をまとめる。

        優先順位:
        1. 同じバーコードの自動提案がある → オーバーライド数量 = 現在の提案数 + 追加数
        2. 同じバーコードの手動行がある → 数量を加算
        3. 新規の手動行として追加

        Returns:
            追加・更新された発注行
        """
        item.name = require_name(item.name)
        require_positive("quantity", item.quantity)
        item.brand = blank_to_none(item.brand)
        item.barcode = blank_to_none(item.barcode)

        with self._locked():
            if item.barcode:
                for product, auto in self._auto_items():
                    if auto.barcode == item.barcode:
                        overrides = self._load_overrides()
                        overrides.set_quantity(product.id, auto.quantity + item.quantity)
                        self._save_overrides(overrides)
                        auto.quantity += item.quantity
                        logger.info("Merged order for %s into auto suggestion", item.barcode)
                        return auto

            items = self._load_manual()
            if item.barcode:
                for existing in items:
                    if existing.barcode == item.barcode:
                        existing.quantity += item.quantity
                        existing.added_at = datetime.now()
                        self._save_manual(items)
                        return existing

            items.append(item)
            self._save_manual(items)
            return item

    def update_order_item_quantity(self, item_id: str, new_quantity: int):
        """発注数量を変更する。

        自動提案はオーバーライドの数量を更新するだけで、商品の在庫・最低在庫は
        変更しない（0 を指定すると提案は消えるが非表示扱いにはならない）。
        手動行は 0 なら削除する。
        """
        require_non_negative("quantity", new_quantity)

        line = parse_line_id(item_id)
        if isinstance(line, ManualLine) and new_quantity == 0:
            self.remove_order_item(item_id)
            return

        with self._locked():
            if isinstance(line, AutoLine):
                if not self._product_exists(line.product_id):
                    return
                overrides = self._load_overrides()
                overrides.set_quantity(line.product_id, new_quantity)
                self._save_overrides(overrides)
            else:
                items = self._load_manual()
                for existing in items:
                    if existing.id == line.item_id:
                        existing.quantity = new_quantity
                        self._save_manual(items)
                        break

    def remove_order_item(self, item_id: str):
        """発注行を削除する。自動提案は非表示にするだけ（復元可能）。"""
        line = parse_line_id(item_id)
        with self._locked():
            if isinstance(line, AutoLine):
                if not self._product_exists(line.product_id):
                    return
                overrides = self._load_overrides()
                overrides.hide(line.product_id)
                self._save_overrides(overrides)
            elif isinstance(line, ManualLine):
                items = self._load_manual()
                remaining = [i for i in items if i.id != line.item_id]
                if len(remaining) != len(items):
                    self._save_manual(remaining)

    def restore_auto_order_item(self, product_id: str):
        """オーバーライドを削除し、純粋な自動提案に戻す"""
        with self._locked():
            overrides = self._load_overrides()
            if overrides.delete(product_id):
                self._save_overrides(overrides)

    def clear_all_orders(self):
        """手動発注とオーバーライドをすべて削除"""
        with self._locked():
            self.store.remove(ORDER_ITEMS_KEY)
            self.store.remove(OVERRIDES_KEY)
        logger.info("Cleared all orders")
