"""在庫台帳 - 商品と入出庫履歴の管理"""

import logging
import random
import time
import uuid
from datetime import date, timedelta
from typing import Optional

from stockorder.errors import InsufficientStockError, NotFoundError, ValidationError
from stockorder.validation import (
    blank_to_none,
    require_name,
    require_non_negative,
    require_positive,
)

from .catalog import CatalogLookup, LookupResult, NullCatalog
from .models import DEFAULT_MIN_STOCK, MovementType, Product, StockMovement, parse_date
from .store import MOVEMENTS_KEY, PRODUCTS_KEY, KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_HORIZON_DAYS = 5

REASON_STOCK_IN = "Ajout de stock"
REASON_NEW_PRODUCT = "Nouveau produit"
REASON_STOCK_OUT = "Sortie de stock"

# 手動編集できるフィールド
EDITABLE_FIELDS = {
    "name", "brand", "quantity", "min_stock", "expiry_date",
    "unit", "image_url", "category",
}


class StockLedger:
    """在庫台帳

    商品リストと入出庫履歴はそれぞれ独立したblobとして保存される。
    読み込み→変更→保存の各サイクルはストアのキーロック内で行うため、
    同じストアを共有する別インスタンス・別プロセスとも直列化される。
    """

    def __init__(
        self,
        store: KeyValueStore,
        catalog: Optional[CatalogLookup] = None,
        default_min_stock: int = DEFAULT_MIN_STOCK,
        expiry_horizon_days: int = DEFAULT_EXPIRY_HORIZON_DAYS,
    ):
        self.store = store
        self.catalog = catalog or NullCatalog()
        self.default_min_stock = default_min_stock
        self.expiry_horizon_days = expiry_horizon_days

    # ── 永続化 ──

    def _locked(self):
        return self.store.locked(PRODUCTS_KEY, MOVEMENTS_KEY)

    def _load_products(self) -> list[Product]:
        return [Product.from_dict(d) for d in self.store.get_json(PRODUCTS_KEY, [])]

    def _save_products(self, products: list[Product]):
        self.store.set_json(PRODUCTS_KEY, [p.to_dict() for p in products])

    def _load_movements(self) -> list[StockMovement]:
        return [StockMovement.from_dict(d) for d in self.store.get_json(MOVEMENTS_KEY, [])]

    def _append_movement(
        self, product_id: str, type_: MovementType, quantity: int, reason: str
    ) -> StockMovement:
        movement = StockMovement(
            id=uuid.uuid4().hex,
            product_id=product_id,
            type=type_,
            quantity=quantity,
            reason=reason,
        )
        raw = self.store.get_json(MOVEMENTS_KEY, [])
        raw.append(movement.to_dict())
        self.store.set_json(MOVEMENTS_KEY, raw)
        return movement

    # ── 入出庫 ──

    def add_stock(
        self, barcode: str, quantity: int, expiry_date: Optional[date] = None
    ) -> Product:
        """入庫。未登録のバーコードなら商品を作成する。

        既存商品の賞味期限は expiry_date で上書きしない（作成時のみ使用）。

        Raises:
            ValidationError: quantity が正の整数でない
        """
        require_positive("quantity", quantity)
        barcode = _require_barcode(barcode)

        with self._locked():
            product = self._increment_existing(barcode, quantity)
        if product:
            return product

        # カタログ検索はロックの外で行う（遅いサービスで他の入出庫を止めない）
        result = self._lookup(barcode)

        with self._locked():
            # 検索中に同じバーコードが登録された場合は入庫として扱う
            product = self._increment_existing(barcode, quantity)
            if product:
                return product

            product = self._new_product(barcode, quantity, result, expiry_date)
            products = self._load_products()
            products.append(product)
            self._save_products(products)
            self._append_movement(product.id, MovementType.IN, quantity, REASON_NEW_PRODUCT)

        logger.info("Created product %s (%s) with quantity %d", product.id, barcode, quantity)
        return product

    def _increment_existing(self, barcode: str, quantity: int) -> Optional[Product]:
        products = self._load_products()
        product = _find_by_barcode(products, barcode)
        if product is None:
            return None
        product.quantity += quantity
        product.touch()
        self._save_products(products)
        self._append_movement(product.id, MovementType.IN, quantity, REASON_STOCK_IN)
        logger.info("Stock in %s: +%d -> %d", barcode, quantity, product.quantity)
        return product

    def _lookup(self, barcode: str) -> LookupResult:
        try:
            return self.catalog.lookup(barcode)
        except Exception as e:
            logger.warning("Catalog lookup raised for %s: %s", barcode, e)
            return LookupResult(available=False)

    def _new_product(
        self,
        barcode: str,
        quantity: int,
        result: LookupResult,
        expiry_date: Optional[date],
    ) -> Product:
        if not result.available:
            logger.warning(
                "Catalog unavailable, creating %s with minimal information", barcode
            )
        info = result.product
        return Product(
            id=uuid.uuid4().hex,
            barcode=barcode,
            name=(info.name if info and info.name else f"Produit {barcode}"),
            brand=info.brand if info else None,
            quantity=quantity,
            min_stock=self.default_min_stock,
            expiry_date=parse_date(expiry_date) if expiry_date else None,
            image_url=info.image_url if info else None,
            category=info.category if info else None,
        )

    def remove_stock(self, barcode: str, quantity: int) -> Product:
        """出庫

        Raises:
            ValidationError: quantity が正の整数でない・バーコードが空
            NotFoundError: バーコードが未登録
            InsufficientStockError: 在庫数を超える出庫（在庫は変更しない）
        """
        require_positive("quantity", quantity)
        barcode = _require_barcode(barcode)

        with self._locked():
            products = self._load_products()
            product = _find_by_barcode(products, barcode)
            if product is None:
                raise NotFoundError(f"Produit non trouvé dans le stock: {barcode}")
            if quantity > product.quantity:
                raise InsufficientStockError(product.quantity, quantity)

            product.quantity -= quantity
            product.touch()
            self._save_products(products)
            self._append_movement(product.id, MovementType.OUT, quantity, REASON_STOCK_OUT)

        logger.info("Stock out %s: -%d -> %d", barcode, quantity, product.quantity)
        return product

    # ── 手動登録・編集・削除 ──

    def create_product(
        self,
        name: str,
        quantity: int,
        min_stock: Optional[int] = None,
        barcode: Optional[str] = None,
        brand: Optional[str] = None,
        expiry_date: Optional[date] = None,
        unit: Optional[str] = None,
        image_url: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Product:
        """商品を手動で登録する。バーコードがなければ MANUAL... を生成。

        Raises:
            ValidationError: 商品名が空・数量が0以下・最低在庫が負・バーコード重複
        """
        name = require_name(name)
        require_positive("quantity", quantity)
        if min_stock is None:
            min_stock = self.default_min_stock
        require_non_negative("min_stock", min_stock)

        with self._locked():
            products = self._load_products()
            barcode = (barcode or "").strip()
            if not barcode:
                barcode = _manual_barcode()
            elif _find_by_barcode(products, barcode):
                raise ValidationError(
                    "barcode", f"Un produit avec ce code-barre existe déjà: {barcode}"
                )

            product = Product(
                id=uuid.uuid4().hex,
                barcode=barcode,
                name=name,
                brand=blank_to_none(brand),
                quantity=quantity,
                min_stock=min_stock,
                expiry_date=parse_date(expiry_date) if expiry_date else None,
                image_url=blank_to_none(image_url),
                category=blank_to_none(category),
                unit=blank_to_none(unit),
            )
            products.append(product)
            self._save_products(products)
            self._append_movement(product.id, MovementType.IN, quantity, REASON_NEW_PRODUCT)

        logger.info("Manually created product %s (%s)", product.id, barcode)
        return product

    def update_product(self, product_id: str, **fields) -> Product:
        """商品を手動編集する。入出庫履歴は追加しない。

        Raises:
            NotFoundError: 商品が存在しない
            ValidationError: 不正なフィールド・値
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "field cannot be edited")

        if "name" in fields:
            fields["name"] = require_name(fields["name"])
        if "quantity" in fields:
            require_non_negative("quantity", fields["quantity"])
        if "min_stock" in fields:
            require_non_negative("min_stock", fields["min_stock"])
        if "expiry_date" in fields:
            value = fields["expiry_date"]
            fields["expiry_date"] = parse_date(value) if value else None
        for key in ("brand", "unit", "image_url", "category"):
            if key in fields:
                fields[key] = blank_to_none(fields[key])

        with self._locked():
            products = self._load_products()
            product = _find_by_id(products, product_id)
            for key, value in fields.items():
                setattr(product, key, value)
            product.touch()
            self._save_products(products)

        return product

    def delete_product(self, product_id: str):
        """商品を削除する。入出庫履歴は残す。"""
        with self._locked():
            products = self._load_products()
            product = _find_by_id(products, product_id)
            products.remove(product)
            self._save_products(products)
        logger.info("Deleted product %s (%s)", product_id, product.barcode)

    # ── 照会 ──

    def get_all_products(self) -> list[Product]:
        return self._load_products()

    def get_product(self, product_id: str) -> Product:
        return _find_by_id(self._load_products(), product_id)

    def get_product_by_barcode(self, barcode: str) -> Optional[Product]:
        barcode = (barcode or "").strip()
        if not barcode:
            return None
        return _find_by_barcode(self._load_products(), barcode)

    def get_low_stock(self) -> list[Product]:
        """在庫少（0 < 数量 <= 最低在庫）"""
        return [p for p in self._load_products() if 0 < p.quantity <= p.min_stock]

    def get_out_of_stock(self) -> list[Product]:
        """在庫切れ"""
        return [p for p in self._load_products() if p.quantity == 0]

    def get_expiring(
        self, horizon_days: Optional[int] = None, today: Optional[date] = None
    ) -> list[Product]:
        """賞味期限が [今日, 今日+horizon_days] に入る商品"""
        if horizon_days is None:
            horizon_days = self.expiry_horizon_days
        require_non_negative("horizon_days", horizon_days)
        today = today or date.today()
        limit = today + timedelta(days=horizon_days)
        return [
            p for p in self._load_products()
            if p.expiry_date is not None and today <= p.expiry_date <= limit
        ]

    def search_in_stock(self, query: str) -> list[Product]:
        """商品名・ブランド・バーコード・カテゴリの部分一致検索（保存順）"""
        term = (query or "").lower().strip()
        products = self._load_products()
        if not term:
            return products
        return [
            p for p in products
            if term in p.name.lower()
            or (p.brand and term in p.brand.lower())
            or term in p.barcode.lower()
            or (p.category and term in p.category.lower())
        ]

    def find_similar(self, name: str, brand: Optional[str] = None) -> list[Product]:
        """同名（ブランド指定時は同ブランド）の商品を探す"""
        name = (name or "").lower().strip()
        brand = (brand or "").lower().strip()
        return [
            p for p in self._load_products()
            if p.name.lower().strip() == name
            and (not brand or (p.brand or "").lower().strip() == brand)
        ]

    def get_movements(self, product_id: Optional[str] = None) -> list[StockMovement]:
        movements = self._load_movements()
        if product_id is not None:
            movements = [m for m in movements if m.product_id == product_id]
        return movements


def _find_by_barcode(products: list[Product], barcode: str) -> Optional[Product]:
    for product in products:
        if product.barcode == barcode:
            return product
    return None


def _find_by_id(products: list[Product], product_id: str) -> Product:
    for product in products:
        if product.id == product_id:
            return product
    raise NotFoundError(f"Produit non trouvé: {product_id}")


def _manual_barcode() -> str:
    """手動登録用の合成バーコード"""
    return f"MANUAL{int(time.time() * 1000)}{random.randint(0, 999):03d}"


def _require_barcode(barcode) -> str:
    barcode = (barcode or "").strip()
    if not barcode:
        raise ValidationError("barcode", "barcode is required")
    return barcode
