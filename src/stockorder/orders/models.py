"""発注データモデル定義"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from stockorder.inventory.models import Product

AUTO_PREFIX = "auto_"


@dataclass
class OrderItem:
    """発注リストの1行（手動・自動共通の形）"""
    id: str
    name: str
    quantity: int
    brand: Optional[str] = None
    barcode: Optional[str] = None
    image_url: Optional[str] = None
    added_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def new(
        cls,
        name: str,
        quantity: int,
        brand: Optional[str] = None,
        barcode: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> "OrderItem":
        """手動発注行を新規作成"""
        return cls(
            id=uuid.uuid4().hex,
            name=name,
            quantity=quantity,
            brand=brand,
            barcode=barcode,
            image_url=image_url,
        )

    @property
    def is_auto(self) -> bool:
        return isinstance(parse_line_id(self.id), AutoLine)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "brand": self.brand,
            "barcode": self.barcode,
            "image_url": self.image_url,
            "added_at": self.added_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OrderItem":
        return cls(
            id=data["id"],
            name=data["name"],
            quantity=int(data["quantity"]),
            brand=data.get("brand"),
            barcode=data.get("barcode"),
            image_url=data.get("image_url"),
            added_at=datetime.fromisoformat(data["added_at"]) if data.get("added_at") else datetime.now(),
        )


@dataclass
class AutoOrderOverride:
    """自動発注提案へのユーザー調整（商品IDごとに最大1件）"""
    product_id: str
    custom_quantity: Optional[int] = None
    is_hidden: bool = False

    def apply(self, base: int) -> int:
        """調整後の数量。非表示なら0。"""
        if self.is_hidden:
            return 0
        if self.custom_quantity is not None:
            return self.custom_quantity
        return base


class OverrideTable:
    """product_id -> AutoOrderOverride のマップ"""

    def __init__(self, overrides: Optional[dict[str, AutoOrderOverride]] = None):
        self._overrides = dict(overrides or {})

    def __contains__(self, product_id: str) -> bool:
        return product_id in self._overrides

    def __len__(self) -> int:
        return len(self._overrides)

    def get(self, product_id: str) -> Optional[AutoOrderOverride]:
        return self._overrides.get(product_id)

    def _get_or_create(self, product_id: str) -> AutoOrderOverride:
        override = self._overrides.get(product_id)
        if override is None:
            override = AutoOrderOverride(product_id=product_id)
            self._overrides[product_id] = override
        return override

    def set_quantity(self, product_id: str, quantity: int) -> AutoOrderOverride:
        override = self._get_or_create(product_id)
        override.custom_quantity = quantity
        return override

    def hide(self, product_id: str) -> AutoOrderOverride:
        override = self._get_or_create(product_id)
        override.is_hidden = True
        return override

    def delete(self, product_id: str) -> bool:
        return self._overrides.pop(product_id, None) is not None

    def hidden_ids(self) -> list[str]:
        return [pid for pid, o in self._overrides.items() if o.is_hidden]

    def to_dict(self) -> dict:
        return {
            pid: {"custom_quantity": o.custom_quantity, "is_hidden": o.is_hidden}
            for pid, o in self._overrides.items()
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OverrideTable":
        return cls({
            pid: AutoOrderOverride(
                product_id=pid,
                custom_quantity=entry.get("custom_quantity"),
                is_hidden=bool(entry.get("is_hidden", False)),
            )
            for pid, entry in (data or {}).items()
        })


# ── 発注行の識別子 ──

@dataclass(frozen=True)
class AutoLine:
    product_id: str


@dataclass(frozen=True)
class ManualLine:
    item_id: str


OrderLine = Union[AutoLine, ManualLine]


def auto_item_id(product_id: str) -> str:
    return f"{AUTO_PREFIX}{product_id}"


def parse_line_id(item_id: str) -> OrderLine:
    """表示用IDを AutoLine / ManualLine に変換"""
    if item_id.startswith(AUTO_PREFIX):
        return AutoLine(item_id[len(AUTO_PREFIX):])
    return ManualLine(item_id)


def suggested_quantity(product: Product) -> int:
    """在庫と最低在庫から算出した発注提案数

    在庫0 → 最低在庫、在庫少 → 最低在庫との差、それ以外 → 0
    """
    if product.quantity == 0:
        return product.min_stock
    if product.quantity <= product.min_stock:
        return product.min_stock - product.quantity
    return 0
