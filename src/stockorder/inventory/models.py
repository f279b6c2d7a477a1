"""在庫システム データモデル定義"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

DEFAULT_MIN_STOCK = 5


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"


@dataclass
class Product:
    """在庫商品（1バーコード = 1行）"""
    id: str
    barcode: str
    name: str
    quantity: int = 0
    min_stock: int = DEFAULT_MIN_STOCK
    brand: Optional[str] = None
    expiry_date: Optional[date] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    added_at: datetime = field(default_factory=datetime.now)
    last_updated: datetime = field(default_factory=datetime.now)

    def touch(self):
        self.last_updated = datetime.now()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["expiry_date"] = self.expiry_date.isoformat() if self.expiry_date else None
        data["added_at"] = self.added_at.isoformat()
        data["last_updated"] = self.last_updated.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        data = dict(data)
        if data.get("expiry_date"):
            data["expiry_date"] = parse_date(data["expiry_date"])
        for key in ("added_at", "last_updated"):
            if data.get(key):
                data[key] = datetime.fromisoformat(data[key])
            else:
                data.pop(key, None)
        return cls(**data)


@dataclass(frozen=True)
class StockMovement:
    """入出庫の監査レコード（追記のみ）"""
    id: str
    product_id: str
    type: MovementType
    quantity: int
    date: datetime = field(default_factory=datetime.now)
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type.value,
            "quantity": self.quantity,
            "date": self.date.isoformat(),
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StockMovement":
        return cls(
            id=data["id"],
            product_id=data["product_id"],
            type=MovementType(data["type"]),
            quantity=int(data["quantity"]),
            date=datetime.fromisoformat(data["date"]),
            reason=data.get("reason"),
        )


@dataclass
class CatalogProduct:
    """商品カタログ（Open Food Facts）から取得したメタデータ"""
    barcode: str
    name: str = ""
    brand: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    serving_size: Optional[str] = None


def parse_date(value) -> date:
    """'YYYY-MM-DD' またはISO datetime文字列を date に変換"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    if "T" in text:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    return date.fromisoformat(text)
