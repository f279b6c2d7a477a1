"""在庫・発注エンジンの例外定義

商品カタログ（ネットワーク）の失敗はここに含まれない。
カタログ境界で吸収され、呼び出し側には届かない。
"""

from typing import Optional


class StockError(Exception):
    """基底例外"""
    code = "STOCK_ERROR"

    def __init__(self, message: str = "", code: Optional[str] = None):
        if code:
            self.code = code
        self.message = message
        super().__init__(f"[{self.code}] {message}")


class NotFoundError(StockError):
    """存在しない商品・バーコードを参照した"""
    code = "NOT_FOUND"


class InsufficientStockError(StockError):
    """在庫数を超える出庫"""
    code = "INSUFFICIENT_STOCK"

    def __init__(self, available: int, requested: int, message: str = ""):
        self.available = available
        self.requested = requested
        super().__init__(
            message or f"Quantité insuffisante en stock (disponible: {available}, demandé: {requested})"
        )


class ValidationError(StockError):
    """入力値エラー（数量・最低在庫・商品名）"""
    code = "VALIDATION"

    def __init__(self, field: str, message: str = ""):
        self.field = field
        super().__init__(message or f"invalid value for {field}")
