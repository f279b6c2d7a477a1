"""環境変数 / .env からの設定読み込み"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .inventory.catalog import BASE_URL, DEFAULT_TIMEOUT
from .inventory.ledger import DEFAULT_EXPIRY_HORIZON_DAYS
from .inventory.models import DEFAULT_MIN_STOCK

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    db_path: Path
    catalog_base_url: str = BASE_URL
    catalog_timeout: float = DEFAULT_TIMEOUT
    catalog_enabled: bool = True
    default_min_stock: int = DEFAULT_MIN_STOCK
    expiry_horizon_days: int = DEFAULT_EXPIRY_HORIZON_DAYS
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        """環境変数から設定を作る。.env の読み込みは呼び出し側で行う。"""
        return cls(
            db_path=Path(os.getenv("STOCK_DB_PATH") or Path.cwd() / "stock.db"),
            catalog_base_url=os.getenv("CATALOG_BASE_URL") or BASE_URL,
            catalog_timeout=_get_float("CATALOG_TIMEOUT", DEFAULT_TIMEOUT),
            catalog_enabled=os.getenv("CATALOG_ENABLED", "1").strip().lower() not in ("0", "false", "no", "off"),
            default_min_stock=_get_int("DEFAULT_MIN_STOCK", DEFAULT_MIN_STOCK),
            expiry_horizon_days=_get_int("EXPIRY_HORIZON_DAYS", DEFAULT_EXPIRY_HORIZON_DAYS),
            log_level=(os.getenv("LOG_LEVEL") or "WARNING").upper(),
        )


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        number = int(value)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, value, default)
        return default
    if number < 0:
        logger.warning("Invalid %s=%r, using %s", name, value, default)
        return default
    return number


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        number = float(value)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, value, default)
        return default
    if number <= 0:
        logger.warning("Invalid %s=%r, using %s", name, value, default)
        return default
    return number
