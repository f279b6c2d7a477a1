from pathlib import Path

from stockorder.config import Settings

ENV_VARS = [
    "STOCK_DB_PATH", "CATALOG_BASE_URL", "CATALOG_TIMEOUT", "CATALOG_ENABLED",
    "DEFAULT_MIN_STOCK", "EXPIRY_HORIZON_DAYS", "LOG_LEVEL",
]


def _clear(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    _clear(monkeypatch)

    settings = Settings.from_env()

    assert settings.db_path == Path.cwd() / "stock.db"
    assert settings.catalog_base_url == "https://world.openfoodfacts.org/api/v2"
    assert settings.catalog_timeout == 10
    assert settings.catalog_enabled is True
    assert settings.default_min_stock == 5
    assert settings.expiry_horizon_days == 5
    assert settings.log_level == "WARNING"


def test_from_env(monkeypatch, tmp_path):
    _clear(monkeypatch)
    monkeypatch.setenv("STOCK_DB_PATH", str(tmp_path / "shop.db"))
    monkeypatch.setenv("CATALOG_TIMEOUT", "2.5")
    monkeypatch.setenv("CATALOG_ENABLED", "0")
    monkeypatch.setenv("DEFAULT_MIN_STOCK", "3")
    monkeypatch.setenv("EXPIRY_HORIZON_DAYS", "7")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.db_path == tmp_path / "shop.db"
    assert settings.catalog_timeout == 2.5
    assert settings.catalog_enabled is False
    assert settings.default_min_stock == 3
    assert settings.expiry_horizon_days == 7
    assert settings.log_level == "DEBUG"


def test_invalid_numbers_fall_back(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("CATALOG_TIMEOUT", "soon")
    monkeypatch.setenv("DEFAULT_MIN_STOCK", "-1")
    monkeypatch.setenv("EXPIRY_HORIZON_DAYS", "five")

    settings = Settings.from_env()

    assert settings.catalog_timeout == 10
    assert settings.default_min_stock == 5
    assert settings.expiry_horizon_days == 5
