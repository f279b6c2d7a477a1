#!/usr/bin/env python3
"""
在庫・発注管理サンプル

使い方:
1. 必要なら .env ファイルに STOCK_DB_PATH などを設定
2. このスクリプトを実行
"""

import sys

from dotenv import load_dotenv

from stockorder.config import Settings
from stockorder.errors import InsufficientStockError
from stockorder.inventory import OpenFoodFactsCatalog, SQLiteKeyValueStore, StockLedger
from stockorder.logging_config import configure_logging
from stockorder.orders import OrderItem, OrderReconciler, format_order_summary

# .envファイルを読み込む
load_dotenv()


def main():
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    store = SQLiteKeyValueStore(settings.db_path)
    ledger = StockLedger(
        store,
        catalog=OpenFoodFactsCatalog(timeout=settings.catalog_timeout, cache=store),
        default_min_stock=settings.default_min_stock,
    )
    orders = OrderReconciler(ledger, store)

    # 1. 入庫（カタログから商品情報を取得）
    print("=== 入庫 ===")
    product = ledger.add_stock("3017620422003", 2)
    print(f"{product.name} ({product.brand or '-'}) x{product.quantity}")

    # 2. 出庫
    print("\n=== 出庫 ===")
    try:
        product = ledger.remove_stock("3017620422003", 5)
    except InsufficientStockError as e:
        print(f"出庫できません: {e.message}")

    # 3. 手動発注を追加
    orders.add_order_item(OrderItem.new("Sacs poubelle", 2))

    # 4. 発注リスト（自動提案 + 手動）
    print("\n=== 発注リスト ===")
    items = orders.get_order_items()
    if not items:
        print("発注するものはありません。")
        store.close()
        sys.exit(0)
    print(format_order_summary(items))

    store.close()


if __name__ == "__main__":
    main()
