#!/usr/bin/env python3
"""
在庫・発注管理 CLI

Usage:
    stockorder add <barcode> [--qty 1] [--expiry YYYY-MM-DD]
    stockorder remove <barcode> [--qty 1]
    stockorder list | low | out | expiring [--days 5] | search <query>
    stockorder order list | add <name> | set <id> <qty> | remove <id> | summary
"""

import argparse
import sys

from dotenv import load_dotenv

from stockorder.config import Settings
from stockorder.errors import StockError
from stockorder.logging_config import configure_logging

load_dotenv()


def _date_arg(value: str):
    """YYYY-MM-DD を date に変換（空文字は None）"""
    from stockorder.inventory.models import parse_date

    if not value.strip():
        return None
    try:
        return parse_date(value.strip())
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date: {value!r} (YYYY-MM-DD)")


def _open(settings: Settings):
    """設定からストア・台帳・発注エンジンを組み立てる"""
    from stockorder.inventory import (
        NullCatalog,
        OpenFoodFactsCatalog,
        SQLiteKeyValueStore,
        StockLedger,
    )
    from stockorder.orders import OrderReconciler

    store = SQLiteKeyValueStore(settings.db_path)
    if settings.catalog_enabled:
        catalog = OpenFoodFactsCatalog(
            base_url=settings.catalog_base_url,
            timeout=settings.catalog_timeout,
            cache=store,
        )
    else:
        catalog = NullCatalog()
    ledger = StockLedger(
        store,
        catalog=catalog,
        default_min_stock=settings.default_min_stock,
        expiry_horizon_days=settings.expiry_horizon_days,
    )
    return store, ledger, OrderReconciler(ledger, store)


def _print_products(products, empty_message: str):
    if not products:
        print(empty_message)
        return
    for p in products:
        brand = f" ({p.brand})" if p.brand else ""
        unit = f" {p.unit}" if p.unit else ""
        expiry = f"  期限: {p.expiry_date.isoformat()}" if p.expiry_date else ""
        print(f"  {p.name}{brand} x{p.quantity}{unit}  [最低 {p.min_stock}]{expiry}")
        print(f"    {p.barcode}  id={p.id}")


def _print_order_items(items):
    if not items:
        print("発注リストは空です。")
        return
    for item in items:
        brand = f" ({item.brand})" if item.brand else ""
        tag = " [自動]" if item.is_auto else ""
        print(f"  {item.name}{brand} x{item.quantity}{tag}")
        print(f"    id={item.id}" + (f"  {item.barcode}" if item.barcode else ""))


# ── 在庫コマンド ──

def cmd_add(args, ledger, orders):
    """入庫"""
    product = ledger.add_stock(args.barcode, args.qty, expiry_date=args.expiry)
    print(f"入庫: {product.name} x{args.qty} → 在庫 {product.quantity}")


def cmd_remove(args, ledger, orders):
    """出庫"""
    product = ledger.remove_stock(args.barcode, args.qty)
    print(f"出庫: {product.name} x{args.qty} → 在庫 {product.quantity}")


def cmd_create(args, ledger, orders):
    """手動登録"""
    similar = ledger.find_similar(args.name, args.brand)
    if similar and not args.force:
        print(f"同じ名前の商品が既にあります: {similar[0].name} (--force で登録)", file=sys.stderr)
        sys.exit(1)
    product = ledger.create_product(
        args.name,
        args.qty,
        min_stock=args.min_stock,
        barcode=args.barcode,
        brand=args.brand,
        expiry_date=args.expiry,
        unit=args.unit,
    )
    print(f"登録: {product.name} x{product.quantity}  ({product.barcode})")


def cmd_edit(args, ledger, orders):
    """手動編集"""
    fields = {}
    for key in ("name", "brand", "unit", "category"):
        value = getattr(args, key)
        if value is not None:
            fields[key] = value
    if args.qty is not None:
        fields["quantity"] = args.qty
    if args.min_stock is not None:
        fields["min_stock"] = args.min_stock
    if hasattr(args, "expiry"):
        fields["expiry_date"] = args.expiry
    product = ledger.update_product(args.product_id, **fields)
    print(f"更新: {product.name} x{product.quantity}  [最低 {product.min_stock}]")


def cmd_delete(args, ledger, orders):
    """商品削除"""
    ledger.delete_product(args.product_id)
    print("削除しました。")


def cmd_list(args, ledger, orders):
    products = ledger.get_all_products()
    print(f"=== 在庫一覧 ({len(products)} 品目) ===\n")
    _print_products(products, "在庫はありません。")


def cmd_low(args, ledger, orders):
    print("=== 在庫少 ===\n")
    _print_products(ledger.get_low_stock(), "在庫少の商品はありません。")


def cmd_out(args, ledger, orders):
    print("=== 在庫切れ ===\n")
    _print_products(ledger.get_out_of_stock(), "在庫切れの商品はありません。")


def cmd_expiring(args, ledger, orders):
    days = args.days if args.days is not None else ledger.expiry_horizon_days
    print(f"=== 期限切れ間近 ({days}日以内) ===\n")
    _print_products(ledger.get_expiring(days), f"期限切れ間近（{days}日以内）の在庫はありません。")


def cmd_search(args, ledger, orders):
    _print_products(ledger.search_in_stock(args.query), "該当する商品はありません。")


def cmd_history(args, ledger, orders):
    movements = ledger.get_movements(args.product_id)
    if not movements:
        print("履歴はありません。")
        return
    for m in movements:
        sign = "+" if m.type.value == "in" else "-"
        reason = f"  {m.reason}" if m.reason else ""
        print(f"  {m.date.strftime('%Y-%m-%d %H:%M')}  {sign}{m.quantity}  {m.product_id}{reason}")


# ── 発注コマンド ──

def cmd_order_list(args, ledger, orders):
    items = orders.get_order_items()
    print(f"=== 発注リスト ({len(items)} 件) ===\n")
    _print_order_items(items)


def cmd_order_add(args, ledger, orders):
    from stockorder.orders import OrderItem

    item = orders.add_order_item(OrderItem.new(
        name=args.name, quantity=args.qty, brand=args.brand, barcode=args.barcode,
    ))
    print(f"追加: {item.name} x{item.quantity}")


def cmd_order_set(args, ledger, orders):
    orders.update_order_item_quantity(args.item_id, args.qty)
    print("数量を更新しました。")


def cmd_order_remove(args, ledger, orders):
    orders.remove_order_item(args.item_id)
    print("削除しました。")


def cmd_order_restore(args, ledger, orders):
    orders.restore_auto_order_item(args.product_id)
    print("自動提案を元に戻しました。")


def cmd_order_hidden(args, ledger, orders):
    print("=== 非表示の自動提案 ===\n")
    _print_products(orders.get_hidden_auto_order_items(), "非表示の提案はありません。")


def cmd_order_clear(args, ledger, orders):
    orders.clear_all_orders()
    print("発注リストをリセットしました。")


def cmd_order_summary(args, ledger, orders):
    from stockorder.orders import format_order_summary, save_order_summary_image

    items = orders.get_order_items()
    if args.image:
        path = save_order_summary_image(items, output_dir=args.output_dir)
        print(f"画像保存: {path}")
    else:
        print(format_order_summary(items), end="")


def cmd_catalog_search(args, ledger, orders):
    for info in ledger.catalog.search_by_name(args.text):
        brand = f" ({info.brand})" if info.brand else ""
        print(f"  {info.barcode}  {info.name or '?'}{brand}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="在庫・発注管理")
    subparsers = parser.add_subparsers(dest="command")

    p = subparsers.add_parser("add", help="入庫（未登録なら商品を作成）")
    p.add_argument("barcode")
    p.add_argument("--qty", type=int, default=1)
    p.add_argument("--expiry", type=_date_arg, help="賞味期限 (YYYY-MM-DD, 新規作成時のみ)")
    p.set_defaults(func=cmd_add)

    p = subparsers.add_parser("remove", help="出庫")
    p.add_argument("barcode")
    p.add_argument("--qty", type=int, default=1)
    p.set_defaults(func=cmd_remove)

    p = subparsers.add_parser("create", help="商品を手動登録")
    p.add_argument("name")
    p.add_argument("--qty", type=int, default=1)
    p.add_argument("--min-stock", type=int)
    p.add_argument("--barcode")
    p.add_argument("--brand")
    p.add_argument("--expiry", type=_date_arg)
    p.add_argument("--unit")
    p.add_argument("--force", action="store_true", help="同名商品があっても登録")
    p.set_defaults(func=cmd_create)

    p = subparsers.add_parser("edit", help="商品を編集（入出庫履歴なし）")
    p.add_argument("product_id")
    p.add_argument("--name")
    p.add_argument("--brand")
    p.add_argument("--qty", type=int)
    p.add_argument("--min-stock", type=int)
    p.add_argument("--expiry", type=_date_arg, default=argparse.SUPPRESS, help="空文字で削除")
    p.add_argument("--unit")
    p.add_argument("--category")
    p.set_defaults(func=cmd_edit)

    p = subparsers.add_parser("delete", help="商品を削除")
    p.add_argument("product_id")
    p.set_defaults(func=cmd_delete)

    subparsers.add_parser("list", help="在庫一覧").set_defaults(func=cmd_list)
    subparsers.add_parser("low", help="在庫少").set_defaults(func=cmd_low)
    subparsers.add_parser("out", help="在庫切れ").set_defaults(func=cmd_out)

    p = subparsers.add_parser("expiring", help="期限切れ間近")
    p.add_argument("--days", type=int, help="期限切れまでの日数 (デフォルト: EXPIRY_HORIZON_DAYS)")
    p.set_defaults(func=cmd_expiring)

    p = subparsers.add_parser("search", help="在庫検索")
    p.add_argument("query")
    p.set_defaults(func=cmd_search)

    p = subparsers.add_parser("history", help="入出庫履歴")
    p.add_argument("--product-id")
    p.set_defaults(func=cmd_history)

    # order サブコマンド
    p_order = subparsers.add_parser("order", help="発注リスト")
    order_sub = p_order.add_subparsers(dest="order_command")

    order_sub.add_parser("list", help="発注リスト表示").set_defaults(func=cmd_order_list)

    p = order_sub.add_parser("add", help="手動発注を追加")
    p.add_argument("name")
    p.add_argument("--qty", type=int, default=1)
    p.add_argument("--brand")
    p.add_argument("--barcode")
    p.set_defaults(func=cmd_order_add)

    p = order_sub.add_parser("set", help="数量変更")
    p.add_argument("item_id")
    p.add_argument("qty", type=int)
    p.set_defaults(func=cmd_order_set)

    p = order_sub.add_parser("remove", help="発注行を削除（自動提案は非表示）")
    p.add_argument("item_id")
    p.set_defaults(func=cmd_order_remove)

    p = order_sub.add_parser("restore", help="自動提案を元に戻す")
    p.add_argument("product_id")
    p.set_defaults(func=cmd_order_restore)

    order_sub.add_parser("hidden", help="非表示の自動提案").set_defaults(func=cmd_order_hidden)
    order_sub.add_parser("clear", help="発注リストをリセット").set_defaults(func=cmd_order_clear)

    p = order_sub.add_parser("summary", help="発注書を出力")
    p.add_argument("--image", action="store_true", help="PNG画像として保存")
    p.add_argument("--output-dir", default=".")
    p.set_defaults(func=cmd_order_summary)

    # catalog サブコマンド
    p_catalog = subparsers.add_parser("catalog", help="商品カタログ")
    catalog_sub = p_catalog.add_subparsers(dest="catalog_command")
    p = catalog_sub.add_parser("search", help="ブランド名で検索")
    p.add_argument("text")
    p.set_defaults(func=cmd_catalog_search)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    store, ledger, orders = _open(settings)
    try:
        args.func(args, ledger, orders)
    except StockError as e:
        print(f"エラー: {e.message}", file=sys.stderr)
        sys.exit(1)
    finally:
        store.close()


if __name__ == "__main__":
    main()
