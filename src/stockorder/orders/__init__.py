"""発注リスト"""

from .engine import OrderReconciler
from .models import AutoLine, AutoOrderOverride, ManualLine, OrderItem, OverrideTable, parse_line_id
from .summary import format_order_summary, render_order_summary_image, save_order_summary_image

__all__ = [
    "AutoLine",
    "AutoOrderOverride",
    "ManualLine",
    "OrderItem",
    "OrderReconciler",
    "OverrideTable",
    "format_order_summary",
    "parse_line_id",
    "render_order_summary_image",
    "save_order_summary_image",
]
