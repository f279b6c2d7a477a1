"""発注書の書き出し（テキスト・画像）"""

from datetime import date, datetime
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from stockorder.errors import ValidationError

from .models import OrderItem


def order_title(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"Commande du {today.strftime('%d/%m/%Y')}"


def format_order_summary(items: list[OrderItem], today: Optional[date] = None) -> str:
    """共有用のテキスト発注書

    例:
        Commande du 19/10/2026

        Lait demi-écrémé
        Lactel
        Quantité: 3
    """
    _require_items(items)
    content = f"{order_title(today)}\n\n"
    for item in items:
        content += f"{item.name}\n"
        if item.brand:
            content += f"{item.brand}\n"
        content += f"Quantité: {item.quantity}\n\n"
    return content


def render_order_summary_image(
    items: list[OrderItem],
    today: Optional[date] = None,
    font_size: int = 20,
    width: int = 640,
    padding: int = 20,
    bg_color: str = "white",
    text_color: str = "black",
) -> Image.Image:
    """発注書を画像にレンダリング。

    Args:
        items: 発注行
        font_size: フォントサイズ
        width: 画像幅 (px)
        padding: 余白 (px)

    Returns:
        PIL.Image
    """
    _require_items(items)
    font = _find_font(font_size)
    bold_font = _find_font(int(font_size * 1.4), bold=True)

    line_height = font_size + 6
    bold_line_height = int(font_size * 1.4) + 8

    # (テキスト, 太字か) の行リスト
    lines: list[tuple[str, bool]] = [(order_title(today), True), ("", False)]
    for item in items:
        lines.append((item.name, True))
        if item.brand:
            lines.append((item.brand, False))
        lines.append((f"Quantité: {item.quantity}", False))
        lines.append(("", False))

    total_height = padding * 2
    for _, bold in lines:
        total_height += bold_line_height if bold else line_height

    img = Image.new("RGB", (width, total_height), bg_color)
    draw = ImageDraw.Draw(img)
    y = padding
    for text, bold in lines:
        if bold:
            draw.text((padding, y), text, fill=text_color, font=bold_font)
            y += bold_line_height
        else:
            draw.text((padding, y), text, fill=text_color, font=font)
            y += line_height

    return img


def save_order_summary_image(
    items: list[OrderItem],
    output_dir: str = ".",
    prefix: str = "commande",
    **render_kwargs,
) -> Path:
    """発注書を PNG として保存。

    Returns:
        保存先の Path (例: commande_20261019_101500.png)
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    img = render_order_summary_image(items, **render_kwargs)

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = out / f"{prefix}_{ts}.png"
    img.save(str(filepath))
    return filepath


def _require_items(items: list[OrderItem]):
    if not items:
        raise ValidationError("items", "Aucun produit dans la commande à partager")


def _find_font(size: int, bold: bool = False) -> ImageFont.ImageFont:
    """利用可能なフォントを探す（アクセント付き文字に対応するもの）。"""
    if bold:
        font_paths = [
            # Linux
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
            "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
            "/usr/share/fonts/opentype/noto/NotoSansCJK-Bold.ttc",
            # macOS
            "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
            # Windows
            "C:/Windows/Fonts/arialbd.ttf",
        ]
    else:
        font_paths = [
            # Linux
            "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
            "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
            "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
            # macOS
            "/System/Library/Fonts/Supplemental/Arial.ttf",
            "/Library/Fonts/Arial.ttf",
            # Windows
            "C:/Windows/Fonts/arial.ttf",
        ]
    for path in font_paths:
        try:
            return ImageFont.truetype(path, size)
        except (OSError, IOError):
            continue
    return ImageFont.load_default()
