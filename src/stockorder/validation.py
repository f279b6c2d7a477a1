"""入力値チェックの共通ヘルパー"""

from typing import Optional

from .errors import ValidationError


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_positive(field: str, value):
    if not _is_int(value) or value <= 0:
        raise ValidationError(field, f"{field} must be a positive integer, got {value!r}")


def require_non_negative(field: str, value):
    if not _is_int(value) or value < 0:
        raise ValidationError(field, f"{field} must be a non-negative integer, got {value!r}")


def require_name(name) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name", "Le nom du produit est obligatoire")
    return name


def blank_to_none(value: Optional[str]) -> Optional[str]:
    """空白のみの文字列を None にする"""
    if value is None:
        return None
    value = str(value).strip()
    return value or None
