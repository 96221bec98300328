from __future__ import annotations

import re
from typing import Optional

from utils.errors import ValidationError

_SUFFIXES = {"k": 1_000, "m": 1_000_000}
# separadores que la gente pega con las cifras: "$300,000", "1_000"
_SEPARATORS = re.compile(r"[$,_]")


def escape_md(s: str) -> str:
    # escapado mínimo para Markdown
    return (s or "").replace("\\", "\\\\").replace("_", "\\_").replace("*", "\\*").replace("`", "\\`").replace("[", "\\[").replace("]", "\\]")


def _to_float(txt: str) -> float:
    try:
        value = float(txt)
    except ValueError:
        raise ValidationError(f"not a number: {txt!r}")
    if value != value or value in (float("inf"), float("-inf")):
        raise ValidationError(f"not a finite number: {txt!r}")
    return value


def parse_amount(text: str) -> float:
    """SOL a gastar: decimal estrictamente positivo."""
    value = _to_float((text or "").strip())
    if value <= 0:
        raise ValidationError("amount must be greater than 0")
    return value


def parse_market_cap(text: str) -> float:
    """
    Market cap objetivo en USD. Admite sufijos ``k`` (miles) y ``m`` (millones):
    "250000" -> 250000, "245k" -> 245000, "1.5m" -> 1500000.
    Solo se ignoran "$", "," y "_"; cualquier otro carácter hace el texto inválido.
    """
    txt = _SEPARATORS.sub("", (text or "").strip().lower())
    if not txt:
        raise ValidationError("empty market cap")
    if txt.startswith("-"):
        raise ValidationError("market cap must be positive")

    multiplier = _SUFFIXES.get(txt[-1])
    if multiplier:
        value = _to_float(txt[:-1].strip()) * multiplier
    else:
        value = _to_float(txt)

    if value <= 0:
        raise ValidationError("market cap must be positive")
    return value


def format_number(num: Optional[float]) -> str:
    """1234567.891 -> '1,234,567.89'; sin decimales sobrantes."""
    if not isinstance(num, (int, float)) or isinstance(num, bool):
        return "N/A"
    txt = f"{num:,.2f}"
    if txt.endswith(".00"):
        txt = txt[:-3]
    elif txt.endswith("0") and "." in txt:
        txt = txt[:-1]
    return txt


def is_number(text: str) -> bool:
    try:
        float((text or "").strip())
    except ValueError:
        return False
    return True
