from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal


def format_brl(value: Decimal | str) -> str:
    """Format a number as R$ X.XXX,XX."""
    d = Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    formatted = f"{d:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {formatted}"


def format_percent(value: Decimal | str) -> str:
    """Format a percentage as ``1,5%``, dropping trailing zeros."""
    d = Decimal(value).normalize()
    if d == d.to_integral_value():
        d = d.quantize(Decimal("1"))
    return f"{d:f}".replace(".", ",") + "%"


def format_documento(value: str) -> str:
    """Mask a CPF (000.000.000-00) or CNPJ (00.000.000/0000-00).

    Anything that is neither 11 nor 14 digits is returned unchanged.
    """
    digits = re.sub(r"\D", "", value or "")
    if len(digits) == 11:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
    if len(digits) == 14:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
    return value


def format_date_br(iso: str) -> str:
    """``2024-03-15`` -> ``15/03/2024``; empty input gives an empty string."""
    if not iso:
        return ""
    year, month, day = iso[:10].split("-")
    return f"{day}/{month}/{year}"


def format_competencia(iso: str) -> str:
    """``2024-03-01`` -> ``03/2024``."""
    if not iso:
        return ""
    year, month = iso[:7].split("-")
    return f"{month}/{year}"
