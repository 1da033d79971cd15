"""
Formatering av belopp för offertdokumentet.

Lokala belopp är heltal i RD$ och visas med kommatecken som
tusenavgränsare (3500 -> '3,500'), samma som byråns gamla dokument.
"""
from __future__ import annotations

import math
from typing import Optional, Union

Number = Union[int, float]

# Reservkurs USD -> DOP när ingen färsk kurs finns
DEFAULT_USD_RATE = 60.50


def format_amount(value: Optional[Number]) -> str:
    """3500 -> '3,500'. None -> ''."""
    if value is None:
        return ""
    try:
        num = float(value)
    except (TypeError, ValueError):
        return str(value)
    if math.isnan(num) or math.isinf(num):
        return ""
    return f"{int(round(num)):,}"


def format_local(value: Optional[Number]) -> str:
    """'RD$ 3,500'"""
    s = format_amount(value)
    return f"RD$ {s}" if s else ""


def format_usd(value: Optional[Number]) -> str:
    """'US$ 58'"""
    s = format_amount(value)
    return f"US$ {s}" if s else ""


def to_usd(total_local: Number, rate: Number) -> Optional[float]:
    """
    Räknar om RD$ till USD med två decimaler.
    Returnerar None om kursen inte är användbar (<= 0, NaN).
    """
    try:
        r = float(rate)
    except (TypeError, ValueError):
        return None
    if not r > 0 or math.isinf(r):
        return None
    return round(float(total_local) / r, 2)


def split_payment(total_local: Number, parts: int = 2) -> list:
    """
    Delar upp totalen i lika delbetalningar (50% vid start, 50% vid leverans).
    Sista delen tar avrundningsresten så att summan alltid stämmer.
    """
    total = int(round(float(total_local)))
    if parts <= 1:
        return [total]
    base = int(round(total / parts))
    out = [base] * (parts - 1)
    out.append(total - base * (parts - 1))
    return out
