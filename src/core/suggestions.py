"""
Plockar ut modulförslag ur fri AI-text.

Tolerant mini-parser: den letar efter väl formade block och ignorerar allt
annat. Trasiga block (utan nombre eller med oläsbart precio) hoppas över
utan fel, så ett skräpsvar ger bara färre förslag.

Format 1 (nuvarande):

    [MODULO_SUGERIDO]
    nombre: "Chat en vivo"
    precio: "RD$ 6,500"
    descripcion: "Widget de chat con historial"
    categoria: "Integration"
    horas: "12"
    [/MODULO_SUGERIDO]

Format 2 (äldre HTML, stöds fortfarande):

    <div class="module-suggestion" data-name="..." data-price="..." data-category="...">
    <button class="add-module-btn" data-name="..." data-price="..." data-description="...">

data-price i module-suggestion är i USD och räknas om till RD$ med aktuell
kurs. add-module-btn har redan RD$.
"""
from __future__ import annotations

import html
import re
import unicodedata
from typing import Dict, List, Optional

from pydantic import ValidationError

from src.core.models import ModuleSuggestion
from src.core.money import DEFAULT_USD_RATE

BLOCK_RE = re.compile(r"\[MODULO_SUGERIDO\](.*?)\[/MODULO_SUGERIDO\]", re.S | re.I)
PAIR_RE = re.compile(r"([A-Za-zÀ-ÿ_]+)\s*:\s*(?:\"([^\"]*)\"|“([^”]*)”|([^\n\r]*))")
TAG_RE = re.compile(r"<(div|button)\b([^>]*)>", re.I)
ATTR_RE = re.compile(r"([\w-]+)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")
NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)*")

USD_CLASS = "module-suggestion"
LEGACY_CLASSES = (USD_CLASS, "add-module-btn")

KEY_MAP = {
    "nombre": "name",
    "name": "name",
    "precio": "price",
    "price": "price",
    "descripcion": "description",
    "description": "description",
    "categoria": "category",
    "category": "category",
    "horas": "estimated_hours",
    "horas_estimadas": "estimated_hours",
    "estimatedhours": "estimated_hours",
}


def _strip_accents(s: str) -> str:
    return "".join(
        ch for ch in unicodedata.normalize("NFKD", s) if not unicodedata.combining(ch)
    )


def _norm_key(key: str) -> str:
    return _strip_accents(key).strip().lower()


def parse_price(raw: Optional[str]) -> Optional[int]:
    """
    'RD$ 3,500' -> 3500, '3.500' -> 3500, '4500.75' -> 4501.
    Returnerar None om inget rimligt heltal går att läsa ut.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text or text.startswith("-"):
        return None

    m = NUMBER_RE.search(text)
    if not m:
        return None
    num = m.group(0)

    # 3,500 / 3.500 / 1,250,000 -> tusenavgränsare
    if re.fullmatch(r"\d{1,3}(?:[.,]\d{3})+", num):
        return int(re.sub(r"[.,]", "", num))
    try:
        return int(round(float(num.replace(",", "."))))
    except ValueError:
        return None


def usd_to_local(raw: Optional[str], rate: float) -> Optional[int]:
    """'$1,200 USD' med kurs 60 -> 72000."""
    if raw is None or str(raw).strip().startswith("-"):
        return None
    m = NUMBER_RE.search(str(raw))
    if not m:
        return None
    num = m.group(0)
    if re.fullmatch(r"\d{1,3}(?:,\d{3})+(?:\.\d+)?", num):
        num = num.replace(",", "")
    try:
        return int(round(float(num.replace(",", ".")) * rate))
    except ValueError:
        return None


def parse_hours(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    m = NUMBER_RE.search(str(raw))
    if not m:
        return None
    try:
        return float(m.group(0).replace(",", "."))
    except ValueError:
        return None


def _build(fields: Dict[str, str]) -> Optional[ModuleSuggestion]:
    name = (fields.get("name") or "").strip()
    price = parse_price(fields.get("price"))
    if not name or price is None:
        return None

    category = (fields.get("category") or "").strip() or None
    try:
        return ModuleSuggestion(
            name=name,
            price=price,
            description=(fields.get("description") or "").strip(),
            category=category,
            estimated_hours=parse_hours(fields.get("estimated_hours")),
        )
    except ValidationError:
        return None


def _parse_block(body: str) -> Optional[ModuleSuggestion]:
    fields: Dict[str, str] = {}
    for m in PAIR_RE.finditer(body):
        key = KEY_MAP.get(_norm_key(m.group(1)))
        if not key or key in fields:
            continue
        value = next((g for g in m.groups()[1:] if g is not None), "")
        fields[key] = html.unescape(value.strip())
    return _build(fields)


def _parse_legacy_tag(attrs_raw: str, usd_rate: float) -> Optional[ModuleSuggestion]:
    attrs: Dict[str, str] = {}
    for m in ATTR_RE.finditer(attrs_raw):
        value = m.group(2) if m.group(2) is not None else (m.group(3) or "")
        attrs[m.group(1).lower()] = html.unescape(value)

    classes = attrs.get("class", "").split()
    if not any(c in classes for c in LEGACY_CLASSES):
        return None

    price = attrs.get("data-price", "")
    if USD_CLASS in classes:
        local = usd_to_local(price, usd_rate)
        price = str(local) if local is not None else ""

    return _build(
        {
            "name": attrs.get("data-name", ""),
            "price": price,
            "description": attrs.get("data-description", ""),
            "category": attrs.get("data-category", ""),
            "estimated_hours": attrs.get("data-hours", ""),
        }
    )


def extract_suggestions(text: Optional[str], usd_rate: Optional[float] = None) -> List[ModuleSuggestion]:
    """
    Returnerar alla väl formade förslag i texten, i den ordning de står.
    Samma (namn, pris) returneras bara en gång.

    usd_rate används för äldre förslag med pris i USD (standard: reservkursen).
    """
    rate = usd_rate if usd_rate and usd_rate > 0 else DEFAULT_USD_RATE
    if not isinstance(text, str) or not text:
        return []

    found: List[ModuleSuggestion] = []

    for m in BLOCK_RE.finditer(text):
        suggestion = _parse_block(m.group(1))
        if suggestion is not None:
            found.append(suggestion)

    for m in TAG_RE.finditer(text):
        suggestion = _parse_legacy_tag(m.group(2), rate)
        if suggestion is not None:
            found.append(suggestion)

    out: List[ModuleSuggestion] = []
    seen = set()
    for s in found:
        key = (s.name.casefold(), s.price)
        if key in seen:
            continue
        seen.add(key)
        out.append(s)
    return out


def strip_suggestion_blocks(text: str) -> str:
    """Tar bort [MODULO_SUGERIDO]-blocken ur texten som ska visas."""
    if not text:
        return ""
    return BLOCK_RE.sub("", text).strip()
