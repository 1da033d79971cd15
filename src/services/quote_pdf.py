"""
PDF-export av offerten (A4, flera sidor) med ReportLab.

Samma uppgifter som HTML-dokumentet men ritat direkt på canvas:
  - rader mäts innan de ritas; en rad som inte ryms börjar på ny sida
    (rader delas aldrig mellan sidor)
  - tabellhuvudet upprepas på varje fortsättningssida
  - sidnummer 'Página X de Y' i sidfoten
"""
from __future__ import annotations

import io
import logging
import re
import unicodedata
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from src.core.errors import QuotationValidationError
from src.core.models import Module
from src.core.money import format_amount, format_local, split_payment
from src.services.quote_document import (
    DELIVERY_SCHEDULE,
    THEMES,
    CompanyInfo,
    QuotationDocument,
    format_date_es,
    usd_line,
    validate_for_export,
)

log = logging.getLogger("webnova.pdf")

# ── Sidkonstanter (punkter, origo nere till vänster) ─────────────────────────
W, H = A4
ML = 40           # vänstermarginal
MR = W - 40       # högerkant
TOP = H - 40      # första ritbara y
BOTTOM = 50       # under detta ligger sidfoten
UW = MR - ML

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
ROW_FONT_SIZE = 9
LINE_H = 11
ROW_PAD = 8
HEADER_H = 22

COLS = [
    ("MÓDULO / ENTREGABLE", ML, 150),
    ("DESCRIPCIÓN", ML + 150, UW - 150 - 95),
    ("VALOR (RD$)", MR - 95, 95),
]

# Plats för totalsumman under tabellen
TOTAL_BLOCK_H = 70


@dataclass
class RowLayout:
    module: Module
    name_lines: List[str]
    desc_lines: List[str]
    height: float


def measure_row(module: Module) -> RowLayout:
    """
    Mäter en tabellrad. En rad som är högre än en hel sida kortas av,
    annars skulle den aldrig få plats.
    """
    name_lines = simpleSplit(module.name, FONT_BOLD, ROW_FONT_SIZE, COLS[0][2] - 2 * ROW_PAD) or [""]
    desc_lines = simpleSplit(module.description or "", FONT, ROW_FONT_SIZE, COLS[1][2] - 2 * ROW_PAD) or [""]

    max_lines = int((TOP - BOTTOM - HEADER_H - 2 * ROW_PAD) // LINE_H)
    if len(desc_lines) > max_lines:
        desc_lines = desc_lines[: max_lines - 1] + [desc_lines[max_lines - 1].rstrip() + "..."]
    name_lines = name_lines[:max_lines]

    lines = max(len(name_lines), len(desc_lines))
    return RowLayout(module, name_lines, desc_lines, lines * LINE_H + 2 * ROW_PAD)


def paginate_rows(heights: Sequence[float], first_room: float, page_room: float) -> List[List[int]]:
    """
    Fördelar rader (index) på sidor. first_room är utrymmet under tabellhuvudet
    på första sidan, page_room på fortsättningssidorna. En rad flyttas hel
    till nästa sida om den inte ryms.
    """
    pages: List[List[int]] = [[]]
    room = first_room
    for index, h in enumerate(heights):
        if h > room and (pages[-1] or room < page_room):
            pages.append([])
            room = page_room
        pages[-1].append(index)
        room -= h
    return pages


def pdf_filename(org: str, client: str, generated_on: date) -> str:
    """'Cotizacion-WebNovaLab-Ana-Perez-2026-10-17.pdf'"""

    def clean(s: str) -> str:
        # filnamnet hamnar i en HTTP-header: bara ASCII
        s = unicodedata.normalize("NFKD", s or "").encode("ascii", "ignore").decode("ascii")
        s = re.sub(r"\s+", "-", s.strip())
        return re.sub(r'[\\/:*?"<>|]', "", s)

    return f"Cotizacion-{clean(org)}-{clean(client)}-{generated_on.isoformat()}.pdf"


class _NumberedCanvas(canvas.Canvas):
    """Sparar sidorna och skriver 'Página X de Y' när totalen är känd."""

    def __init__(self, *args, footer_color=None, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_pages: List[dict] = []
        self._footer_color = footer_color or HexColor("#6b7280")

    def showPage(self):  # noqa: N802 (reportlab-API)
        self._saved_pages.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_pages)
        for state in self._saved_pages:
            self.__dict__.update(state)
            self.setFillColor(self._footer_color)
            self.setFont(FONT, 8)
            self.drawRightString(MR, 25, f"Página {self._pageNumber} de {total}")
            super().showPage()
        super().save()


def export_quotation_pdf(
    quotation: QuotationDocument,
    company: Optional[CompanyInfo] = None,
    *,
    theme: str = "light",
    generated_on: date,
) -> bytes:
    validate_for_export(quotation)
    if theme not in THEMES:
        raise QuotationValidationError(f"Tema desconocido: {theme}")

    company = company or CompanyInfo()
    colors = {k: HexColor(v) for k, v in THEMES[theme].items()}
    total = quotation.total

    buf = io.BytesIO()
    c = _NumberedCanvas(buf, pagesize=A4, invariant=1, footer_color=colors["muted_color"])
    c.setTitle(f"Cotización {quotation.client_name.strip()}")
    c.setAuthor(company.name)

    def new_page_background():
        c.setFillColor(colors["bg_color"])
        c.rect(0, 0, W, H, fill=1, stroke=0)

    def text(x, y, txt, font=FONT, size=10, color="text_color", align="left"):
        c.setFont(font, size)
        c.setFillColor(colors[color])
        s = str(txt) if txt else ""
        if align == "right":
            c.drawRightString(x, y, s)
        elif align == "center":
            c.drawCentredString(x, y, s)
        else:
            c.drawString(x, y, s)

    def draw_table_header(y):
        """Ritar kolumnrubriker med överkant y. Returnerar y under huvudet."""
        c.setFillColor(colors["alt_row_bg"])
        c.rect(ML, y - HEADER_H, UW, HEADER_H, fill=1, stroke=0)
        for name, cx, cw in COLS:
            if name.startswith("VALOR"):
                text(cx + cw - ROW_PAD, y - 15, name, FONT_BOLD, 8.5, align="right")
            else:
                text(cx + ROW_PAD, y - 15, name, FONT_BOLD, 8.5)
        return y - HEADER_H

    def draw_row(y, row: RowLayout, index: int):
        if index % 2 == 1:
            c.setFillColor(colors["alt_row_bg"])
            c.rect(ML, y - row.height, UW, row.height, fill=1, stroke=0)
        c.setStrokeColor(colors["rule_color"])
        c.setLineWidth(0.5)
        c.line(ML, y - row.height, MR, y - row.height)

        baseline = y - ROW_PAD - ROW_FONT_SIZE
        for i, line in enumerate(row.name_lines):
            text(COLS[0][1] + ROW_PAD, baseline - i * LINE_H, line, FONT_BOLD, ROW_FONT_SIZE)
        for i, line in enumerate(row.desc_lines):
            text(COLS[1][1] + ROW_PAD, baseline - i * LINE_H, line, FONT, ROW_FONT_SIZE)
        text(MR - ROW_PAD, baseline, format_amount(row.module.price), FONT_BOLD, ROW_FONT_SIZE,
             color="accent_color", align="right")
        return y - row.height

    # ══════════════════════════════════════════════════════════════════════
    # SIDA 1: HUVUD + KUND
    # ══════════════════════════════════════════════════════════════════════
    new_page_background()
    y = TOP
    text(ML, y - 24, company.name, FONT_BOLD, 22)
    text(ML, y - 40, company.tagline, size=10, color="muted_color")
    text(MR, y - 20, "Cotización de Proyecto Web", FONT_BOLD, 15, color="accent_color", align="right")
    text(MR, y - 36, f"Fecha: {format_date_es(generated_on)}", size=9, align="right")
    text(MR, y - 48, "Válida por 30 días", size=9, align="right")
    y -= 62
    c.setStrokeColor(colors["border_color"])
    c.setLineWidth(2)
    c.line(ML, y, MR, y)

    y -= 14
    box_h = 64
    c.setFillColor(colors["secondary_bg"])
    c.rect(ML, y - box_h, UW, box_h, fill=1, stroke=0)
    c.setFillColor(colors["border_color"])
    c.rect(ML, y - box_h, 3, box_h, fill=1, stroke=0)
    text(ML + 14, y - 16, "PREPARADO PARA", FONT_BOLD, 7.5, color="muted_color")
    text(ML + 14, y - 32, quotation.client_name.strip(), FONT_BOLD, 13)
    text(ML + 14, y - 47, quotation.project_type.strip() or "Proyecto Web Personalizado", size=9,
         color="muted_color")
    text(MR - 14, y - 16, "PREPARADO POR", FONT_BOLD, 7.5, color="muted_color", align="right")
    text(MR - 14, y - 32, company.name, FONT_BOLD, 13, align="right")
    text(MR - 14, y - 47, company.email, size=9, color="accent_color", align="right")
    y -= box_h + 26

    text(ML, y, "Detalle por Módulos", FONT_BOLD, 14)
    y -= 10

    # ══════════════════════════════════════════════════════════════════════
    # TABELL
    # ══════════════════════════════════════════════════════════════════════
    rows = [measure_row(m) for m in quotation.modules]
    first_room = (y - HEADER_H) - BOTTOM
    page_room = (TOP - HEADER_H) - BOTTOM
    pages = paginate_rows([r.height for r in rows], first_room, page_room)

    for page_index, indexes in enumerate(pages):
        if page_index > 0:
            c.showPage()
            new_page_background()
            y = TOP
        if indexes:
            y = draw_table_header(y)
        for i in indexes:
            y = draw_row(y, rows[i], i)

    if len(pages) > 1:
        log.info("PDF: %s rader på %s sidor", len(rows), len(pages))

    def ensure_room(y, needed):
        if y - needed < BOTTOM:
            c.showPage()
            new_page_background()
            return TOP
        return y

    # ══════════════════════════════════════════════════════════════════════
    # TOTAL
    # ══════════════════════════════════════════════════════════════════════
    y = ensure_room(y - 16, TOTAL_BLOCK_H)
    c.setFillColor(HexColor("#0d9488"))
    c.roundRect(ML, y - TOTAL_BLOCK_H, UW, TOTAL_BLOCK_H, 8, fill=1, stroke=0)
    c.setFillColor(HexColor("#ffffff"))
    c.setFont(FONT_BOLD, 11)
    c.drawCentredString(W / 2, y - 18, "Total Final a Pagar")
    c.setFont(FONT_BOLD, 20)
    c.drawCentredString(W / 2, y - 42, format_local(total))
    c.setFont(FONT, 9)
    c.drawCentredString(W / 2, y - 58, usd_line(total, quotation.usd_rate, approx="aprox."))
    y -= TOTAL_BLOCK_H + 24

    # ══════════════════════════════════════════════════════════════════════
    # CRONOGRAMA + FORMA DE PAGO
    # ══════════════════════════════════════════════════════════════════════
    first, second = split_payment(total, 2)
    block_h = 20 + len(DELIVERY_SCHEDULE) * 16
    y = ensure_room(y, max(block_h, 100))
    half = ML + UW / 2 + 10
    text(ML, y, "Cronograma de Entregas", FONT_BOLD, 12)
    text(half, y, "Forma de Pago", FONT_BOLD, 12)
    yy = y - 20
    for when, what in DELIVERY_SCHEDULE:
        text(ML, yy, f"{when}:", FONT_BOLD, 9, color="accent_color")
        text(ML + 62, yy, what, size=9, color="muted_color")
        yy -= 16
    text(half, y - 20, "50% al iniciar", FONT_BOLD, 9)
    text(MR, y - 20, format_local(first), FONT_BOLD, 11, color="accent_color", align="right")
    text(half, y - 40, "50% al entregar", FONT_BOLD, 9)
    text(MR, y - 40, format_local(second), FONT_BOLD, 11, color="accent_color", align="right")
    y -= max(block_h, 100) + 10

    # ══════════════════════════════════════════════════════════════════════
    # TÉRMINOS + PIE
    # ══════════════════════════════════════════════════════════════════════
    term_lines: List[str] = []
    for term in company.terms:
        for part in (term or "").splitlines() or [""]:
            term_lines.extend(simpleSplit(f"- {part}", FONT, 9, UW - 20) or [""])
    terms_h = 26 + len(term_lines) * 12
    y = ensure_room(y, terms_h)
    text(ML, y, "Términos y Condiciones", FONT_BOLD, 11)
    yy = y - 18
    for line in term_lines:
        text(ML + 10, yy, line, size=9, color="muted_color")
        yy -= 12
    y -= terms_h + 10

    note_lines: List[str] = []
    for part in (company.notes or "").splitlines():
        note_lines.extend(simpleSplit(part, FONT, 8.5, UW) or [""])
    footer_h = 24 + (len(note_lines) + 2) * 11
    y = ensure_room(y, footer_h)
    c.setStrokeColor(colors["rule_color"])
    c.setLineWidth(1)
    c.line(ML, y, MR, y)
    yy = y - 16
    for line in note_lines:
        text(W / 2, yy, line, size=8.5, color="muted_color", align="center")
        yy -= 11
    text(W / 2, yy, f"{company.name} - Transformamos ideas en soluciones digitales exitosas",
         FONT_BOLD, 8.5, color="accent_color", align="center")
    text(W / 2, yy - 11, f"{company.email} | WhatsApp: {company.phone}", size=8.5,
         color="muted_color", align="center")

    c.showPage()
    c.save()
    return buf.getvalue()
