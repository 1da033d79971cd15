from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.core.errors import QuotationValidationError
from src.core.models import Module
from src.core.money import format_amount, format_local, format_usd, split_payment


# Projektroten (mappen som innehåller src/ och templates/)
ROOT = Path(__file__).resolve().parents[2]
TEMPLATE_PATH = ROOT / "templates" / "quotation_document.html"
PLACEHOLDER_RE = re.compile(r"\[\[([a-zA-Z0-9_]+)\]\]")

MONTHS_ES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]

DEFAULT_NOTES = (
    "Gracias por la oportunidad de cotizar para su proyecto. "
    "¡Esperamos trabajar con ustedes!"
)

DEFAULT_TERMS = [
    "El proyecto incluye 2 rondas de revisiones sin costo adicional",
    "Cambios mayores fuera del alcance original se cotizarán por separado",
    "El cliente debe proporcionar contenido y materiales dentro de 5 días hábiles",
    "Garantía de 3 meses en funcionalidades desarrolladas",
    "Soporte técnico gratuito por 30 días post-entrega",
]

DELIVERY_SCHEDULE = [
    ("Semana 1-2", "Diseño y desarrollo inicial"),
    ("Semana 3-4", "Funcionalidades core y backend"),
    ("Semana 5-6", "Integraciones y testing"),
    ("Semana 7-8", "Despliegue y entrega final"),
]

THEMES: Dict[str, Dict[str, str]] = {
    "light": {
        "bg_color": "#ffffff",
        "text_color": "#1f2937",
        "muted_color": "#6b7280",
        "secondary_bg": "#f8fafc",
        "border_color": "#5EEAD4",
        "rule_color": "#e5e7eb",
        "alt_row_bg": "#f9fafb",
        "accent_color": "#0d9488",
    },
    "dark": {
        "bg_color": "#1f2937",
        "text_color": "#f9fafb",
        "muted_color": "#9ca3af",
        "secondary_bg": "#374151",
        "border_color": "#4b5563",
        "rule_color": "#4b5563",
        "alt_row_bg": "#374151",
        "accent_color": "#5EEAD4",
    },
}

EMPTY_CLIENT_MESSAGE = "Por favor, ingresa el nombre del cliente antes de generar el PDF."
EMPTY_SELECTION_MESSAGE = "Por favor, selecciona al menos un módulo para generar la cotización."


@dataclass
class CompanyInfo:
    name: str = "Web Nova Lab"
    short_name: str = "WebNovaLab"
    tagline: str = "Soluciones Web y Marketing Digital"
    email: str = "info.webnovalab@gmail.com"
    phone: str = "+1 (809) 123-4567"
    notes: str = DEFAULT_NOTES
    terms: List[str] = field(default_factory=lambda: list(DEFAULT_TERMS))

    @classmethod
    def from_settings(cls, company: Any) -> "CompanyInfo":
        """Bygger från CompanySettings (eller vilket objekt som helst med samma fält)."""
        return cls(
            name=getattr(company, "name", None) or cls.name,
            short_name=getattr(company, "short_name", None) or cls.short_name,
            tagline=getattr(company, "tagline", None) or cls.tagline,
            email=getattr(company, "email", None) or cls.email,
            phone=getattr(company, "phone", None) or cls.phone,
        )


@dataclass
class QuotationDocument:
    """
    Det som skrivs ut: kund, projekttyp, valda moduler (i katalogordning)
    och kursen som gäller vid utskriften.
    """

    client_name: str
    project_type: str
    modules: List[Module]
    usd_rate: Optional[float] = None

    @property
    def total(self) -> int:
        return sum(m.price for m in self.modules)

    @classmethod
    def from_state(cls, state: Any, usd_rate: Optional[float] = None) -> "QuotationDocument":
        with state.locked():
            return cls(
                client_name=state.client_name,
                project_type=state.project_type,
                modules=state.selected_modules(),
                usd_rate=usd_rate,
            )


def validate_for_export(quotation: QuotationDocument) -> None:
    if not (quotation.client_name or "").strip():
        raise QuotationValidationError(EMPTY_CLIENT_MESSAGE)
    if not quotation.modules:
        raise QuotationValidationError(EMPTY_SELECTION_MESSAGE)


def format_date_es(d: date) -> str:
    """date(2026, 10, 17) -> '17 de octubre de 2026'"""
    return f"{d.day} de {MONTHS_ES[d.month - 1]} de {d.year}"


def _multiline(text: str) -> str:
    # Användarens radbrytningar behålls i dokumentet
    return html.escape(text or "").replace("\n", "<br/>")


def usd_line(total: int, rate: Optional[float], approx: str = "≈") -> str:
    if rate and rate > 0:
        return f"({approx} {format_usd(round(total / rate))} al tipo de cambio RD$ {rate:.2f})"
    return f"({approx} US$ ... al tipo de cambio RD$ ...)"


def build_rows_html(modules: List[Module]) -> str:
    """Tabellrader (tbody) för de valda modulerna."""
    rows: List[str] = []
    for index, module in enumerate(modules):
        css = "row-alt" if index % 2 == 1 else "row"
        rows.append(
            f'<tr class="{css}">'
            f'<td class="col-name">{html.escape(module.name)}</td>'
            f'<td class="col-desc">{html.escape(module.description or "")}</td>'
            f'<td class="col-price">{format_amount(module.price)}</td>'
            "</tr>"
        )
    return "\n          ".join(rows)


def build_context_from_quotation(
    quotation: QuotationDocument,
    company: Optional[CompanyInfo] = None,
    *,
    theme: str = "light",
    generated_on: date,
) -> Dict[str, str]:
    """
    Bygger context-dict med alla fält som templaten använder.

    Kastar QuotationValidationError om kundnamnet är tomt eller inga
    moduler är valda. Datumet skickas in explicit så att förhandsvisning
    och slutlig export blir identiska.
    """
    validate_for_export(quotation)
    if theme not in THEMES:
        raise QuotationValidationError(f"Tema desconocido: {theme}")

    company = company or CompanyInfo()
    total = quotation.total
    first, second = split_payment(total, 2)

    schedule_html = "\n            ".join(
        f"<li><strong>{html.escape(when)}:</strong> {html.escape(what)}</li>"
        for when, what in DELIVERY_SCHEDULE
    )
    terms_html = "\n            ".join(f"<li>{_multiline(t)}</li>" for t in company.terms)

    context: Dict[str, str] = {
        "theme": theme,
        "company_name": html.escape(company.name),
        "company_tagline": html.escape(company.tagline),
        "company_email": html.escape(company.email),
        "company_phone": html.escape(company.phone),
        "document_date": format_date_es(generated_on),
        "client_name": html.escape(quotation.client_name.strip()),
        "project_type": html.escape(quotation.project_type.strip() or "Proyecto Web Personalizado"),
        "rows_html": build_rows_html(quotation.modules),
        "total_local": format_local(total),
        "total_usd_line": html.escape(usd_line(total, quotation.usd_rate)),
        "payment_first": format_local(first),
        "payment_second": format_local(second),
        "schedule_html": schedule_html,
        "terms_html": terms_html,
        "notes_html": _multiline(company.notes or DEFAULT_NOTES),
    }
    context.update(THEMES[theme])
    return context


def render_quotation_html(context: Dict[str, Any]) -> str:
    """
    Läs HTML-templaten och ersätt alla [[nyckel]] med context-värden.
    Allt som inte finns i context ersätts med tom sträng.
    """
    doc = TEMPLATE_PATH.read_text(encoding="utf-8")

    # Ett enda pass: insatt text (t.ex. ett kundnamn med [[...]]) ersätts aldrig igen
    def _sub(match: "re.Match[str]") -> str:
        value = context.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER_RE.sub(_sub, doc)
