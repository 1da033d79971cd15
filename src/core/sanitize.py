"""
Normaliserar AI-svar till säker HTML.

Modellen är en extern, opålitlig källa: svaret kan vara Markdown eller HTML
och renderas direkt i sidan. Allt som lämnar tjänsten går därför igenom
render_advisory_html (Markdown -> HTML, sedan allow-list via nh3).
"""
from __future__ import annotations

import re

import markdown
import nh3

from src.core.suggestions import strip_suggestion_blocks

ALLOWED_TAGS = {
    "a", "b", "blockquote", "br", "code", "div", "em", "h1", "h2", "h3", "h4",
    "h5", "h6", "hr", "i", "li", "ol", "p", "pre", "span", "strong", "table",
    "tbody", "td", "th", "thead", "tr", "u", "ul",
}

ALLOWED_ATTRIBUTES = {
    "*": {"class"},
    "a": {"href", "title"},
    "td": {"colspan", "rowspan"},
    "th": {"colspan", "rowspan"},
}

URL_SCHEMES = {"http", "https", "mailto"}

HTML_HINT_RE = re.compile(r"<\s*(div|p|ul|ol|table|h[1-6]|strong|br|span)\b", re.I)
FENCE_RE = re.compile(r"^```(?:html)?\s*\n(.*?)\n```\s*$", re.S | re.I)

ERROR_BLOCK_HTML = (
    '<div class="advisory-error"><p>'
    "No se pudo obtener una respuesta del asistente. Por favor, intenta de nuevo."
    "</p></div>"
)


def looks_like_html(text: str) -> bool:
    return bool(HTML_HINT_RE.search(text or ""))


def sanitize_html(raw_html: str) -> str:
    return nh3.clean(
        raw_html or "",
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        url_schemes=URL_SCHEMES,
        link_rel="noopener noreferrer",
    )


def render_advisory_html(text: str) -> str:
    """
    Råtext från modellen -> sanerad HTML.

    - [MODULO_SUGERIDO]-block tas bort (de returneras separat som förslag)
    - ett omslutande ```html ... ```-staket skalas av
    - Markdown konverteras om texten inte redan är HTML
    """
    body = strip_suggestion_blocks(text or "")

    fenced = FENCE_RE.match(body)
    if fenced:
        body = fenced.group(1)

    if not looks_like_html(body):
        body = markdown.markdown(body, extensions=["tables", "sane_lists"])

    return sanitize_html(body)
