from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from src.core.models import Module


class QueryKind(str, Enum):
    ANALYZE = "analyze"
    SUGGEST_MODULES = "suggest-modules"
    OPTIMIZE_PRICING = "optimize-pricing"
    TIMELINE = "timeline"
    COMPARE_OPTIONS = "compare-options"
    PRICE_RESEARCH = "price-research"
    FREEFORM = "freeform"


@dataclass
class AdvisoryContext:
    client_name: str = ""
    project_type: str = ""
    selected_modules: List[Module] = field(default_factory=list)
    budget: Optional[float] = None
    exchange_rate: Optional[float] = None
    # marknadsdata och katalog för systemprompten
    knowledge: List[str] = field(default_factory=list)
    prices: List[str] = field(default_factory=list)
    catalog: List[Module] = field(default_factory=list)


BASE_SYSTEM_PROMPT = """Eres un Sistema Experto de Cotizaciones para desarrollo web en República Dominicana.

REGLAS:
1. Responde siempre en español profesional.
2. Proporciona precios en RD$ (pesos dominicanos) y, cuando aplique, en USD.
3. Considera el ITBIS (18%) cuando sea relevante.
4. Sé específico con estimaciones de tiempo y recursos.
5. Usa HTML simple (<strong>, <ul>/<li>, <p>, <table>) o Markdown; nunca scripts ni estilos."""

SUGGESTION_FORMAT = """
Si sugieres módulos nuevos, usa EXACTAMENTE este formato por cada módulo:
[MODULO_SUGERIDO]
nombre: "Nombre del módulo"
precio: "precio en RD$, solo números"
descripcion: "descripción breve"
categoria: "Frontend|Backend|Design|Integration|Infrastructure|Marketing"
horas: "horas estimadas"
[/MODULO_SUGERIDO]"""

TASK_PROMPTS = {
    QueryKind.ANALYZE: (
        "TAREA: Realiza un análisis completo del proyecto (FODA), evalúa su viabilidad "
        "técnica y comercial y sugiere mejoras."
    ),
    QueryKind.SUGGEST_MODULES: (
        "TAREA: Analiza los módulos actuales y sugiere qué módulos importantes faltan "
        "para este tipo de proyecto, con precio, razón y prioridad (Alta/Media/Baja)."
    ),
    QueryKind.OPTIMIZE_PRICING: (
        "TAREA: Optimiza la cotización actual. Identifica módulos que pueden combinarse "
        "o eliminarse y propone paquetes, descuentos y estructura de pago."
    ),
    QueryKind.TIMELINE: (
        "TAREA: Genera un cronograma detallado con fases, dependencias entre módulos, "
        "hitos y entregables parciales."
    ),
    QueryKind.COMPARE_OPTIONS: (
        "TAREA: Compara las opciones planteadas con pros y contras; usa tablas "
        "comparativas cuando sea útil."
    ),
    QueryKind.PRICE_RESEARCH: (
        "TAREA: Investiga rangos de precios del mercado dominicano para el servicio "
        "indicado y compáralos con precios internacionales."
    ),
    QueryKind.FREEFORM: "",
}

# Används när användaren inte skrivit någon egen fråga
DEFAULT_QUESTIONS = {
    QueryKind.ANALYZE: "Analiza este proyecto completo y proporciona un análisis FODA, evaluación técnica y recomendaciones.",
    QueryKind.SUGGEST_MODULES: "¿Qué módulos importantes me faltan para este tipo de proyecto? Sugiere módulos específicos con precios.",
    QueryKind.OPTIMIZE_PRICING: "Optimiza la cotización actual. Sugiere cómo reducir costos sin sacrificar calidad.",
    QueryKind.TIMELINE: "Genera un cronograma detallado de desarrollo con fases, dependencias y entregables.",
    QueryKind.COMPARE_OPTIONS: "Compara las alternativas más comunes para este proyecto.",
    QueryKind.PRICE_RESEARCH: "Investiga los precios actuales del mercado dominicano para este tipo de proyecto.",
}

NO_PRICE_DATA = (
    "No hay investigaciones de precios verificadas; indica que los rangos son "
    "estimaciones generales del mercado."
)

# Uppgifter där modellen får föreslå nya moduler
SUGGESTING_KINDS = {QueryKind.SUGGEST_MODULES, QueryKind.FREEFORM, QueryKind.ANALYZE}


def _catalog_line(m: Module) -> str:
    line = f"- {m.name}"
    if m.category:
        line += f" ({m.category})"
    line += f": RD${m.price:,}"
    if m.description:
        line += f" - {m.description}"
    if m.estimated_hours:
        line += f" [Horas: {m.estimated_hours:g}h]"
    return line


def build_system_prompt(kind: QueryKind, context: Optional[AdvisoryContext] = None) -> str:
    parts = [BASE_SYSTEM_PROMPT]
    if context is not None:
        if context.exchange_rate:
            parts.append(f"TASA DE CAMBIO ACTUAL: 1 USD = RD${context.exchange_rate:.2f}")
        if context.knowledge:
            parts.append("BASE DE CONOCIMIENTO DEL MERCADO DOMINICANO:\n" + "\n".join(context.knowledge))
        if context.prices:
            parts.append("INVESTIGACIÓN DE PRECIOS EN RD:\n" + "\n".join(context.prices))
        elif kind == QueryKind.PRICE_RESEARCH:
            parts.append(NO_PRICE_DATA)
        if context.catalog:
            parts.append("CATÁLOGO DE MÓDULOS DISPONIBLES:\n" + "\n".join(_catalog_line(m) for m in context.catalog))
    task = TASK_PROMPTS.get(kind)
    if task:
        parts.append(task)
    if kind in SUGGESTING_KINDS:
        parts.append(SUGGESTION_FORMAT.strip())
    return "\n\n".join(parts)


def build_user_message(prompt: str, context: Optional[AdvisoryContext] = None) -> str:
    """
    Lägger projektkontexten före användarens fråga.
    """
    if context is None:
        return prompt

    modules = ", ".join(
        f"{m.name} - RD${m.price:,}" for m in context.selected_modules
    ) or "Ninguno"
    budget = f"RD${context.budget:,.0f}" if context.budget else "No especificado"

    return (
        "CONTEXTO DEL PROYECTO:\n"
        f"- Cliente: {context.client_name or 'No especificado'}\n"
        f"- Tipo de proyecto: {context.project_type or 'No especificado'}\n"
        f"- Presupuesto: {budget}\n"
        f"- Módulos seleccionados: {modules}\n\n"
        f"CONSULTA: {prompt}"
    )
