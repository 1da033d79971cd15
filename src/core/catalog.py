from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import ValidationError

from src.core.models import Module

log = logging.getLogger("webnova.catalog")


# ---------------------------------------------------------
# Standardkatalog (byrån WebNova Lab, priser i RD$)
# ---------------------------------------------------------

DEFAULT_MODULES: List[Module] = [
    Module(id=1, name="Landing Page", price=3500, description="Sección de inicio con branding y botón de WhatsApp", category="Frontend"),
    Module(id=2, name="Diseño Responsivo", price=3500, description="Adaptación para móviles, tablets y escritorio", category="Design"),
    Module(id=3, name="Catálogo de Vehículos", price=4000, description="Listado de vehículos con filtros y ficha de detalles", category="Frontend"),
    Module(id=4, name="Reserva (Formulario)", price=5000, description="Formulario con datos del cliente, fechas y lugares", category="Frontend"),
    Module(id=5, name="Soporte Multilingüe", price=2000, description="Interfaz en Español, Inglés y Francés", category="Frontend"),
    Module(id=6, name="Hosting + Dominio", price=2000, description="Configuración en Vercel + dominio personalizado", category="Infrastructure"),
    Module(id=7, name="Pasarela de Pago", price=18000, description="Integración con Azul, PayPal y opciones de transferencia", category="Backend"),
    Module(id=8, name="Gestión de Precios y Descuentos", price=13000, description="Lógica de mínimo 3 días, descuentos, seguro e impuestos", category="Backend"),
    Module(id=9, name="Notificaciones y WhatsApp", price=7000, description="Confirmaciones por correo y WhatsApp, cláusulas de responsabilidad", category="Integration"),
    Module(id=10, name="Panel de Administración", price=10000, description="Gestión de reservas, clientes y sincronización con Google Calendar", category="Backend"),
    Module(id=11, name="SEO y Publicidad", price=6000, description="Optimización SEO y preparación para campañas digitales", category="Marketing"),
    Module(id=12, name="Branding y Diseño", price=8000, description="Logo, colores corporativos, diseño gráfico y estilos", category="Design"),
    Module(id=13, name="Inventario Futuro", price=9000, description="Módulo adicional para gestión de inventario de vehículos", category="Backend"),
    Module(id=14, name="Control de Usuario (Futuro)", price=12000, description="Sistema de login, roles y clientes registrados", category="Backend"),
]


def normalize_modules(raw: Any) -> List[Module]:
    """
    Gör om en rå lista (från YAML/JSON) till Module-objekt.

    - Rader som inte går att tolka hoppas över.
    - Dubbletter av id hoppas över (första vinner), så att id alltid är unikt
      inom katalogen.
    """
    if isinstance(raw, dict):
        raw = raw.get("modules") or []
    if not isinstance(raw, list):
        return []

    out: List[Module] = []
    seen = set()
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            module = Module.model_validate(item)
        except ValidationError:
            continue
        if module.id in seen:
            continue
        seen.add(module.id)
        out.append(module)
    return out


@lru_cache(maxsize=4)
def _load_catalog_yaml(path_str: str) -> tuple:
    path = Path(path_str)
    if not path.exists():
        log.warning("Hittar inte modulkatalogen %s, använder standardkatalogen", path)
        return ()

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        log.warning("Kunde inte läsa modulkatalogen %s: %s", path, e)
        return ()

    return tuple(normalize_modules(data))


def default_catalog(path: Optional[str] = None) -> List[Module]:
    """
    Returnerar en ny kopia av startkatalogen.

    Om path pekar på en giltig YAML-fil används den, annars DEFAULT_MODULES.
    """
    modules: List[Module] = []
    if path:
        modules = list(_load_catalog_yaml(str(path)))
    if not modules:
        modules = DEFAULT_MODULES
    return [m.model_copy(deep=True) for m in modules]


def next_id_for(modules: List[Module], floor: int = 1) -> int:
    """max(id) + 1, men aldrig under floor."""
    highest = max((m.id for m in modules), default=0)
    return max(highest + 1, floor)
