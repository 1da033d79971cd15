from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Header, HTTPException
from sqlmodel import Session

from src.core.quotation_state import QuotationState
from src.server.db.session import engine
from src.server.settings.config import Settings, settings
from src.services.ai_client import AdvisoryClient
from src.services.exchange_rate import ExchangeRateProvider
from src.services.quote_document import CompanyInfo
from src.services.recovery_store import RecoveryStore

log = logging.getLogger("webnova.app")


# ==============================
# API KEY
# ==============================

API_KEY_HEADER_NAME = "X-WEBNOVA-API-KEY"


def verify_api_key(x_webnova_api_key: Optional[str] = Header(None)) -> None:
    # Tom API_KEY = ingen kontroll
    if settings.api_key and x_webnova_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="API key inválida o ausente")


# ==============================
# APP CONTEXT
# ==============================

@dataclass
class AppContext:
    """
    Allt som endpoints delar: arbetsminnet och dess medarbetare.
    Skapas en gång i lifespan och injiceras via get_context.
    """

    state: QuotationState
    rates: ExchangeRateProvider
    advisor: AdvisoryClient
    recovery: Optional[RecoveryStore] = None
    company: CompanyInfo = field(default_factory=CompanyInfo)


def build_app_context(cfg: Settings = settings, *, bind=None) -> AppContext:
    """
    Återställer arbetsminnet från disk (eller standardkatalogen) och kopplar
    på skriv-bakom-lagringen.
    """
    recovery = RecoveryStore(cfg.state_dir, delay=cfg.recovery_debounce_seconds)
    state = QuotationState.from_storage(
        recovery.load(),
        catalog_path=cfg.module_catalog_path or None,
    )
    state.add_listener(recovery.schedule)

    db = bind or engine
    rates = ExchangeRateProvider(
        lambda: Session(db),
        default_rate=cfg.default_usd_rate,
        interval=cfg.exchange_rate_refresh_seconds,
        bank_url=cfg.bank_rate_url,
        timeout=cfg.exchange_rate_timeout_seconds,
    )

    advisor = AdvisoryClient(
        api_key=cfg.ai_api_key,
        base_url=cfg.ai_base_url,
        models=cfg.ai_models,
        timeout=cfg.ai_timeout_seconds,
    )
    if not cfg.ai_api_key:
        log.warning("AI_API_KEY saknas, rådgivningen svarar med fel tills den sätts")

    return AppContext(
        state=state,
        rates=rates,
        advisor=advisor,
        recovery=recovery,
        company=CompanyInfo.from_settings(cfg.company),
    )


_context: Optional[AppContext] = None


def set_context(ctx: Optional[AppContext]) -> None:
    global _context
    _context = ctx


def get_context() -> AppContext:
    if _context is None:
        raise HTTPException(status_code=503, detail="El servicio todavía no está listo")
    return _context
