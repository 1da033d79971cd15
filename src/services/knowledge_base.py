# fil: src/services/knowledge_base.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from src.core.money import format_amount
from src.server.models import InferenceLog, KnowledgeEntry, PriceResearch

log = logging.getLogger("webnova.knowledge")

DEFAULT_COUNTRY = "DO"


@dataclass
class MarketKnowledge:
    """Färdigformaterade rader för systemprompten."""

    knowledge: List[str] = field(default_factory=list)
    prices: List[str] = field(default_factory=list)


# ---------------------------------------------------------
# Formatering
# ---------------------------------------------------------

def format_knowledge(entry: KnowledgeEntry) -> str:
    """'[Mercado/Precios]: texto (Confianza: 90%)'"""
    line = f"[{entry.category}/{entry.topic}]: {entry.content}"
    if entry.confidence_score is not None:
        line += f" (Confianza: {round(entry.confidence_score * 100)}%)"
    return line


def format_price(row: PriceResearch) -> str:
    """'Tienda online: RD$80,000-250,000 (Promedio: RD$150,000, ~$2,500 USD)'"""
    lo, hi = format_amount(row.price_min_dop), format_amount(row.price_max_dop)
    line = f"{row.service_type}: RD${lo or '?'}-{hi or '?'}"

    extra = []
    if row.price_avg_dop is not None:
        extra.append(f"Promedio: RD${format_amount(row.price_avg_dop)}")
    if row.price_usd is not None:
        extra.append(f"~${format_amount(row.price_usd)} USD")
    if extra:
        line += f" ({', '.join(extra)})"
    return line


class KnowledgeBase:
    """
    Läser marknadskunskap och verifierade prisundersökningar för rådgivaren
    och loggar varje besvarad fråga i ai_inference_logs.
    """

    def __init__(self, session: Session, *, country: str = DEFAULT_COUNTRY) -> None:
        self.session = session
        self.country = country

    # -------------------------------------------------------------
    #  Läsning
    # -------------------------------------------------------------
    def active_entries(self) -> List[KnowledgeEntry]:
        stmt = (
            select(KnowledgeEntry)
            .where(KnowledgeEntry.is_active == True)  # noqa: E712
            .where(KnowledgeEntry.country == self.country)
            .order_by(KnowledgeEntry.id)
        )
        return list(self.session.exec(stmt).all())

    def verified_prices(self) -> List[PriceResearch]:
        stmt = (
            select(PriceResearch)
            .where(PriceResearch.is_verified == True)  # noqa: E712
            .order_by(PriceResearch.id)
        )
        return list(self.session.exec(stmt).all())

    def market_context(self) -> MarketKnowledge:
        """
        Tom MarketKnowledge om databasen inte går att läsa: rådgivaren
        svarar då utan marknadsdata i stället för att fallera.
        """
        try:
            entries = self.active_entries()
            prices = self.verified_prices()
        except SQLAlchemyError as e:
            log.warning("Kunskapsbas: kunde inte läsas: %s", e)
            return MarketKnowledge()
        return MarketKnowledge(
            knowledge=[format_knowledge(e) for e in entries],
            prices=[format_price(p) for p in prices],
        )

    # -------------------------------------------------------------
    #  Skrivning
    # -------------------------------------------------------------
    def add_entry(self, **fields: Any) -> KnowledgeEntry:
        fields.setdefault("country", self.country)
        entry = KnowledgeEntry(**fields)
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def add_price(self, **fields: Any) -> PriceResearch:
        row = PriceResearch(**fields)
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def log_inference(
        self,
        *,
        query_type: str,
        user_query: str,
        ai_response: Optional[str],
        model: Optional[str],
        context_used: Dict[str, Any],
        processing_time_ms: int,
    ) -> Optional[InferenceLog]:
        """Loggning får aldrig stoppa ett svar: fel loggas och None returneras."""
        row = InferenceLog(
            query_type=query_type,
            user_query=user_query,
            ai_response=ai_response,
            model=model,
            context_used=context_used,
            processing_time_ms=processing_time_ms,
        )
        try:
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        except SQLAlchemyError as e:
            self.session.rollback()
            log.warning("Kunskapsbas: kunde inte logga frågan: %s", e)
            return None
        return row

    def recent_logs(self, limit: int = 50) -> List[InferenceLog]:
        stmt = select(InferenceLog).order_by(InferenceLog.id.desc()).limit(limit)
        return list(self.session.exec(stmt).all())

    def record_feedback(self, log_id: int, *, was_helpful: Optional[bool], feedback: Optional[str]) -> InferenceLog:
        row = self.session.get(InferenceLog, log_id)
        if row is None:
            raise LookupError(log_id)
        row.was_helpful = was_helpful
        row.feedback = feedback
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row
