from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite lämnar tillbaka naiva värden: de tolkas som UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class QuotationRecord(SQLModel, table=True):
    """
    Sparad offert: en ögonblicksbild, inte levande referenser.
    Ändringar i arbetsminnet efter sparandet påverkar inte raden.
    """

    __tablename__ = "quotations"

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    client_name: str
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    project_type: str
    project_description: Optional[str] = None
    selected_modules: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    total_local: int = 0
    total_usd: Optional[float] = None
    exchange_rate_at_save: Optional[float] = None
    discount_percent: float = 0
    status: str = Field(default="draft", index=True)
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class ExchangeRateRow(SQLModel, table=True):
    __tablename__ = "exchange_rates"

    id: Optional[int] = Field(default=None, primary_key=True)
    currency_from: str = "USD"
    currency_to: str = "DOP"
    rate: float
    source: str = "Default"
    fetched_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime(timezone=True))


# ---------------------------------------------------------
# Rådgivarens kunskapsbas och logg
# ---------------------------------------------------------

class KnowledgeEntry(SQLModel, table=True):
    """Marknadsfakta som läggs in i rådgivarens systemprompt."""

    __tablename__ = "knowledge_base"

    id: Optional[int] = Field(default=None, primary_key=True)
    category: str
    topic: str
    content: str
    confidence_score: Optional[float] = None
    country: str = Field(default="DO", index=True)
    year: Optional[int] = None
    source: Optional[str] = None
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class PriceResearch(SQLModel, table=True):
    __tablename__ = "price_research"

    id: Optional[int] = Field(default=None, primary_key=True)
    service_type: str
    price_min_dop: Optional[int] = None
    price_max_dop: Optional[int] = None
    price_avg_dop: Optional[int] = None
    price_usd: Optional[float] = None
    provider_name: Optional[str] = None
    region: Optional[str] = None
    research_source: Optional[str] = None
    notes: Optional[str] = None
    is_verified: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class InferenceLog(SQLModel, table=True):
    """En rad per besvarad rådgivarfråga (underlag för uppföljning)."""

    __tablename__ = "ai_inference_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    query_type: str = Field(index=True)
    user_query: str
    ai_response: Optional[str] = None
    model: Optional[str] = None
    context_used: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    processing_time_ms: Optional[int] = None
    was_helpful: Optional[bool] = None
    feedback: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime(timezone=True))
