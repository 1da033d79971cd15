from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.core.models import ModuleData


class ClientIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_name: Optional[str] = Field(default=None, alias="clientName")
    project_type: Optional[str] = Field(default=None, alias="projectType")


class ModuleIn(ModuleData):
    """Skapa/ändra modul. Samma fält som ModuleData (id sätts av servern)."""


class QuotationOut(BaseModel):
    client_name: str
    project_type: str
    modules: List[Dict[str, Any]]
    selected_module_ids: List[int]
    next_id: int
    total_amount: int
    total_usd: Optional[float] = None
    exchange_rate: float


class ToggleOut(BaseModel):
    module_id: int
    selected: bool
    total_amount: int


class SaveQuotationIn(BaseModel):
    """
    Sparar arbetsminnets nuvarande urval. Kund och projekttyp tas från
    arbetsminnet om de inte skickas med.
    """

    client_name: Optional[str] = None
    project_type: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    project_description: Optional[str] = None
    discount_percent: float = Field(default=0, ge=0, le=100)
    notes: Optional[str] = None


class StatusIn(BaseModel):
    status: str


class AdvisorQueryIn(BaseModel):
    kind: str = "freeform"
    prompt: str = ""
    budget: Optional[float] = Field(default=None, ge=0)


class AdvisorQueryOut(BaseModel):
    content: str
    suggestions: List[Dict[str, Any]] = Field(default_factory=list)
    model: Optional[str] = None
    log_id: Optional[int] = None


class KnowledgeIn(BaseModel):
    category: str = Field(min_length=1)
    topic: str = Field(min_length=1)
    content: str = Field(min_length=1)
    confidence_score: Optional[float] = Field(default=None, ge=0, le=1)
    year: Optional[int] = None
    source: Optional[str] = None
    is_active: bool = True


class PriceResearchIn(BaseModel):
    service_type: str = Field(min_length=1)
    price_min_dop: Optional[int] = Field(default=None, ge=0)
    price_max_dop: Optional[int] = Field(default=None, ge=0)
    price_avg_dop: Optional[int] = Field(default=None, ge=0)
    price_usd: Optional[float] = Field(default=None, ge=0)
    provider_name: Optional[str] = None
    region: Optional[str] = None
    research_source: Optional[str] = None
    notes: Optional[str] = None
    is_verified: bool = False


class FeedbackIn(BaseModel):
    was_helpful: Optional[bool] = None
    feedback: Optional[str] = None


class ExchangeRateOut(BaseModel):
    rate: float
    source: str
    status: str
    fetched_at: Optional[str] = None
