from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ModuleData(BaseModel):
    """
    Fälten i en modul utan id.

    Används både när användaren skapar/ändrar en modul och när ett
    AI-förslag accepteras. JSON-formatet använder camelCase för
    estimatedHours (samma format som export-filen).
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    price: int = Field(ge=0)
    description: str = ""
    category: Optional[str] = None
    estimated_hours: Optional[float] = Field(default=None, alias="estimatedHours", ge=0)


class Module(ModuleData):
    id: int

    def data(self) -> ModuleData:
        return ModuleData.model_validate(self.model_dump(exclude={"id"}))

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ModuleSuggestion(ModuleData):
    """
    Ett modulförslag som plockats ur AI-text. Blir en riktig Module först
    när användaren accepterar det (då får den ett nytt id).
    """


class QuotationSnapshot(BaseModel):
    """
    Export-/importfilen:

      {client, projectType, modules, selected, timestamp, version, totalAmount}
    """

    model_config = ConfigDict(populate_by_name=True)

    client: str = ""
    project_type: str = Field(default="", alias="projectType")
    modules: List[Module]
    selected: List[int] = Field(default_factory=list)
    timestamp: Optional[str] = None
    version: str = "3.0"
    total_amount: Optional[int] = Field(default=None, alias="totalAmount")

    def to_json(self) -> dict:
        out = self.model_dump(by_alias=True, exclude={"modules"})
        out["modules"] = [m.to_json() for m in self.modules]
        return out
