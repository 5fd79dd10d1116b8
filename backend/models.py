"""Request and domain models shared by the routes, tools and PDF services."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Swiss tax data (Canton Zurich)
# ---------------------------------------------------------------------------

class PersonalInfo(_CamelModel):
    first_name: str
    last_name: str
    date_of_birth: str
    address: str
    municipality: str
    marital_status: Literal["single", "married", "divorced", "widowed"]


class Income(_CamelModel):
    employment: float | None = None
    self_employment: float | None = None
    investments: float | None = None
    rental: float | None = None
    other: float | None = None


class Deductions(_CamelModel):
    professional_expenses: float | None = None
    healthcare_expenses: float | None = None
    pillar3a: float | None = None
    childcare: float | None = None
    education: float | None = None
    commuting: float | None = None
    donations: float | None = None


class Wealth(_CamelModel):
    bank_accounts: float | None = None
    securities: float | None = None
    real_estate: float | None = None
    other: float | None = None


class TaxData(_CamelModel):
    personal_info: PersonalInfo
    income: Income
    deductions: Deductions
    wealth: Wealth = Field(default_factory=Wealth)
    tax_year: int


class TaxScenario(BaseModel):
    id: str
    name: str
    description: str
    income: float


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: str = ""


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    conversation_history: list[ChatMessage] = Field(default_factory=list, alias="conversationHistory")
    user_id: str | None = Field(default=None, alias="userId")


class TaxDataRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tax_data: TaxData = Field(alias="taxData")


class RecommendationsPdfRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[ChatMessage]
    tax_data: TaxData | None = Field(default=None, alias="taxData")
