"""Canton Zurich deduction estimate (simplified rules, CHF)."""

import json
import math
from typing import Any

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field

TOOL_NAME = "calculate-deductions"

PILLAR_3A_LIMIT = 7056
COMMUTING_CAP = 3600
PROFESSIONAL_RATE = 0.03
HEALTHCARE_THRESHOLD = 0.05
AVERAGE_TAX_RATE = 0.20


class CalculateDeductionsInput(BaseModel):
    income: float = Field(description="Total annual income in CHF")
    professional_expenses: float = Field(default=0, description="Professional expenses in CHF")
    healthcare_costs: float = Field(default=0, description="Healthcare and insurance costs in CHF")
    pension_contributions: float = Field(default=0, description="Pillar 2 and 3a pension contributions in CHF")
    childcare_costs: float = Field(default=0, description="Childcare costs in CHF")
    commuting_costs: float = Field(default=0, description="Commuting expenses in CHF")


def _round(value: float) -> int:
    # half-up to whole francs
    return int(math.floor(value + 0.5))


def calculate_deductions(
    income: float,
    professional_expenses: float = 0,
    healthcare_costs: float = 0,
    pension_contributions: float = 0,
    childcare_costs: float = 0,
    commuting_costs: float = 0,
) -> dict[str, Any]:
    professional = min(professional_expenses, income * PROFESSIONAL_RATE)
    healthcare = max(0.0, healthcare_costs - income * HEALTHCARE_THRESHOLD)
    pension = min(pension_contributions, PILLAR_3A_LIMIT)
    childcare = childcare_costs
    commuting = min(commuting_costs, COMMUTING_CAP)

    total = professional + healthcare + pension + childcare + commuting

    recommendations: list[str] = []
    if pension_contributions < PILLAR_3A_LIMIT:
        remaining = PILLAR_3A_LIMIT - pension_contributions
        recommendations.append(
            f"Consider maximizing your Pillar 3a contributions. You can still contribute CHF {remaining:.2f} this year."
        )
    if professional_expenses < income * PROFESSIONAL_RATE:
        recommendations.append(
            "Track your professional expenses carefully. You can deduct work-related costs like home office, "
            "professional literature, and equipment."
        )
    if 0 < commuting_costs < COMMUTING_CAP:
        recommendations.append(
            "Ensure you claim all commuting costs between home and work. "
            "Public transport season tickets are fully deductible."
        )
    if healthcare_costs < income * HEALTHCARE_THRESHOLD:
        recommendations.append(
            "Healthcare costs are only deductible above 5% of your income. "
            "Consider timing large medical expenses strategically."
        )

    return {
        "totalDeductions": _round(total),
        "breakdown": {
            "professional": _round(professional),
            "healthcare": _round(healthcare),
            "pension": _round(pension),
            "childcare": _round(childcare),
            "commuting": _round(commuting),
        },
        "recommendations": recommendations,
        "estimatedTaxSavings": _round(total * AVERAGE_TAX_RATE),
    }


def _run(**kwargs: Any) -> tuple[str, dict[str, Any]]:
    result = calculate_deductions(**kwargs)
    return json.dumps(result), result


calculate_deductions_tool = StructuredTool.from_function(
    func=_run,
    name=TOOL_NAME,
    description=(
        "Calculates potential tax deductions for Canton Zurich based on income and expenses. "
        "Use this when the user wants to know what deductions they can claim or optimize their tax situation."
    ),
    args_schema=CalculateDeductionsInput,
    response_format="content_and_artifact",
)
