import json
import logging
from typing import Any, Literal

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field

from backend.services.mock_data import SCENARIOS, get_mock_tax_data

logger = logging.getLogger(__name__)

TOOL_NAME = "get-tax-data"


class GetTaxDataInput(BaseModel):
    scenario: Literal["single", "married", "freelancer"] = Field(
        description=(
            "The tax scenario to retrieve: single (single person), married (married couple), "
            "or freelancer (self-employed)"
        )
    )


def get_tax_data(scenario: str) -> dict[str, Any]:
    if scenario not in SCENARIOS:
        return {
            "success": False,
            "scenario": scenario,
            "error": f"Tax data not found for scenario: {scenario}",
        }
    try:
        data = get_mock_tax_data(scenario)
    except Exception as exc:
        logger.error("get-tax-data failed for %s: %s", scenario, exc)
        return {"success": False, "scenario": scenario, "error": str(exc) or "Failed to retrieve tax data"}
    return {"success": True, "data": data.to_wire(), "scenario": scenario}


def _run(scenario: str) -> tuple[str, dict[str, Any]]:
    result = get_tax_data(scenario)
    return json.dumps(result, ensure_ascii=False), result


get_tax_data_tool = StructuredTool.from_function(
    func=_run,
    name=TOOL_NAME,
    description=(
        "Retrieves Swiss tax data for Canton Zurich based on a scenario (single, married, or freelancer). "
        "Use this tool when the user asks for their tax data, wants to load their tax information, "
        "or needs to see their current tax situation."
    ),
    args_schema=GetTaxDataInput,
    response_format="content_and_artifact",
)
