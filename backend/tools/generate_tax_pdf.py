import datetime
import json
import logging
import re
from pathlib import Path
from typing import Any
from urllib.parse import quote

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field

from backend.models import TaxData
from backend.services.pdf_generator import generate_tax_return_pdf

logger = logging.getLogger(__name__)

TOOL_NAME = "generate-tax-pdf"
DOWNLOAD_PREFIX = "/downloads"


class GenerateTaxPdfInput(BaseModel):
    tax_data: TaxData = Field(description="The Swiss tax data to generate the PDF from")
    file_name: str | None = Field(
        default=None, description="Optional custom filename for the PDF (without extension)"
    )


def _safe_name(name: str) -> str:
    return re.sub(r"[^\w-]+", "_", name).strip("_") or "Tax_Return"


def build_file_name(tax_data: TaxData, file_name: str | None = None, now: datetime.datetime | None = None) -> str:
    now = now or datetime.datetime.now(datetime.timezone.utc)
    timestamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
    if file_name:
        stem = _safe_name(file_name)
    else:
        stem = _safe_name(f"Tax_Return_{tax_data.personal_info.last_name}_{tax_data.tax_year}")
    return f"{stem}_{timestamp}.pdf"


def generate_tax_pdf(tax_data: TaxData, output_dir: Path, file_name: str | None = None) -> dict[str, Any]:
    """Render the tax return summary and save it where the /downloads mount serves it."""
    try:
        pdf_bytes = generate_tax_return_pdf(tax_data)
        output_dir.mkdir(parents=True, exist_ok=True)
        pdf_name = build_file_name(tax_data, file_name)
        (output_dir / pdf_name).write_bytes(pdf_bytes)
    except Exception as exc:
        logger.error("PDF generation failed: %s", exc)
        return {
            "success": False,
            "message": "Failed to generate PDF document",
            "error": str(exc) or "Unknown error occurred during PDF generation",
        }

    info = tax_data.personal_info
    size_kb = len(pdf_bytes) / 1024
    logger.info("Generated %s (%.2f KB)", pdf_name, size_kb)
    return {
        "success": True,
        "fileName": pdf_name,
        "downloadUrl": f"{DOWNLOAD_PREFIX}/{quote(pdf_name)}",
        "message": (
            f"Successfully generated tax return PDF for {info.first_name} {info.last_name} "
            f"(Tax Year {tax_data.tax_year}). File size: {size_kb:.2f} KB. The PDF includes income summary, "
            "deductions, wealth declaration, and taxable income calculation."
        ),
    }


def make_generate_tax_pdf_tool(output_dir: Path) -> BaseTool:
    def _run(tax_data: TaxData, file_name: str | None = None) -> tuple[str, dict[str, Any]]:
        result = generate_tax_pdf(tax_data, output_dir, file_name)
        return json.dumps(result, ensure_ascii=False), result

    return StructuredTool.from_function(
        func=_run,
        name=TOOL_NAME,
        description=(
            "Generates a PDF document containing a comprehensive tax return summary with income, deductions, "
            "and wealth information for Canton Zurich, in English. Use this when the user asks to generate, "
            "create, or download a PDF of their tax data or tax return summary."
        ),
        args_schema=GenerateTaxPdfInput,
        response_format="content_and_artifact",
    )
