"""
PDF text extraction for uploaded tax documents (Lohnausweis, insurance statements).
The structured parse is best-effort: a handful of regexes over the extracted text.
"""

import io
import logging
import re
from typing import Any

from pypdf import PdfReader

logger = logging.getLogger(__name__)

_AMOUNT = r"(\d{1,3}(?:['’\s]\d{3})*(?:[.,]\d{2})?)"

_SALARY_RE = re.compile(rf"Bruttolohn.*?{_AMOUNT}", re.IGNORECASE)
_PENSION_RE = re.compile(rf"(?:BVG|Pensionskasse|2\.\s*Säule).*?{_AMOUNT}", re.IGNORECASE)
_HEALTH_RE = re.compile(rf"Krankenversicherung.*?{_AMOUNT}", re.IGNORECASE)


def parse_swiss_number(text: str) -> float:
    """Parse Swiss formatted amounts such as ``85'000.50`` or ``85 000,50``."""
    cleaned = re.sub(r"['’\s]", "", text).replace(",", ".")
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def parse_swiss_tax_document(text: str) -> dict[str, Any]:
    """Pull income and deduction figures out of free text, keyed like TaxData."""
    income: dict[str, float] = {}
    deductions: dict[str, float] = {}

    if match := _SALARY_RE.search(text):
        income["employment"] = parse_swiss_number(match.group(1))
    if match := _PENSION_RE.search(text):
        deductions["pillar3a"] = parse_swiss_number(match.group(1))
    if match := _HEALTH_RE.search(text):
        deductions["healthcareExpenses"] = parse_swiss_number(match.group(1))

    return {"income": income, "deductions": deductions}


def extract_pdf_text(data: bytes, file_name: str) -> dict[str, Any]:
    try:
        reader = PdfReader(io.BytesIO(data))
        text = "\n".join(page.extract_text() or "" for page in reader.pages)
        return {
            "success": True,
            "text": text,
            "numPages": len(reader.pages),
            "fileName": file_name,
        }
    except Exception as exc:
        logger.error("PDF extraction failed for %s: %s", file_name, exc)
        return {
            "success": False,
            "error": str(exc) or "Failed to extract PDF text",
            "fileName": file_name,
        }


def extract_tax_data_from_pdf(data: bytes, file_name: str) -> dict[str, Any]:
    """Extract raw text and the parsed tax fields in one result."""
    extraction = extract_pdf_text(data, file_name)
    if extraction["success"] and extraction.get("text"):
        extraction["extractedData"] = parse_swiss_tax_document(extraction["text"])
    return extraction
