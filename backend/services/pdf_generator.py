"""
PDF rendering for tax return summaries and AI consultation reports.
Built on reportlab's platypus flowables; every function returns the finished PDF bytes.
"""

import datetime
import io
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from reportlab.platypus.flowables import HRFlowable

from backend.models import ChatMessage, TaxData

_PRIMARY = colors.HexColor("#1976d2")
_ASSISTANT = colors.HexColor("#4caf50")
_MUTED = colors.HexColor("#666666")


def format_currency(amount: float) -> str:
    """Swiss formatting: ``85'000.00``."""
    return f"{amount:,.2f}".replace(",", "'")


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("title", parent=base["Title"], fontSize=20, textColor=_PRIMARY),
        "subtitle": ParagraphStyle("subtitle", parent=base["Normal"], fontSize=12, textColor=_MUTED, alignment=TA_CENTER),
        "heading": ParagraphStyle("heading", parent=base["Heading2"], textColor=colors.HexColor("#333333")),
        "body": ParagraphStyle("body", parent=base["Normal"], fontSize=10.5, leading=14),
        "total": ParagraphStyle("total", parent=base["Normal"], fontSize=12, textColor=_PRIMARY, fontName="Helvetica-Bold"),
        "question": ParagraphStyle("question", parent=base["Normal"], fontSize=11, textColor=_PRIMARY, fontName="Helvetica-Bold"),
        "answer": ParagraphStyle("answer", parent=base["Normal"], fontSize=11, textColor=_ASSISTANT, fontName="Helvetica-Bold"),
        "footer": ParagraphStyle("footer", parent=base["Normal"], fontSize=9, textColor=_MUTED, alignment=TA_CENTER),
    }


def _paragraph_text(text: str) -> str:
    return escape(text).replace("\n", "<br/>")


def _build(story: list) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=50, rightMargin=50, topMargin=50, bottomMargin=50)
    doc.build(story)
    return buffer.getvalue()


def _line_items(story: list, styles: dict, items: list[tuple[str, float | None]]) -> float:
    total = 0.0
    for label, value in items:
        if value and value > 0:
            story.append(Paragraph(f"{label}: CHF {format_currency(value)}", styles["body"]))
            total += value
    return total


def _boxed(rows: list[list[str]], fill: colors.Color, stroke: colors.Color) -> Table:
    table = Table(rows, colWidths=[A4[0] - 100])
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, -1), fill),
                ("BOX", (0, 0), (-1, -1), 1, stroke),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("LEFTPADDING", (0, 0), (-1, -1), 10),
                ("TOPPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    return table


def generate_tax_return_pdf(tax_data: TaxData) -> bytes:
    styles = _styles()
    info = tax_data.personal_info
    story: list = [
        Paragraph("Swiss Tax Return Summary", styles["title"]),
        Paragraph(f"Canton Zurich - Tax Year {tax_data.tax_year}", styles["subtitle"]),
        Spacer(1, 1 * cm),
        Paragraph("Personal Information", styles["heading"]),
        Paragraph(escape(f"Name: {info.first_name} {info.last_name}"), styles["body"]),
        Paragraph(escape(f"Date of Birth: {info.date_of_birth}"), styles["body"]),
        Paragraph(escape(f"Address: {info.address}"), styles["body"]),
        Paragraph(escape(f"Municipality: {info.municipality}"), styles["body"]),
        Paragraph(f"Marital Status: {info.marital_status.capitalize()}", styles["body"]),
        Spacer(1, 0.6 * cm),
        Paragraph("Income", styles["heading"]),
    ]

    income = tax_data.income
    total_income = _line_items(
        story,
        styles,
        [
            ("Employment Income", income.employment),
            ("Self-Employment Income", income.self_employment),
            ("Investment Income", income.investments),
            ("Rental Income", income.rental),
            ("Other Income", income.other),
        ],
    )
    story += [
        Spacer(1, 0.2 * cm),
        Paragraph(f"Total Income: CHF {format_currency(total_income)}", styles["total"]),
        Spacer(1, 0.6 * cm),
        Paragraph("Deductions", styles["heading"]),
    ]

    deductions = tax_data.deductions
    total_deductions = _line_items(
        story,
        styles,
        [
            ("Professional Expenses", deductions.professional_expenses),
            ("Healthcare Expenses", deductions.healthcare_expenses),
            ("Pillar 3a Contributions", deductions.pillar3a),
            ("Childcare Expenses", deductions.childcare),
            ("Education Expenses", deductions.education),
            ("Commuting Expenses", deductions.commuting),
            ("Donations", deductions.donations),
        ],
    )
    story += [
        Spacer(1, 0.2 * cm),
        Paragraph(f"Total Deductions: CHF {format_currency(total_deductions)}", styles["total"]),
        Spacer(1, 0.6 * cm),
    ]

    wealth = tax_data.wealth
    wealth_items = [
        ("Bank Accounts", wealth.bank_accounts),
        ("Securities", wealth.securities),
        ("Real Estate", wealth.real_estate),
        ("Other Assets", wealth.other),
    ]
    if any(value and value > 0 for _, value in wealth_items):
        story.append(Paragraph("Wealth Declaration", styles["heading"]))
        total_wealth = _line_items(story, styles, wealth_items)
        story += [
            Spacer(1, 0.2 * cm),
            Paragraph(f"Total Wealth: CHF {format_currency(total_wealth)}", styles["total"]),
            Spacer(1, 0.6 * cm),
        ]

    taxable_income = total_income - total_deductions
    story += [
        _boxed(
            [
                ["Taxable Income Calculation"],
                [f"Total Income: CHF {format_currency(total_income)}"],
                [f"Total Deductions: CHF {format_currency(total_deductions)}"],
                [f"Taxable Income: CHF {format_currency(taxable_income)}"],
            ],
            colors.HexColor("#e3f2fd"),
            _PRIMARY,
        ),
        Spacer(1, 1.2 * cm),
        Paragraph("This is a summary document generated by Tax-GPT.", styles["footer"]),
        Paragraph("Please consult with a tax professional before submitting your tax return.", styles["footer"]),
        Paragraph(f"Generated on: {datetime.date.today().strftime('%d.%m.%Y')}", styles["footer"]),
    ]
    return _build(story)


def generate_ai_recommendations_pdf(messages: list[ChatMessage], tax_data: TaxData | None = None) -> bytes:
    """Render the consultation transcript (system messages and blank turns dropped)."""
    styles = _styles()
    story: list = [
        Paragraph("Tax-GPT AI Recommendations", styles["title"]),
        Paragraph("Canton Zurich Tax Assistant Report", styles["subtitle"]),
        Spacer(1, 1 * cm),
    ]

    if tax_data is not None:
        info = tax_data.personal_info
        story += [
            Paragraph("Your Tax Profile Summary", styles["heading"]),
            Paragraph(escape(f"Name: {info.first_name} {info.last_name}"), styles["body"]),
            Paragraph(f"Tax Year: {tax_data.tax_year}", styles["body"]),
            Paragraph(escape(f"Municipality: {info.municipality}"), styles["body"]),
            Spacer(1, 0.8 * cm),
        ]

    story.append(Paragraph("AI Consultation Summary", styles["heading"]))

    conversation = [m for m in messages if m.role != "system" and m.content.strip()]
    for index, message in enumerate(conversation):
        if message.role == "user":
            story += [
                Paragraph("Your Question:", styles["question"]),
                Paragraph(_paragraph_text(message.content), styles["body"]),
                Spacer(1, 0.3 * cm),
            ]
        else:
            story += [
                Paragraph("AI Assistant Response:", styles["answer"]),
                Paragraph(_paragraph_text(message.content), styles["body"]),
                Spacer(1, 0.4 * cm),
            ]
            if index < len(conversation) - 1:
                story += [HRFlowable(width="100%", thickness=0.5, color=colors.HexColor("#e0e0e0")), Spacer(1, 0.3 * cm)]

    story += [
        Spacer(1, 0.8 * cm),
        _boxed(
            [
                ["Important Notice"],
                ["This document contains AI-generated recommendations based on your consultation."],
                ["Please review all information carefully and consult with a qualified tax professional"],
                ["before submitting your tax return to the Canton Zurich authorities."],
                ["Tax-GPT is an assistant tool and does not replace professional tax advice."],
            ],
            colors.HexColor("#fff3cd"),
            colors.HexColor("#ffc107"),
        ),
        Spacer(1, 1.2 * cm),
        Paragraph("Tax-GPT - Canton Zurich Tax Assistant", styles["footer"]),
        Paragraph(f"Generated on: {datetime.datetime.now().strftime('%d.%m.%Y, %H:%M:%S')}", styles["footer"]),
    ]
    return _build(story)
