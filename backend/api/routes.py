import asyncio
import datetime
import json
import logging

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from sse_starlette.sse import EventSourceResponse

from backend.api.relay import relay_events
from backend.config import Settings
from backend.graph.agent import AgentEventSource, LangGraphEventSource
from backend.models import ChatRequest, RecommendationsPdfRequest, TaxDataRequest
from backend.services.llm import get_chat_model
from backend.services.mock_data import get_available_scenarios, get_mock_tax_data
from backend.services.pdf_extractor import extract_tax_data_from_pdf
from backend.services.pdf_generator import generate_ai_recommendations_pdf, generate_tax_return_pdf
from backend.tools.calculate_deductions import calculate_deductions_tool
from backend.tools.generate_tax_pdf import make_generate_tax_pdf_tool
from backend.tools.get_tax_data import get_tax_data_tool

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_PDF_MEDIA_TYPE = "application/pdf"


def _now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, **extra, "timestamp": _now()},
    )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_event_source(request: Request) -> AgentEventSource:
    """Build the agent lazily so the app starts even when the model is unreachable."""
    state = request.app.state
    if getattr(state, "event_source", None) is None:
        settings: Settings = state.settings
        tools = [
            get_tax_data_tool,
            calculate_deductions_tool,
            make_generate_tax_pdf_tool(settings.generated_pdf_dir),
        ]
        state.event_source = LangGraphEventSource(
            get_chat_model(settings), tools, max_steps=settings.max_agent_steps
        )
    return state.event_source


def _history(body: ChatRequest) -> list[dict]:
    return [message.model_dump() for message in body.conversation_history]


# ===========================================================================
# CHAT ROUTES
# ===========================================================================

@router.post("/chat")
async def chat(body: ChatRequest, event_source: AgentEventSource = Depends(get_event_source)):
    """Single-turn chat without streaming or tools."""
    message = body.message.strip()
    if not message:
        return _error(400, "Message is required")

    try:
        reply = await event_source.generate(message, _history(body))
    except Exception as exc:
        logger.error("Chat generation failed: %s", exc)
        return _error(500, str(exc) or "Failed to get response")

    return {"success": True, "message": reply, "timestamp": _now()}


def _stream_response(request: Request, body: ChatRequest, event_source: AgentEventSource, include_tools: bool):
    message = body.message.strip()
    if not message:
        return _error(400, "Message is required")

    events = event_source.stream_events(message, _history(body), with_tools=include_tools)
    logger.info("Starting stream for message: %s", message[:80])
    return EventSourceResponse(
        relay_events(events, request.is_disconnected, include_tools=include_tools),
        sep="\n",
    )


@router.post("/chat/stream")
async def chat_stream(
    request: Request,
    body: ChatRequest,
    event_source: AgentEventSource = Depends(get_event_source),
):
    """
    Stream a plain chat response via SSE.

    SSE frame sequence:
      connected → chunk* → done | error
    """
    return _stream_response(request, body, event_source, include_tools=False)


@router.post("/chat/stream-with-tools")
async def chat_stream_with_tools(
    request: Request,
    body: ChatRequest,
    event_source: AgentEventSource = Depends(get_event_source),
):
    """
    Stream a chat response with tool calling via SSE.

    SSE frame sequence:
      connected → (reasoning | reasoning-finish | chunk | text-finish | tool-call
                   | tool-result | step-finish | unknown)* → done | error
    """
    return _stream_response(request, body, event_source, include_tools=True)


@router.post("/chat/generate-form")
async def generate_form(body: TaxDataRequest, event_source: AgentEventSource = Depends(get_event_source)):
    """Ask the model for a narrative summary of a tax profile."""
    prompt = (
        "Write a concise narrative summary of the following Canton Zurich tax profile. "
        "Cover income, deductions and wealth, point out notable deduction opportunities, "
        "and format the answer in Markdown.\n\n"
        f"{json.dumps(body.tax_data.to_wire(), ensure_ascii=False, indent=2)}"
    )
    try:
        summary = await event_source.generate(prompt)
    except Exception as exc:
        logger.error("Form generation failed: %s", exc)
        return _error(500, str(exc) or "Failed to generate form")
    return {"success": True, "message": summary, "timestamp": _now()}


# ===========================================================================
# TAX DATA ROUTES
# ===========================================================================

@router.get("/tax-data")
async def tax_data(scenario: str = "single"):
    return {"success": True, "data": get_mock_tax_data(scenario).to_wire(), "scenario": scenario}


@router.get("/tax-data/scenarios")
async def tax_data_scenarios():
    return {"success": True, "scenarios": [s.model_dump() for s in get_available_scenarios()]}


# ===========================================================================
# UPLOAD ROUTES
# ===========================================================================

@router.post("/upload/pdf")
async def upload_pdf(file: UploadFile | None = File(None), settings: Settings = Depends(get_settings)):
    """Extract text and best-effort tax fields from an uploaded PDF."""
    if file is None:
        return _error(400, "No file uploaded")

    file_name = file.filename or "unknown"
    if file.content_type != _PDF_MEDIA_TYPE:
        logger.info("Rejected upload %s with content type %s", file_name, file.content_type)
        return _error(400, "Only PDF files are allowed", fileName=file_name)

    data = await file.read(settings.max_file_size + 1)
    if len(data) > settings.max_file_size:
        return _error(400, f"File too large. Maximum size is {settings.max_file_size_mb}MB.", fileName=file_name)

    try:
        return await asyncio.to_thread(extract_tax_data_from_pdf, data, file_name)
    except Exception as exc:
        logger.error("Upload processing failed for %s: %s", file_name, exc)
        return _error(500, str(exc) or "Failed to process PDF", fileName=file_name)


# ===========================================================================
# PDF ROUTES
# ===========================================================================

def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=_PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/pdf/generate-ai-recommendations")
async def pdf_ai_recommendations(body: RecommendationsPdfRequest):
    try:
        content = await asyncio.to_thread(generate_ai_recommendations_pdf, body.messages, body.tax_data)
    except Exception as exc:
        logger.error("PDF generation error: %s", exc)
        return _error(500, str(exc) or "Failed to generate PDF")
    filename = f"Tax_GPT_Recommendations_{datetime.date.today().isoformat()}.pdf"
    return _pdf_response(content, filename)


@router.post("/pdf/generate-tax-return")
async def pdf_tax_return(body: TaxDataRequest):
    try:
        content = await asyncio.to_thread(generate_tax_return_pdf, body.tax_data)
    except Exception as exc:
        logger.error("PDF generation error: %s", exc)
        return _error(500, str(exc) or "Failed to generate PDF")
    info = body.tax_data.personal_info
    # Header values must be latin-1
    filename = f"Tax_Return_{info.last_name}_{body.tax_data.tax_year}.pdf".encode("latin-1", "replace").decode("latin-1")
    return _pdf_response(content, filename)
