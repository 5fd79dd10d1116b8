import datetime
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from backend.api.routes import router
from backend.config import Settings, load_settings

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method and path of every request."""

    async def dispatch(self, request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Tax-GPT API server is running")
    logger.info("LLM provider: %s", settings.llm_provider)
    if settings.llm_provider == "lmstudio":
        logger.info("LM Studio: %s (%s)", settings.lmstudio_url, settings.lmstudio_model)
    logger.info("Downloads: %s/downloads (from %s)", settings.public_base_url, settings.generated_pdf_dir)
    yield
    logger.info("Shutting down Tax-GPT API server")


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content={
                "error": "Not Found",
                "message": f"Cannot {request.method} {request.url.path}",
                "path": request.url.path,
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail), "timestamp": _now()},
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"Invalid request: {details}", "timestamp": _now()},
    )


async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(exc) or "Internal Server Error", "timestamp": _now()},
    )


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(title="Tax-GPT API", lifespan=lifespan)
    app.state.settings = settings
    app.state.event_source = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    app.include_router(router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "message": "Tax-GPT server is running", "timestamp": _now()}

    # Generated PDFs for download
    settings.generated_pdf_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/downloads", StaticFiles(directory=settings.generated_pdf_dir), name="downloads")

    return app


settings = load_settings()
logging.basicConfig(level=settings.log_level)

app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
