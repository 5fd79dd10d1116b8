import json

import pytest
from httpx import ASGITransport, AsyncClient

from backend.api.routes import get_event_source
from backend.config import Settings
from backend.graph.scripted import ScriptedEventSource
from backend.graph.state import upstream_event
from backend.main import create_app


def _parse_sse(body: str) -> list[dict]:
    frames = []
    for block in body.replace("\r\n", "\n").split("\n\n"):
        for line in block.split("\n"):
            if line.startswith("data: "):
                frames.append(json.loads(line[len("data: "):]))
    return frames


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps a process-wide exit event bound to the first event loop."""
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield
    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None


@pytest.fixture
def settings(tmp_path):
    return Settings(generated_pdf_dir=tmp_path / "generated-pdfs", max_file_size=64 * 1024)


@pytest.fixture
def event_source():
    return ScriptedEventSource(
        events=[
            upstream_event("start"),
            upstream_event("step-start"),
            upstream_event("text-start"),
            upstream_event("text-delta", text="Hi"),
            upstream_event("text-delta", text=" there"),
            upstream_event("text-finish"),
            upstream_event("step-finish"),
            upstream_event("finish", finishReason="stop"),
        ],
        reply="Grüezi! How can I help with your Zurich tax return?",
    )


@pytest.fixture
def app(settings, event_source):
    app = create_app(settings)
    app.dependency_overrides[get_event_source] = lambda: event_source
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def sse_frames():
    """Decode a complete SSE body into its JSON frames."""
    return _parse_sse
