"""
Core API backend for Finsight.

It exposes the following endpoints:
- **GET /health**      - liveness probe for health checks.
- **POST /chat**       - streaming chat: ``{"messages": [...]}`` -> ``text/event-stream``.
- **POST /chat/reply** - non-streaming chat: ``{"messages": [...]}`` -> ``{"reply": ...}``.

The planning loop runs before a streaming response starts, so planner failures come back as an
HTTP 500.  Failures during synthesis arrive as a terminal ``error`` event on the stream.
"""

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import (
    AsyncIterator,
    Union,
)

from fastapi import (
    Depends,
    FastAPI,
    Request,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import (
    JSONResponse,
    StreamingResponse,
)

from finsight.agent.agent_loop import (
    LoopState,
    run_planning_loop,
    synthesis_events,
    synthesize_reply,
)
from finsight.agent.planner_interface import (
    BasePlanner,
    load_planner,
)
from finsight.agent.tool_executor import ToolContext
from finsight.api.models import (
    ChatReply,
    ChatRequest,
    ErrorResponse,
)
from finsight.api.streaming import (
    EventChannel,
    sse_events,
)
from finsight.common import (
    AnsiColors,
    colored_print,
)
from finsight.config import settings
from finsight.data.fmp_client import FMPClient

logger = logging.getLogger(__name__)


class ChatRequestError(ValueError):
    """The chat request body is unusable (e.g. no messages)."""


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Check credentials on startup and release the provider client on shutdown."""
    settings.require_credentials()
    app.state.fmp = FMPClient()
    logger.info("Finsight API ready (planner=%s)", settings.PLANNER)
    yield
    await app.state.fmp.aclose()


app = FastAPI(
    title="Finsight API",
    version="0.1.0",
    description="Conversational financial research assistant",
    lifespan=lifespan,
)

# Add CORS middleware to allow requests from the web UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChatRequestError)
async def chat_request_error_handler(_: Request, exc: ChatRequestError) -> JSONResponse:
    """Render request errors as ``{"error": ...}`` with HTTP 400."""
    return JSONResponse(status_code=400, content=ErrorResponse(error=str(exc)).to_wire())


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def require_messages(req: ChatRequest) -> ChatRequest:
    """Reject requests without messages before any model or provider is touched."""
    if not req.messages:
        raise ChatRequestError("Messages are required")
    return req


@lru_cache
def get_planner() -> BasePlanner:
    """Shared planner instance (stateless, safe to reuse across requests)."""
    return load_planner()


def get_fmp_client(request: Request) -> FMPClient:
    """Provider client owned by the application lifespan."""
    fmp = getattr(request.app.state, "fmp", None)
    if fmp is None:
        fmp = request.app.state.fmp = FMPClient()
    return fmp


def get_tool_context(
    planner: BasePlanner = Depends(get_planner),
    fmp: FMPClient = Depends(get_fmp_client),
) -> ToolContext:
    """Collaborators handed to the tools for one request."""
    return ToolContext(fmp=fmp, llm=planner)


def _server_error(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="An error occurred while processing your request", details=str(exc)
        ).to_wire(),
    )


async def _plan(req: ChatRequest, planner: BasePlanner, ctx: ToolContext) -> LoopState:
    last = req.messages[-1] if req.messages else None
    logger.info("Received chat message: %s", last.content[:200] if last else "")
    return await run_planning_loop(req.messages or [], planner, ctx)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.get("/", summary="API root")
async def root() -> dict[str, str]:
    """Return a simple welcome message."""
    return {"message": "Welcome to the Finsight API! Use /docs for API documentation."}


@app.post(
    "/chat",
    response_model=None,
    summary="Ask a question (streaming)",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat_endpoint(
    req: ChatRequest = Depends(require_messages),
    planner: BasePlanner = Depends(get_planner),
    ctx: ToolContext = Depends(get_tool_context),
) -> Union[StreamingResponse, JSONResponse]:
    """Plan and run tools, then stream metadata, answer deltas and a terminal event."""
    try:
        state = await _plan(req, planner, ctx)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Planning failed")
        return _server_error(exc)

    async def produce(channel: EventChannel) -> None:
        async for event in synthesis_events(state, planner):
            await channel.send(event)

    return StreamingResponse(
        sse_events(produce),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.post(
    "/chat/reply",
    response_model=ChatReply,
    response_model_by_alias=True,
    summary="Ask a question (single response)",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat_reply_endpoint(
    req: ChatRequest = Depends(require_messages),
    planner: BasePlanner = Depends(get_planner),
    ctx: ToolContext = Depends(get_tool_context),
) -> Union[ChatReply, JSONResponse]:
    """Plan and run tools, then return the whole answer in one response."""
    try:
        state = await _plan(req, planner, ctx)
        reply = await synthesize_reply(state, planner)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Chat request failed")
        return _server_error(exc)

    return ChatReply(reply=reply, tools_used=state.tools_used(), step_count=state.step_counter)


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting Finsight API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    colored_print(f"Finsight API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "finsight.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m finsight.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
