"""FastAPI server for the travel agent.

Run with:
    travel-agent-server                      # SERVER_HOST / SERVER_PORT from .env
    uvicorn travel_agent.server:app --reload # development
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from travel_agent.api.routes import router
from travel_agent.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from travel_agent.services.monde_client import get_monde_client
from travel_agent.session import ChatController
from travel_agent.tools.registry import build_registry

VERSION = "1.0.0"

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the tool registry and the chat controller once.

    A missing ``ANTHROPIC_API_KEY`` raises ``ConfigurationError`` here and
    aborts start-up. On shutdown the sales and Monde HTTP clients are closed.
    """
    registry = build_registry()
    application.state.controller = ChatController(registry)
    logger.info("Travel agent ready (session %s)", application.state.controller.session.id)
    yield
    await registry.aclose()
    await get_monde_client().aclose()


app = FastAPI(
    title="Travel Agent",
    description=(
        "Virtual travel agent: chat with tool access to the Monde back-office "
        "and the sales ledger, with PDF analysis and place grounding."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Session-ID"],
)


@app.middleware("http")
async def tag_request(request: Request, call_next) -> Response:
    """Correlate logs by ``X-Request-ID`` and report the live conversation.

    ``X-Session-ID`` lets the chat UI notice that another tab reset the
    conversation; it is omitted while the controller is not built yet.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    t0 = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "[%s] %s %s -> %d (%.0fms)",
        request_id, request.method, request.url.path, response.status_code,
        (time.perf_counter() - t0) * 1000,
    )
    response.headers["X-Request-ID"] = request_id
    controller = getattr(request.app.state, "controller", None)
    if isinstance(controller, ChatController):
        response.headers["X-Session-ID"] = controller.session.id
    return response


app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    return {
        "service": "Travel Agent",
        "version": VERSION,
        "docs": "/docs",
        "health": "/api/health",
        "chat": "/api/chat",
        "transcript": "/api/messages",
    }


def run() -> None:
    """Serve the API with uvicorn (console script ``travel-agent-server``)."""
    logger.info("Starting travel agent API on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)


if __name__ == "__main__":
    run()
