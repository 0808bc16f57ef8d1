"""FastAPI route definitions for the travel agent API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from travel_agent.api.schemas import (
    ChatRequest,
    ChatResponse,
    HealthResponse,
    MetricsResponse,
    TranscriptResponse,
)
from travel_agent.errors import TurnInProgressError
from travel_agent.services.metrics import metrics
from travel_agent.session import ChatController

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_controller(request: Request) -> ChatController:
    """Retrieve the chat controller created by the FastAPI lifespan."""
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(
            status_code=503,
            detail="The agent is still starting up. Please try again in a moment.",
        )
    return controller


def _transcript(controller: ChatController) -> TranscriptResponse:
    return TranscriptResponse(
        session_id=controller.session.id,
        messages=list(controller.transcript),
        is_loading=controller.is_loading,
        error=controller.error,
    )


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse()


@router.get("/messages", response_model=TranscriptResponse)
async def get_messages(http_request: Request):
    """Current transcript, loading flag and error banner."""
    return _transcript(_get_controller(http_request))


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Run one turn.

    Only one turn runs at a time; a second submission while one is in flight
    gets a 409. A failed turn still answers 200, with the apology in
    ``error`` and no ``reply``.
    """
    controller = _get_controller(http_request)
    request_id = getattr(http_request.state, "request_id", "?")

    try:
        reply = await controller.submit(
            request.message, attachment=request.attachment, location=request.location,
        )
    except TurnInProgressError as e:
        logger.info("[%s] Rejected chat request: turn in progress", request_id)
        raise HTTPException(status_code=409, detail=str(e)) from e

    if reply is None:
        logger.warning("[%s] Turn failed, returning apology", request_id)
    return ChatResponse(reply=reply, error=controller.error)


@router.post("/reset", response_model=TranscriptResponse)
async def reset(http_request: Request):
    """Discard the conversation and start a new session."""
    controller = _get_controller(http_request)
    controller.reset()
    logger.info("Conversation reset, new session %s", controller.session.id)
    return _transcript(controller)


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics():
    return MetricsResponse(services=metrics.snapshot())
