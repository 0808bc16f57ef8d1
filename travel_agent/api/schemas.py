"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from travel_agent.models import Attachment, Location, Message


class ChatRequest(BaseModel):
    """A message typed (and optionally a PDF picked) in the chat UI."""

    message: str = Field("", max_length=4000, description="The user's message")
    attachment: Attachment | None = Field(None, description="Optional PDF, base64-encoded")
    location: Location | None = Field(
        None, description="Optional user position for place grounding (this turn only)"
    )

    @model_validator(mode="after")
    def _not_empty(self) -> ChatRequest:
        if not self.message.strip() and self.attachment is None:
            raise ValueError("Send a message, an attachment, or both")
        return self


class ChatResponse(BaseModel):
    """Result of one turn: the model's reply, or the apology banner."""

    reply: Message | None = Field(None, description="The agent's message, absent on failure")
    error: str | None = Field(None, description="User-facing error banner, if the turn failed")


class TranscriptResponse(BaseModel):
    session_id: str
    messages: list[Message]
    is_loading: bool = False
    error: str | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str = "travel-agent"


class MetricsResponse(BaseModel):
    services: dict[str, dict[str, int]]
