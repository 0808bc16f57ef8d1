"""Transcript data model shared by the orchestrator, the controller and the API.

All models are frozen: a ``Message`` is never edited once it is appended to
the transcript, and grounding / tool records are attached once at creation.
"""

from __future__ import annotations

import binascii
import itertools
import time
from base64 import b64decode
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PDF_MIME_TYPE = "application/pdf"

_id_counter = itertools.count()


def new_message_id() -> str:
    """Millisecond timestamp plus a process-local counter (unique, roughly ordered)."""
    return f"{int(time.time() * 1000)}-{next(_id_counter)}"


class Role(str, Enum):
    USER = "user"
    MODEL = "model"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Location(_Frozen):
    """User geolocation, supplied per turn for place grounding."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Attachment(_Frozen):
    """A single PDF picked by the user.

    ``base64`` holds the raw payload; a ``data:<mime>;base64,`` prefix is
    accepted and stripped.
    """

    name: str = Field(..., min_length=1)
    mime_type: str = PDF_MIME_TYPE
    base64: str = Field(..., min_length=1)

    @field_validator("mime_type")
    @classmethod
    def _only_pdf(cls, value: str) -> str:
        if value.strip().lower() != PDF_MIME_TYPE:
            raise ValueError(f"Only PDF attachments are supported (got {value!r})")
        return PDF_MIME_TYPE

    @field_validator("base64")
    @classmethod
    def _strip_data_uri(cls, value: str) -> str:
        if value.startswith("data:") and "," in value:
            value = value.split(",", 1)[1]
        try:
            b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("Attachment payload is not valid base64") from exc
        return value


class ToolInvocation(_Frozen):
    """One function call the model requested during a turn (display only)."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)


# ── Grounding ───────────────────────────────────────────────────────
# Field names follow the provider's camelCase wire format; snake_case is
# accepted too.


class _Grounding(_Frozen):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ReviewSnippet(_Grounding):
    content: str = ""


class PlaceAnswerSources(_Grounding):
    review_snippets: list[ReviewSnippet] = Field(default_factory=list)


class MapsSource(_Grounding):
    uri: str = ""
    title: str = ""
    place_id: str | None = None
    place_answer_sources: PlaceAnswerSources | None = None


class WebSource(_Grounding):
    uri: str = ""
    title: str = ""


class GroundingChunk(_Grounding):
    """Either a place reference (``maps``) or a generic web reference (``web``)."""

    maps: MapsSource | None = None
    web: WebSource | None = None


# ── Transcript ──────────────────────────────────────────────────────


class Message(_Frozen):
    """One rendered turn in the transcript."""

    id: str = Field(default_factory=new_message_id)
    role: Role
    content: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    attachment: Attachment | None = None
    grounding_chunks: list[GroundingChunk] | None = None
    tool_calls: list[ToolInvocation] | None = None


class AgentResponse(_Frozen):
    """What the orchestrator hands back for one completed turn."""

    text: str
    grounding_chunks: list[GroundingChunk] = Field(default_factory=list)
    tool_calls: list[ToolInvocation] = Field(default_factory=list)
