"""Session lifecycle and the conversation controller used by the UI surfaces.

A ``ConversationSession`` is one model dialogue: system instruction (stamped
with its creation time), the compiled turn graph with the tool catalog bound,
and the committed message history. It is never recycled: ``reset`` builds a
brand-new one and drops the old session and transcript wholesale.

``ChatController`` is what the API and CLI talk to. It owns the session and
the append-only transcript of ``Message`` objects, runs one turn at a time,
and turns any orchestrator failure into a single apology banner.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from langchain_core.messages import AnyMessage

from travel_agent.agent import build_llm, build_turn_graph, send_message
from travel_agent.config import MODEL_TEMPERATURE, require_env
from travel_agent.errors import TurnInProgressError
from travel_agent.models import Attachment, Location, Message, Role
from travel_agent.prompts import ERROR_APOLOGY, WELCOME_MESSAGE, get_system_prompt
from travel_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class ConversationSession:
    system_prompt: str
    graph: Any
    tools: list[dict[str, Any]]
    temperature: float
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    history: list[AnyMessage] = field(default_factory=list)


def create_session(
    registry: ToolRegistry,
    *,
    api_key: str | None = None,
    llm: Any = None,
) -> ConversationSession:
    """Create a fresh session.

    Raises ``ConfigurationError`` when no model API key is available; pass
    ``llm`` to skip building the provider client (tests).
    """
    if llm is None:
        llm = build_llm(api_key or require_env("ANTHROPIC_API_KEY"))
    created_at = datetime.now(UTC)
    session = ConversationSession(
        system_prompt=get_system_prompt(created_at),
        graph=build_turn_graph(llm, registry),
        tools=registry.schema(),
        temperature=MODEL_TEMPERATURE,
        created_at=created_at,
    )
    logger.info("Started new conversation session %s", session.id)
    return session


def welcome_message() -> Message:
    return Message(role=Role.MODEL, content=WELCOME_MESSAGE)


class ChatController:
    """Single in-memory conversation: session + transcript + error banner."""

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        session_factory: Callable[[], ConversationSession] | None = None,
    ):
        self._session_factory = session_factory or (lambda: create_session(registry))
        self._lock = asyncio.Lock()
        self._epoch = 0
        self._session: ConversationSession | None = None
        self._messages: list[Message] = []
        self.error: str | None = None
        self.reset()

    @property
    def session(self) -> ConversationSession:
        return self._session

    @property
    def transcript(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def is_loading(self) -> bool:
        return self._lock.locked()

    def reset(self) -> Message:
        """Start over: new session, transcript holding only the welcome message.

        A turn still running for the old session finishes in the background
        but its reply is discarded; the new session accepts input at once.
        """
        session = self._session_factory()
        self._epoch += 1
        self._lock = asyncio.Lock()
        self._session = session
        self._messages = [welcome_message()]
        self.error = None
        return self._messages[0]

    async def submit(
        self,
        text: str,
        attachment: Attachment | None = None,
        location: Location | None = None,
    ) -> Message | None:
        """Run one turn.  Returns the model's reply, or ``None`` on failure.

        On failure ``error`` holds the apology banner and the transcript keeps
        only the user's message for this turn.
        """
        if not text.strip() and attachment is None:
            raise ValueError("Nothing to send: empty text and no attachment")
        lock = self._lock
        if lock.locked():
            raise TurnInProgressError("A message is already being processed")

        async with lock:
            session, epoch = self._session, self._epoch
            self._messages.append(Message(role=Role.USER, content=text, attachment=attachment))
            self.error = None
            try:
                result = await send_message(
                    session, text, location=location, attachment=attachment,
                )
            except Exception:
                logger.exception("Error sending message")
                if epoch == self._epoch:
                    self.error = ERROR_APOLOGY
                return None

            if epoch != self._epoch:
                logger.info("Session %s was reset mid-turn, discarding reply", session.id)
                return None

            reply = Message(
                role=Role.MODEL,
                content=result.text,
                grounding_chunks=result.grounding_chunks or None,
                tool_calls=result.tool_calls or None,
            )
            self._messages.append(reply)
            return reply
