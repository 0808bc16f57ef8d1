"""Tool-calling loop for one conversation turn, built as a LangGraph StateGraph.

Graph (compiled once per session, invoked once per turn):

    model → (function call requested?) → tool → model (loop)
          → (no function call?)          → END

Turn stages, as logged: ``awaiting_first_response`` →
(``call_requested`` → ``executing_tool`` → ``awaiting_followup``)* → ``done``.

Rules the loop enforces:

* **One call per round.** If the model asks for several function calls in a
  single response, only the first is executed; the others are stripped from
  the recorded response, and the model sees just that one result before
  deciding again. Rounds are strictly sequential.
* **Tool failures are data.** ``ToolRegistry.dispatch`` returns
  ``{"error": ...}`` instead of raising, and that goes back to the model.
* **Nothing is committed on failure.** The graph runs on a copy of the
  session history; only a turn that reaches END replaces it. Model/transport
  errors propagate to the caller untouched.
* **Location is per turn.** It is rendered into this turn's system
  instruction and never stored on the session.
"""

from __future__ import annotations

import json
import logging
import operator
import time
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, AnyMessage, HumanMessage, SystemMessage, ToolMessage
from langgraph.errors import GraphRecursionError
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from pydantic import ValidationError
from typing_extensions import TypedDict

from travel_agent.config import (
    MAX_TOOL_ROUNDS,
    MODEL_MAX_TOKENS,
    MODEL_NAME,
    MODEL_TEMPERATURE,
    WEB_SEARCH_ENABLED,
)
from travel_agent.errors import ModelResponseError
from travel_agent.models import (
    AgentResponse,
    Attachment,
    GroundingChunk,
    Location,
    ToolInvocation,
    WebSource,
)
from travel_agent.prompts import ATTACHMENT_DEFAULT_PROMPT, EMPTY_REPLY_FALLBACK, with_location
from travel_agent.services.metrics import metrics
from travel_agent.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from travel_agent.session import ConversationSession

logger = logging.getLogger(__name__)

WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 3}


class TurnStage(str, Enum):
    AWAITING_FIRST_RESPONSE = "awaiting_first_response"
    CALL_REQUESTED = "call_requested"
    EXECUTING_TOOL = "executing_tool"
    AWAITING_FOLLOWUP = "awaiting_followup"
    DONE = "done"


class TurnState(TypedDict):
    """State flowing through the turn graph.

    ``messages`` starts as the committed history plus the new user message;
    ``tool_log`` collects every executed call for display.
    """

    messages: Annotated[list[AnyMessage], add_messages]
    tool_log: Annotated[list[ToolInvocation], operator.add]
    system_prompt: str
    location: Location | None
    stage: TurnStage


# ── Request construction ────────────────────────────────────────────


def build_user_message(text: str, attachment: Attachment | None = None) -> HumanMessage:
    """Build the outbound user turn.

    With an attachment the content is ``[document, text]``; an empty text is
    replaced by the default "analyze this document" instruction.
    """
    if attachment is None:
        return HumanMessage(content=text)
    return HumanMessage(
        content=[
            {
                "type": "document",
                "source": {
                    "type": "base64",
                    "media_type": attachment.mime_type,
                    "data": attachment.base64,
                },
                "title": attachment.name,
            },
            {"type": "text", "text": text if text.strip() else ATTACHMENT_DEFAULT_PROMPT},
        ]
    )


# ── Response inspection ─────────────────────────────────────────────


def keep_first_call(message: AIMessage) -> AIMessage:
    """Return *message* reduced to its first function call."""
    calls = message.tool_calls
    if len(calls) <= 1:
        return message
    first = calls[0]
    logger.info(
        "Model requested %d function calls in one response; executing only %s",
        len(calls), first["name"],
    )
    content: Any = message.content
    if isinstance(content, list):
        content = [
            block for block in content
            if not (
                isinstance(block, dict)
                and block.get("type") == "tool_use"
                and block.get("id") != first["id"]
            )
        ]
    return message.model_copy(update={"tool_calls": [first], "content": content})


def extract_text(message: AIMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content.strip()
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts).strip()


def extract_grounding(message: AIMessage) -> list[GroundingChunk]:
    """Collect place/web references attached to *message*.

    Reads ``grounding_metadata.grounding_chunks`` from the response metadata
    (map/search grounding) and web-search citations on text blocks.
    """
    chunks: list[GroundingChunk] = []
    metadata = message.response_metadata.get("grounding_metadata") or {}
    raw_chunks = metadata.get("grounding_chunks") or metadata.get("groundingChunks") or []
    for raw in raw_chunks:
        try:
            chunks.append(GroundingChunk.model_validate(raw))
        except ValidationError:
            logger.debug("Skipping unrecognised grounding chunk: %r", raw)

    if isinstance(message.content, list):
        for block in message.content:
            if not isinstance(block, dict):
                continue
            for citation in block.get("citations") or []:
                url = citation.get("url") if isinstance(citation, dict) else None
                if url:
                    chunks.append(
                        GroundingChunk(web=WebSource(uri=url, title=citation.get("title") or url))
                    )

    seen: set[str] = set()
    unique: list[GroundingChunk] = []
    for chunk in chunks:
        source = chunk.maps or chunk.web
        key = source.uri if source else ""
        if key and key in seen:
            continue
        seen.add(key)
        unique.append(chunk)
    return unique


# ── LLM builder ─────────────────────────────────────────────────────


def build_llm(api_key: str):
    """Build the chat model bound to the tool catalog."""
    llm = ChatAnthropic(
        model=MODEL_NAME,
        api_key=api_key,
        temperature=MODEL_TEMPERATURE,
        max_tokens=MODEL_MAX_TOKENS,
    )
    tools: list[dict[str, Any]] = ToolRegistry.schema()
    if WEB_SEARCH_ENABLED:
        tools.append(WEB_SEARCH_TOOL)
    return llm.bind_tools(tools)


# ── Nodes ───────────────────────────────────────────────────────────


def _make_model_node(llm):
    """Create the node that sends the conversation to the model."""

    async def model_node(state: TurnState) -> dict:
        system = SystemMessage(content=with_location(state["system_prompt"], state.get("location")))
        t0 = time.perf_counter()
        try:
            response = await llm.ainvoke([system, *state["messages"]])
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "anthropic", "llm_invoke", error_type=type(exc).__name__, latency_ms=elapsed,
            )
            raise
        elapsed = (time.perf_counter() - t0) * 1000
        metrics.record_success("anthropic", "llm_invoke", latency_ms=elapsed)

        if not isinstance(response, AIMessage):
            raise ModelResponseError(f"Expected an AIMessage from the model, got {type(response).__name__}")

        if response.tool_calls:
            response = keep_first_call(response)
            stage = TurnStage.CALL_REQUESTED
        else:
            stage = TurnStage.DONE
        logger.debug("Model responded in %.0fms, stage -> %s", elapsed, stage.value)
        return {"messages": [response], "stage": stage}

    return model_node


def _make_tool_node(registry: ToolRegistry):
    """Create the node that executes the single pending function call."""

    async def tool_node(state: TurnState) -> dict:
        call = state["messages"][-1].tool_calls[0]
        logger.debug("Stage -> %s (%s)", TurnStage.EXECUTING_TOOL.value, call["name"])
        result = await registry.dispatch(call["name"], call["args"])
        tool_message = ToolMessage(
            content=json.dumps({"result": result}, ensure_ascii=False, default=str),
            tool_call_id=call["id"],
            name=call["name"],
        )
        return {
            "messages": [tool_message],
            "tool_log": [ToolInvocation(name=call["name"], args=call["args"] or {})],
            "stage": TurnStage.AWAITING_FOLLOWUP,
        }

    return tool_node


def should_call_tool(state: TurnState) -> str:
    """Route to the tool node while the latest response carries a function call."""
    last_message = state["messages"][-1]
    if isinstance(last_message, AIMessage) and last_message.tool_calls:
        return "tool"
    return END


def build_turn_graph(llm, registry: ToolRegistry):
    """Compile the model ⇄ tool loop.  No checkpointer: history lives on the session."""
    graph = StateGraph(TurnState)
    graph.add_node("model", _make_model_node(llm))
    graph.add_node("tool", _make_tool_node(registry))
    graph.set_entry_point("model")
    graph.add_conditional_edges("model", should_call_tool, {"tool": "tool", END: END})
    graph.add_edge("tool", "model")
    return graph.compile()


# ── Turn entry point ────────────────────────────────────────────────


async def send_message(
    session: ConversationSession,
    text: str,
    *,
    location: Location | None = None,
    attachment: Attachment | None = None,
) -> AgentResponse:
    """Run one user turn to completion and commit it to *session*.

    Raises whatever the model transport raises, or ``ModelResponseError``;
    in both cases the session history is left as it was.
    """
    user_message = build_user_message(text, attachment)
    initial: TurnState = {
        "messages": [*session.history, user_message],
        "tool_log": [],
        "system_prompt": session.system_prompt,
        "location": location,
        "stage": TurnStage.AWAITING_FIRST_RESPONSE,
    }
    # Each round is a model step plus a tool step; the final answer takes one more
    step_limit = 2 * MAX_TOOL_ROUNDS + 1
    try:
        result = await session.graph.ainvoke(initial, config={"recursion_limit": step_limit})
    except GraphRecursionError as exc:
        raise ModelResponseError(
            f"The tool loop did not reach a final answer within {MAX_TOOL_ROUNDS} tool rounds"
        ) from exc

    messages = list(result["messages"])
    final = messages[-1]
    if not isinstance(final, AIMessage):
        raise ModelResponseError("The turn ended without a model response")

    text = extract_text(final)
    grounding = extract_grounding(final)
    if not text:
        # The provider rejects empty assistant turns anywhere but last
        messages[-1] = AIMessage(content=EMPTY_REPLY_FALLBACK, id=final.id)
        text = EMPTY_REPLY_FALLBACK

    session.history = messages
    tool_log = result.get("tool_log", [])
    logger.debug("Turn complete after %d tool call(s)", len(tool_log))
    return AgentResponse(text=text, grounding_chunks=grounding, tool_calls=tool_log)
