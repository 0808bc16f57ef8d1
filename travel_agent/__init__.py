"""Travel Agent — a chat-based virtual travel agent for Clube Turismo Jardinópolis.

Architecture Overview
=====================

Each user message runs through a **LangGraph** state machine with two nodes:

1. **model** — sends the conversation (system instruction + history + new
   message, optionally with a PDF and the user's location) to Claude via
   ``langchain-anthropic``, with the tool catalog bound.
2. **tool** — executes the *first* function call the model requested and
   feeds its result back.

Routing: model → (function call?) → tool → model (loop until a plain answer → END)

Key Design Decisions
--------------------
- **Monde back-office**: JSON:API over ``httpx``; bearer token cached and
  shared across concurrent callers, refreshed once on a 401.
- **Sales ledger**: read-only spreadsheet endpoint; falls back to built-in
  sample data whenever live data is unusable.
- **Tool failures** come back to the model as ``{"error": ...}``, never as
  exceptions; model/transport failures abort the turn and the controller
  shows one apology banner.
- **Sessions** live in memory; "new chat" replaces session and transcript
  wholesale.

Package Structure
-----------------
- ``travel_agent/agent.py`` — turn graph and ``send_message``
- ``travel_agent/session.py`` — session lifecycle and ``ChatController``
- ``travel_agent/config.py`` — configuration from environment variables
- ``travel_agent/prompts.py`` — system instruction and user-facing text
- ``travel_agent/models.py`` — transcript data model
- ``travel_agent/errors.py`` — exception taxonomy
- ``travel_agent/services/`` — Monde client, credential cache, adapters, sales ledger, metrics
- ``travel_agent/tools/`` — tool argument types, catalog and dispatcher
- ``travel_agent/api/`` + ``server.py`` — FastAPI surface; ``main.py`` — CLI
"""
