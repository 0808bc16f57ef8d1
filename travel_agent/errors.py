"""Exception taxonomy shared by every layer of the travel agent.

Where each one surfaces
───────────────────────
• ``ConfigurationError`` — raised at session creation; fatal.
• ``AuthError`` / ``TransportError`` / ``ApiError`` — raised by the Monde
  client; adapters let them propagate and the tool registry turns them into
  ``{"error": ...}`` payloads for the model.
• ``ToolExecutionError`` — raised inside the registry only, never escapes it.
• ``DegradedDataError`` — raised inside the sales adapter only; caught there
  and replaced with the built-in sample data.
• ``ModelResponseError`` / ``TurnInProgressError`` — orchestrator-level,
  propagate to the conversation controller.
"""

from __future__ import annotations


class TravelAgentError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(TravelAgentError, OSError):
    """A required setting (API key, credentials) is missing."""


class AuthError(TravelAgentError):
    """Logging in to the Monde API failed."""


class TransportError(TravelAgentError):
    """The request never produced an HTTP response (DNS, timeout, reset…)."""


class ApiError(TravelAgentError):
    """The Monde API answered with a non-success status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Monde API error {status_code}: {body[:300]}")


class ToolExecutionError(TravelAgentError):
    """A tool could not be executed (unknown name, bad arguments)."""


class DegradedDataError(TravelAgentError):
    """The sales ledger could not serve live data."""


class ModelResponseError(TravelAgentError):
    """The model returned something the tool loop cannot work with."""


class TurnInProgressError(TravelAgentError):
    """A new message was submitted while the previous turn is still running."""
