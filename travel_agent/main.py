"""CLI chat for the travel agent (development and testing).

Usage:
    python -m travel_agent.main            # normal mode (quiet)
    python -m travel_agent.main --debug    # show HTTP and tool-loop logs

Commands inside the chat:
    new                 start a new conversation
    attach <file.pdf>   attach a PDF to the next message
    quit                exit
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import logging
from pathlib import Path

from travel_agent.errors import ConfigurationError
from travel_agent.models import PDF_MIME_TYPE, Attachment
from travel_agent.services.monde_client import get_monde_client
from travel_agent.session import ChatController
from travel_agent.tools.registry import build_registry

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """WARNING by default, DEBUG with --debug."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("travel_agent").setLevel(logging.DEBUG if debug else logging.INFO)


def load_attachment(path: str) -> Attachment:
    """Read a local PDF into an ``Attachment`` (raises ``ValueError`` otherwise)."""
    file_path = Path(path).expanduser()
    if file_path.suffix.lower() != ".pdf":
        raise ValueError("Only PDF files are supported.")
    payload = base64.b64encode(file_path.read_bytes()).decode("ascii")
    return Attachment(name=file_path.name, mime_type=PDF_MIME_TYPE, base64=payload)


async def _chat_loop(controller: ChatController) -> None:
    pending: Attachment | None = None

    print(f"\nAgente: {controller.transcript[0].content}\n")
    while True:
        try:
            user_input = (await asyncio.to_thread(input, "Você: ")).strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nAté logo!")
            return

        command = user_input.lower()
        if command in ("exit", "quit", "q"):
            print("\nAté logo!")
            return
        if command == "new":
            welcome = controller.reset()
            pending = None
            print(f"\n>> Nova conversa ({controller.session.id[:8]}...)\n\nAgente: {welcome.content}\n")
            continue
        if command.startswith("attach "):
            try:
                pending = load_attachment(user_input[len("attach "):].strip())
            except (OSError, ValueError) as e:
                print(f"\n!! Não foi possível anexar: {e}\n")
                continue
            print(f"\n>> Anexo pronto: {pending.name} (envie uma mensagem ou Enter vazio)\n")
            continue
        if not user_input and pending is None:
            continue

        reply = await controller.submit(user_input, attachment=pending)
        pending = None
        if reply is None:
            print(f"\n!! {controller.error}\n")
            continue
        for call in reply.tool_calls or []:
            print(f"   [ferramenta] {call.name} {call.args}")
        print(f"\nAgente: {reply.content}\n")
        for chunk in reply.grounding_chunks or []:
            source = chunk.maps or chunk.web
            if source:
                print(f"   [fonte] {source.title} — {source.uri}")


async def _run() -> None:
    registry = build_registry()
    try:
        controller = ChatController(registry)
        await _chat_loop(controller)
    finally:
        await registry.aclose()
        await get_monde_client().aclose()


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Travel agent CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    args = parser.parse_args()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  Clube Turismo Jardinópolis - Agente Virtual (CLI)")
    print("=" * 60)
    print("  Comandos: 'new' nova conversa, 'attach <arquivo.pdf>', 'quit' sair.")
    print("=" * 60)

    try:
        asyncio.run(_run())
    except ConfigurationError as e:
        raise SystemExit(f"Configuration error: {e}") from e


if __name__ == "__main__":
    main()
