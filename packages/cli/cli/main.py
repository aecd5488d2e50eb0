"""Interactive command-line client for the chat relay.

Drives :class:`ChatRelay` in-process, printing the reply as it streams, so
prompts and tools can be tried without running the web server.
"""

import asyncio
import os
from collections.abc import Callable

from dotenv import load_dotenv  # type: ignore
from pydantic import ValidationError

from database.DatabaseProvider import DatabaseProvider  # type: ignore
from database.PropertyRepository import PropertyRepository  # type: ignore
from database.QueryExecutor import QueryExecutor  # type: ignore
from relay.ChatRelay import ChatRelay  # type: ignore
from relay.ToolExecutor import ToolExecutor  # type: ignore
from relay.config import RelaySettings, configure_logging  # type: ignore
from relay.errors import UpstreamError  # type: ignore
from relay.models import ChatRequest, ContentDelta, HistoryTurn, StreamError  # type: ignore
from relay.upstream import build_client  # type: ignore


async def run_turn(
    relay: ChatRelay,
    history: list[HistoryTurn],
    message: str,
    language: str,
    write: Callable[[str], None],
) -> str:
    """Send one message, stream the reply through ``write``, update ``history``.

    Returns:
        The complete reply text.

    Raises:
        ValidationError: If the message is empty or too long.
        UpstreamError: If the gateway could not be reached.
    """
    request = ChatRequest(
        message=message, language=language, conversation_history=history
    )
    session = await relay.open(request)

    parts: list[str] = []
    async for event in session.events():
        if isinstance(event, ContentDelta):
            parts.append(event.text)
            write(event.text)
        elif isinstance(event, StreamError):
            write(f"\n[error: {event.kind}]")

    reply = "".join(parts)
    history.append(HistoryTurn(role="user", content=message))
    history.append(HistoryTurn(role="assistant", content=reply))
    return reply


async def _repl(relay: ChatRelay) -> None:
    history: list[HistoryTurn] = []
    language = "ro"

    def write(text: str) -> None:
        print(text, end="", flush=True)

    while True:
        try:
            user_input = (await asyncio.to_thread(input, "\nYou: ")).strip()
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        if not user_input:
            continue
        if user_input.lower() in ("quit", "exit"):
            print("Goodbye!")
            break
        if user_input in ("/ro", "/en"):
            language = user_input[1:]
            print(f"Language: {language}")
            continue

        print("\nAssistant: ", end="", flush=True)
        try:
            await run_turn(relay, history, user_input, language, write)
        except ValidationError:
            print("Message must be between 1 and 2000 characters.")
        except UpstreamError as e:
            print(f"[error: {e.kind}] {e}")
        print()


def main():
    """Run the interactive chat REPL.

    Loads environment configuration, opens the listings database read-only,
    and relays each line typed by the user. ``/ro`` and ``/en`` switch the
    reply language.
    """
    load_dotenv()
    configure_logging(os.environ.get("LOG_LEVEL", "WARNING"))

    db_provider = DatabaseProvider(os.environ["DB_PATH"])
    executor = ToolExecutor(
        PropertyRepository(QueryExecutor(db_provider.get_connection()))
    )
    settings = RelaySettings.from_env()
    relay = ChatRelay(build_client(settings), executor, settings)

    print("ApArt chat relay (type 'quit' or 'exit' to stop, /ro or /en to switch)")
    print("-" * 48)

    try:
        asyncio.run(_repl(relay))
    finally:
        db_provider.close()


if __name__ == "__main__":
    main()
