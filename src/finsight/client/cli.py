"""CLI client for the Finsight API."""

from __future__ import annotations

import json
import logging
import time
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Tuple,
)

import httpx

from finsight.common import (
    AnsiColors,
    colored_print,
    format_trace_entry,
)
from finsight.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def parse_sse_line(line: str) -> Optional[Dict[str, Any]]:
    """Decode one ``data:`` line of the event stream; other lines yield ``None``."""
    if not line.startswith("data:"):
        return None
    payload = line[len("data:") :].strip()
    if not payload:
        return None
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Skipping malformed event: %s", payload[:200])
        return None


def stream_chat(
    messages: List[Dict[str, Any]],
    max_retries: int = 5,
    client: httpx.Client | None = None,
) -> Iterator[Dict[str, Any]]:
    """POST the conversation to ``/chat`` and yield decoded events, retrying while starting up."""
    api_url = f"http://localhost:{settings.API_PORT}/chat"
    http = client or httpx.Client(timeout=httpx.Timeout(30.0, read=None))

    try:
        for attempt in range(max_retries):
            try:
                with http.stream("POST", api_url, json={"messages": messages}) as response:
                    if response.status_code != 200:
                        response.read()
                        try:
                            body = response.json()
                        except ValueError:
                            body = {"error": response.text}
                        yield {
                            "type": "error",
                            "error": body.get("details") or body.get("error") or response.text,
                        }
                        return
                    for line in response.iter_lines():
                        event = parse_sse_line(line)
                        if event is not None:
                            yield event
                return
            except httpx.ConnectError as e:
                if attempt >= max_retries - 1:
                    yield {"type": "error", "error": f"Error connecting to API: {e}"}
                    return
                retry_delay = 0.5 * (2**attempt)  # exponential backoff: 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(retry_delay)
            except httpx.HTTPError as e:
                logger.error("API request error: %s", str(e))
                yield {"type": "error", "error": f"Error connecting to API: {e}"}
                return
    finally:
        if client is None:
            http.close()


def _print_reasoning(event: Dict[str, Any]) -> None:
    for entry in event.get("reasoning") or []:
        line, color = format_trace_entry(entry)
        colored_print(f"  {line}", color)


def run_cli() -> None:
    """Run the CLI client that communicates with the API."""
    conversation: List[Dict[str, Any]] = []

    colored_print("\nFinsight shell - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.GREEN)
    while True:
        colored_print("\nYou: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        conversation.append({"role": "user", "content": user_msg})
        answer: List[str] = []
        for event in stream_chat(conversation):
            kind = event.get("type")
            if kind == "metadata":
                _print_reasoning(event)
                colored_print("\nFinsight: ", AnsiColors.YELLOW, end="")
            elif kind == "content":
                text = event.get("content") or ""
                answer.append(text)
                colored_print(text, AnsiColors.YELLOW, end="", flush=True)
            elif kind == "error":
                colored_print(f"\nError: {event.get('error')}", AnsiColors.RED)
            elif kind == "done":
                print()

        if answer:
            conversation.append({"role": "assistant", "content": "".join(answer)})
        else:
            conversation.pop()  # Nothing answered; let the user ask again


if __name__ == "__main__":
    run_cli()
