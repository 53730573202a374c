"""Text helpers shared by the agent, the API launcher and the terminal client."""

from enum import Enum
from typing import (
    Any,
    Mapping,
    Tuple,
)

_RESET = "\033[0m"


class AnsiColors(str, Enum):
    """Terminal colours used by the CLI and the launcher banner."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"
    GREY = "\033[90m"


def colorize(text: str, color: AnsiColors) -> str:
    """Wrap *text* in the escape codes for *color*."""
    return f"{color.value}{text}{_RESET}"


def colored_print(text: str, color: AnsiColors, **kwargs: Any) -> None:
    """``print`` *text* in *color*; keyword arguments (``end``, ``flush``) go to ``print``."""
    print(colorize(text, color), **kwargs)


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    """Shorten *text* to at most *limit* characters, marking the cut with *suffix*."""
    if len(text) <= limit:
        return text
    return text[: max(0, limit - len(suffix))] + suffix


def format_trace_entry(entry: Mapping[str, Any]) -> Tuple[str, AnsiColors]:
    """
    Render one wire-format reasoning-trace entry as a single display line.

    Tool steps show ``[step] toolName -> preview`` (red when the tool failed); the closing
    completion entry shows its message.
    """
    if entry.get("type") == "tool_step":
        result = entry.get("result") or {}
        color = AnsiColors.GREY if result.get("success", True) else AnsiColors.RED
        line = f"[{entry.get('step')}] {entry.get('toolName')} -> {result.get('preview', '')}"
        return line, color
    return str(entry.get("message", "")), AnsiColors.GREY
