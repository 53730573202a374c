"""Tests for shared text helpers and the CLI event parser."""

from finsight.client.cli import parse_sse_line
from finsight.common import (
    AnsiColors,
    colorize,
    format_trace_entry,
    truncate,
)


def test_truncate_keeps_short_text() -> None:
    """Text within the limit is returned unchanged."""

    assert truncate("abc", 3) == "abc"


def test_truncate_marks_the_cut() -> None:
    """Long text is cut to exactly the limit, suffix included."""

    assert truncate("abcdefghij", 6) == "abc..."


def test_colorize_resets_at_the_end() -> None:
    """Coloured text always ends with the reset code."""

    assert colorize("hi", AnsiColors.RED) == "\033[91mhi\033[0m"


def test_format_trace_entry_tool_step() -> None:
    """Failed tool steps render in red with their preview."""

    line, color = format_trace_entry(
        {
            "type": "tool_step",
            "step": 2,
            "toolName": "getQuote",
            "result": {"success": False, "preview": "Error: status 500"},
        }
    )
    assert line == "[2] getQuote -> Error: status 500"
    assert color is AnsiColors.RED


def test_format_trace_entry_completion() -> None:
    """The completion entry shows its message."""

    line, color = format_trace_entry({"type": "completion", "message": "Finished planning"})
    assert line == "Finished planning"
    assert color is AnsiColors.GREY


def test_parse_sse_line() -> None:
    """Only non-empty ``data:`` lines with JSON payloads are decoded."""

    assert parse_sse_line('data: {"type": "done"}') == {"type": "done"}
    assert parse_sse_line("") is None
    assert parse_sse_line(": keep-alive") is None
    assert parse_sse_line("data: not json") is None
