"""
Basic sanity tests for the tool registry and executor.

Run with:
$ pytest -q
"""

import pytest

from fakes import (
    FakeProvider,
    make_context,
    run,
)
from finsight.agent.tool_executor import execute_tool
from finsight.tools import (
    TOOL_REGISTRY,
    get_tool_schemas,
    register_tool,
    tool_label,
)
from finsight.tools.arguments import ToolArgs


class _ExplodeArgs(ToolArgs):
    reason: str = "boom"


# This is a stub tool for testing purposes.
@register_tool("explodeForTests", _ExplodeArgs, "Always raises (used only for tests).")
async def _explode(args: _ExplodeArgs, ctx: object) -> tuple:
    raise RuntimeError(args.reason)


def test_registry_contains_financial_tools() -> None:
    """Every research tool should be registered with a function-calling schema."""

    names = {schema["function"]["name"] for schema in get_tool_schemas()}
    assert {
        "resolveSymbol",
        "listTranscriptDates",
        "getTranscript",
        "searchTranscripts",
        "getStatement",
        "getFinancialGrowth",
        "getKeyMetrics",
        "searchNews",
        "getQuote",
    } <= names


def test_schema_uses_camel_case_and_required_fields() -> None:
    """Argument schemas should expose wire names and mark only true requirements."""

    params = TOOL_REGISTRY["searchTranscripts"].function_schema()["function"]["parameters"]
    assert "lookbackQuarters" in params["properties"]
    assert params["required"] == ["symbols"]
    assert "title" not in params


def test_duplicate_registration_rejected() -> None:
    """Registering the same name twice should fail loudly."""

    with pytest.raises(ValueError):
        register_tool("getQuote", ToolArgs, "duplicate")


def test_tool_label_falls_back_to_name() -> None:
    """Labels default to the tool name when none was registered."""

    assert tool_label("getQuote") == "Stock Quote API"
    assert tool_label("getTranscript") == "getTranscript"


def test_execute_tool_success() -> None:
    """Executor should validate, normalise and return the provider result with provenance."""

    provider = FakeProvider({"/quote": [{"symbol": "ABNB", "price": 135.2}]})
    execution = run(execute_tool("getQuote", {"symbol": " abnb "}, make_context(provider)))

    assert execution.raw_result == [{"symbol": "ABNB", "price": 135.2}]
    assert execution.args == {"symbol": "ABNB"}
    assert "apikey=demo" in execution.source_url
    assert provider.endpoint_calls("/quote")[0].url.params["symbol"] == "ABNB"


def test_execute_tool_applies_defaults() -> None:
    """Omitted optional arguments should take their documented defaults."""

    provider = FakeProvider({"/income-statement": []})
    args = {"symbol": "MSFT", "statement": "income"}
    execution = run(execute_tool("getStatement", args, make_context(provider)))

    params = provider.endpoint_calls("/income-statement")[0].url.params
    assert params["period"] == "annual"
    assert params["limit"] == "5"
    assert execution.args["period"] == "annual"


def test_execute_tool_missing() -> None:
    """An unknown tool should become an error result, not an exception."""

    execution = run(execute_tool("not_a_tool", {}, make_context()))
    assert execution.raw_result == {"error": "Unknown tool: not_a_tool"}
    assert execution.source_url == "Unknown tool"


def test_execute_tool_bad_args() -> None:
    """Invalid arguments should be reported without calling the provider."""

    provider = FakeProvider()
    execution = run(execute_tool("getTranscript", {"symbol": "ABNB"}, make_context(provider)))

    assert "Invalid arguments" in execution.raw_result["error"]
    assert "year" in execution.raw_result["error"]
    assert execution.source_url == "No URL determined"
    assert provider.requests == []


def test_execute_tool_handler_error() -> None:
    """A raising handler should be converted into an error result."""

    execution = run(execute_tool("explodeForTests", {"reason": "kaput"}, make_context()))
    assert "kaput" in execution.raw_result["error"]
    assert execution.source_url == "No URL determined"


def test_growth_limit_covers_longest_lookback() -> None:
    """Growth requests should fetch one period more than the longest look-back."""

    provider = FakeProvider({"/financial-growth": []})
    run(
        execute_tool(
            "getFinancialGrowth",
            {"symbol": "CRWD", "metric": "revenue", "years": [3, 5, 10]},
            make_context(provider),
        )
    )
    assert provider.endpoint_calls("/financial-growth")[0].url.params["limit"] == "11"


def test_transcript_tools_share_provider_endpoints() -> None:
    """Transcript listing and single-company search cite the same dates endpoint."""

    provider = FakeProvider({"/earning-call-transcript-dates": []})
    ctx = make_context(provider)

    listing = run(execute_tool("listTranscriptDates", {"symbol": "ABNB"}, ctx))
    search = run(execute_tool("searchTranscripts", {"symbols": ["ABNB"], "topic": "AI"}, ctx))

    expected = "https://fmp.test/stable/earning-call-transcript-dates?symbol=ABNB&apikey=demo"
    assert listing.source_url == expected
    assert search.source_url == expected
    assert len(provider.endpoint_calls("/earning-call-transcript-dates")) == 2
