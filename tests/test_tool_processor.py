"""Tests for normalising raw tool results."""

import pytest

from finsight.tools.processor import process_tool_result

SPOTIFY_LISTINGS = [
    {"symbol": "0A3O.L", "name": "Spotify Technology S.A.", "exchange": "LSE", "currency": "GBP"},
    {"symbol": "SPOT", "name": "Spotify Technology S.A.", "exchange": "NYSE", "currency": "USD"},
    {"symbol": "SPOT.MX", "name": "Spotify Technology S.A.", "exchange": "BMV", "currency": "MXN"},
]


def test_resolve_symbol_prefers_us_listing() -> None:
    """A USD listing on a major US exchange should win over foreign listings."""

    out = process_tool_result(
        "resolveSymbol", SPOTIFY_LISTINGS, {"query": "Spotify"}, "https://x/search-name"
    )
    assert out["found"] is True
    assert out["ticker"] == "SPOT"
    assert out["exchange"] == "NYSE"
    assert out["totalResultsFound"] == 3
    assert out["sourceUrl"] == "https://x/search-name"
    assert out["toolDescription"] == "Company Search"


def test_resolve_symbol_falls_back_to_first_candidate() -> None:
    """Without a US listing the first candidate is used."""

    out = process_tool_result("resolveSymbol", SPOTIFY_LISTINGS[:1], {"query": "Spotify"}, "u")
    assert out["ticker"] == "0A3O.L"


def test_resolve_symbol_not_found() -> None:
    """An empty search result should be reported as not found, with a message."""

    out = process_tool_result("resolveSymbol", [], {"query": "Unlistedcorp"}, "u")
    assert out["found"] is False
    assert out["message"] == 'No ticker symbol found for "Unlistedcorp"'
    assert "error" not in out


def test_resolve_symbol_provider_error() -> None:
    """A provider error should be carried next to the not-found message."""

    out = process_tool_result("resolveSymbol", {"error": "status 500"}, {"query": "Acme"}, "u")
    assert out["found"] is False
    assert out["error"] == "status 500"


def test_statement_keeps_three_most_recent_periods() -> None:
    """Statements should expose the latest period and at most three periods overall."""

    periods = [{"date": f"202{i}-12-31", "revenue": i} for i in range(4, -1, -1)]
    args = {"symbol": "MSFT", "statement": "balance-sheet", "period": "annual"}
    out = process_tool_result("getStatement", periods, args, "u")

    assert out["recordsFound"] == 5
    assert out["mostRecentPeriod"] == periods[0]
    assert out["allPeriods"] == periods[:3]
    assert out["toolDescription"] == "Balance Sheet API"


def test_statement_empty() -> None:
    """No periods should produce an explicit error."""

    out = process_tool_result("getStatement", [], {"symbol": "MSFT", "statement": "income"}, "u")
    assert out["error"] == "No financial statements found"


def test_quote_is_flattened() -> None:
    """Quotes arrive as one-element lists and should be unwrapped."""

    out = process_tool_result("getQuote", [{"symbol": "ABNB", "price": 130.0}], {}, "u")
    assert out["symbol"] == "ABNB"
    assert out["price"] == 130.0
    assert out["toolDescription"] == "Stock Quote API"


def test_quote_empty_keeps_provenance() -> None:
    """An empty quote list should still yield a record with provenance."""

    out = process_tool_result("getQuote", [], {"symbol": "ZZZZ"}, "u")
    assert out["result"] == []
    assert out["sourceUrl"] == "u"


def test_transcript_search_error_only() -> None:
    """A failed transcript search should expose only its error."""

    raw = {"error": "Failed to search transcripts: boom", "query": {"symbols": ["ABNB"]}}
    out = process_tool_result("searchTranscripts", raw, {}, "u")
    assert out["error"] == raw["error"]
    assert "query" not in out


def test_growth_keeps_raw_data() -> None:
    """Growth data is passed through with the request echoed back."""

    args = {"symbol": "CRWD", "metric": "revenue", "years": [3, 5]}
    out = process_tool_result("getFinancialGrowth", [{"revenueGrowth": 0.3}], args, "u")
    assert out["requestedYears"] == [3, 5]
    assert out["rawData"] == [{"revenueGrowth": 0.3}]


def test_news_listing_wraps_data() -> None:
    """List results are wrapped under ``data``."""

    out = process_tool_result("searchNews", [{"title": "a"}], {"symbols": ["MSFT"]}, "u")
    assert out == {
        "symbols": ["MSFT"],
        "recordsFound": 1,
        "data": [{"title": "a"}],
        "sourceUrl": "u",
        "toolDescription": "Stock News API",
    }


@pytest.mark.parametrize(
    "tool_name, raw",
    [
        ("someFutureTool", "plain text"),
        ("someFutureTool", None),
        ("getKeyMetrics", {"error": "down"}),
        ("searchTranscripts", "garbage"),
    ],
)
def test_provenance_always_present(tool_name: str, raw: object) -> None:
    """Whatever comes in, citations fields must be non-empty."""

    out = process_tool_result(tool_name, raw, None, None)
    assert out["sourceUrl"] == "No URL determined"
    assert out["toolDescription"]
