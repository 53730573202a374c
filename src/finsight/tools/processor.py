"""
Normalise raw tool results into the records the synthesizer reads.

:func:`process_tool_result` is pure and total: whatever the provider returned, and whatever the
tool name, the output is a dict carrying ``sourceUrl`` and ``toolDescription`` so every fact in the
final answer can be cited.
"""

from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
)

from finsight.tools import tool_label

US_EXCHANGES = ("NASDAQ", "NYSE", "AMEX")

STATEMENT_LABELS = {
    "income": "Income Statement API",
    "balance-sheet": "Balance Sheet API",
    "cash-flow": "Cash Flow API",
}

_NO_URL = "No URL determined"

Processor = Callable[[Any, Mapping[str, Any]], Dict[str, Any]]


def _is_error(result: Any) -> bool:
    return isinstance(result, dict) and bool(result.get("error"))


def _pick_listing(candidates: list) -> Dict[str, Any]:
    """Prefer a USD listing on a major US exchange without a '.' suffix, else the first one."""
    for candidate in candidates:
        if (
            isinstance(candidate, dict)
            and candidate.get("exchange") in US_EXCHANGES
            and candidate.get("currency") == "USD"
            and "." not in str(candidate.get("symbol", ""))
        ):
            return candidate
    first = candidates[0]
    return first if isinstance(first, dict) else {"symbol": str(first)}


def _resolve_symbol(result: Any, args: Mapping[str, Any]) -> Dict[str, Any]:
    query = args.get("query")
    if isinstance(result, list) and result:
        best = _pick_listing(result)
        return {
            "query": query,
            "found": True,
            "ticker": best.get("symbol"),
            "companyName": best.get("name"),
            "exchange": best.get("exchange"),
            "currency": best.get("currency"),
            "totalResultsFound": len(result),
            "message": (
                f"Found ticker symbol: {best.get('symbol')} for {best.get('name')} "
                f"on {best.get('exchange')}"
            ),
        }
    processed: Dict[str, Any] = {
        "query": query,
        "found": False,
        "message": f'No ticker symbol found for "{query}"',
    }
    if _is_error(result):
        processed["error"] = result["error"]
    return processed


def _statement(result: Any, args: Mapping[str, Any]) -> Dict[str, Any]:
    if isinstance(result, list) and result:
        return {
            "symbol": args.get("symbol"),
            "statementType": args.get("statement"),
            "period": args.get("period") or "annual",
            "recordsFound": len(result),
            "mostRecentPeriod": result[0],
            "allPeriods": result[:3],
            "toolDescription": STATEMENT_LABELS.get(
                str(args.get("statement")), "Financial Statement API"
            ),
        }
    return {
        "symbol": args.get("symbol"),
        "statementType": args.get("statement"),
        "error": result["error"] if _is_error(result) else "No financial statements found",
        "toolDescription": "Financial Statement API",
    }


def _financial_growth(result: Any, args: Mapping[str, Any]) -> Dict[str, Any]:
    processed = {
        "symbol": args.get("symbol"),
        "metric": args.get("metric"),
        "requestedYears": args.get("years"),
        "rawData": result,
    }
    if _is_error(result):
        processed["error"] = result["error"]
    return processed


def _quote(result: Any, args: Mapping[str, Any]) -> Dict[str, Any]:
    if isinstance(result, list) and result and isinstance(result[0], dict):
        return dict(result[0])
    if isinstance(result, dict):
        return dict(result)
    # An empty provider answer passes through untouched
    return {"symbol": args.get("symbol"), "result": result}


def _search_transcripts(result: Any, args: Mapping[str, Any]) -> Dict[str, Any]:
    if isinstance(result, dict) and not result.get("error"):
        return dict(result)
    return {"error": result.get("error") if isinstance(result, dict) else "Unknown error"}


def _listing(key: str) -> Processor:
    """Wrap list results under ``data`` next to the ticker(s) that were asked for."""

    def process(result: Any, args: Mapping[str, Any]) -> Dict[str, Any]:
        if isinstance(result, list):
            return {key: args.get(key), "recordsFound": len(result), "data": result}
        if isinstance(result, dict):
            return {key: args.get(key), **result}
        return {key: args.get(key), "data": result}

    return process


def _generic(result: Any, args: Mapping[str, Any]) -> Dict[str, Any]:
    if isinstance(result, dict):
        return dict(result)
    return {"result": result}


_PROCESSORS: Dict[str, Processor] = {
    "resolveSymbol": _resolve_symbol,
    "getStatement": _statement,
    "getFinancialGrowth": _financial_growth,
    "getQuote": _quote,
    "searchTranscripts": _search_transcripts,
    "listTranscriptDates": _listing("symbol"),
    "getTranscript": _listing("symbol"),
    "getKeyMetrics": _listing("symbol"),
    "searchNews": _listing("symbols"),
}


def process_tool_result(
    tool_name: str,
    raw_result: Any,
    args: Mapping[str, Any] | None,
    source_url: str | None,
) -> Dict[str, Any]:
    """
    Turn *raw_result* of *tool_name* into an LLM-friendly record.

    Parameters
    ----------
    tool_name:
        The tool that produced the result (unknown names get a generic pass-through).
    raw_result:
        Whatever the executor returned: provider JSON or an error-shaped dict.
    args:
        The arguments the tool ran with, used to echo the query back.
    source_url:
        Provenance URL for citations.

    Returns
    -------
    dict
        Always contains non-empty ``sourceUrl`` and ``toolDescription`` keys.
    """
    processor = _PROCESSORS.get(tool_name, _generic)
    processed = processor(raw_result, args or {})
    processed["sourceUrl"] = source_url or _NO_URL
    if not processed.get("toolDescription"):
        processed["toolDescription"] = tool_label(tool_name) or "Unknown tool"
    return processed
