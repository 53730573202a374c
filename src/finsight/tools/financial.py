"""
Financial data tools backed by the FMP API.

Each handler maps one planner tool onto provider calls and returns ``(raw_result, source_url)``.
Shaping the raw result for the LLM is left to :mod:`finsight.tools.processor`.
"""

from typing import (
    TYPE_CHECKING,
    Any,
    Tuple,
)

from finsight.tools import register_tool
from finsight.tools.arguments import (
    GetFinancialGrowthArgs,
    GetKeyMetricsArgs,
    GetQuoteArgs,
    GetStatementArgs,
    GetTranscriptArgs,
    ListTranscriptDatesArgs,
    ResolveSymbolArgs,
    SearchNewsArgs,
    SearchTranscriptsArgs,
)
from finsight.tools.transcript_search import (
    TRANSCRIPT_DATES_ENDPOINT,
    TRANSCRIPT_ENDPOINT,
    TranscriptSearcher,
)

if TYPE_CHECKING:  # pragma: no cover
    from finsight.agent.tool_executor import ToolContext

TRANSCRIPT_DOCS_URL = (
    "https://financialmodelingprep.com/developer/docs/stable/earnings-transcript-list"
)


async def _fetch(ctx: "ToolContext", endpoint: str, params: dict) -> Tuple[Any, str]:
    return await ctx.fmp.get(endpoint, params), ctx.fmp.source_url(endpoint, params)


@register_tool(
    "resolveSymbol",
    ResolveSymbolArgs,
    "Converts a company's common name (e.g. 'Spotify') into its primary stock ticker symbol "
    "(e.g. 'SPOT'). First step for almost every query.",
    label="Company Search",
)
async def resolve_symbol(args: ResolveSymbolArgs, ctx: "ToolContext") -> Tuple[Any, str]:
    """Search companies by name; several candidates are fetched so the best listing can win."""
    return await _fetch(ctx, "/search-name", {"query": args.query, "limit": 10})


@register_tool(
    "listTranscriptDates",
    ListTranscriptDatesArgs,
    "Lists fiscal years & quarters for which earnings-call transcripts are available for the "
    "given ticker.",
)
async def list_transcript_dates(
    args: ListTranscriptDatesArgs, ctx: "ToolContext"
) -> Tuple[Any, str]:
    return await _fetch(ctx, TRANSCRIPT_DATES_ENDPOINT, {"symbol": args.symbol})


@register_tool(
    "getTranscript",
    GetTranscriptArgs,
    "Downloads the full text of a single earnings-call transcript for summarization.",
)
async def get_transcript(args: GetTranscriptArgs, ctx: "ToolContext") -> Tuple[Any, str]:
    return await _fetch(
        ctx,
        TRANSCRIPT_ENDPOINT,
        {"symbol": args.symbol, "year": args.year, "quarter": args.quarter},
    )


@register_tool(
    "searchTranscripts",
    SearchTranscriptsArgs,
    "Scans recent earnings-call transcripts for quotes matching a topic and (optionally) "
    "specific executive names. Can search multiple companies at once.",
    label="Multi-Transcript Search",
)
async def search_transcripts(args: SearchTranscriptsArgs, ctx: "ToolContext") -> Tuple[Any, str]:
    """Delegate to the transcript search engine; only provenance is decided here."""
    if len(args.symbols) == 1:
        source_url = ctx.fmp.source_url(TRANSCRIPT_DATES_ENDPOINT, {"symbol": args.symbols[0]})
    else:
        source_url = TRANSCRIPT_DOCS_URL
    searcher = TranscriptSearcher(ctx.fmp, ctx.llm, ctx.search_tuning)
    return await searcher.search(args), source_url


@register_tool(
    "getStatement",
    GetStatementArgs,
    "Fetches annual or quarterly financial statements. Set 'statement' to 'income', "
    "'balance-sheet', or 'cash-flow'.",
    label="Financial Statement API",
)
async def get_statement(args: GetStatementArgs, ctx: "ToolContext") -> Tuple[Any, str]:
    return await _fetch(
        ctx,
        f"/{args.statement}-statement",
        {"symbol": args.symbol, "period": args.period, "limit": args.limit},
    )


@register_tool(
    "getFinancialGrowth",
    GetFinancialGrowthArgs,
    "Computes multi-year growth for specific financial metrics. Perfect for questions like "
    "'CrowdStrike revenue growth over 3, 5, and 10 years'.",
)
async def get_financial_growth(
    args: GetFinancialGrowthArgs, ctx: "ToolContext"
) -> Tuple[Any, str]:
    """Fetch enough growth periods to cover the longest requested look-back."""
    return await _fetch(
        ctx,
        "/financial-growth",
        {"symbol": args.symbol, "period": args.period, "limit": max(args.years) + 1},
    )


@register_tool(
    "getKeyMetrics",
    GetKeyMetricsArgs,
    "Returns Key Performance Indicators like P/E, margins, ROIC, etc. for the ticker "
    "(annual by default).",
    label="Key Metrics API",
)
async def get_key_metrics(args: GetKeyMetricsArgs, ctx: "ToolContext") -> Tuple[Any, str]:
    return await _fetch(
        ctx, "/key-metrics", {"symbol": args.symbol, "period": "annual", "limit": args.limit}
    )


@register_tool(
    "searchNews",
    SearchNewsArgs,
    "Searches recent news articles and press releases for one or more tickers. Best for finding "
    "public comments outside earnings calls.",
    label="Stock News API",
)
async def search_news(args: SearchNewsArgs, ctx: "ToolContext") -> Tuple[Any, str]:
    return await _fetch(
        ctx, "/news/stock", {"symbols": ",".join(args.symbols), "limit": args.limit}
    )


@register_tool(
    "getQuote",
    GetQuoteArgs,
    "Fetches the latest real-time quote for a single ticker (price, change, volume).",
    label="Stock Quote API",
)
async def get_quote(args: GetQuoteArgs, ctx: "ToolContext") -> Tuple[Any, str]:
    return await _fetch(ctx, "/quote", {"symbol": args.symbol})
