"""
Argument models for each registered tool.

The planner sends loosely-typed JSON; these models are the per-tool contract that the executor
validates before dispatch.  Defaults exist only where they cannot change the meaning of an answer
(period, page sizes, look-back window).  Keys are camelCase on the wire.
"""

from typing import (
    Annotated,
    Any,
    List,
    Literal,
)

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


def _as_symbol(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


def _as_symbol_list(value: Any) -> Any:
    # A single ticker is accepted and normalised into a one-element list
    if isinstance(value, str):
        value = [part for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [_as_symbol(v) for v in value]
    return value


Symbol = Annotated[str, BeforeValidator(_as_symbol)]
SymbolList = Annotated[List[str], BeforeValidator(_as_symbol_list)]


class ToolArgs(BaseModel):
    """Base class for tool argument models."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SymbolArgs(ToolArgs):
    """Arguments carrying a single ticker symbol."""

    symbol: Symbol = Field(..., min_length=1, description="Ticker symbol, e.g. 'ABNB'")


class ResolveSymbolArgs(ToolArgs):
    """Arguments for ``resolveSymbol``."""

    query: str = Field(
        ..., min_length=1, description="Company name, e.g. 'Spotify' or 'CrowdStrike'"
    )


class ListTranscriptDatesArgs(SymbolArgs):
    """Arguments for ``listTranscriptDates``."""


class GetTranscriptArgs(SymbolArgs):
    """Arguments for ``getTranscript``."""

    year: int = Field(..., ge=2000, le=2100)
    quarter: int = Field(..., ge=1, le=4)


class SearchTranscriptsArgs(ToolArgs):
    """Arguments for ``searchTranscripts``."""

    symbols: SymbolList = Field(
        ...,
        min_length=1,
        description="One or more ticker symbols to scan, e.g. ['MSFT', 'META']",
    )
    topic: str = Field("", description="Keyword(s) to search for, like 'AI' or 'profitability'")
    executives: List[str] = Field(
        default_factory=list,
        description="Optional list of executive last names to filter on",
    )
    lookback_quarters: int = Field(
        4, ge=1, le=20, description="Number of recent quarters to scan for each symbol"
    )

    @field_validator("topic", mode="before")
    @classmethod
    def blank_topic(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("executives", mode="before")
    @classmethod
    def clean_executives(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple)):
            return [v.strip() for v in value if isinstance(v, str) and v.strip()]
        return value


class GetStatementArgs(SymbolArgs):
    """Arguments for ``getStatement``."""

    statement: Literal["income", "balance-sheet", "cash-flow"]
    period: Literal["annual", "quarter"] = "annual"
    limit: int = Field(5, ge=1, le=40)


class GetFinancialGrowthArgs(SymbolArgs):
    """Arguments for ``getFinancialGrowth``."""

    metric: Literal["revenue", "netIncome", "operatingCashFlow", "totalAssets"] = Field(
        ..., description="Which financial metric to calculate growth for"
    )
    years: List[int] = Field(
        ...,
        min_length=1,
        max_length=5,
        description="Explicit look-back periods (e.g. [3, 5, 10])",
    )
    period: Literal["annual", "quarter"] = "annual"


class GetKeyMetricsArgs(SymbolArgs):
    """Arguments for ``getKeyMetrics``."""

    limit: int = Field(5, ge=1, le=40)


class SearchNewsArgs(ToolArgs):
    """Arguments for ``searchNews``."""

    symbols: SymbolList = Field(
        ..., min_length=1, description="Array of ticker symbols, e.g. ['MSFT','META']"
    )
    limit: int = Field(20, ge=1, le=50)


class GetQuoteArgs(SymbolArgs):
    """Arguments for ``getQuote``."""
