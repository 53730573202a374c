"""Dispatches tool calls registered in ``finsight.tools`` and wraps errors."""

import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Mapping,
)

from pydantic import ValidationError

from finsight.config import settings
from finsight.tools import (
    TOOL_REGISTRY,
    ToolSpec,
)
from finsight.tools.arguments import ToolArgs
from finsight.tools.transcript_search import SearchTuning

if TYPE_CHECKING:  # pragma: no cover
    from finsight.agent.planner_interface import BasePlanner
    from finsight.data.fmp_client import FMPClient

logger = logging.getLogger(__name__)


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""


class UnknownToolError(ToolExecutionError):
    """The planner asked for a tool that is not in the registry."""


class InvalidArgumentsError(ToolExecutionError):
    """The planner's arguments do not satisfy the tool's argument model."""


@dataclass
class ToolContext:
    """Collaborators shared by the tools during one request."""

    fmp: "FMPClient"
    llm: "BasePlanner"
    search_tuning: SearchTuning = field(
        default_factory=lambda: SearchTuning.from_settings(settings)
    )


@dataclass
class ToolExecution:
    """Raw outcome of one tool call."""

    raw_result: Any
    source_url: str
    args: Dict[str, Any]  # Validated arguments (camelCase) when validation succeeded


def _lookup(name: str) -> ToolSpec:
    spec = TOOL_REGISTRY.get(name)
    if spec is None:
        raise UnknownToolError(f"Unknown tool: {name}")
    return spec


def _validate(spec: ToolSpec, args: Mapping[str, Any]) -> ToolArgs:
    try:
        return spec.args_model.model_validate(dict(args))
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'args'}: {err['msg']}"
            for err in exc.errors()
        )
        raise InvalidArgumentsError(f"Invalid arguments for tool '{spec.name}': {details}") from exc


async def execute_tool(
    name: str, args: Mapping[str, Any] | None, ctx: ToolContext
) -> ToolExecution:
    """
    Look up *name* in the registry, validate *args* and run the tool.

    Parameters
    ----------
    name:
        The registered tool name.
    args:
        Planner-supplied arguments.  If *None*, an empty dict is assumed.
    ctx:
        Provider client and language model used by the tool.

    Returns
    -------
    ToolExecution
        The raw result and its provenance URL.  Failures never raise: unknown tools, invalid
        arguments and handler errors come back as ``{"error": "..."}`` results so the
        conversation stays consistent.
    """
    if args is None:
        args = {}

    try:
        spec = _lookup(name)
    except UnknownToolError as exc:
        logger.error("%s", exc)
        return ToolExecution(
            raw_result={"error": str(exc)}, source_url="Unknown tool", args=dict(args)
        )

    try:
        parsed = _validate(spec, args)
    except InvalidArgumentsError as exc:
        logger.warning("%s", exc)
        return ToolExecution(
            raw_result={"error": str(exc)}, source_url="No URL determined", args=dict(args)
        )

    validated = parsed.model_dump(by_alias=True)
    try:
        logger.debug("Executing tool '%s' with args=%s", name, validated)
        raw_result, source_url = await spec.handler(parsed, ctx)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Unhandled error in tool '%s'", name)
        return ToolExecution(
            raw_result={"error": f"Tool '{name}' raised an error: {exc}"},
            source_url="No URL determined",
            args=validated,
        )
    return ToolExecution(raw_result=raw_result, source_url=source_url, args=validated)
