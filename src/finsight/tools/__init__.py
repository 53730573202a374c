"""
Tool registry for Finsight.

This module provides a decorator to register tools and a registry to look them up by name.
Each tool is an async handler plus a pydantic argument model; the registry is also the single
source of the function-calling schemas handed to the planner LLM.
"""

import logging
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Tuple,
    Type,
)

from finsight.tools.arguments import ToolArgs

if TYPE_CHECKING:  # pragma: no cover
    from finsight.agent.tool_executor import ToolContext

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any, "ToolContext"], Awaitable[Tuple[Any, str]]]
"""Async handler returning ``(raw_result, source_url)``."""


@dataclass(frozen=True)
class ToolSpec:
    """Everything the agent needs to know about one tool."""

    name: str
    description: str
    label: str  # Human label used in citations
    args_model: Type[ToolArgs]
    handler: ToolHandler

    def function_schema(self) -> Dict[str, Any]:
        """Return the OpenAI function-calling description of this tool."""
        parameters = self.args_model.model_json_schema(by_alias=True)
        parameters.pop("title", None)
        for prop in parameters.get("properties", {}).values():
            prop.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }


TOOL_REGISTRY: Dict[str, ToolSpec] = {}
"""Global registry of tools."""


def register_tool(
    name: str,
    args_model: Type[ToolArgs],
    description: str,
    label: str | None = None,
) -> Callable[[ToolHandler], ToolHandler]:
    """
    Register an async tool handler under *name*.

    The handler receives the validated *args_model* instance and a
    :class:`~finsight.agent.tool_executor.ToolContext`, and returns the raw provider result
    together with the provenance URL:

        @register_tool("getQuote", GetQuoteArgs, "Fetches the latest quote.")
        async def get_quote(args, ctx):
            ...
            return result, url

    Parameters
    ----------
    name: str
        The name the planner uses to call the tool.  Must be unique.
    args_model:
        Pydantic model validating the planner-supplied arguments.
    description:
        Human/LLM-facing description used in the function-calling schema.
    label:
        Citation label; defaults to *name*.

    Raises
    ------
    ValueError
        If a tool with the same name is already registered.
    """
    if name in TOOL_REGISTRY:
        raise ValueError(f"Tool '{name}' is already registered.")
    logger.debug("Registering tool '%s'", name)

    def wrapper(fn: ToolHandler) -> ToolHandler:
        TOOL_REGISTRY[name] = ToolSpec(
            name=name,
            description=description,
            label=label or name,
            args_model=args_model,
            handler=fn,
        )
        return fn

    return wrapper


def get_tool_schemas() -> List[Dict[str, Any]]:
    """Function-calling schemas for every registered tool, in registration order."""
    return [spec.function_schema() for spec in TOOL_REGISTRY.values()]


def tool_label(name: str) -> str:
    """Citation label for *name*, falling back to the name itself."""
    spec = TOOL_REGISTRY.get(name)
    return spec.label if spec else name


# Importing the handlers populates the registry
from finsight.tools import financial  # noqa: E402,F401  pylint: disable=wrong-import-position
