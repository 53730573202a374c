"""
Planner interface for Finsight.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
transport) stays model-agnostic.  A planner exposes three capabilities:

* :meth:`BasePlanner.plan` - tool-augmented call returning text and/or tool-call requests;
* :meth:`BasePlanner.stream_answer` - streaming synthesis of the final answer;
* :meth:`BasePlanner.complete_json` - constrained JSON-object completion (topic expansion).

We support two back-ends out of the box:

1. **OpenAI** function calling (default).
2. **Anthropic** tool use.

Additional providers can be added by subclassing :class:`BasePlanner` and registering via
:func:`register_planner`.
"""

import json
import logging
import re
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Type,
)

from pydantic import (
    BaseModel,
    Field,
)

from finsight.config import settings
from finsight.core.schema import (
    ConversationMessage,
    ToolCall,
)

logger = logging.getLogger(__name__)


class PlannerDecision(BaseModel):
    """What the planner decided on one turn."""

    content: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PLANNER_REGISTRY: dict[str, Type["BasePlanner"]] = {}


def register_planner(name: str) -> Callable:
    """Decorator to register a planner class under *name*."""

    def wrapper(cls: Type["BasePlanner"]) -> Type["BasePlanner"]:
        _PLANNER_REGISTRY[name] = cls
        return cls

    return wrapper


def load_planner(name: str | None = None) -> "BasePlanner":
    """
    Factory that returns an instantiated planner.

    Fallback order:
    1. *name* arg
    2. ``settings.PLANNER`` env option
    3. default: ``"openai"``
    """

    target = name or getattr(settings, "PLANNER", "openai")
    cls = _PLANNER_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Planner '{target}' is not registered.")
    return cls()


def _decode_arguments(name: str, raw: str | None) -> Dict[str, Any]:
    """Decode JSON tool arguments; malformed input becomes ``{}`` for the executor to reject."""
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Malformed arguments for tool '%s': %s", name, e)
        return {}
    return decoded if isinstance(decoded, dict) else {}


def _sanitize_json_string(content: str) -> str:
    """Clean up JSON strings returned by LLMs."""
    # Strip markdown code blocks if present
    if "```" in content:
        match = re.search(r"```(?:json)?\s*(.+?)```", content, re.DOTALL)
        if match:
            content = match.group(1).strip()

    # Keep only the outermost JSON object
    open_idx = content.find("{")
    if open_idx >= 0:
        depth = 0
        for i in range(open_idx, len(content)):
            if content[i] == "{":
                depth += 1
            elif content[i] == "}":
                depth -= 1
                if depth == 0:
                    return content[open_idx : i + 1]
    return content


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BasePlanner(ABC):
    """Abstract planner that turns conversation state into tool calls and answers."""

    @abstractmethod
    async def plan(
        self,
        system: str,
        conversation: Sequence[ConversationMessage],
        tools: Sequence[Dict[str, Any]],
    ) -> PlannerDecision:
        """Return the tool calls (possibly none) the model wants to run next."""

    @abstractmethod
    def stream_answer(
        self,
        system: str,
        conversation: Sequence[ConversationMessage],
        tools: Sequence[Dict[str, Any]] = (),
    ) -> AsyncIterator[str]:
        """
        Yield the final answer as text deltas.

        *tools* describes the tools referenced by the conversation; the model must not call them.
        """

    @abstractmethod
    async def complete_json(self, system: str, user: str) -> Dict[str, Any]:
        """Return a JSON object completion.  Raises on transport or decoding errors."""

    async def answer(
        self,
        system: str,
        conversation: Sequence[ConversationMessage],
        tools: Sequence[Dict[str, Any]] = (),
    ) -> str:
        """Non-streaming convenience wrapper around :meth:`stream_answer`."""
        parts = [delta async for delta in self.stream_answer(system, conversation, tools)]
        return "".join(parts)


# ---------------------------------------------------------------------------
# Concrete planners
# ---------------------------------------------------------------------------
@register_planner("openai")
class OpenAIPlanner(BasePlanner):
    """OpenAI-based planner using native function calling."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        import openai  # pylint: disable=import-outside-toplevel

        self._client = openai.AsyncOpenAI(api_key=api_key or settings.OPENAI_API_KEY)
        self._model = model or settings.OPENAI_MODEL

    @staticmethod
    def _to_messages(
        system: str, conversation: Sequence[ConversationMessage]
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [{"role": "system", "content": system}]
        for msg in conversation:
            if msg.role == "tool":
                messages.append(
                    {"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content}
                )
            elif msg.role == "assistant" and msg.tool_calls:
                messages.append(
                    {
                        "role": "assistant",
                        "content": msg.content or None,
                        "tool_calls": [
                            {
                                "id": call.id,
                                "type": "function",
                                "function": {
                                    "name": call.name,
                                    "arguments": json.dumps(call.args),
                                },
                            }
                            for call in msg.tool_calls
                        ],
                    }
                )
            else:
                messages.append({"role": msg.role, "content": msg.content})
        return messages

    async def plan(
        self,
        system: str,
        conversation: Sequence[ConversationMessage],
        tools: Sequence[Dict[str, Any]],
    ) -> PlannerDecision:
        kwargs: Dict[str, Any] = {}
        if tools:
            kwargs.update(tools=list(tools), tool_choice="auto")
        resp = await self._client.chat.completions.create(
            model=self._model,
            messages=self._to_messages(system, conversation),
            temperature=settings.PLANNER_TEMPERATURE,
            **kwargs,
        )
        message = resp.choices[0].message
        calls = []
        for call in message.tool_calls or []:
            function = getattr(call, "function", None)
            if function is None:
                logger.warning("Ignoring non-function tool call of type '%s'", call.type)
                continue
            calls.append(
                ToolCall(
                    id=call.id,
                    name=function.name,
                    args=_decode_arguments(function.name, function.arguments),
                )
            )
        logger.debug("OpenAI planner returned %d tool calls", len(calls))
        return PlannerDecision(content=message.content, tool_calls=calls)

    async def stream_answer(
        self,
        system: str,
        conversation: Sequence[ConversationMessage],
        tools: Sequence[Dict[str, Any]] = (),
    ) -> AsyncIterator[str]:
        # No tool definitions: the synthesizer only writes text
        stream = await self._client.chat.completions.create(
            model=self._model,
            messages=self._to_messages(system, conversation),
            temperature=settings.PLANNER_TEMPERATURE,
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta

    async def complete_json(self, system: str, user: str) -> Dict[str, Any]:
        resp = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=settings.EXPANSION_TEMPERATURE,
            response_format={"type": "json_object"},
        )
        content = resp.choices[0].message.content or "{}"
        logger.debug("OpenAI JSON completion: %s", content)
        return json.loads(content)


@register_planner("anthropic")
class AnthropicPlanner(BasePlanner):
    """Anthropic Claude-based planner using tool-use blocks."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        import anthropic  # pylint: disable=import-outside-toplevel

        self._client = anthropic.AsyncAnthropic(api_key=api_key or settings.ANTHROPIC_API_KEY)
        self._model = model or settings.ANTHROPIC_MODEL

    @staticmethod
    def _to_messages(conversation: Sequence[ConversationMessage]) -> List[Dict[str, Any]]:
        """Translate the conversation into Anthropic content blocks."""
        messages: List[Dict[str, Any]] = []
        for msg in conversation:
            if msg.role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content,
                }
                # Results of one assistant turn travel together in a single user message
                last = messages[-1] if messages else None
                if (
                    last
                    and last["role"] == "user"
                    and isinstance(last["content"], list)
                    and all(b.get("type") == "tool_result" for b in last["content"])
                ):
                    last["content"].append(block)
                else:
                    messages.append({"role": "user", "content": [block]})
            elif msg.role == "assistant":
                blocks: List[Dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for call in msg.tool_calls or []:
                    blocks.append(
                        {"type": "tool_use", "id": call.id, "name": call.name, "input": call.args}
                    )
                if blocks:
                    messages.append({"role": "assistant", "content": blocks})
            elif msg.content:
                messages.append({"role": "user", "content": msg.content})
        return messages

    @staticmethod
    def _to_tools(tools: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {
                "name": tool["function"]["name"],
                "description": tool["function"]["description"],
                "input_schema": tool["function"]["parameters"],
            }
            for tool in tools
        ]

    async def plan(
        self,
        system: str,
        conversation: Sequence[ConversationMessage],
        tools: Sequence[Dict[str, Any]],
    ) -> PlannerDecision:
        kwargs: Dict[str, Any] = {}
        if tools:
            kwargs["tools"] = self._to_tools(tools)
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=settings.MAX_TOKENS,
            system=system,
            messages=self._to_messages(conversation),
            temperature=settings.PLANNER_TEMPERATURE,
            **kwargs,
        )
        texts = []
        calls = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                args = block.input if isinstance(block.input, dict) else {}
                calls.append(ToolCall(id=block.id, name=block.name, args=args))
        logger.debug("Anthropic planner returned %d tool calls", len(calls))
        return PlannerDecision(content="".join(texts) or None, tool_calls=calls)

    async def stream_answer(
        self,
        system: str,
        conversation: Sequence[ConversationMessage],
        tools: Sequence[Dict[str, Any]] = (),
    ) -> AsyncIterator[str]:
        kwargs: Dict[str, Any] = {}
        if tools:
            # tool_use blocks in the history require the definitions; calling them is disabled
            kwargs.update(tools=self._to_tools(tools), tool_choice={"type": "none"})
        async with self._client.messages.stream(
            model=self._model,
            max_tokens=settings.MAX_TOKENS,
            system=system,
            messages=self._to_messages(conversation),
            temperature=settings.PLANNER_TEMPERATURE,
            **kwargs,
        ) as stream:
            async for text in stream.text_stream:
                if text:
                    yield text

    async def complete_json(self, system: str, user: str) -> Dict[str, Any]:
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=1024,
            system=system,
            messages=[{"role": "user", "content": user}],
            temperature=settings.EXPANSION_TEMPERATURE,
        )
        content = "".join(block.text for block in response.content if block.type == "text")
        logger.debug("Anthropic JSON completion: %s", content)
        return json.loads(_sanitize_json_string(content))
