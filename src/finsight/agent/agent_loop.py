"""
Main orchestration loop for Finsight.

One chat request runs as a fold over :class:`LoopState`: every planner turn takes the current state
and produces a new one, executing the requested tools in the order the planner asked for them.
The loop ends when the planner requests no tools or the turn ceiling is reached; synthesis then
runs unconditionally and its output is streamed back as events.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
)

from pydantic import (
    BaseModel,
    ConfigDict,
)

from finsight.agent.planner_interface import BasePlanner
from finsight.agent.prompts import (
    PLANNER_SYSTEM_PROMPT,
    synthesizer_prompt,
)
from finsight.agent.tool_executor import (
    ToolContext,
    execute_tool,
)
from finsight.common import truncate
from finsight.config import settings
from finsight.core.schema import (
    CompletionRecord,
    ConversationMessage,
    StreamEvent,
    ToolCall,
    ToolInvocationRecord,
    ToolResultSummary,
    TraceEntry,
)
from finsight.tools import get_tool_schemas
from finsight.tools.processor import process_tool_result

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 150


class StopReason(str, Enum):
    """Why the planning loop ended."""

    PLANNER_DONE = "planner_done"
    STEP_LIMIT = "step_limit"


class LoopState(BaseModel):
    """Immutable snapshot of one request's conversation and reasoning trace."""

    model_config = ConfigDict(frozen=True)

    conversation: Tuple[ConversationMessage, ...]
    trace: Tuple[ToolInvocationRecord, ...] = ()
    step_counter: int = 0  # executed tool calls, across all turns
    iterations: int = 0  # planner calls
    stop_reason: Optional[StopReason] = None

    @property
    def done(self) -> bool:
        """True once the loop has stopped for any reason."""
        return self.stop_reason is not None

    def tools_used(self) -> List[str]:
        """Names of executed tools in first-use order, without repeats."""
        return list(dict.fromkeys(record.tool_name for record in self.trace))

    def reasoning(self) -> List[TraceEntry]:
        """The tool trace followed by a completion entry."""
        calls = f"{self.step_counter} tool call{'s' if self.step_counter != 1 else ''}"
        if self.stop_reason == StopReason.STEP_LIMIT:
            message = f"Planning limit reached after {self.iterations} turns and {calls}"
        else:
            message = f"Finished planning after {calls}"
        return [*self.trace, CompletionRecord(step=self.step_counter + 1, message=message)]


# ---------------------------------------------------------------------------
# Tool execution
# ---------------------------------------------------------------------------
def summarize_result(processed: Dict[str, Any]) -> ToolResultSummary:
    """Build the short success/preview summary shown in the reasoning trace."""
    error = processed.get("error")
    if error:
        return ToolResultSummary(success=False, preview=truncate(f"Error: {error}", PREVIEW_LENGTH))
    for key in ("message", "summary"):
        if isinstance(processed.get(key), str):
            return ToolResultSummary(success=True, preview=truncate(processed[key], PREVIEW_LENGTH))
    body = {k: v for k, v in processed.items() if k not in ("sourceUrl", "toolDescription")}
    return ToolResultSummary(
        success=True, preview=truncate(json.dumps(body, default=str), PREVIEW_LENGTH)
    )


async def execute_call(
    call: ToolCall, step: int, ctx: ToolContext
) -> Tuple[ConversationMessage, ToolInvocationRecord]:
    """Run one planner-requested call and return its tool message and completed trace record."""
    record = ToolInvocationRecord(step=step, tool_name=call.name, tool_args=call.args)
    logger.info("Step %d: executing '%s' with args=%s", step, call.name, call.args)

    execution = await execute_tool(call.name, call.args, ctx)
    processed = process_tool_result(
        call.name, execution.raw_result, execution.args, execution.source_url
    )
    summary = summarize_result(processed)
    if not summary.success:
        logger.warning("Step %d: tool '%s' failed: %s", step, call.name, summary.preview)

    message = ConversationMessage(
        role="tool",
        tool_call_id=call.id,
        content=json.dumps(processed, indent=2, default=str),
    )
    return message, record.model_copy(update={"result": summary})


# ---------------------------------------------------------------------------
# Planning loop
# ---------------------------------------------------------------------------
async def plan_step(
    state: LoopState,
    planner: BasePlanner,
    ctx: ToolContext,
    tools: Sequence[Dict[str, Any]] | None = None,
) -> LoopState:
    """
    Perform one planner turn.

    All tool calls of the turn are executed, one after another, and their results appended before
    the new state is returned.  Planner errors propagate to the caller.
    """
    if state.done:
        return state

    decision = await planner.plan(
        PLANNER_SYSTEM_PROMPT,
        state.conversation,
        tools if tools is not None else get_tool_schemas(),
    )
    iterations = state.iterations + 1
    if not decision.tool_calls:
        logger.info("Planner requested no tools on turn %d", iterations)
        return state.model_copy(
            update={"iterations": iterations, "stop_reason": StopReason.PLANNER_DONE}
        )

    logger.info(
        "Planner turn %d requested %d tool calls: %s",
        iterations,
        len(decision.tool_calls),
        [call.name for call in decision.tool_calls],
    )
    conversation = list(state.conversation)
    conversation.append(
        ConversationMessage(
            role="assistant", content=decision.content or "", tool_calls=decision.tool_calls
        )
    )
    trace = list(state.trace)
    step = state.step_counter
    for call in decision.tool_calls:
        step += 1
        message, record = await execute_call(call, step, ctx)
        conversation.append(message)
        trace.append(record)

    return LoopState(
        conversation=tuple(conversation),
        trace=tuple(trace),
        step_counter=step,
        iterations=iterations,
    )


async def run_planning_loop(
    messages: Sequence[ConversationMessage],
    planner: BasePlanner,
    ctx: ToolContext,
    max_iterations: int | None = None,
) -> LoopState:
    """
    Fold :func:`plan_step` over the conversation until the planner stops.

    At most *max_iterations* planner calls are made (``settings.MAX_AGENT_STEPS`` by default);
    hitting the ceiling is not an error, the state is simply marked ``STEP_LIMIT``.
    """
    limit = settings.MAX_AGENT_STEPS if max_iterations is None else max_iterations
    tools = get_tool_schemas()
    state = LoopState(conversation=tuple(messages))

    while not state.done:
        if state.iterations >= limit:
            logger.warning("Reached planning limit of %d turns", limit)
            state = state.model_copy(update={"stop_reason": StopReason.STEP_LIMIT})
            break
        state = await plan_step(state, planner, ctx, tools)

    logger.info(
        "Planning finished (%s) after %d turns and %d tool calls",
        state.stop_reason.value if state.stop_reason else "unknown",
        state.iterations,
        state.step_counter,
    )
    return state


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------
def latest_question(conversation: Sequence[ConversationMessage]) -> str:
    """Content of the most recent user message."""
    for msg in reversed(conversation):
        if msg.role == "user":
            return msg.content
    return ""


def metadata_event(state: LoopState) -> StreamEvent:
    """The event describing the reasoning trace, sent before any answer text."""
    return StreamEvent(
        type="metadata",
        tools_used=state.tools_used(),
        step_count=state.step_counter,
        reasoning=state.reasoning(),
    )


async def synthesis_events(state: LoopState, planner: BasePlanner) -> AsyncIterator[StreamEvent]:
    """
    Yield the metadata event followed by the synthesizer's content deltas.

    Terminal ``done`` / ``error`` events are the transport's responsibility.
    """
    yield metadata_event(state)
    system = synthesizer_prompt(latest_question(state.conversation))
    async for delta in planner.stream_answer(system, state.conversation, get_tool_schemas()):
        if delta:
            yield StreamEvent(type="content", content=delta)


async def synthesize_reply(state: LoopState, planner: BasePlanner) -> str:
    """Produce the whole answer at once (non-streaming variant)."""
    system = synthesizer_prompt(latest_question(state.conversation))
    return await planner.answer(system, state.conversation, get_tool_schemas())
