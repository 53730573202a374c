"""
Schema definitions for planner <-> agent <-> tool messages.

These data models serve as the contract between the planner LLM, the orchestration loop, the
HTTP layer and individual tools.  We keep them separate from runtime logic so they can be imported
anywhere without side-effects.

Field names are snake_case in Python and camelCase on the wire, matching what the chat client
sends and expects back.
"""

from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Dump using camelCase aliases, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ToolCall(WireModel):
    """A call that the planner wants the agent to execute."""

    id: str = Field(..., description="Opaque id, unique within one planner response")
    name: str = Field(..., description="Registered tool name")
    args: Dict[str, Any] = Field(default_factory=dict, description="Keyword arguments for the tool")


class ConversationMessage(WireModel):
    """One entry of the conversation replayed to the planner and synthesizer."""

    role: Literal["user", "assistant", "tool"]
    content: str = ""
    tool_call_id: Optional[str] = None  # role == "tool"
    tool_calls: Optional[List[ToolCall]] = None  # role == "assistant"


class ToolResultSummary(WireModel):
    """Short outcome of one tool execution, shown in the reasoning trace."""

    model_config = ConfigDict(frozen=True)

    success: bool
    preview: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ToolInvocationRecord(WireModel):
    """A reasoning-trace entry for one executed tool call."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool_step"] = "tool_step"
    step: int = Field(..., ge=1)
    tool_name: str
    tool_args: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[ToolResultSummary] = None  # None while the call is in flight
    timestamp: datetime = Field(default_factory=_utcnow)


class CompletionRecord(WireModel):
    """Closing reasoning-trace entry describing why the loop stopped."""

    model_config = ConfigDict(frozen=True)

    type: Literal["completion"] = "completion"
    step: int
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)


TraceEntry = Union[ToolInvocationRecord, CompletionRecord]


class StreamEvent(WireModel):
    """One server-sent event of a chat response."""

    type: Literal["metadata", "content", "done", "error"]
    content: Optional[str] = None  # content
    tools_used: Optional[List[str]] = None  # metadata
    step_count: Optional[int] = None  # metadata
    reasoning: Optional[List[TraceEntry]] = None  # metadata
    error: Optional[str] = None  # error

    @property
    def is_terminal(self) -> bool:
        """True for the events that close a stream."""
        return self.type in ("done", "error")
