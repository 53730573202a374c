"""
Pydantic models for Finsight API requests and responses.
This module defines the request and response schemas used by the chat endpoints.
"""

from typing import (
    List,
    Optional,
)

from pydantic import Field

from finsight.core.schema import (
    ConversationMessage,
    WireModel,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class ChatRequest(WireModel):
    """Conversation so far; the last user message is the question being asked."""

    messages: Optional[List[ConversationMessage]] = Field(
        None, description="Ordered conversation history ending with the user's question"
    )


class ChatReply(WireModel):
    """Non-streaming answer returned to the caller."""

    reply: str
    tools_used: List[str] = Field(default_factory=list)
    step_count: int = 0


class ErrorResponse(WireModel):
    """Error payload for 4xx / 5xx responses."""

    error: str
    details: Optional[str] = None
