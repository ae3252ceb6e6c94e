"""
Pydantic models for webpilot - message parts, stream events and tool results.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, Field


class InlineData(BaseModel):
    """Inline binary payload (base64 encoded), e.g. a PNG screenshot"""

    mime_type: str = "image/png"
    data: str


class FunctionCall(BaseModel):
    """Tool invocation emitted by the model"""

    name: str | None = None
    args: dict[str, Any] = Field(default_factory=dict)
    # Provider-assigned call id (OpenAI tool_call_id); None for providers without ids
    id: str | None = None


class FunctionResponse(BaseModel):
    """Tool output paired 1:1 with a FunctionCall"""

    name: str
    response: dict[str, Any] = Field(default_factory=dict)
    id: str | None = None


class Part(BaseModel):
    """
    One message part. Exactly one of text / inline_data / function_call /
    function_response is expected to be set.
    """

    text: str | None = None
    thought: bool = False
    inline_data: InlineData | None = None
    function_call: FunctionCall | None = None
    function_response: FunctionResponse | None = None

    @classmethod
    def from_text(cls, text: str) -> Part:
        return cls(text=text)

    @classmethod
    def from_image(cls, data: str, mime_type: str = "image/png") -> Part:
        return cls(inline_data=InlineData(mime_type=mime_type, data=data))


class Content(BaseModel):
    """A single conversation entry"""

    role: Literal["user", "model"]
    parts: list[Part] = Field(default_factory=list)

    def text(self, *, include_thoughts: bool = False) -> str:
        return "".join(
            p.text or "" for p in self.parts if p.text and (include_thoughts or not p.thought)
        )

    def function_calls(self) -> list[FunctionCall]:
        return [p.function_call for p in self.parts if p.function_call is not None]


class StreamChunk(BaseModel):
    """One streamed model event"""

    parts: list[Part] = Field(default_factory=list)
    function_calls: list[FunctionCall] = Field(default_factory=list)


class ToolResult(BaseModel):
    """Result returned by every browser driver tool method"""

    output: str | None = None
    error: str | None = None

    def as_text(self) -> str:
        return self.output or self.error or ""

    def as_response(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class NativeContent(BaseModel):
    """One content segment of a native driver tool call"""

    type: str = "text"
    text: str | None = None
    data: str | None = None
    mime_type: str | None = None


class NativeToolResult(BaseModel):
    """Result of the driver's native tool-call protocol"""

    content: list[NativeContent] = Field(default_factory=list)
    is_error: bool = False

    def joined_text(self, sep: str = "") -> str:
        return sep.join(c.text or "" for c in self.content if c.type == "text")


class ActionHistoryEntry(BaseModel):
    """Single visual delegate action, kept in execution order"""

    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: dict[str, Any] = Field(default_factory=dict)

    def render(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in self.args.items())
        return f"- {self.tool_name}({args}) => {json.dumps(self.result)}"


class DelegateResult(BaseModel):
    """Outcome of one visual delegate run"""

    summary: str
    actions: list[ActionHistoryEntry] = Field(default_factory=list)
    reached_max_steps: bool = False
    cancelled: bool = False
    final_message: str | None = None
