"""
Conversation session over an LLMProvider.

`ChatSession` owns the conversation history: each `send_message_stream` call
appends the outgoing user message, streams the model reply through to the
caller, and appends the aggregated model reply once the stream ends.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING

from .exceptions import StreamEmptyResponseError
from .models import Content, FunctionCall, Part, StreamChunk
from .tools import ToolRegistry

if TYPE_CHECKING:
    from .cancellation import CancellationToken
    from .llm_provider import LLMProvider

logger = logging.getLogger(__name__)


class ChatSession:
    def __init__(
        self,
        provider: LLMProvider,
        system_instruction: str,
        tools: ToolRegistry,
    ) -> None:
        self.provider = provider
        self.system_instruction = system_instruction
        self.tools = tools
        self._history: list[Content] = []

    def get_history(self) -> list[Content]:
        return list(self._history)

    async def send_message_stream(
        self,
        *,
        model: str,
        parts: list[Part],
        prompt_id: str,
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Send `parts` as the next user message and stream the model reply.

        Raises:
            StreamEmptyResponseError: the stream finished without any text or
                function call (and was not cancelled).
        """
        self._history.append(Content(role="user", parts=list(parts)))
        logger.debug(f"[{prompt_id}] sending {len(parts)} parts to {model}")

        text = ""
        thought = ""
        calls: list[FunctionCall] = []
        stream = self.provider.stream_content(
            model=model,
            system_instruction=self.system_instruction,
            tools=self.tools.llm_tools(),
            contents=self.get_history(),
            cancel=cancel,
        )
        try:
            async with aclosing(stream):
                async for chunk in stream:
                    for part in chunk.parts:
                        if part.thought:
                            thought += part.text or ""
                        else:
                            text += part.text or ""
                    calls.extend(chunk.function_calls)
                    yield chunk
        finally:
            # Keep user/model alternation even when the reply is empty or abandoned.
            self._history.append(Content(role="model", parts=_reply_parts(text, thought, calls)))

        cancelled = cancel is not None and cancel.is_cancelled
        if not text and not calls and not cancelled:
            raise StreamEmptyResponseError()


def _reply_parts(text: str, thought: str, calls: list[FunctionCall]) -> list[Part]:
    parts: list[Part] = []
    if thought:
        parts.append(Part(text=thought, thought=True))
    if text:
        parts.append(Part(text=text))
    parts.extend(Part(function_call=c) for c in calls)
    return parts
