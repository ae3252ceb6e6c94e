"""
LLM provider abstraction for webpilot.

A provider turns a conversation (`Content` list) plus a tool declaration list
into model output, either streamed (`stream_content`) or in one shot
(`generate_content`). Both calls take the model identifier per call so the
orchestrator and the visual delegate can run on different models through the
same provider.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from .models import Content, FunctionCall, Part, StreamChunk

if TYPE_CHECKING:
    from .cancellation import CancellationToken

logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    def __init__(self, model: str):
        self._model_name = model

    @property
    def model_name(self) -> str:
        return self._model_name

    @abstractmethod
    def stream_content(
        self,
        *,
        model: str,
        system_instruction: str | None,
        tools: list[dict[str, Any]],
        contents: list[Content],
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream one model response as an ordered sequence of chunks."""

    @abstractmethod
    async def generate_content(
        self,
        *,
        model: str,
        contents: list[Content],
        tools: list[dict[str, Any]],
        system_instruction: str | None = None,
    ) -> Content | None:
        """Return one complete model response, or None when the model produced nothing."""


class OpenAIProvider(LLMProvider):
    """
    OpenAI Chat Completions provider (requires the `openai` extra).

    Function responses are sent as `tool` messages keyed by the originating
    call id; inline images are sent as base64 data URLs.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o",
        base_url: str | None = None,
        temperature: float | None = 0.0,
    ):
        super().__init__(model)
        try:
            from openai import AsyncOpenAI
        except ImportError as e:
            raise ImportError(
                "OpenAIProvider requires the 'openai' package. "
                "Install it with: pip install 'webpilot[openai]'"
            ) from e

        self.client = AsyncOpenAI(
            api_key=api_key or os.environ.get("OPENAI_API_KEY"),
            base_url=base_url,
        )
        self.temperature = temperature

    @staticmethod
    def to_openai_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [{"type": "function", "function": spec} for spec in tools]

    @staticmethod
    def to_openai_messages(
        system_instruction: str | None, contents: list[Content]
    ) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})

        # Chat Completions rejects unnamed tool calls; drop them with their responses.
        dropped_ids: set[str] = set()
        for content in contents:
            if content.role == "model":
                dropped_ids = set()
                tool_calls: list[dict[str, Any]] = []
                for i, call in enumerate(content.function_calls()):
                    call_id = call.id or f"call_{i}"
                    if not call.name:
                        dropped_ids.add(call_id)
                        continue
                    tool_calls.append(
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": json.dumps(call.args)},
                        }
                    )
                msg: dict[str, Any] = {"role": "assistant", "content": content.text() or ""}
                if tool_calls:
                    msg["tool_calls"] = tool_calls
                messages.append(msg)
                continue

            user_parts: list[dict[str, Any]] = []
            tool_index = 0
            for part in content.parts:
                if part.function_response is not None:
                    resp = part.function_response
                    call_id = resp.id or f"call_{tool_index}"
                    tool_index += 1
                    if call_id in dropped_ids:
                        continue
                    messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": call_id,
                            "content": json.dumps(resp.response),
                        }
                    )
                elif part.inline_data is not None:
                    url = f"data:{part.inline_data.mime_type};base64,{part.inline_data.data}"
                    user_parts.append({"type": "image_url", "image_url": {"url": url}})
                elif part.text:
                    user_parts.append({"type": "text", "text": part.text})
            if user_parts:
                messages.append({"role": "user", "content": user_parts})
        return messages

    @staticmethod
    def _parse_arguments(raw: str | None) -> dict[str, Any]:
        try:
            args = json.loads(raw or "{}")
        except json.JSONDecodeError:
            logger.warning(f"Discarding malformed tool arguments: {raw!r}")
            return {}
        return args if isinstance(args, dict) else {}

    def _request_kwargs(self, model: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"model": model or self._model_name}
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        return kwargs

    async def stream_content(
        self,
        *,
        model: str,
        system_instruction: str | None,
        tools: list[dict[str, Any]],
        contents: list[Content],
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[StreamChunk]:
        stream = await self.client.chat.completions.create(
            messages=self.to_openai_messages(system_instruction, contents),
            tools=self.to_openai_tools(tools) or None,
            stream=True,
            **self._request_kwargs(model),
        )

        # Tool call deltas arrive fragmented and keyed by index.
        pending: dict[int, dict[str, str]] = {}
        async for event in stream:
            if cancel is not None and cancel.is_cancelled:
                break
            if not event.choices:
                continue
            delta = event.choices[0].delta
            if delta.content:
                yield StreamChunk(parts=[Part(text=delta.content)])
            for tc in delta.tool_calls or []:
                slot = pending.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                if tc.id:
                    slot["id"] = tc.id
                if tc.function is not None:
                    slot["name"] += tc.function.name or ""
                    slot["arguments"] += tc.function.arguments or ""

        if pending:
            calls = [
                FunctionCall(
                    name=slot["name"] or None,
                    args=self._parse_arguments(slot["arguments"]),
                    id=slot["id"] or None,
                )
                for _, slot in sorted(pending.items())
            ]
            yield StreamChunk(function_calls=calls)

    async def generate_content(
        self,
        *,
        model: str,
        contents: list[Content],
        tools: list[dict[str, Any]],
        system_instruction: str | None = None,
    ) -> Content | None:
        resp = await self.client.chat.completions.create(
            messages=self.to_openai_messages(system_instruction, contents),
            tools=self.to_openai_tools(tools) or None,
            **self._request_kwargs(model),
        )
        if not resp.choices:
            return None

        message = resp.choices[0].message
        parts: list[Part] = []
        if message.content:
            parts.append(Part(text=message.content))
        for tc in message.tool_calls or []:
            if tc.type != "function" or tc.function is None:
                continue
            parts.append(
                Part(
                    function_call=FunctionCall(
                        name=tc.function.name,
                        args=self._parse_arguments(tc.function.arguments),
                        id=tc.id,
                    )
                )
            )
        if not parts:
            return None
        return Content(role="model", parts=parts)
