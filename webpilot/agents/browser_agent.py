from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from collections.abc import Callable, Mapping
from contextlib import aclosing
from dataclasses import dataclass, field

from ..backends.protocol import BrowserDriver
from ..backends.screenshot import capture_screenshot, update_border_overlay
from ..cancellation import CancellationToken
from ..chat import ChatSession
from ..constants import (
    COMPLETION_REPROMPT,
    DEFAULT_MODEL,
    DEFAULT_VISUAL_MODEL,
    MAX_ITERATIONS,
    NAMELESS_CALL_ERROR,
    TASK_CANCELLED,
    TASK_COMPLETED,
    TASK_FINISHED,
    VISUAL_MAX_STEPS,
)
from ..exceptions import is_empty_stream_error
from ..llm_provider import LLMProvider
from ..models import FunctionCall, FunctionResponse, Part, ToolResult
from ..thoughts import parse_thought
from ..tools import COMPLETE_TASK, DELEGATE_TO_VISUAL_AGENT, semantic_tool_registry
from ..tools.semantic import CompleteTaskArgs, DelegateArgs
from ..turn_logger import NoopTurnLogger, TurnLogger
from .dispatch import CapabilitySet, ToolDispatcher, legacy_actions, semantic_handlers
from .visual_delegate import VisualDelegate, VisualDelegateConfig

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

ORCHESTRATOR_SYSTEM_INSTRUCTION = """You are an expert browser automation agent (Orchestrator). Your goal is to completely fulfill the user's request.

IMPORTANT: You will receive a fresh accessibility tree snapshot at the start of every turn showing elements with uid values (e.g., uid=87_4 button "Login").
Use these uid values directly with your tools:
- click(uid="87_4") to click the Login button
- fill(uid="87_2", value="john") to fill a text field
- fill_form(elements=[{uid: "87_2", value: "john"}, {uid: "87_3", value: "pass"}]) to fill multiple fields at once

For complex visual interactions (coordinate-based clicks, dragging) OR when you need to identify elements by visual attributes not present in the AX tree (e.g., "click the yellow button", "find the red error message"), use delegate_to_visual_agent with a clear instruction.

CRITICAL: When you have fully completed the user's task, you MUST call the complete_task tool with a summary of what you accomplished. Do NOT just return text - you must explicitly call complete_task to exit the loop."""


@dataclass(frozen=True)
class BrowserAgentConfig:
    """
    Orchestrator configuration.

    `model` drives the orchestrator stream, `visual_model` the visual delegate;
    the two may differ.
    """

    model: str = DEFAULT_MODEL
    visual_model: str = DEFAULT_VISUAL_MODEL
    max_iterations: int = MAX_ITERATIONS
    visual_max_steps: int = VISUAL_MAX_STEPS
    system_instruction: str = ORCHESTRATOR_SYSTEM_INSTRUCTION

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BrowserAgentConfig:
        env = os.environ if environ is None else environ
        return cls(
            model=env.get("WEBPILOT_MODEL") or DEFAULT_MODEL,
            visual_model=env.get("WEBPILOT_VISUAL_MODEL") or DEFAULT_VISUAL_MODEL,
        )


@dataclass
class TurnState:
    """Accumulators for one orchestrator turn; rebuilt every iteration."""

    text: str = ""
    function_calls: list[FunctionCall] = field(default_factory=list)


@dataclass
class _RunState:
    completed: bool = False
    summary: str = ""


def _text_response(call: FunctionCall, text: str) -> Part:
    return Part(
        function_response=FunctionResponse(
            name=call.name or "",
            response={"content": [{"type": "text", "text": text}]},
            id=call.id,
        )
    )


def _safe_progress(print_output: ProgressCallback | None) -> ProgressCallback:
    def emit(message: str) -> None:
        if print_output is None:
            return
        try:
            print_output(message)
        except Exception as e:
            logger.debug(f"progress callback failed: {e}")

    return emit


class BrowserAgent:
    """
    Snapshot-first browser agent.

    Every turn captures a fresh accessibility tree, streams the model's reply
    and dispatches the requested tools. Coordinate or visually-identified
    interactions are handed to a `VisualDelegate` through the
    `delegate_to_visual_agent` tool.

    Example:
        agent = BrowserAgent(driver=driver, provider=OpenAIProvider())
        summary = await agent.run_task("Find the opening hours", CancellationToken())
    """

    def __init__(
        self,
        *,
        driver: BrowserDriver,
        provider: LLMProvider,
        visual_provider: LLMProvider | None = None,
        config: BrowserAgentConfig = BrowserAgentConfig(),
        turn_logger: TurnLogger | None = None,
    ) -> None:
        self.driver = driver
        self.provider = provider
        self.config = config
        self.turn_logger: TurnLogger = turn_logger or NoopTurnLogger()
        self.registry = semantic_tool_registry()
        self.visual_delegate = VisualDelegate(
            driver=driver,
            provider=visual_provider or provider,
            config=VisualDelegateConfig(
                model=config.visual_model, max_steps=config.visual_max_steps
            ),
        )
        # One active task per agent instance.
        self._lock = asyncio.Lock()

    async def run_task(
        self,
        prompt: str,
        cancel: CancellationToken | None = None,
        print_output: ProgressCallback | None = None,
    ) -> str:
        """
        Run one natural-language task to completion.

        Returns the `complete_task` summary, a cancellation notice, "Task finished"
        when the iteration cap is reached, or an error description. Never raises
        for model or browser failures.
        """
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("prompt must be a non-empty string")
        cancel = cancel or CancellationToken()
        emit = _safe_progress(print_output)

        async with self._lock:
            return await self._run(prompt, cancel, emit)

    async def _run(self, prompt: str, cancel: CancellationToken, emit: ProgressCallback) -> str:
        max_iterations = int(self.config.max_iterations)

        logger.debug("Connecting to browser...")
        try:
            await self.driver.ensure_connection()
        except Exception as e:
            msg = f"Error: Failed to connect to browser: {e}"
            logger.error(msg)
            emit(msg)
            return msg
        await update_border_overlay(self.driver, active=True, capturing=False)
        logger.debug("Browser connected. Starting task loop...")

        chat = ChatSession(self.provider, self.config.system_instruction, self.registry)
        state = _RunState()
        dispatcher = self._build_dispatcher(state, cancel, emit)

        # Next turn's carried-over parts: the task, tool outputs, or the re-prompt.
        carried: list[Part] = [Part.from_text(f"Task: {prompt}")]

        for iteration in range(max_iterations):
            if cancel.is_cancelled:
                return self._cancelled(emit, "Task cancelled by user", state)

            snapshot = await self._capture_state()

            if cancel.is_cancelled:
                return self._cancelled(emit, "Task cancelled during state capture", state)

            message_parts = self._build_payload(snapshot, carried)
            logger.debug(
                f"[Turn {iteration + 1}/{max_iterations}] Calling model "
                f"({len(message_parts)} parts, DOM: {round(len(snapshot) / 1024)}KB)..."
            )

            try:
                turn = await self._stream_turn(chat, message_parts, cancel, emit)
            except Exception as e:
                if not is_empty_stream_error(e):
                    msg = f"Error calling model: {e}"
                    logger.error(msg)
                    emit(msg)
                    return msg
                logger.warning("Caught empty stream error from model. Continuing...")
                turn = TurnState()

            if cancel.is_cancelled:
                return self._cancelled(emit, "Task cancelled after model call", state)

            self._log_turn(chat)

            if not turn.function_calls:
                logger.warning("Model stopped calling tools without calling complete_task")
                emit("⚠️  Agent stopped without calling complete_task. Prompting to complete...")
                carried = [Part.from_text(COMPLETION_REPROMPT)]
                continue

            carried = []
            dispatched = 0
            for call in turn.function_calls:
                if cancel.is_cancelled:
                    return self._cancelled(emit, "Task cancelled before tool execution", state)
                if not call.name:
                    logger.warning("Received function call without name")
                    emit("❌ Warning: Received function call without name")
                    # Every call still gets a paired response.
                    carried.append(_text_response(call, NAMELESS_CALL_ERROR))
                    continue

                emit(f"🔧 Executing {call.name}({json.dumps(call.args)})")
                outcome = await dispatcher.dispatch(call)
                carried.append(_text_response(call, outcome.text))
                dispatched += 1

            if state.completed:
                logger.debug("Task completed successfully.")
                break
            if not dispatched:
                carried.append(Part.from_text(COMPLETION_REPROMPT))

        logger.debug("Task loop finished.")
        return state.summary or TASK_FINISHED

    def _build_dispatcher(
        self, state: _RunState, cancel: CancellationToken, emit: ProgressCallback
    ) -> ToolDispatcher:
        async def complete_task(args: CompleteTaskArgs) -> ToolResult:
            summary = args.summary or TASK_COMPLETED
            state.completed = True
            state.summary = summary
            emit(f"✅ {summary}")
            return ToolResult(output=summary)

        async def delegate_to_visual_agent(args: DelegateArgs) -> ToolResult:
            screenshot = await capture_screenshot(self.driver)
            result = await self.visual_delegate.run(
                args.instruction, screenshot, emit, cancel=cancel
            )
            return ToolResult(output=result.summary)

        handlers = semantic_handlers(self.driver)
        handlers[COMPLETE_TASK] = complete_task
        handlers[DELEGATE_TO_VISUAL_AGENT] = delegate_to_visual_agent
        return ToolDispatcher(
            capability_set=CapabilitySet.SEMANTIC,
            driver=self.driver,
            registry=self.registry,
            handlers=handlers,
            passthrough=True,
            legacy=legacy_actions(self.driver),
        )

    async def _capture_state(self) -> str:
        """Fresh accessibility tree for this turn; empty string on failure."""
        logger.debug("Capturing state...")
        try:
            res = await self.driver.call_tool("take_snapshot", {"verbose": False})
            return res.joined_text()
        except Exception as e:
            logger.warning(f"State capture failed: {e}")
            return ""

    @staticmethod
    def _build_payload(snapshot: str, carried: list[Part]) -> list[Part]:
        # Snapshot goes first so the model acts on current state rather than restating it.
        state_parts: list[Part] = []
        if snapshot:
            state_parts.append(
                Part.from_text(f"<accessibility_tree>\n{snapshot}\n</accessibility_tree>")
            )
        return [*state_parts, *carried]

    async def _stream_turn(
        self,
        chat: ChatSession,
        message_parts: list[Part],
        cancel: CancellationToken,
        emit: ProgressCallback,
    ) -> TurnState:
        turn = TurnState()
        prompt_id = f"browser-agent-{int(time.time() * 1000)}"
        stream = chat.send_message_stream(
            model=self.config.model, parts=message_parts, prompt_id=prompt_id, cancel=cancel
        )
        async with aclosing(stream):
            async for chunk in stream:
                if cancel.is_cancelled:
                    logger.debug("Task cancelled during model streaming")
                    break

                thought = next((p for p in chunk.parts if p.thought), None)
                if thought is not None:
                    subject = parse_thought(thought.text or "").subject
                    if subject:
                        emit(f"💭 {subject}")

                turn.text += "".join(p.text for p in chunk.parts if p.text and not p.thought)

                for call in chunk.function_calls:
                    turn.function_calls.append(call)
                    instruction = (
                        call.args.get("instruction") if call.name == DELEGATE_TO_VISUAL_AGENT else None
                    )
                    if instruction:
                        emit(f"🤖 Visual Agent: {instruction}")
                    else:
                        emit(f"🔧 Generating tool call: {call.name}...")
        return turn

    def _log_turn(self, chat: ChatSession) -> None:
        history = chat.get_history()
        if len(history) < 2:
            return
        last_user, last_model = history[-2], history[-1]
        try:
            self.turn_logger.log_summary(last_model)
            self.turn_logger.log_full_turn([last_user], last_model)
        except Exception as e:
            logger.warning(f"Turn logging failed: {e}")

    @staticmethod
    def _cancelled(emit: ProgressCallback, reason: str, state: _RunState) -> str:
        logger.info(reason)
        emit("⚠️  Browser task cancelled")
        return state.summary or TASK_CANCELLED
