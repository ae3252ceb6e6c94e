from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..backends.screenshot import capture_screenshot
from ..constants import CACHE_INVALIDATION_SCRIPT, DEFAULT_VISUAL_MODEL, VISUAL_MAX_STEPS
from ..models import ActionHistoryEntry, Content, DelegateResult, FunctionResponse, Part
from ..tools import visual_tool_registry
from .dispatch import CapabilitySet, ToolDispatcher, visual_handlers

if TYPE_CHECKING:
    from ..backends.protocol import BrowserDriver
    from ..cancellation import CancellationToken
    from ..llm_provider import LLMProvider

logger = logging.getLogger(__name__)

VISUAL_SYSTEM_INSTRUCTION = """You are a Visual Delegate Agent. You have been delegated a specific task: "{instruction}".
You have access to valid screenshot of the current state.
You MUST perform the necessary actions (click_at, type_text_at, drag_and_drop, scroll_document) to fulfill the instruction.
If the element is not visible, use scroll_document to find it.
Return a concise summary of your actions when done.
"""


@dataclass(frozen=True)
class VisualDelegateConfig:
    model: str = DEFAULT_VISUAL_MODEL
    max_steps: int = VISUAL_MAX_STEPS


async def invalidate_snapshot_cache(driver: BrowserDriver) -> None:
    """
    Coordinate actions can change the DOM behind the driver's back; a no-op
    script call forces it to drop cached accessibility-tree uids.
    """
    try:
        await driver.call_tool("evaluate_script", {"function": CACHE_INVALIDATION_SCRIPT})
    except Exception as e:
        logger.debug(f"Snapshot cache invalidation failed (ignored): {e}")


def _render_history(actions: list[ActionHistoryEntry]) -> str:
    return "\n".join(a.render() for a in actions)


class VisualDelegate:
    """
    Bounded screenshot-driven sub-loop.

    Each step makes one single-shot model call with the running conversation;
    a reply without function calls ends the delegation.
    """

    def __init__(
        self,
        *,
        driver: BrowserDriver,
        provider: LLMProvider,
        config: VisualDelegateConfig = VisualDelegateConfig(),
    ) -> None:
        self.driver = driver
        self.provider = provider
        self.config = config
        self.registry = visual_tool_registry()
        self.dispatcher = ToolDispatcher(
            capability_set=CapabilitySet.VISUAL,
            driver=driver,
            registry=self.registry,
            handlers=visual_handlers(driver),
        )

    async def run(
        self,
        instruction: str,
        initial_screenshot: str,
        print_output: Callable[[str], None] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> DelegateResult:
        emit = print_output or (lambda _msg: None)
        max_steps = int(self.config.max_steps)

        initial_parts = [Part.from_text(VISUAL_SYSTEM_INSTRUCTION.format(instruction=instruction))]
        if initial_screenshot:
            initial_parts.append(Part.from_image(initial_screenshot))
        contents: list[Content] = [Content(role="user", parts=initial_parts)]
        actions: list[ActionHistoryEntry] = []

        for i in range(max_steps):
            if cancel is not None and cancel.is_cancelled:
                logger.debug("Visual delegate cancelled")
                await invalidate_snapshot_cache(self.driver)
                return DelegateResult(
                    summary=f"Visual Agent cancelled.\nActions Taken:\n{_render_history(actions)}",
                    actions=actions,
                    cancelled=True,
                )

            response = await self.provider.generate_content(
                model=self.config.model,
                contents=contents,
                tools=self.registry.llm_tools(),
            )
            if response is None:
                logger.debug("Visual delegate received no response; stopping")
                break

            calls = response.function_calls()
            self._report_turn(emit, response, i, max_steps)
            contents.append(response)

            if not calls:
                final = response.text() or "Done"
                await invalidate_snapshot_cache(self.driver)
                return DelegateResult(
                    summary=(
                        f"Visual Agent Completed.\nFinal Message: {final}\n"
                        f"Actions Taken:\n{_render_history(actions)}"
                    ),
                    actions=actions,
                    final_message=final,
                )

            response_parts: list[Part] = []
            for call in calls:
                name = call.name or ""
                outcome = await self.dispatcher.dispatch(call)
                if outcome.kind == "unrecognized":
                    result = {"error": f"Unknown visual tool: {name}"}
                else:
                    result = outcome.response
                response_parts.append(
                    Part(function_response=FunctionResponse(name=name, response=result, id=call.id))
                )
                actions.append(ActionHistoryEntry(tool_name=name, args=dict(call.args), result=result))

            screenshot = await capture_screenshot(self.driver)
            if screenshot:
                response_parts.append(Part.from_image(screenshot))

            # Function responses are attributed to the caller, not the model.
            contents.append(Content(role="user", parts=response_parts))

        await invalidate_snapshot_cache(self.driver)
        return DelegateResult(
            summary=f"Visual Agent reached max steps.\nActions Taken:\n{_render_history(actions)}",
            actions=actions,
            reached_max_steps=True,
        )

    @staticmethod
    def _report_turn(
        emit: Callable[[str], None], response: Content, index: int, max_steps: int
    ) -> None:
        lines: list[str] = []
        text = response.text()
        if text:
            lines.append(f"  💭 {text}")
        calls = response.function_calls()
        if calls:
            tool_info = "\n".join(
                f"  🔧 {c.name}({', '.join(f'{k}={v}' for k, v in c.args.items())})" for c in calls
            )
            lines.append(f"[Visual Turn {index + 1}/{max_steps}]\n{tool_info}")
        if lines:
            emit("\n".join(lines))
