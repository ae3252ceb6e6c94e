"""
Tool dispatch for the orchestrator and the visual delegate.

A `ToolDispatcher` is bound to one capability set, so the same tool name
(`press_key`, `scroll_document`) can resolve differently depending on which
loop is running. Resolution order:

1. direct handlers (validated through the tool's pydantic input model)
2. passthrough to the driver's native tool protocol, for declared tools
   without a handler
3. an explicit, closed set of legacy driver helpers

Anything else is an `unrecognized` outcome. No path raises: every failure is
converted into the text of that one function response.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel

from ..exceptions import UnknownToolError
from ..models import FunctionCall, ToolResult
from ..tools import ToolRegistry
from ..tools.semantic import (
    ClickArgs,
    DragArgs,
    EvaluateScriptArgs,
    FillArgs,
    FillFormArgs,
    GetElementTextArgs,
    HandleDialogArgs,
    HoverArgs,
    NavigateArgs,
    PressKeyArgs,
    ScrollDocumentArgs,
    TakeSnapshotArgs,
    UploadFileArgs,
    WaitForArgs,
)
from ..tools.visual import ClickAtArgs, DragAndDropArgs, TypeTextAtArgs

if TYPE_CHECKING:
    from ..backends.protocol import BrowserDriver

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[ToolResult]]
DispatchKind = Literal["handled", "passthrough", "legacy", "error", "unrecognized"]


class CapabilitySet(str, Enum):
    SEMANTIC = "semantic"
    VISUAL = "visual"


@dataclass(frozen=True)
class DispatchOutcome:
    name: str
    text: str
    kind: DispatchKind
    # Structured tool result (`{"output": ...}` / `{"error": ...}`), used by the visual delegate.
    response: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.kind in ("handled", "passthrough", "legacy")


@dataclass(frozen=True)
class LegacyAction:
    """A driver helper reachable by name outside the declared tool set."""

    input_model: type[BaseModel]
    handler: Handler


class ToolDispatcher:
    def __init__(
        self,
        *,
        capability_set: CapabilitySet,
        driver: BrowserDriver,
        registry: ToolRegistry,
        handlers: dict[str, Handler],
        passthrough: bool = False,
        legacy: dict[str, LegacyAction] | None = None,
    ) -> None:
        self.capability_set = capability_set
        self.driver = driver
        self.registry = registry
        self.handlers = dict(handlers)
        self.passthrough = passthrough
        self.legacy = dict(legacy or {})

    def resolve(self, name: str) -> DispatchKind:
        """Which tier `name` resolves to, without executing anything."""
        if name in self.handlers:
            return "handled"
        if self.passthrough and name in self.registry:
            return "passthrough"
        if name in self.legacy:
            return "legacy"
        return "unrecognized"

    async def dispatch(self, call: FunctionCall) -> DispatchOutcome:
        name = call.name or ""
        args = dict(call.args or {})
        tier = self.resolve(name)

        if tier == "handled":
            return await self._run_handler(name, args)
        if tier == "passthrough":
            return await self._run_passthrough(name, args)
        if tier == "legacy":
            return await self._run_legacy(name, args)

        err = UnknownToolError(name)
        logger.warning(f"[{self.capability_set.value}] {err}")
        return DispatchOutcome(name=name, text=str(err), kind="unrecognized", response={"error": str(err)})

    async def _run_handler(self, name: str, args: dict[str, Any]) -> DispatchOutcome:
        try:
            params = self.registry.validate_input(name, args)
            result = await self.handlers[name](params)
        except Exception as e:
            logger.warning(f"Error executing {name}: {e}")
            return DispatchOutcome(
                name=name, text=f"Error executing {name}: {e}", kind="error", response={"error": str(e)}
            )
        return DispatchOutcome(name=name, text=result.as_text(), kind="handled", response=result.as_response())

    async def _run_passthrough(self, name: str, args: dict[str, Any]) -> DispatchOutcome:
        try:
            res = await self.driver.call_tool(name, args)
        except Exception as e:
            logger.warning(f"Error executing {name}: {e}")
            return DispatchOutcome(
                name=name, text=f"Error executing {name}: {e}", kind="error", response={"error": str(e)}
            )
        text = res.joined_text("\n")
        return DispatchOutcome(name=name, text=text, kind="passthrough", response={"output": text})

    async def _run_legacy(self, name: str, args: dict[str, Any]) -> DispatchOutcome:
        action = self.legacy[name]
        try:
            result = await action.handler(action.input_model.model_validate(args))
        except Exception as e:
            logger.warning(f"Legacy tool {name} failed: {e}")
            err = UnknownToolError(name)
            return DispatchOutcome(name=name, text=str(err), kind="error", response={"error": str(err)})
        return DispatchOutcome(name=name, text=result.as_text(), kind="legacy", response=result.as_response())


def semantic_handlers(driver: BrowserDriver) -> dict[str, Handler]:
    """uid-based handlers. `complete_task` and delegation are added by the agent."""

    async def navigate(a: NavigateArgs) -> ToolResult:
        return await driver.navigate(a.url)

    async def click(a: ClickArgs) -> ToolResult:
        return await driver.click(a.uid, a.dbl_click)

    async def hover(a: HoverArgs) -> ToolResult:
        return await driver.hover(a.uid)

    async def fill(a: FillArgs) -> ToolResult:
        return await driver.fill(a.uid, a.value)

    async def fill_form(a: FillFormArgs) -> ToolResult:
        return await driver.fill_form([e.model_dump() for e in a.elements])

    async def upload_file(a: UploadFileArgs) -> ToolResult:
        return await driver.upload_file(a.uid, a.file_path)

    async def get_element_text(a: GetElementTextArgs) -> ToolResult:
        return await driver.get_element_text(a.uid)

    async def wait_for(a: WaitForArgs) -> ToolResult:
        return await driver.wait_for(a.text)

    async def handle_dialog(a: HandleDialogArgs) -> ToolResult:
        return await driver.handle_dialog(a.action, a.prompt_text)

    async def evaluate_script(a: EvaluateScriptArgs) -> ToolResult:
        script_args = [x.model_dump() for x in a.args] if a.args else None
        return await driver.evaluate_script(a.function, script_args)

    async def press_key(a: PressKeyArgs) -> ToolResult:
        return await driver.press_key(a.key)

    async def drag(a: DragArgs) -> ToolResult:
        return await driver.drag(a.from_uid, a.to_uid)

    async def close_page(_a: BaseModel) -> ToolResult:
        return await driver.close_page()

    async def take_snapshot(a: TakeSnapshotArgs) -> ToolResult:
        return await driver.take_snapshot(a.verbose)

    async def scroll_document(a: ScrollDocumentArgs) -> ToolResult:
        return await driver.scroll_document(a.direction, a.amount)

    return {
        "navigate": navigate,
        "click": click,
        "hover": hover,
        "fill": fill,
        "fill_form": fill_form,
        "upload_file": upload_file,
        "get_element_text": get_element_text,
        "wait_for": wait_for,
        "handle_dialog": handle_dialog,
        "evaluate_script": evaluate_script,
        "press_key": press_key,
        "drag": drag,
        "close_page": close_page,
        "take_snapshot": take_snapshot,
        "scroll_document": scroll_document,
    }


def visual_handlers(driver: BrowserDriver) -> dict[str, Handler]:
    async def click_at(a: ClickAtArgs) -> ToolResult:
        return await driver.click_at(a.x, a.y)

    async def type_text_at(a: TypeTextAtArgs) -> ToolResult:
        return await driver.type_text_at(a.x, a.y, a.text, a.press_enter, a.clear_before_typing)

    async def drag_and_drop(a: DragAndDropArgs) -> ToolResult:
        return await driver.drag_and_drop(a.x, a.y, a.dest_x, a.dest_y)

    async def press_key(a: PressKeyArgs) -> ToolResult:
        return await driver.press_key(a.key)

    async def scroll_document(a: ScrollDocumentArgs) -> ToolResult:
        return await driver.scroll_document(a.direction, a.amount)

    return {
        "click_at": click_at,
        "type_text_at": type_text_at,
        "drag_and_drop": drag_and_drop,
        "press_key": press_key,
        "scroll_document": scroll_document,
    }


def legacy_actions(driver: BrowserDriver) -> dict[str, LegacyAction]:
    """Coordinate helpers the orchestrator can still reach without delegating."""
    handlers = visual_handlers(driver)
    return {
        "click_at": LegacyAction(ClickAtArgs, handlers["click_at"]),
        "type_text_at": LegacyAction(TypeTextAtArgs, handlers["type_text_at"]),
        "drag_and_drop": LegacyAction(DragAndDropArgs, handlers["drag_and_drop"]),
    }
