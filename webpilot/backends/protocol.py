"""
Browser driver protocol.

The driver is an external capability provider. webpilot only depends on the
surface below; any object implementing it (an MCP bridge, a Playwright wrapper,
a test stub) can be plugged into `BrowserAgent`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal, Protocol

from ..models import NativeToolResult, ToolResult

if TYPE_CHECKING:
    from playwright.async_api import Page

ScrollDirection = Literal["up", "down", "left", "right"]
DialogAction = Literal["accept", "dismiss"]


class BrowserDriver(Protocol):
    # Session / native protocol
    async def ensure_connection(self) -> None: ...

    async def call_tool(self, name: str, args: dict[str, Any]) -> NativeToolResult: ...

    async def get_page(self) -> Page: ...

    # Semantic tier (uids from the latest accessibility tree snapshot)
    async def navigate(self, url: str) -> ToolResult: ...

    async def click(self, uid: str, dbl_click: bool = False) -> ToolResult: ...

    async def hover(self, uid: str) -> ToolResult: ...

    async def fill(self, uid: str, value: str) -> ToolResult: ...

    async def fill_form(self, elements: list[dict[str, str]]) -> ToolResult: ...

    async def upload_file(self, uid: str, file_path: str) -> ToolResult: ...

    async def get_element_text(self, uid: str) -> ToolResult: ...

    async def scroll_document(self, direction: ScrollDirection, amount: float) -> ToolResult: ...

    async def take_snapshot(self, verbose: bool = False) -> ToolResult: ...

    async def wait_for(self, text: str) -> ToolResult: ...

    async def handle_dialog(
        self, action: DialogAction, prompt_text: str | None = None
    ) -> ToolResult: ...

    async def evaluate_script(
        self, function: str, args: list[dict[str, str]] | None = None
    ) -> ToolResult: ...

    async def press_key(self, key: str) -> ToolResult: ...

    async def drag(self, from_uid: str, to_uid: str) -> ToolResult: ...

    async def close_page(self) -> ToolResult: ...

    # Visual tier (CSS pixel coordinates of the latest screenshot)
    async def click_at(self, x: float, y: float) -> ToolResult: ...

    async def type_text_at(
        self,
        x: float,
        y: float,
        text: str,
        press_enter: bool = False,
        clear_before_typing: bool = False,
    ) -> ToolResult: ...

    async def drag_and_drop(
        self, x: float, y: float, dest_x: float, dest_y: float
    ) -> ToolResult: ...
