"""Coordinate-space tool declarations used by the visual delegate."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from .registry import ToolRegistry, ToolSpec
from .semantic import PressKeyArgs, ScrollDocumentArgs


class ClickAtArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    x: float
    y: float


class TypeTextAtArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    x: float
    y: float
    text: str
    press_enter: bool = False
    clear_before_typing: bool = False


class DragAndDropArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    x: float
    y: float
    dest_x: float
    dest_y: float


def visual_tool_registry() -> ToolRegistry:
    return ToolRegistry(
        [
            ToolSpec("click_at", "Click at specific coordinates.", ClickAtArgs),
            ToolSpec("type_text_at", "Type text at specific coordinates.", TypeTextAtArgs),
            ToolSpec("drag_and_drop", "Drag from one coordinate to another.", DragAndDropArgs),
            ToolSpec(
                "press_key",
                'Press a key or key combination (e.g., "Enter", "Control+A").',
                PressKeyArgs,
            ),
            ToolSpec("scroll_document", "Scroll the document.", ScrollDocumentArgs),
        ]
    )
