"""
Semantic (accessibility-tree) tool declarations used by the orchestrator.

Every element-targeting tool takes a `uid` taken from the latest
accessibility tree snapshot, never a CSS selector or coordinates.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .registry import NoArgs, ToolRegistry, ToolSpec


class _Args(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NavigateArgs(_Args):
    url: str = Field(description="The URL to visit")


class ClickArgs(_Args):
    uid: str = Field(
        description='The uid of the element from the accessibility tree (e.g., "87_4" for a button)'
    )
    dbl_click: bool = Field(
        False, alias="dblClick", description="Set to true for double clicks. Default is false."
    )


class HoverArgs(_Args):
    uid: str = Field(description="The uid of the element from the accessibility tree")


class FillArgs(_Args):
    uid: str = Field(description="The uid of the element (input/select)")
    value: str = Field(description="The value to fill in")


class FormElement(_Args):
    uid: str = Field(description="The uid of the element to fill out")
    value: str = Field(description="Value for the element")


class FillFormArgs(_Args):
    elements: list[FormElement] = Field(description="Elements from snapshot to fill out.")


class UploadFileArgs(_Args):
    uid: str = Field(
        description="The uid of the file input element or an element that will open file chooser"
    )
    file_path: str = Field(alias="filePath", description="The local path of the file to upload")


class GetElementTextArgs(_Args):
    uid: str = Field(description="The uid of the element from the accessibility tree")


class ScrollDocumentArgs(_Args):
    direction: Literal["up", "down", "left", "right"]
    amount: float = Field(description="Pixels to scroll (e.g. 500)")


class TakeSnapshotArgs(_Args):
    verbose: bool = Field(False, description="Whether to include full details")


class WaitForArgs(_Args):
    text: str = Field(description="The text to wait for")


class HandleDialogArgs(_Args):
    action: Literal["accept", "dismiss"]
    prompt_text: str | None = Field(None, alias="promptText")


class ScriptArg(_Args):
    uid: str = Field(description="The uid of an element on the page from the page content snapshot")


class EvaluateScriptArgs(_Args):
    function: str = Field(
        description=(
            "A JavaScript function declaration to be executed by the tool in the currently "
            "selected page. Example without arguments: `() => { return document.title }`. "
            "Example with arguments: `(el) => { return el.innerText; }`"
        )
    )
    args: list[ScriptArg] | None = Field(
        None, description="An optional list of arguments to pass to the function."
    )


class PressKeyArgs(_Args):
    key: str = Field(description="The key to press")


class DragArgs(_Args):
    from_uid: str = Field(description="The uid of the element to drag")
    to_uid: str = Field(description="The uid of the element to drop onto")


class CompleteTaskArgs(_Args):
    summary: str | None = Field(None, description="A brief summary of what was accomplished")


class DelegateArgs(_Args):
    instruction: str = Field(
        "",
        description=(
            'Clear instruction for the visual agent (e.g., "Click the blue submit button", '
            '"Find the yellow letter").'
        ),
    )


COMPLETE_TASK = "complete_task"
DELEGATE_TO_VISUAL_AGENT = "delegate_to_visual_agent"


def semantic_tool_registry() -> ToolRegistry:
    return ToolRegistry(
        [
            ToolSpec("navigate", "Navigates the browser to a specific URL.", NavigateArgs),
            ToolSpec(
                "click",
                "Click on an element using its uid from the accessibility tree snapshot.",
                ClickArgs,
            ),
            ToolSpec(
                "hover",
                "Hover over an element using its uid from the accessibility tree snapshot.",
                HoverArgs,
            ),
            ToolSpec(
                "fill",
                "Type text into a input, text area or select an option from a <select> element.",
                FillArgs,
            ),
            ToolSpec("fill_form", "Fill out multiple form elements at once.", FillFormArgs),
            ToolSpec("upload_file", "Upload a file through a provided element.", UploadFileArgs),
            ToolSpec(
                "get_element_text",
                "Get the text content of an element using its uid from the accessibility tree.",
                GetElementTextArgs,
            ),
            ToolSpec("scroll_document", "Scroll the document.", ScrollDocumentArgs),
            ToolSpec("pagedown", "Scroll down by one page height.", NoArgs),
            ToolSpec("pageup", "Scroll up by one page height.", NoArgs),
            ToolSpec(
                "take_snapshot",
                "Returns a text snapshot of the page accessibility tree. "
                "Use this to read the page content semantically.",
                TakeSnapshotArgs,
            ),
            ToolSpec(
                "wait_for",
                "Waits for specific text to appear on the page. "
                "Use this after actions that trigger loading.",
                WaitForArgs,
            ),
            ToolSpec(
                "handle_dialog",
                "Handles a native browser dialog (alert, confirm, prompt).",
                HandleDialogArgs,
            ),
            ToolSpec(
                "evaluate_script",
                "Evaluate a JavaScript function inside the currently selected page. Returns the "
                "response as JSON so returned values have to JSON-serializable.",
                EvaluateScriptArgs,
            ),
            ToolSpec(
                "press_key",
                'Press a key or key combination (e.g., "Enter", "Control+A").',
                PressKeyArgs,
            ),
            ToolSpec("drag", "Drag one element onto another element.", DragArgs),
            ToolSpec("close_page", "Close the currently selected page.", NoArgs),
            ToolSpec("open_web_browser", "Opens the web browser if not already open.", NoArgs),
            ToolSpec(
                COMPLETE_TASK,
                "Call this when you have completely fulfilled the user's request. "
                "You MUST call this to exit the agent loop.",
                CompleteTaskArgs,
            ),
            ToolSpec(
                DELEGATE_TO_VISUAL_AGENT,
                "Delegate a task that requires visual interaction (coordinate-based clicks, "
                "complex drag-and-drop) OR visual identification (finding elements by color, "
                "layout, or visual appearance not in the AX tree).",
                DelegateArgs,
            ),
        ]
    )
