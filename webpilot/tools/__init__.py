"""
Tool declarations for the two capability tiers.

- semantic: uid-based actions against the accessibility tree (orchestrator)
- visual: coordinate-based actions against screenshots (visual delegate)
"""

from .registry import NoArgs, ToolRegistry, ToolSpec
from .semantic import COMPLETE_TASK, DELEGATE_TO_VISUAL_AGENT, semantic_tool_registry
from .visual import visual_tool_registry

__all__ = [
    "COMPLETE_TASK",
    "DELEGATE_TO_VISUAL_AGENT",
    "NoArgs",
    "ToolRegistry",
    "ToolSpec",
    "semantic_tool_registry",
    "visual_tool_registry",
]
