"""
Agent loops (snapshot-first orchestrator, screenshot-driven visual delegate).

- BrowserAgent: uid-based orchestrator loop over accessibility tree snapshots
- VisualDelegate: bounded coordinate-based sub-loop invoked via delegation
- ToolDispatcher: per-capability-set tool resolution
"""

from .browser_agent import BrowserAgent, BrowserAgentConfig, TurnState
from .dispatch import CapabilitySet, DispatchOutcome, LegacyAction, ToolDispatcher
from .visual_delegate import VisualDelegate, VisualDelegateConfig, invalidate_snapshot_cache

__all__ = [
    "BrowserAgent",
    "BrowserAgentConfig",
    "CapabilitySet",
    "DispatchOutcome",
    "LegacyAction",
    "ToolDispatcher",
    "TurnState",
    "VisualDelegate",
    "VisualDelegateConfig",
    "invalidate_snapshot_cache",
]
