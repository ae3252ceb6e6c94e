"""
webpilot - snapshot-first browser agent.

    from webpilot import BrowserAgent, CancellationToken
    from webpilot.llm_provider import OpenAIProvider

    agent = BrowserAgent(driver=my_driver, provider=OpenAIProvider())
    summary = await agent.run_task("Sign up for the newsletter", CancellationToken())
"""

from .agents import (
    BrowserAgent,
    BrowserAgentConfig,
    CapabilitySet,
    DispatchOutcome,
    ToolDispatcher,
    VisualDelegate,
    VisualDelegateConfig,
)
from .backends import BrowserDriver, capture_screenshot
from .cancellation import CancellationToken
from .chat import ChatSession
from .exceptions import (
    BrowserConnectionError,
    StreamEmptyResponseError,
    UnknownToolError,
    WebpilotError,
)
from .llm_provider import LLMProvider
from .models import (
    ActionHistoryEntry,
    Content,
    DelegateResult,
    FunctionCall,
    FunctionResponse,
    NativeContent,
    NativeToolResult,
    Part,
    StreamChunk,
    ToolResult,
)
from .turn_logger import JsonlTurnLogger, NoopTurnLogger, TurnLogger

__version__ = "0.1.0"

__all__ = [
    "ActionHistoryEntry",
    "BrowserAgent",
    "BrowserAgentConfig",
    "BrowserConnectionError",
    "BrowserDriver",
    "CancellationToken",
    "CapabilitySet",
    "ChatSession",
    "Content",
    "DelegateResult",
    "DispatchOutcome",
    "FunctionCall",
    "FunctionResponse",
    "JsonlTurnLogger",
    "LLMProvider",
    "NativeContent",
    "NativeToolResult",
    "NoopTurnLogger",
    "Part",
    "StreamChunk",
    "StreamEmptyResponseError",
    "ToolDispatcher",
    "ToolResult",
    "TurnLogger",
    "UnknownToolError",
    "VisualDelegate",
    "VisualDelegateConfig",
    "WebpilotError",
    "capture_screenshot",
]
