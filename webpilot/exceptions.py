from __future__ import annotations

EMPTY_STREAM_MESSAGE = "Model stream ended with empty response text"


class WebpilotError(RuntimeError):
    def __init__(self, reason_code: str, message: str) -> None:
        super().__init__(message)
        self.reason_code = reason_code


class BrowserConnectionError(WebpilotError):
    def __init__(self, message: str) -> None:
        super().__init__("browser_connection_failed", message)


class StreamEmptyResponseError(WebpilotError):
    """Raised when a model stream finishes without text or function calls."""

    def __init__(self, message: str = EMPTY_STREAM_MESSAGE) -> None:
        super().__init__("stream_empty_response", message)


class UnknownToolError(WebpilotError):
    def __init__(self, name: str) -> None:
        super().__init__("unknown_tool", f"Tool {name} not implemented in agent loop.")
        self.name = name


def is_empty_stream_error(exc: BaseException) -> bool:
    return isinstance(exc, StreamEmptyResponseError) or EMPTY_STREAM_MESSAGE in str(exc)
