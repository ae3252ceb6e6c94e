from __future__ import annotations

import asyncio


class CancellationToken:
    """
    Advisory, polled cancellation flag shared between a caller and a running task.

    The agent loops never interrupt in-flight work; they check `is_cancelled`
    at their documented checkpoints and stop scheduling new work.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
