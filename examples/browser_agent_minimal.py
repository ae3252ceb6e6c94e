"""
Example: BrowserAgent minimal demo.

Drives a local Playwright page through a tiny BrowserDriver with a scripted
provider, so the orchestrator loop can be watched end to end without an API key.

Usage:
  python examples/browser_agent_minimal.py
"""

import asyncio

from playwright.async_api import async_playwright

from webpilot import BrowserAgent, CancellationToken, JsonlTurnLogger
from webpilot.llm_provider import LLMProvider
from webpilot.models import (
    Content,
    FunctionCall,
    NativeContent,
    NativeToolResult,
    StreamChunk,
    ToolResult,
)


class PlaywrightPageDriver:
    """Just enough of BrowserDriver for this demo: navigation, snapshot, screenshots."""

    def __init__(self, page):
        self.page = page

    async def ensure_connection(self) -> None:
        return None

    async def get_page(self):
        return self.page

    async def call_tool(self, name, args):
        if name == "take_snapshot":
            title = await self.page.title()
            return NativeToolResult(content=[NativeContent(text=f'uid=1_0 RootWebArea "{title}" url="{self.page.url}"')])
        return NativeToolResult(content=[NativeContent(text=f"{name}: not supported in demo")], is_error=True)

    async def navigate(self, url):
        await self.page.goto(url)
        return ToolResult(output=f"Navigated to {url}")


class ScriptedProvider(LLMProvider):
    """Replays a fixed list of tool calls, one per turn."""

    def __init__(self, turns):
        super().__init__("scripted")
        self._turns = list(turns)

    async def stream_content(self, *, model, system_instruction, tools, contents, cancel=None):
        if self._turns:
            name, args = self._turns.pop(0)
            yield StreamChunk(function_calls=[FunctionCall(name=name, args=args)])

    async def generate_content(self, *, model, contents, tools, system_instruction=None) -> Content | None:
        return None


async def main() -> None:
    # For a real run, swap this for webpilot.llm_provider.OpenAIProvider().
    provider = ScriptedProvider(
        [
            ("navigate", {"url": "https://example.com"}),
            ("complete_task", {"summary": "Opened Example Domain"}),
        ]
    )

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=False)
        page = await browser.new_page()

        agent = BrowserAgent(
            driver=PlaywrightPageDriver(page),
            provider=provider,
            turn_logger=JsonlTurnLogger("traces"),
        )
        summary = await agent.run_task("Open example.com", CancellationToken(), print)
        print(f"result: {summary}")

        await browser.close()


if __name__ == "__main__":
    asyncio.run(main())
