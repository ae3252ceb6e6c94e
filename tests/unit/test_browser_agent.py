from __future__ import annotations

import base64
from typing import Any

import pytest

from webpilot.agents import BrowserAgent, BrowserAgentConfig
from webpilot.cancellation import CancellationToken
from webpilot.constants import (
    CACHE_INVALIDATION_SCRIPT,
    COMPLETION_REPROMPT,
    NAMELESS_CALL_ERROR,
    TASK_CANCELLED,
)
from webpilot.exceptions import BrowserConnectionError
from webpilot.llm_provider import LLMProvider
from webpilot.models import (
    Content,
    FunctionCall,
    NativeContent,
    NativeToolResult,
    Part,
    StreamChunk,
    ToolResult,
)


class PageStub:
    def __init__(self) -> None:
        self.brought_to_front = 0

    async def bring_to_front(self) -> None:
        self.brought_to_front += 1

    async def screenshot(self) -> bytes:
        return b"png"


class DriverStub:
    def __init__(self, *, snapshot: str = 'uid=1_1 button "OK"', events: list[str] | None = None):
        self.snapshot_text = snapshot
        self.events = events if events is not None else []
        self.calls: list[tuple[str, tuple]] = []
        self.native_calls: list[tuple[str, dict]] = []
        self.fail_connection = False
        self.fail_snapshot = False
        self.raise_on: set[str] = set()
        self.page = PageStub()

    async def ensure_connection(self) -> None:
        if self.fail_connection:
            raise BrowserConnectionError("no browser listening on 9222")

    async def call_tool(self, name: str, args: dict[str, Any]) -> NativeToolResult:
        self.native_calls.append((name, dict(args)))
        if name == "take_snapshot":
            self.events.append("snapshot")
            if self.fail_snapshot:
                raise RuntimeError("snapshot failed")
            content = [NativeContent(text=self.snapshot_text)] if self.snapshot_text else []
            return NativeToolResult(content=content)
        return NativeToolResult(content=[NativeContent(text=f"{name} ok")])

    async def get_page(self) -> PageStub:
        return self.page

    async def _record(self, name: str, *args: Any) -> ToolResult:
        self.calls.append((name, args))
        if name in self.raise_on:
            raise RuntimeError(f"{name} exploded")
        return ToolResult(output=f"{name} ok")

    async def navigate(self, url):
        return await self._record("navigate", url)

    async def click(self, uid, dbl_click=False):
        return await self._record("click", uid, dbl_click)

    async def fill(self, uid, value):
        return await self._record("fill", uid, value)

    async def press_key(self, key):
        return await self._record("press_key", key)

    async def scroll_document(self, direction, amount):
        return await self._record("scroll_document", direction, amount)

    async def click_at(self, x, y):
        return await self._record("click_at", x, y)


class ProviderStub(LLMProvider):
    def __init__(
        self,
        *,
        turns: list[Any] | None = None,
        default: list[StreamChunk] | None = None,
        generate_responses: list[Content | None] | None = None,
        events: list[str] | None = None,
    ) -> None:
        super().__init__("stub")
        self._turns = list(turns or [])
        self._default = default
        self._generate_responses = list(generate_responses or [])
        self.events = events if events is not None else []
        self.requests: list[list[Content]] = []
        self.generate_requests: list[list[Content]] = []
        self.generate_models: list[str] = []

    async def stream_content(self, *, model, system_instruction, tools, contents, cancel=None):
        self.events.append("model")
        self.requests.append(list(contents))
        turn = self._turns.pop(0) if self._turns else self._default
        if isinstance(turn, Exception):
            raise turn
        for chunk in turn or []:
            yield chunk

    async def generate_content(self, *, model, contents, tools, system_instruction=None):
        self.generate_models.append(model)
        self.generate_requests.append(list(contents))
        return self._generate_responses.pop(0) if self._generate_responses else None


def calls(*items: tuple[str, dict[str, Any]]) -> list[StreamChunk]:
    return [StreamChunk(function_calls=[FunctionCall(name=n, args=a) for n, a in items])]


def complete(summary: str = "Done") -> list[StreamChunk]:
    return calls(("complete_task", {"summary": summary}))


def payload(provider: ProviderStub, index: int) -> list[Part]:
    return provider.requests[index][-1].parts


def function_responses(parts: list[Part]) -> list[tuple[str, str]]:
    return [
        (p.function_response.name, p.function_response.response["content"][0]["text"])
        for p in parts
        if p.function_response is not None
    ]


@pytest.mark.asyncio
async def test_navigate_result_is_attached_to_next_turn() -> None:
    driver = DriverStub()
    provider = ProviderStub(
        turns=[calls(("navigate", {"url": "https://example.com"})), complete("Visited")]
    )
    agent = BrowserAgent(driver=driver, provider=provider)

    out = await agent.run_task("Open example.com", CancellationToken())

    assert out == "Visited"
    assert driver.calls[0] == ("navigate", ("https://example.com",))
    assert function_responses(payload(provider, 1)) == [("navigate", "navigate ok")]


@pytest.mark.asyncio
async def test_one_snapshot_per_turn_before_model_call() -> None:
    events: list[str] = []
    driver = DriverStub(events=events)
    provider = ProviderStub(
        turns=[calls(("navigate", {"url": "https://example.com"})), complete()], events=events
    )
    agent = BrowserAgent(driver=driver, provider=provider)

    await agent.run_task("Open example.com", CancellationToken())

    assert events == ["snapshot", "model", "snapshot", "model"]
    assert ("take_snapshot", {"verbose": False}) in driver.native_calls


@pytest.mark.asyncio
async def test_snapshot_is_placed_before_carried_parts() -> None:
    driver = DriverStub(snapshot='uid=1_1 button "OK"')
    provider = ProviderStub(turns=[complete()])
    agent = BrowserAgent(driver=driver, provider=provider)

    await agent.run_task("Click OK", CancellationToken())

    texts = [p.text for p in payload(provider, 0)]
    assert texts == [
        '<accessibility_tree>\nuid=1_1 button "OK"\n</accessibility_tree>',
        "Task: Click OK",
    ]


@pytest.mark.asyncio
async def test_loop_stops_at_iteration_cap() -> None:
    driver = DriverStub()
    provider = ProviderStub(default=calls(("navigate", {"url": "https://example.com"})))
    agent = BrowserAgent(driver=driver, provider=provider)

    out = await agent.run_task("Never finishes", CancellationToken())

    assert out == "Task finished"
    assert len(provider.requests) == 20
    assert driver.events.count("snapshot") == 20


@pytest.mark.asyncio
async def test_iteration_cap_is_configurable() -> None:
    driver = DriverStub()
    provider = ProviderStub(default=calls(("press_key", {"key": "Tab"})))
    agent = BrowserAgent(
        driver=driver, provider=provider, config=BrowserAgentConfig(max_iterations=3)
    )

    assert await agent.run_task("Tab around", CancellationToken()) == "Task finished"
    assert len(provider.requests) == 3


@pytest.mark.asyncio
async def test_zero_function_calls_reprompts_with_only_the_corrective_text() -> None:
    driver = DriverStub(snapshot="")
    provider = ProviderStub(
        turns=[
            calls(("navigate", {"url": "https://example.com"})),
            [StreamChunk(parts=[Part(text="I think the page is open.")])],
            complete(),
        ]
    )
    progress: list[str] = []
    agent = BrowserAgent(driver=driver, provider=provider)

    out = await agent.run_task("Open example.com", CancellationToken(), progress.append)

    assert out == "Done"
    assert function_responses(payload(provider, 1)) == [("navigate", "navigate ok")]
    assert [p.text for p in payload(provider, 2)] == [COMPLETION_REPROMPT]
    assert any("Agent stopped without calling complete_task" in m for m in progress)


@pytest.mark.asyncio
async def test_complete_task_stops_loop_after_executing_the_whole_turn() -> None:
    driver = DriverStub()
    provider = ProviderStub(
        turns=[
            calls(("complete_task", {"summary": "Done"}), ("press_key", {"key": "Enter"})),
            complete("should never run"),
        ]
    )
    agent = BrowserAgent(driver=driver, provider=provider)

    out = await agent.run_task("Press enter and finish", CancellationToken())

    assert out == "Done"
    assert len(provider.requests) == 1
    assert ("press_key", ("Enter",)) in driver.calls


@pytest.mark.asyncio
async def test_complete_task_without_summary_uses_default() -> None:
    provider = ProviderStub(turns=[calls(("complete_task", {}))])
    agent = BrowserAgent(driver=DriverStub(), provider=provider)

    assert await agent.run_task("Finish", CancellationToken()) == "Task completed"


@pytest.mark.asyncio
async def test_cancel_before_dispatch_executes_no_queued_calls() -> None:
    token = CancellationToken()

    class CancellingProvider(ProviderStub):
        async def stream_content(self, **kwargs):
            self.requests.append(list(kwargs["contents"]))
            yield calls(("navigate", {"url": "https://example.com"}), ("press_key", {"key": "Enter"}))[0]
            token.cancel("user pressed Ctrl+C")

    driver = DriverStub()
    progress: list[str] = []
    agent = BrowserAgent(driver=driver, provider=CancellingProvider())

    out = await agent.run_task("Do two things", token, progress.append)

    assert out == TASK_CANCELLED
    assert driver.calls == []
    assert "⚠️  Browser task cancelled" in progress


@pytest.mark.asyncio
async def test_cancel_during_dispatch_skips_remaining_calls() -> None:
    token = CancellationToken()
    driver = DriverStub()
    original_navigate = driver.navigate

    async def navigate_then_cancel(url):
        result = await original_navigate(url)
        token.cancel()
        return result

    driver.navigate = navigate_then_cancel  # type: ignore[method-assign]
    provider = ProviderStub(
        turns=[calls(("navigate", {"url": "https://example.com"}), ("press_key", {"key": "Enter"}))]
    )
    agent = BrowserAgent(driver=driver, provider=provider)

    out = await agent.run_task("Do two things", token)

    assert out == TASK_CANCELLED
    assert [c[0] for c in driver.calls] == ["navigate"]


@pytest.mark.asyncio
async def test_already_cancelled_token_never_calls_model() -> None:
    token = CancellationToken()
    token.cancel()
    provider = ProviderStub(turns=[complete()])
    driver = DriverStub()
    agent = BrowserAgent(driver=driver, provider=provider)

    assert await agent.run_task("Anything", token) == TASK_CANCELLED
    assert provider.requests == []
    assert driver.events == []


@pytest.mark.asyncio
async def test_tool_exception_does_not_block_later_calls() -> None:
    driver = DriverStub()
    driver.raise_on.add("press_key")
    provider = ProviderStub(
        turns=[
            calls(("press_key", {"key": "Enter"}), ("navigate", {"url": "https://example.com"})),
            complete(),
        ]
    )
    agent = BrowserAgent(driver=driver, provider=provider)

    assert await agent.run_task("Press and go", CancellationToken()) == "Done"

    responses = function_responses(payload(provider, 1))
    assert responses[0] == ("press_key", "Error executing press_key: press_key exploded")
    assert responses[1] == ("navigate", "navigate ok")


@pytest.mark.asyncio
async def test_connection_failure_is_fatal_and_skips_model() -> None:
    driver = DriverStub()
    driver.fail_connection = True
    provider = ProviderStub(turns=[complete()])
    progress: list[str] = []
    agent = BrowserAgent(driver=driver, provider=provider)

    out = await agent.run_task("Anything", CancellationToken(), progress.append)

    assert out == "Error: Failed to connect to browser: no browser listening on 9222"
    assert progress == [out]
    assert provider.requests == []


@pytest.mark.asyncio
async def test_streaming_error_is_fatal() -> None:
    provider = ProviderStub(turns=[RuntimeError("quota exceeded")])
    agent = BrowserAgent(driver=DriverStub(), provider=provider)

    out = await agent.run_task("Anything", CancellationToken())

    assert out == "Error calling model: quota exceeded"
    assert len(provider.requests) == 1


@pytest.mark.asyncio
async def test_empty_stream_is_recovered_with_reprompt() -> None:
    provider = ProviderStub(turns=[[], complete("Recovered")])
    agent = BrowserAgent(driver=DriverStub(snapshot=""), provider=provider)

    out = await agent.run_task("Anything", CancellationToken())

    assert out == "Recovered"
    assert [p.text for p in payload(provider, 1)] == [COMPLETION_REPROMPT]


@pytest.mark.asyncio
async def test_state_capture_failure_is_not_fatal() -> None:
    driver = DriverStub()
    driver.fail_snapshot = True
    provider = ProviderStub(turns=[complete()])
    agent = BrowserAgent(driver=driver, provider=provider)

    assert await agent.run_task("Anything", CancellationToken()) == "Done"
    assert [p.text for p in payload(provider, 0)] == ["Task: Anything"]


@pytest.mark.asyncio
async def test_passthrough_and_unrecognized_tools() -> None:
    driver = DriverStub()
    provider = ProviderStub(turns=[calls(("pagedown", {}), ("frobnicate", {"x": 1})), complete()])
    agent = BrowserAgent(driver=driver, provider=provider)

    await agent.run_task("Scroll", CancellationToken())

    assert ("pagedown", {}) in driver.native_calls
    assert function_responses(payload(provider, 1)) == [
        ("pagedown", "pagedown ok"),
        ("frobnicate", "Tool frobnicate not implemented in agent loop."),
    ]


@pytest.mark.asyncio
async def test_delegation_runs_visual_delegate_and_returns_its_summary() -> None:
    driver = DriverStub()
    provider = ProviderStub(
        turns=[
            calls(("delegate_to_visual_agent", {"instruction": "Click the yellow button"})),
            complete(),
        ],
        generate_responses=[Content(role="model", parts=[Part(text="Clicked it")])],
    )
    progress: list[str] = []
    agent = BrowserAgent(
        driver=driver,
        provider=provider,
        config=BrowserAgentConfig(visual_model="vision-model"),
    )

    await agent.run_task("Click the yellow button", CancellationToken(), progress.append)

    [(name, text)] = function_responses(payload(provider, 1))
    assert name == "delegate_to_visual_agent"
    assert text.startswith("Visual Agent Completed.\nFinal Message: Clicked it")
    assert provider.generate_models == ["vision-model"]

    seed = provider.generate_requests[0][0]
    assert 'delegated a specific task: "Click the yellow button"' in (seed.parts[0].text or "")
    assert seed.parts[1].inline_data.data == base64.b64encode(b"png").decode()
    assert driver.page.brought_to_front == 1
    assert ("evaluate_script", {"function": CACHE_INVALIDATION_SCRIPT}) in driver.native_calls
    assert "🤖 Visual Agent: Click the yellow button" in progress


@pytest.mark.asyncio
async def test_progress_reports_thought_subjects_and_completion() -> None:
    provider = ProviderStub(
        turns=[
            [
                StreamChunk(parts=[Part(text="**Finding the form** looking for inputs", thought=True)]),
                *complete("All done"),
            ]
        ]
    )
    progress: list[str] = []
    agent = BrowserAgent(driver=DriverStub(), provider=provider)

    await agent.run_task("Fill the form", CancellationToken(), progress.append)

    assert progress[0] == "💭 Finding the form"
    assert "🔧 Generating tool call: complete_task..." in progress
    assert "✅ All done" in progress


@pytest.mark.asyncio
async def test_raising_progress_callback_does_not_affect_control_flow() -> None:
    def broken(_msg: str) -> None:
        raise RuntimeError("terminal closed")

    provider = ProviderStub(turns=[complete()])
    agent = BrowserAgent(driver=DriverStub(), provider=provider)

    assert await agent.run_task("Anything", CancellationToken(), broken) == "Done"


@pytest.mark.asyncio
async def test_turns_are_logged_and_logger_failures_are_ignored() -> None:
    class RecordingLogger:
        def __init__(self) -> None:
            self.summaries: list[Content] = []
            self.turns: list[tuple[list[Content], Content]] = []

        def log_summary(self, content: Content) -> None:
            self.summaries.append(content)

        def log_full_turn(self, prior: list[Content], content: Content) -> None:
            self.turns.append((prior, content))
            raise OSError("disk full")

    turn_logger = RecordingLogger()
    provider = ProviderStub(turns=[calls(("press_key", {"key": "Tab"})), complete()])
    agent = BrowserAgent(driver=DriverStub(), provider=provider, turn_logger=turn_logger)

    assert await agent.run_task("Tab", CancellationToken()) == "Done"
    assert len(turn_logger.summaries) == 2
    prior, content = turn_logger.turns[0]
    assert prior[0].role == "user" and content.role == "model"
    assert content.function_calls()[0].name == "press_key"


@pytest.mark.asyncio
async def test_blank_prompt_is_rejected() -> None:
    agent = BrowserAgent(driver=DriverStub(), provider=ProviderStub())
    with pytest.raises(ValueError):
        await agent.run_task("   ", CancellationToken())


def test_config_from_env() -> None:
    cfg = BrowserAgentConfig.from_env(
        {"WEBPILOT_MODEL": "gpt-4.1", "WEBPILOT_VISUAL_MODEL": "computer-use"}
    )
    assert cfg.model == "gpt-4.1"
    assert cfg.visual_model == "computer-use"
    assert cfg.max_iterations == 20
    assert cfg.visual_max_steps == 5

    defaults = BrowserAgentConfig.from_env({})
    assert defaults.model == BrowserAgentConfig().model


@pytest.mark.asyncio
async def test_reprompt_still_carries_fresh_snapshot_first() -> None:
    provider = ProviderStub(turns=[[StreamChunk(parts=[Part(text="done?")])], complete()])
    agent = BrowserAgent(driver=DriverStub(snapshot="uid=2_1 link"), provider=provider)

    await agent.run_task("Anything", CancellationToken())

    assert [p.text for p in payload(provider, 1)] == [
        "<accessibility_tree>\nuid=2_1 link\n</accessibility_tree>",
        COMPLETION_REPROMPT,
    ]


@pytest.mark.asyncio
async def test_nameless_calls_get_paired_responses_and_reprompt() -> None:
    driver = DriverStub(snapshot="")
    provider = ProviderStub(
        turns=[[StreamChunk(function_calls=[FunctionCall(name=None, id="call_A")])], complete()]
    )
    progress: list[str] = []
    agent = BrowserAgent(driver=driver, provider=provider)

    assert await agent.run_task("Anything", CancellationToken(), progress.append) == "Done"

    parts = payload(provider, 1)
    assert parts[0].function_response.id == "call_A"
    assert parts[0].function_response.response == {
        "content": [{"type": "text", "text": NAMELESS_CALL_ERROR}]
    }
    assert parts[1].text == COMPLETION_REPROMPT
    assert len(parts) == 2
    assert "❌ Warning: Received function call without name" in progress
    assert driver.calls == []


@pytest.mark.asyncio
async def test_nameless_call_next_to_named_call_does_not_reprompt() -> None:
    provider = ProviderStub(
        turns=[
            [
                StreamChunk(
                    function_calls=[
                        FunctionCall(name=None, id="call_A"),
                        FunctionCall(name="press_key", args={"key": "Tab"}, id="call_B"),
                    ]
                )
            ],
            complete(),
        ]
    )
    agent = BrowserAgent(driver=DriverStub(snapshot=""), provider=provider)

    await agent.run_task("Anything", CancellationToken())

    parts = payload(provider, 1)
    assert [p.function_response.id for p in parts] == ["call_A", "call_B"]
    assert all(p.text != COMPLETION_REPROMPT for p in parts)


class CancelAfterFirstChunk(ProviderStub):
    """Cancels the token once the first chunk was consumed, then keeps streaming."""

    def __init__(self, token: CancellationToken) -> None:
        super().__init__()
        self.token = token
        self.closed = False

    async def stream_content(self, *, model, system_instruction, tools, contents, cancel=None):
        self.requests.append(list(contents))
        try:
            yield StreamChunk(parts=[Part(text="Looking at the page")])
            self.token.cancel()
            yield calls(("navigate", {"url": "https://example.com"}))[0]
            yield complete("never seen")[0]
        finally:
            self.closed = True


@pytest.mark.asyncio
async def test_cancel_mid_stream_closes_provider_stream() -> None:
    token = CancellationToken()
    provider = CancelAfterFirstChunk(token)
    agent = BrowserAgent(driver=DriverStub(), provider=provider)

    out = await agent.run_task("Open example.com", token)

    assert out == TASK_CANCELLED
    assert provider.closed is True


@pytest.mark.asyncio
async def test_calls_in_chunk_after_cancellation_are_not_announced_or_run() -> None:
    token = CancellationToken()
    driver = DriverStub()
    progress: list[str] = []
    agent = BrowserAgent(driver=driver, provider=CancelAfterFirstChunk(token))

    out = await agent.run_task("Open example.com", token, progress.append)

    assert out == TASK_CANCELLED
    assert driver.calls == []
    assert not any(m.startswith("🔧") for m in progress)
    assert progress[-1] == "⚠️  Browser task cancelled"


def test_default_visual_model_is_served_by_chat_completions() -> None:
    from webpilot.agents import VisualDelegateConfig

    assert BrowserAgentConfig().visual_model == "gpt-4o"
    assert VisualDelegateConfig().model == "gpt-4o"
    assert "computer-use" not in BrowserAgentConfig.from_env({}).visual_model
