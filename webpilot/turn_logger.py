from __future__ import annotations

import json
import tempfile
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from .models import Content

SUMMARY_FILE = "browser-agent-summary.jsonl"
TURNS_FILE = "browser-agent-turns.jsonl"


class TurnLogger(Protocol):
    def log_summary(self, content: Content) -> None: ...

    def log_full_turn(self, prior: list[Content], content: Content) -> None: ...


class NoopTurnLogger:
    def log_summary(self, content: Content) -> None:  # pragma: no cover
        return

    def log_full_turn(self, prior: list[Content], content: Content) -> None:  # pragma: no cover
        return


def _redact_inline_data(payload: Any) -> Any:
    """Replace base64 screenshots with their size so logs stay small."""
    if isinstance(payload, dict):
        out: dict[str, Any] = {}
        for k, v in payload.items():
            if k == "inline_data" and isinstance(v, dict) and isinstance(v.get("data"), str):
                out[k] = {
                    "mime_type": v.get("mime_type"),
                    "data": None,
                    "data_chars": len(v["data"]),
                }
            else:
                out[k] = _redact_inline_data(v)
        return out
    if isinstance(payload, list):
        return [_redact_inline_data(x) for x in payload]
    return payload


class JsonlTurnLogger:
    """
    Append-only JSONL turn log.

    - `browser-agent-summary.jsonl`: one line per model reply (text + tool call names)
    - `browser-agent-turns.jsonl`: one line per turn with the prompt and the full reply
    """

    def __init__(
        self, temp_dir: str | Path | None = None, *, time_fn: Callable[[], float] = time.time
    ) -> None:
        self.dir = Path(temp_dir or tempfile.gettempdir())
        self._time_fn = time_fn

    @property
    def summary_path(self) -> Path:
        return self.dir / SUMMARY_FILE

    @property
    def turns_path(self) -> Path:
        return self.dir / TURNS_FILE

    def _append(self, path: Path, record: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")

    def log_summary(self, content: Content) -> None:
        calls = content.function_calls()
        self._append(
            self.summary_path,
            {
                "ts": self._time_fn(),
                "text": content.text(),
                "function_calls": [c.name for c in calls],
            },
        )

    def log_full_turn(self, prior: list[Content], content: Content) -> None:
        self._append(
            self.turns_path,
            {
                "ts": self._time_fn(),
                "prompt": [_redact_inline_data(c.model_dump(exclude_none=True)) for c in prior],
                "response": _redact_inline_data(content.model_dump(exclude_none=True)),
            },
        )
