from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict


class NoArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


@dataclass(frozen=True)
class ToolSpec:
    """
    Declaration of one model-callable tool.

    `input_model` doubles as the JSON schema advertised to the model and as the
    validator/coercer applied to the model's arguments before dispatch.
    """

    name: str
    description: str
    input_model: type[BaseModel] = NoArgs

    def llm_spec(self) -> dict[str, Any]:
        schema = self.input_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return {
            "name": self.name,
            "description": self.description,
            "parameters": schema,
        }


class ToolRegistry:
    """Ordered, name-keyed set of tool declarations for one capability set."""

    def __init__(self, specs: list[ToolSpec] | None = None) -> None:
        self._tools: dict[str, ToolSpec] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: ToolSpec) -> ToolSpec:
        if spec.name in self._tools:
            raise ValueError(f"tool already registered: {spec.name}")
        self._tools[spec.name] = spec
        return spec

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def list(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def validate_input(self, name: str, payload: dict[str, Any] | None) -> BaseModel:
        spec = self._tools.get(name)
        if spec is None:
            raise KeyError(name)
        return spec.input_model.model_validate(payload or {})

    def llm_tools(self) -> list[dict[str, Any]]:
        return [spec.llm_spec() for spec in self._tools.values()]
