"""Build tool definitions from a parsed OpenAPI spec.

Names every operation (with collision handling), describes it, and builds
its argument model. The result is keyed by tool name; that key is also how
a tool call finds its operation again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from .collisions import assign_tool_names
from .descriptions import build_tool_description
from .loader import Operation
from .schema_parser import ENVIRONMENT_ARGUMENT, build_input_model, declares_environment
from .vocabulary import ACTION_WORDS


@dataclass(frozen=True)
class ToolDefinition:
    """Everything needed to register and execute one operation tool."""

    name: str
    description: str
    operation: Operation
    input_model: type[BaseModel]

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.input_model.model_json_schema()

    @property
    def routes_environment(self) -> bool:
        """True if the ``environment`` argument picks the environment rather than reaching the API."""
        return ENVIRONMENT_ARGUMENT in self.input_model.model_fields and not declares_environment(self.operation)


def build_toolset(
    spec: dict[str, Any],
    operations: list[Operation],
    vocabulary: frozenset[str] = ACTION_WORDS,
    environments: list[str] | tuple[str, ...] = (),
    default_environment: str | None = None,
) -> dict[str, ToolDefinition]:
    """Build one tool definition per operation, in declaration order."""
    tools: dict[str, ToolDefinition] = {}
    for name, operation in assign_tool_names(operations, vocabulary).items():
        tools[name] = ToolDefinition(
            name=name,
            description=build_tool_description(operation, vocabulary),
            operation=operation,
            input_model=build_input_model(
                spec,
                operation,
                name,
                environments=environments,
                default_environment=default_environment,
            ),
        )
    return tools
